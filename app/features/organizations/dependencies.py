"""
Organization-related dependency injection functions.
"""
from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.organizations.models import Organization
from app.features.permissions.guards import GuardContext, MEMBERSHIP, run_guards
from app.features.users.dependencies import security, bearer_token


async def get_member_context(
    organization_id: int,
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)]
) -> GuardContext:
    """
    Authenticate and verify the user is a member of the path organization.

    Raises:
        UnauthorizedError: missing or invalid token
        ForbiddenError: not a member (including unknown organizations)
    """
    ctx = GuardContext(db=db, token=bearer_token(credentials), organization_id=organization_id)
    return await run_guards(ctx, MEMBERSHIP)


async def get_member_organization(
    ctx: Annotated[GuardContext, Depends(get_member_context)]
) -> Organization:
    """
    Get the path organization for a verified member.
    """
    return await ctx.db.get(Organization, ctx.organization_id)
