"""
FastAPI dependencies for route protection.

Implements the full guard chain for organization-scoped routes:
identity, membership, then the declared permission.
"""
from typing import Annotated, Optional
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.permissions.guards import GuardContext, PERMISSION, run_guards
from app.features.permissions.models import PermissionAction, PermissionSubject
from app.features.users.dependencies import security, bearer_token


def require_permission(action: PermissionAction, subject: PermissionSubject):
    """
    FastAPI dependency to require a specific permission in the path organization.

    Usage:
        @router.post("")
        async def create_project(
            organization_id: int,
            ctx: GuardContext = Depends(require_permission(PermissionAction.CREATE, PermissionSubject.PROJECT))
        ):
            # ctx.user is a member holding create/project (or a wildcard)
            pass

    Returns:
        Dependency function that returns the populated GuardContext

    Raises:
        UnauthorizedError: 401 if the token is missing or invalid
        ForbiddenError: 403 if the user is not a member or not permitted
    """
    async def permission_dependency(
        organization_id: int,
        credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
        db: Annotated[AsyncSession, Depends(get_db)]
    ) -> GuardContext:
        ctx = GuardContext(
            db=db,
            token=bearer_token(credentials),
            organization_id=organization_id,
            required=(action, subject),
        )
        return await run_guards(ctx, PERMISSION)

    return permission_dependency
