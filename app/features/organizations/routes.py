"""
Organization feature routes.
"""
from typing import Annotated
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.users.models import User
from app.features.users.dependencies import get_current_user
from app.features.organizations import membership, service
from app.features.organizations.models import Organization
from app.features.organizations.schemas import (
    OrganizationCreate,
    OrganizationUpdate,
    OrganizationResponse,
    MemberResponse,
    MemberUser,
    AddMemberRequest,
    UpdateMemberRequest,
)
from app.features.organizations.dependencies import get_member_organization
from app.features.permissions.dependencies import require_permission
from app.features.permissions.guards import GuardContext, ensure_assignable
from app.features.permissions.models import PermissionAction, PermissionSubject, Role
from app.features.permissions.schemas import RoleSummary


router = APIRouter(tags=["organizations"])
members_router = APIRouter(tags=["organization users"])


def _member(user: User, role: Role) -> MemberResponse:
    return MemberResponse(user=MemberUser.model_validate(user), role=RoleSummary.model_validate(role))


# Organization CRUD endpoints
@router.post("", response_model=OrganizationResponse, status_code=status.HTTP_201_CREATED)
async def create_organization(
    org_data: OrganizationCreate,
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Create a new organization. The caller becomes its owner."""
    return await service.create_organization(db, org_data, user)


@router.get("", response_model=list[OrganizationResponse])
async def get_my_organizations(
    user: Annotated[User, Depends(get_current_user)],
    db: Annotated[AsyncSession, Depends(get_db)]
):
    """Get all organizations the current user is a member of."""
    return await service.list_user_organizations(db, user.id)


@router.get("/{organization_id}", response_model=OrganizationResponse)
async def get_organization(
    organization: Annotated[Organization, Depends(get_member_organization)]
):
    """Get organization by ID (members only)."""
    return organization


@router.patch("/{organization_id}", response_model=OrganizationResponse)
async def update_organization(
    organization_id: int,
    update_data: OrganizationUpdate,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.UPDATE, PermissionSubject.ORGANIZATION))]
):
    """Update organization information."""
    organization = await ctx.db.get(Organization, organization_id)
    return await service.update_organization(ctx.db, organization, update_data)


@router.delete("/{organization_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_organization(
    organization_id: int,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.DELETE, PermissionSubject.ORGANIZATION))]
):
    """Delete an organization and everything it owns."""
    await service.delete_organization(ctx.db, organization_id)
    return None


# Organization member endpoints
@members_router.get("", response_model=list[MemberResponse])
async def list_members(
    organization_id: int,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.READ, PermissionSubject.USER))]
):
    """List members and their roles."""
    members = await membership.list_members(ctx.db, organization_id)
    return [_member(user, role) for user, role in members]


@members_router.post("", response_model=MemberResponse, status_code=status.HTTP_201_CREATED)
async def add_member(
    organization_id: int,
    data: AddMemberRequest,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.CREATE, PermissionSubject.USER))]
):
    """Add an existing user with a role no broader than the caller's own."""
    await ensure_assignable(ctx, data.role_id)
    user, role = await membership.add_member(ctx.db, organization_id, data.email, data.role_id)
    return _member(user, role)


@members_router.patch("/{user_id}", response_model=MemberResponse)
async def update_member(
    organization_id: int,
    user_id: int,
    data: UpdateMemberRequest,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.UPDATE, PermissionSubject.USER))]
):
    """Move a member to a role no broader than the caller's own."""
    await ensure_assignable(ctx, data.role_id)
    user, role = await membership.change_member_role(ctx.db, organization_id, user_id, data.role_id)
    return _member(user, role)


@members_router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    organization_id: int,
    user_id: int,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.DELETE, PermissionSubject.USER))]
):
    """Remove a user from the organization."""
    await membership.remove_member(ctx.db, organization_id, user_id)
    return None
