"""
Permission catalog and organization role API routes.
"""
from typing import Annotated, List
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import get_db
from app.features.organizations.dependencies import get_member_context
from app.features.permissions import service
from app.features.permissions.catalog import list_permissions
from app.features.permissions.dependencies import require_permission
from app.features.permissions.guards import GuardContext
from app.features.permissions.models import PermissionAction, PermissionSubject
from app.features.permissions.schemas import (
    PermissionResponse,
    RoleCreate,
    RoleUpdate,
    RoleResponse,
    RoleSearchParams,
    RoleListResponse,
)
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


router = APIRouter()
roles_router = APIRouter()


# ============================================================================
# Permission Routes
# ============================================================================

@router.get("", response_model=List[PermissionResponse])
async def list_catalog(
    db: Annotated[AsyncSession, Depends(get_db)],
    current_user: Annotated[User, Depends(get_current_user)]
):
    """List every (action, subject) pair roles can be built from."""
    return await list_permissions(db)


# ============================================================================
# Role Routes
# ============================================================================

@roles_router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    organization_id: int,
    role: RoleCreate,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.CREATE, PermissionSubject.ROLE))]
):
    """Create a role with its permission set."""
    return await service.create_role(ctx.db, organization_id, role)


@roles_router.get("", response_model=RoleListResponse)
async def list_roles(
    organization_id: int,
    params: Annotated[RoleSearchParams, Query()],
    ctx: Annotated[GuardContext, Depends(get_member_context)]
):
    """List the organization's roles (members only)."""
    return await service.list_roles(ctx.db, organization_id, params)


@roles_router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    organization_id: int,
    role_id: int,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.READ, PermissionSubject.ROLE))]
):
    """Get a specific role with its permissions."""
    return await service.get_role(ctx.db, organization_id, role_id)


@roles_router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    organization_id: int,
    role_id: int,
    role_update: RoleUpdate,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.UPDATE, PermissionSubject.ROLE))]
):
    """Update a role. A supplied permission list replaces the current one."""
    return await service.update_role(ctx.db, organization_id, role_id, role_update)


@roles_router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    organization_id: int,
    role_id: int,
    ctx: Annotated[GuardContext, Depends(require_permission(PermissionAction.DELETE, PermissionSubject.ROLE))]
):
    """Delete a role and every membership that used it."""
    await service.delete_role(ctx.db, organization_id, role_id)
    return None
