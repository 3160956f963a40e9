"""
Pydantic schemas for permissions and roles.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, ConfigDict

from app.features.permissions.models import PermissionAction, PermissionSubject


SLUG_PATTERN = r"^[a-z0-9]+(?:-[a-z0-9]+)*$"


# ============================================================================
# Permission Schemas
# ============================================================================

class PermissionConfig(BaseModel):
    """An (action, subject) pair as sent by clients."""
    action: PermissionAction = Field(..., description="manage, create, read, update or delete")
    subject: PermissionSubject = Field(..., description="Resource type, or 'all'")


class PermissionResponse(BaseModel):
    """Schema for permission response."""
    id: int
    action: PermissionAction
    subject: PermissionSubject

    model_config = ConfigDict(from_attributes=True)


# ============================================================================
# Role Schemas
# ============================================================================

class RoleCreate(BaseModel):
    """Schema for creating a new role in an organization."""
    name: str = Field(..., min_length=1, max_length=100, description="Role name")
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN, description="Slug, unique in the organization")
    permission_configs: List[PermissionConfig] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    """
    Schema for updating a role.

    When permission_configs is present it replaces the role's whole
    permission set; an empty list removes every permission.
    """
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    permission_configs: Optional[List[PermissionConfig]] = None


class RoleSummary(BaseModel):
    """Role without its permissions."""
    id: int
    name: str
    slug: str

    model_config = ConfigDict(from_attributes=True)


class RoleResponse(RoleSummary):
    """Schema for role response."""
    organization_id: int
    permissions: List[PermissionResponse] = []
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class RoleSearchParams(BaseModel):
    """Filters accepted by the role listing."""
    name: Optional[str] = Field(None, description="Case-insensitive substring match on name")
    slug: Optional[str] = Field(None, description="Exact slug")
    skip: int = Field(0, ge=0)
    limit: int = Field(100, ge=1, le=500)


class RoleListMetadata(BaseModel):
    total: int
    params: RoleSearchParams


class RoleListResponse(BaseModel):
    """Roles of an organization plus listing metadata."""
    roles: List[RoleResponse]
    metadata: RoleListMetadata
