"""
Pydantic schemas for organization-related requests and responses.
"""
from datetime import datetime
from pydantic import BaseModel, EmailStr, Field

from app.features.permissions.schemas import RoleSummary, SLUG_PATTERN


# Organization Schemas
class OrganizationBase(BaseModel):
    """Base organization schema."""
    name: str = Field(..., min_length=1, max_length=255)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN, description="Globally unique slug, e.g. example-org")


class OrganizationCreate(OrganizationBase):
    """Schema for creating a new organization. The creator becomes its owner."""
    pass


class OrganizationUpdate(BaseModel):
    """Schema for updating organization information."""
    name: str | None = Field(None, min_length=1, max_length=255)
    slug: str | None = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)


class OrganizationResponse(OrganizationBase):
    """Schema for organization responses."""
    id: int
    owner_id: int | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class OrganizationPublic(BaseModel):
    """Public organization information (limited fields)."""
    id: int
    name: str
    slug: str

    model_config = {"from_attributes": True}


# Membership Schemas
class MembershipResponse(BaseModel):
    """An organization the current user belongs to, with their role there."""
    organization: OrganizationPublic
    role: RoleSummary


class MemberUser(BaseModel):
    id: int
    email: EmailStr
    name: str
    avatar: str | None = None

    model_config = {"from_attributes": True}


class MemberResponse(BaseModel):
    """A member of an organization and the role they hold."""
    user: MemberUser
    role: RoleSummary


class AddMemberRequest(BaseModel):
    """Schema for adding an existing user to an organization."""
    email: EmailStr = Field(..., description="Email of the user to add")
    role_id: int = Field(..., description="Role in the organization")


class UpdateMemberRequest(BaseModel):
    """Schema for moving a member to another role."""
    role_id: int = Field(..., description="New role in the organization")
