"""
Permission and Role models for organization-scoped RBAC.

This module implements the role/permission data model:
- A global, fixed catalog of (action, subject) permissions
- Organization-scoped roles bundling a set of permissions
- Memberships binding a user to an organization through exactly one role
"""
import enum
from datetime import datetime, timezone
from sqlalchemy import (
    String, ForeignKey, Table, Column, DateTime, Integer, UniqueConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from app.core.database.base import Base, IdMixin, TimestampMixin


class PermissionAction(str, enum.Enum):
    """Operation category. MANAGE matches every action."""
    MANAGE = "manage"
    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"


class PermissionSubject(str, enum.Enum):
    """Resource type. ALL matches every subject."""
    ALL = "all"
    ORGANIZATION = "organization"
    USER = "user"
    ROLE = "role"
    INVOICE = "invoice"
    PROJECT = "project"
    BUDGET = "budget"
    CATEGORY = "category"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    return [member.value for member in enum_cls]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================================
# Association Tables for Many-to-Many Relationships
# ============================================================================

# Role-Permission relationship
role_permissions = Table(
    "role_permissions",
    Base.metadata,
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), primary_key=True),
    Column("permission_id", Integer, ForeignKey("permissions.id", ondelete="CASCADE"), primary_key=True),
)

# Membership: a user holds one role within an organization
user_organization_roles = Table(
    "user_organization_roles",
    Base.metadata,
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("organization_id", Integer, ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True),
    Column("role_id", Integer, ForeignKey("roles.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("assigned_at", DateTime(timezone=True), nullable=False, default=_utcnow),
)


# ============================================================================
# Core Models
# ============================================================================

class Permission(Base, IdMixin, TimestampMixin):
    """
    A single (action, subject) pair from the fixed catalog.

    Permissions are global reference data, seeded once and never edited
    through the API. Examples:
    - action="read", subject="invoice"
    - action="manage", subject="all"  (matches everything)
    """
    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("action", "subject", name="uq_permissions_action_subject"),
    )

    action: Mapped[PermissionAction] = mapped_column(
        SQLEnum(PermissionAction, name="permission_action", values_callable=_enum_values),
        nullable=False,
        index=True,
    )
    subject: Mapped[PermissionSubject] = mapped_column(
        SQLEnum(PermissionSubject, name="permission_subject", values_callable=_enum_values),
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Permission(id={self.id}, action={self.action.value}, subject={self.subject.value})>"


class Role(Base, IdMixin, TimestampMixin):
    """
    Named bundle of permissions owned by one organization.

    The slug is unique within the organization. The owning organization
    cannot change once set.
    """
    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("organization_id", "slug", name="uq_roles_organization_slug"),
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, index=True)

    organization_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("organizations.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    permissions: Mapped[list["Permission"]] = relationship(
        "Permission",
        secondary=role_permissions,
        lazy="selectin",
        order_by="Permission.id",
    )

    @validates("organization_id")
    def _validate_organization_id(self, _key: str, value: int) -> int:
        current = self.__dict__.get("organization_id")
        if current is not None and current != value:
            raise ValueError("Role organization cannot be changed")
        return value

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, slug={self.slug!r}, org_id={self.organization_id})>"
