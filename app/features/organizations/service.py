"""
Organization lifecycle: create with an owner, update, delete with cascade.
"""
from datetime import datetime, timezone
from typing import List
from sqlalchemy import select, insert, delete, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError
from app.features.organizations.models import Organization
from app.features.organizations.schemas import OrganizationCreate, OrganizationUpdate
from app.features.permissions.catalog import find_by_permission_config
from app.features.permissions.models import (
    PermissionAction,
    PermissionSubject,
    Role,
    role_permissions,
    user_organization_roles,
)
from app.features.projects.models import Project
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)

OWNER_ROLE_NAME = "Owner"
OWNER_ROLE_SLUG = "owner"


async def _ensure_unique(db: AsyncSession, name: str | None, slug: str | None, exclude_id: int | None = None) -> None:
    conditions = []
    if name is not None:
        conditions.append(Organization.name == name)
    if slug is not None:
        conditions.append(Organization.slug == slug)
    if not conditions:
        return

    stmt = select(Organization).where(or_(*conditions))
    if exclude_id is not None:
        stmt = stmt.where(Organization.id != exclude_id)
    existing = (await db.execute(stmt)).scalars().first()

    if existing is not None:
        if slug is not None and existing.slug == slug:
            raise ConflictError("Organization with this slug already exists")
        raise ConflictError("Organization with this name already exists")


async def create_organization(db: AsyncSession, data: OrganizationCreate, owner: User) -> Organization:
    """
    Create an organization, its owner role and the creator's membership.

    All rows are committed together.

    Raises:
        ConflictError: name or slug already taken
    """
    await _ensure_unique(db, data.name, data.slug)

    owner_permission = await find_by_permission_config(db, PermissionAction.MANAGE, PermissionSubject.ALL)

    organization = Organization(name=data.name, slug=data.slug, owner_id=owner.id)
    try:
        db.add(organization)
        await db.flush()

        role = Role(organization_id=organization.id, name=OWNER_ROLE_NAME, slug=OWNER_ROLE_SLUG)
        db.add(role)
        await db.flush()

        await db.execute(insert(role_permissions).values(role_id=role.id, permission_id=owner_permission.id))
        await db.execute(
            insert(user_organization_roles).values(
                user_id=owner.id,
                organization_id=organization.id,
                role_id=role.id,
                assigned_at=datetime.now(timezone.utc),
            )
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Organization with this name or slug already exists")

    await db.refresh(organization)
    log.info("Created org %s (%s) owned by user %s", organization.id, organization.slug, owner.id)
    return organization


async def update_organization(db: AsyncSession, organization: Organization, data: OrganizationUpdate) -> Organization:
    """
    Raises:
        ConflictError: new name or slug already taken
    """
    update_data = data.model_dump(exclude_unset=True, exclude_none=True)
    await _ensure_unique(db, update_data.get("name"), update_data.get("slug"), exclude_id=organization.id)

    for key, value in update_data.items():
        setattr(organization, key, value)

    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Organization with this name or slug already exists")

    await db.refresh(organization)
    return organization


async def delete_organization(db: AsyncSession, organization_id: int) -> None:
    """Delete an organization with its roles, memberships and projects."""
    role_ids = select(Role.id).where(Role.organization_id == organization_id)

    await db.execute(delete(role_permissions).where(role_permissions.c.role_id.in_(role_ids)))
    await db.execute(
        delete(user_organization_roles).where(user_organization_roles.c.organization_id == organization_id)
    )
    await db.execute(delete(Role).where(Role.organization_id == organization_id))
    await db.execute(delete(Project).where(Project.organization_id == organization_id))
    await db.execute(delete(Organization).where(Organization.id == organization_id))
    await db.commit()

    log.info("Deleted org %s", organization_id)


async def list_user_organizations(db: AsyncSession, user_id: int) -> List[Organization]:
    result = await db.execute(
        select(Organization)
        .join(user_organization_roles, user_organization_roles.c.organization_id == Organization.id)
        .where(user_organization_roles.c.user_id == user_id)
        .order_by(Organization.id)
    )
    return list(result.scalars().all())
