"""
Membership resolver.

A membership is one row of ``user_organization_roles``: it binds a user to an
organization through exactly one role. Lookups always hit the database so a
role change is visible to the very next request.
"""
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from sqlalchemy import select, insert, update, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError
from app.features.organizations.models import Organization
from app.features.permissions.models import Role, user_organization_roles
from app.features.users.models import User
from app.utils import get_logger


log = get_logger(__name__)


async def is_member(db: AsyncSession, user_id: int, organization_id: int) -> bool:
    """Return True if the user holds a role in the organization."""
    result = await db.execute(
        select(user_organization_roles.c.role_id).where(
            user_organization_roles.c.user_id == user_id,
            user_organization_roles.c.organization_id == organization_id,
        )
    )
    return result.first() is not None


async def get_role(db: AsyncSession, user_id: int, organization_id: int) -> Optional[Role]:
    """
    Return the user's role in the organization, or None.

    The role's permissions are loaded in the same call.
    """
    result = await db.execute(
        select(Role)
        .join(user_organization_roles, user_organization_roles.c.role_id == Role.id)
        .where(
            user_organization_roles.c.user_id == user_id,
            user_organization_roles.c.organization_id == organization_id,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_memberships(db: AsyncSession, user_id: int) -> List[Tuple[Organization, Role]]:
    """All (organization, role) pairs the user belongs to."""
    result = await db.execute(
        select(Organization, Role)
        .join(user_organization_roles, user_organization_roles.c.organization_id == Organization.id)
        .join(Role, Role.id == user_organization_roles.c.role_id)
        .where(user_organization_roles.c.user_id == user_id)
        .order_by(Organization.id)
    )
    return [(org, role) for org, role in result.all()]


async def list_members(db: AsyncSession, organization_id: int) -> List[Tuple[User, Role]]:
    """All (user, role) pairs of an organization."""
    result = await db.execute(
        select(User, Role)
        .join(user_organization_roles, user_organization_roles.c.user_id == User.id)
        .join(Role, Role.id == user_organization_roles.c.role_id)
        .where(user_organization_roles.c.organization_id == organization_id)
        .order_by(User.id)
    )
    return [(user, role) for user, role in result.all()]


async def get_organization_role(db: AsyncSession, organization_id: int, role_id: int) -> Role:
    """
    Raises:
        NotFoundError: role does not belong to the organization
    """
    result = await db.execute(
        select(Role)
        .where(Role.id == role_id, Role.organization_id == organization_id)
        .execution_options(populate_existing=True)
    )
    role = result.scalar_one_or_none()
    if role is None:
        raise NotFoundError(f"Role {role_id} does not belong to organization {organization_id}")
    return role


async def add_member(db: AsyncSession, organization_id: int, email: str, role_id: int) -> Tuple[User, Role]:
    """
    Add an existing user to the organization with the given role.

    Raises:
        NotFoundError: unknown email, or role outside the organization
        ConflictError: user is already a member
    """
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("We could not find any user with that email")

    role = await get_organization_role(db, organization_id, role_id)

    if await is_member(db, user.id, organization_id):
        raise ConflictError("User is already a member of this organization")

    try:
        await db.execute(
            insert(user_organization_roles).values(
                user_id=user.id,
                organization_id=organization_id,
                role_id=role.id,
                assigned_at=datetime.now(timezone.utc),
            )
        )
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("User is already a member of this organization")

    log.info("Added user %s to org %s as %s", user.id, organization_id, role.slug)
    return user, role


async def change_member_role(db: AsyncSession, organization_id: int, user_id: int, role_id: int) -> Tuple[User, Role]:
    """
    Move a member to another role of the same organization.

    Raises:
        NotFoundError: user is not a member, or role outside the organization
    """
    role = await get_organization_role(db, organization_id, role_id)

    result = await db.execute(
        update(user_organization_roles)
        .where(
            user_organization_roles.c.user_id == user_id,
            user_organization_roles.c.organization_id == organization_id,
        )
        .values(role_id=role.id, assigned_at=datetime.now(timezone.utc))
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFoundError(f"User {user_id} is not a member of organization {organization_id}")
    await db.commit()

    user = await db.get(User, user_id)
    log.info("Changed role of user %s in org %s to %s", user_id, organization_id, role.slug)
    return user, role


async def remove_member(db: AsyncSession, organization_id: int, user_id: int) -> None:
    """
    Remove a user's membership.

    Raises:
        NotFoundError: user is not a member
    """
    result = await db.execute(
        delete(user_organization_roles).where(
            user_organization_roles.c.user_id == user_id,
            user_organization_roles.c.organization_id == organization_id,
        )
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFoundError(f"User {user_id} is not a member of organization {organization_id}")
    await db.commit()

    log.info("Removed user %s from org %s", user_id, organization_id)
