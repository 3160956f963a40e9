"""
Authorization decision engine.

Matching is a two-axis wildcard test, not a hierarchy: a permission covers a
request when its subject is the requested subject or ``all`` and its action is
the requested action or ``manage``. There are no negative permissions; anything
not granted is denied.
"""
from typing import Iterable
from sqlalchemy.ext.asyncio import AsyncSession

from app.features.organizations.membership import get_role
from app.features.permissions.models import Permission, PermissionAction, PermissionSubject
from app.utils import get_logger


log = get_logger(__name__)


def permission_matches(
    permission: Permission,
    action: PermissionAction,
    subject: PermissionSubject
) -> bool:
    """Return True if a single permission covers (action, subject)."""
    subject_ok = permission.subject in (subject, PermissionSubject.ALL)
    action_ok = permission.action in (action, PermissionAction.MANAGE)
    return subject_ok and action_ok


def grants(
    permissions: Iterable[Permission],
    action: PermissionAction,
    subject: PermissionSubject
) -> bool:
    """Return True if any permission in the set covers (action, subject)."""
    return any(permission_matches(p, action, subject) for p in permissions)


def covers(
    permissions: Iterable[Permission],
    required: Iterable[Permission]
) -> bool:
    """Return True if every permission in ``required`` is granted by ``permissions``."""
    permissions = list(permissions)
    return all(grants(permissions, p.action, p.subject) for p in required)


async def is_allowed(
    db: AsyncSession,
    user_id: int,
    organization_id: int,
    action: PermissionAction,
    subject: PermissionSubject
) -> bool:
    """
    Decide whether a user may perform an action on a subject in an organization.

    The user's role is resolved fresh from the database on every call. A user
    without a role in the organization is denied; this never raises for a
    missing membership.
    """
    role = await get_role(db, user_id, organization_id)
    if role is None:
        log.debug(f"User {user_id} has no role in org {organization_id} - denied {action.value} on {subject.value}")
        return False

    if grants(role.permissions, action, subject):
        log.debug(f"User {user_id} granted {action.value} on {subject.value} via role {role.slug} in org {organization_id}")
        return True

    log.debug(f"User {user_id} denied {action.value} on {subject.value} in org {organization_id}")
    return False
