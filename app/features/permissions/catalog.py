"""
Permission catalog: the fixed set of (action, subject) pairs.
"""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import NotFoundError
from app.features.permissions.models import Permission, PermissionAction, PermissionSubject
from app.utils import get_logger


log = get_logger(__name__)


PERMISSION_CATALOG: list[tuple[PermissionAction, PermissionSubject]] = [
    (action, subject) for action in PermissionAction for subject in PermissionSubject
]


async def find_by_permission_config(
    db: AsyncSession,
    action: PermissionAction,
    subject: PermissionSubject
) -> Permission:
    """
    Look up the catalog entry for an (action, subject) pair.

    Raises:
        NotFoundError: if the pair was never seeded
    """
    result = await db.execute(
        select(Permission).where(
            Permission.action == action,
            Permission.subject == subject,
        )
    )
    permission = result.scalar_one_or_none()

    if permission is None:
        raise NotFoundError(f"Permission {action.value}:{subject.value} not found")

    return permission


async def list_permissions(db: AsyncSession) -> list[Permission]:
    result = await db.execute(select(Permission).order_by(Permission.id))
    return list(result.scalars().all())


async def seed_permission_catalog(db: AsyncSession) -> int:
    """
    Insert every catalog pair that is not yet stored.

    Safe to run repeatedly. Returns the number of rows created.
    """
    result = await db.execute(select(Permission.action, Permission.subject))
    existing = {(row.action, row.subject) for row in result}

    missing = [pair for pair in PERMISSION_CATALOG if pair not in existing]
    for action, subject in missing:
        db.add(Permission(action=action, subject=subject))

    if missing:
        await db.commit()
        log.info("Seeded %d permissions", len(missing))

    return len(missing)
