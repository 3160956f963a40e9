"""
Role store: organization-scoped role CRUD.

Every write that touches more than one row (a role plus its permissions, or
a role plus everything that references it) is committed as a single unit.
If any step fails the session is rolled back and nothing is persisted, so
readers never see a role with only part of its permission set.
"""
from typing import Iterable, List, Sequence
from sqlalchemy import select, delete, insert, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import ConflictError, NotFoundError
from app.features.permissions.catalog import find_by_permission_config
from app.features.permissions.models import (
    Permission,
    Role,
    role_permissions,
    user_organization_roles,
)
from app.features.permissions.schemas import (
    PermissionConfig,
    RoleCreate,
    RoleUpdate,
    RoleSearchParams,
    RoleListMetadata,
    RoleListResponse,
    RoleResponse,
)
from app.utils import get_logger


log = get_logger(__name__)


async def resolve_permissions(
    db: AsyncSession,
    permission_configs: Iterable[PermissionConfig]
) -> List[Permission]:
    """
    Map permission configs to catalog rows, dropping duplicates.

    Raises:
        NotFoundError: if any config is not in the catalog
    """
    permissions: dict[int, Permission] = {}
    for config in permission_configs:
        permission = await find_by_permission_config(db, config.action, config.subject)
        permissions.setdefault(permission.id, permission)
    return list(permissions.values())


async def _slug_taken(db: AsyncSession, organization_id: int, slug: str, exclude_role_id: int | None = None) -> bool:
    stmt = select(Role.id).where(Role.organization_id == organization_id, Role.slug == slug)
    if exclude_role_id is not None:
        stmt = stmt.where(Role.id != exclude_role_id)
    result = await db.execute(stmt)
    return result.first() is not None


async def _replace_permissions(db: AsyncSession, role_id: int, permissions: Sequence[Permission]) -> None:
    await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
    if permissions:
        await db.execute(
            insert(role_permissions),
            [{"role_id": role_id, "permission_id": p.id} for p in permissions],
        )


async def get_role(db: AsyncSession, organization_id: int, role_id: int) -> Role:
    """
    Fetch a role of an organization with its permissions freshly loaded.

    Raises:
        NotFoundError: if the role does not exist in this organization
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


async def create_role(db: AsyncSession, organization_id: int, data: RoleCreate) -> Role:
    """
    Create a role and its permission set atomically.

    Raises:
        ConflictError: if the slug is already used in the organization
        NotFoundError: if a permission config is not in the catalog
    """
    if await _slug_taken(db, organization_id, data.slug):
        raise ConflictError("A role with that slug already exists")

    permissions = await resolve_permissions(db, data.permission_configs)

    role = Role(organization_id=organization_id, name=data.name, slug=data.slug)
    try:
        db.add(role)
        await db.flush()
        await _replace_permissions(db, role.id, permissions)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A role with that slug already exists")

    log.info("Created role %s (%s) in org %s with %d permissions",
             role.id, role.slug, organization_id, len(permissions))
    return await get_role(db, organization_id, role.id)


async def update_role(db: AsyncSession, organization_id: int, role_id: int, data: RoleUpdate) -> Role:
    """
    Update name/slug and optionally replace the whole permission set.

    Partial permission updates are not supported: the supplied configs become
    the complete set, written in the same transaction as the other fields.

    Raises:
        NotFoundError: if the role is not in the organization, or a config is unknown
        ConflictError: if the new slug is already used in the organization
    """
    role = await get_role(db, organization_id, role_id)

    if data.slug is not None and data.slug != role.slug:
        if await _slug_taken(db, organization_id, data.slug, exclude_role_id=role_id):
            raise ConflictError("A role with that slug already exists")

    permissions = None
    if data.permission_configs is not None:
        permissions = await resolve_permissions(db, data.permission_configs)

    try:
        if data.name is not None:
            role.name = data.name
        if data.slug is not None:
            role.slug = data.slug
        if permissions is not None:
            await _replace_permissions(db, role_id, permissions)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("A role with that slug already exists")

    log.info("Updated role %s in org %s", role_id, organization_id)
    return await get_role(db, organization_id, role_id)


async def delete_role(db: AsyncSession, organization_id: int, role_id: int) -> None:
    """
    Delete a role together with its permission links and memberships.

    Raises:
        NotFoundError: if the role is not in the organization
    """
    await get_role(db, organization_id, role_id)

    try:
        await db.execute(delete(role_permissions).where(role_permissions.c.role_id == role_id))
        await db.execute(
            delete(user_organization_roles).where(
                user_organization_roles.c.organization_id == organization_id,
                user_organization_roles.c.role_id == role_id,
            )
        )
        await db.execute(delete(Role).where(Role.id == role_id))
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    log.info("Deleted role %s from org %s", role_id, organization_id)


async def list_roles(db: AsyncSession, organization_id: int, params: RoleSearchParams) -> RoleListResponse:
    """List an organization's roles with permissions and a total count."""
    stmt = select(Role).where(Role.organization_id == organization_id)

    if params.name:
        stmt = stmt.where(Role.name.icontains(params.name, autoescape=True))
    if params.slug:
        stmt = stmt.where(Role.slug == params.slug)

    count_stmt = select(func.count()).select_from(stmt.subquery())
    total = (await db.execute(count_stmt)).scalar() or 0

    stmt = stmt.order_by(Role.id).offset(params.skip).limit(params.limit)
    result = await db.execute(stmt.execution_options(populate_existing=True))
    roles = result.scalars().all()

    return RoleListResponse(
        roles=[RoleResponse.model_validate(role) for role in roles],
        metadata=RoleListMetadata(total=total, params=params),
    )
