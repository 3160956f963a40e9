"""
Seed script for the permission catalog and default organization roles.

Run this script after database initialization to create:
- Every (action, subject) permission in the catalog
- Optionally, a set of default roles inside one organization

Usage:
    uv run python -m scripts.seed_permissions
    uv run python -m scripts.seed_permissions --organization example-org
"""
import argparse
import asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database.engine import AsyncSessionLocal, init_db
from app.core.errors import ConflictError
from app.features.organizations.models import Organization
from app.features.permissions import service
from app.features.permissions.catalog import seed_permission_catalog
from app.features.permissions.models import PermissionAction as A, PermissionSubject as S
from app.features.permissions.schemas import PermissionConfig, RoleCreate
from app.utils import get_logger


log = get_logger(__name__)


DEFAULT_ROLES = {
    "admin": {
        "name": "Administrator",
        "permissions": [(A.MANAGE, S.ALL)],
    },
    "accountant": {
        "name": "Accountant",
        "permissions": [
            (A.MANAGE, S.INVOICE),
            (A.MANAGE, S.BUDGET),
            (A.MANAGE, S.CATEGORY),
            (A.READ, S.PROJECT),
            (A.READ, S.ORGANIZATION),
        ],
    },
    "project-manager": {
        "name": "Project manager",
        "permissions": [
            (A.MANAGE, S.PROJECT),
            (A.MANAGE, S.BUDGET),
            (A.READ, S.INVOICE),
            (A.READ, S.USER),
        ],
    },
    "viewer": {
        "name": "Viewer",
        "permissions": [(A.READ, S.ALL)],
    },
}


async def seed_roles(db: AsyncSession, organization_slug: str) -> None:
    """
    Create the default roles in an organization, skipping slugs already in use.
    """
    result = await db.execute(select(Organization).where(Organization.slug == organization_slug))
    organization = result.scalar_one_or_none()
    if organization is None:
        raise SystemExit(f"Organization '{organization_slug}' not found")

    for slug, role_config in DEFAULT_ROLES.items():
        data = RoleCreate(
            name=role_config["name"],
            slug=slug,
            permission_configs=[
                PermissionConfig(action=action, subject=subject)
                for action, subject in role_config["permissions"]
            ],
        )
        try:
            await service.create_role(db, organization.id, data)
            log.info(f"Created role '{slug}' in {organization_slug}")
        except ConflictError:
            log.debug(f"Role '{slug}' already exists in {organization_slug}, skipping")


async def main(organization_slug: str | None):
    """Seed the catalog, then the default roles when an organization is given."""
    log.info("Initializing database tables and permission catalog...")
    await init_db()

    async with AsyncSessionLocal() as db:
        created = await seed_permission_catalog(db)
        log.info(f"Catalog check complete, {created} permissions added")

        if organization_slug:
            await seed_roles(db, organization_slug)

    log.info("Permission seeding completed successfully!")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--organization", help="Slug of an organization to receive the default roles")
    args = parser.parse_args()
    asyncio.run(main(args.organization))
