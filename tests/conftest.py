"""
Shared fixtures: a throwaway SQLite database per test with the permission
catalog seeded, an HTTP client bound to it, and user/organization factories.
"""
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.core.database.base import Base
from app.core.database.engine import get_db, import_models
from app.core.rate_limit import limiter
from app.features.organizations import service as organization_service
from app.features.organizations.schemas import OrganizationCreate
from app.features.permissions import service as role_service
from app.features.permissions.catalog import seed_permission_catalog
from app.features.permissions.schemas import PermissionConfig, RoleCreate
from app.features.organizations import membership
from app.features.users.auth import create_access_token, hash_password
from app.features.users.models import User
from app.main import app


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        await seed_permission_catalog(session)

    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    limiter.enabled = False
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    limiter.enabled = True
    app.dependency_overrides.clear()


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def make_user(db):
    async def _make_user(email: str, name: str = "Test User", password: Optional[str] = None) -> User:
        user = User(email=email, name=name, password=hash_password(password) if password else None)
        db.add(user)
        await db.commit()
        await db.refresh(user)
        return user
    return _make_user


@pytest.fixture
def make_org(db):
    async def _make_org(owner: User, slug: str, name: Optional[str] = None):
        data = OrganizationCreate(name=name or slug.replace("-", " ").title(), slug=slug)
        return await organization_service.create_organization(db, data, owner)
    return _make_org


@pytest.fixture
def make_role(db):
    async def _make_role(organization_id: int, slug: str, permissions: list[tuple[str, str]]):
        data = RoleCreate(
            name=slug.title(),
            slug=slug,
            permission_configs=[PermissionConfig(action=a, subject=s) for a, s in permissions],
        )
        return await role_service.create_role(db, organization_id, data)
    return _make_role


@pytest.fixture
def make_member(db, make_user, make_role):
    """Create a user holding a fresh role with the given permissions."""
    async def _make_member(organization_id: int, email: str, permissions: list[tuple[str, str]], slug: Optional[str] = None):
        user = await make_user(email)
        role = await make_role(organization_id, slug or email.split("@")[0], permissions)
        await membership.add_member(db, organization_id, user.email, role.id)
        return user, role
    return _make_member


@pytest_asyncio.fixture
async def owner(make_user):
    return await make_user("owner@example.com", name="Owner")


@pytest_asyncio.fixture
async def organization(make_org, owner):
    return await make_org(owner, "example-org")
