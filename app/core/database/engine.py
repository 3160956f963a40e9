"""
Database engine configuration and session management.

The engine is built from DATABASE_URL. SQLite (aiosqlite) is the default;
any async driver SQLAlchemy supports works by changing the URL only.
"""
from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.core import config
from app.utils import get_logger


log = get_logger(__name__)

# NullPool for SQLite to avoid connection pool issues
engine = create_async_engine(
    config.SQLALCHEMY_DATABASE_URL,
    poolclass=NullPool if config.SQLALCHEMY_DATABASE_URL.startswith("sqlite") else None,
    echo=False,  # Set to True for SQL query logging during development
    future=True,
)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency for getting async database sessions.

    One session per request. Anything left uncommitted when the handler
    raises is rolled back, so a failed multi-row write never becomes visible.

    Usage in FastAPI routes:
        @router.get("/items")
        async def get_items(db: AsyncSession = Depends(get_db)):
            result = await db.execute(select(Item))
            return result.scalars().all()
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


def import_models() -> None:
    """Import every model module so its tables register on Base.metadata."""
    from app.features.users.models import User  # noqa: F401
    from app.features.organizations.models import Organization  # noqa: F401
    from app.features.permissions.models import (  # noqa: F401
        Permission, Role, role_permissions, user_organization_roles
    )
    from app.features.projects.models import Project  # noqa: F401


async def init_db():
    """
    Create all tables and seed the permission catalog.

    Usage in main.py:
        @app.on_event("startup")
        async def startup():
            await init_db()
    """
    from app.core.database.base import Base
    from app.features.permissions.catalog import seed_permission_catalog

    import_models()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as session:
        created = await seed_permission_catalog(session)
        log.info("Permission catalog ready (%d new entries)", created)
