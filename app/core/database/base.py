"""
SQLAlchemy declarative base and common model mixins.

All SQLAlchemy models inherit from Base. Every entity is keyed by an
integer surrogate id.
"""
from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Usage:
        from app.core.database.base import Base, IdMixin, TimestampMixin

        class Project(Base, IdMixin, TimestampMixin):
            __tablename__ = "projects"
            name: Mapped[str] = mapped_column(String(255))
    """
    pass


class IdMixin:
    """Integer autoincrement primary key."""
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)


class TimestampMixin:
    """
    Mixin to add created_at and updated_at timestamps to models.
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
