"""
Organization model.

Organizations are the tenant boundary: roles, memberships and projects all
hang off one organization.
"""
from sqlalchemy import String, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, IdMixin, TimestampMixin


class Organization(Base, IdMixin, TimestampMixin):
    """
    Organization (tenant) with a unique display name and a globally unique slug.

    The creating user is recorded as owner and becomes the first member.
    """
    __tablename__ = "organizations"

    name: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, nullable=False, index=True)

    owner_id: Mapped[int | None] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, slug={self.slug!r})>"
