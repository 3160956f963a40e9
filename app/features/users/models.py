"""
User model.
"""
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime
from sqlalchemy.orm import Mapped, mapped_column

from app.core.database.base import Base, IdMixin, TimestampMixin


class User(Base, IdMixin, TimestampMixin):
    """
    User model representing authenticated users.

    Users are created by registration or by their first external (Appwrite)
    login. They are deactivated, never deleted.
    """
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # bcrypt hash; null for users that only sign in through Appwrite
    password: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Appwrite user ID (for linking with Appwrite authentication)
    appwrite_id: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True, index=True)

    avatar: Mapped[str | None] = mapped_column(String(500), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email!r})>"
