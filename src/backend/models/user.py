"""
User and session models for the built-in identity provider.

The provider owns these tables outright: the rest of the application only
reads them through `services.auth_provider.AuthProvider`.
"""

from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class User(Base):
    """
    User account model.

    `user_metadata` holds profile data set at sign-up ({"name": ...}) and the
    `is_admin` flag. Sign-up only ever writes `name`; `is_admin` is written by
    the operator script in scripts/set_admin.py and nothing else.
    """

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))

    user_metadata: Mapped[dict] = mapped_column(JSON, default=dict)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )
    last_sign_in_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    sessions = relationship("AuthSession", back_populates="user", cascade="all, delete-orphan")

    @property
    def name(self) -> Optional[str]:
        return (self.user_metadata or {}).get("name")

    @property
    def is_admin(self) -> bool:
        return (self.user_metadata or {}).get("is_admin") is True


class AuthSession(Base):
    """
    A signed-in session.

    `created_at` is fixed at sign-in and survives token refreshes; the
    middleware uses it to enforce the maximum session age.
    """

    __tablename__ = "auth_sessions"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )
    refreshed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    revoked: Mapped[bool] = mapped_column(Boolean, default=False)

    user = relationship("User", back_populates="sessions")
