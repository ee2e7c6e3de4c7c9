"""
User and session repository used by the identity provider.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.user import AuthSession, User


class UserRepository:
    """Repository for user and session database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, user_id: str) -> Optional[User]:
        """Get a user by ID."""
        result = await self.db.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """Get a user by (normalized) email."""
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def email_exists(self, email: str) -> bool:
        """Check if an account with this email exists."""
        result = await self.db.execute(select(User.id).where(User.email == email.lower()))
        return result.first() is not None

    async def create(
        self,
        email: str,
        password_hash: str,
        user_metadata: Optional[dict[str, Any]] = None,
    ) -> User:
        """Create a new user."""
        user = User(
            email=email.lower(),
            password_hash=password_hash,
            user_metadata=dict(user_metadata or {}),
        )

        self.db.add(user)
        await self.db.flush()
        await self.db.refresh(user)

        return user

    async def set_metadata_flag(self, user_id: str, key: str, value: Any) -> bool:
        """Set one key in a user's metadata (operator tooling only)."""
        user = await self.get_by_id(user_id)
        if user is None:
            return False
        metadata = dict(user.user_metadata or {})
        metadata[key] = value
        user.user_metadata = metadata
        await self.db.flush()
        return True

    async def touch_sign_in(self, user_id: str) -> None:
        """Record the time of the latest sign-in."""
        await self.db.execute(
            update(User)
            .where(User.id == user_id)
            .values(last_sign_in_at=datetime.now(timezone.utc))
        )

    # =========================================================================
    # Sessions
    # =========================================================================

    async def create_session(self, user_id: str) -> AuthSession:
        """Open a new session for a user."""
        session = AuthSession(user_id=user_id, created_at=datetime.now(timezone.utc))
        self.db.add(session)
        await self.db.flush()
        await self.db.refresh(session)
        return session

    async def get_session(self, session_id: str) -> Optional[AuthSession]:
        """Get a session by ID, revoked or not."""
        result = await self.db.execute(select(AuthSession).where(AuthSession.id == session_id))
        return result.scalar_one_or_none()

    async def mark_refreshed(self, session_id: str) -> None:
        await self.db.execute(
            update(AuthSession)
            .where(AuthSession.id == session_id)
            .values(refreshed_at=datetime.now(timezone.utc))
        )

    async def revoke_session(self, session_id: str) -> bool:
        """Revoke a session so none of its tokens validate any more."""
        result = await self.db.execute(
            update(AuthSession).where(AuthSession.id == session_id).values(revoked=True)
        )
        return (getattr(result, "rowcount", 0) or 0) > 0
