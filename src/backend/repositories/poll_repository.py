"""
Poll repository for database operations.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from models.poll import Poll


class PollRepository:
    """Repository for poll database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    def _get_rowcount(self, result: Any) -> int:
        """Safely get rowcount from result."""
        return getattr(result, "rowcount", 0) or 0

    async def get_by_id(self, poll_id: str) -> Optional[Poll]:
        """Get a poll by ID."""
        result = await self.db.execute(select(Poll).where(Poll.id == poll_id))
        return result.scalar_one_or_none()

    async def get_fresh(self, poll_id: str) -> Optional[Poll]:
        """Get a poll by ID, overwriting any copy already loaded in this session."""
        result = await self.db.execute(
            select(Poll).where(Poll.id == poll_id).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def list_by_owner(self, user_id: str) -> list[Poll]:
        """List a user's polls, newest first."""
        result = await self.db.execute(
            select(Poll).where(Poll.user_id == user_id).order_by(Poll.created_at.desc())
        )
        return list(result.scalars().all())

    async def list_all(self) -> list[Poll]:
        """List every poll, newest first."""
        result = await self.db.execute(select(Poll).order_by(Poll.created_at.desc()))
        return list(result.scalars().all())

    async def create(
        self,
        user_id: str,
        question: str,
        options: list[str],
        allow_multiple_votes: bool = False,
        require_authentication: bool = True,
    ) -> Poll:
        """Create a new poll owned by user_id."""
        now = datetime.now(timezone.utc)
        poll = Poll(
            user_id=user_id,
            question=question,
            options=list(options),
            allow_multiple_votes=allow_multiple_votes,
            require_authentication=require_authentication,
            created_at=now,
            updated_at=now,
        )

        self.db.add(poll)
        await self.db.flush()
        await self.db.refresh(poll)

        return poll

    async def update_content(self, poll_id: str, question: str, options: list[str]) -> bool:
        """Replace a poll's question and options and bump updated_at."""
        result = await self.db.execute(
            update(Poll)
            .where(Poll.id == poll_id)
            .values(
                question=question,
                options=list(options),
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session="fetch")
        )
        return self._get_rowcount(result) > 0

    async def delete(self, poll_id: str) -> bool:
        """Delete a poll row. Votes must already be gone."""
        result = await self.db.execute(delete(Poll).where(Poll.id == poll_id))
        return self._get_rowcount(result) > 0
