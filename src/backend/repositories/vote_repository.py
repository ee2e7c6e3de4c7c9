"""
Vote repository for database operations.
"""

from typing import Optional

from sqlalchemy import and_, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.vote import Vote


class VoteRepository:
    """Repository for vote database operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def exists_for_user(self, poll_id: str, user_id: str) -> bool:
        """Check if a user already voted on a poll (for duplicate detection)."""
        result = await self.db.execute(
            select(func.count(Vote.id)).where(
                and_(Vote.poll_id == poll_id, Vote.user_id == user_id)
            )
        )
        count = result.scalar() or 0
        return count > 0

    async def create(
        self,
        poll_id: str,
        option_index: int,
        user_id: Optional[str] = None,
    ) -> Vote:
        """Create a vote record. user_id is None for anonymous votes."""
        vote = Vote(
            poll_id=poll_id,
            user_id=user_id,
            option_index=option_index,
        )

        self.db.add(vote)
        await self.db.flush()
        await self.db.refresh(vote)

        return vote

    async def count_by_option(self, poll_id: str) -> dict[int, int]:
        """Get {option_index: votes} for a poll."""
        result = await self.db.execute(
            select(Vote.option_index, func.count(Vote.id))
            .where(Vote.poll_id == poll_id)
            .group_by(Vote.option_index)
        )
        return {int(index): int(count) for index, count in result.all()}

    async def delete_by_poll(self, poll_id: str) -> int:
        """Delete every vote on a poll. Returns the number removed."""
        result = await self.db.execute(delete(Vote).where(Vote.poll_id == poll_id))
        return getattr(result, "rowcount", 0) or 0
