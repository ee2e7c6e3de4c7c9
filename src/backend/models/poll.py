"""
Poll model.

Options are an ordered JSON array of already-sanitized strings; votes refer
to them by index.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base
from models.user import utcnow


class Poll(Base):
    """
    A question with an ordered, fixed set of vote-able options.

    Lifecycle: created by an authenticated user, updated only by its owner or
    an admin, deleted together with its votes. There is no draft or closed
    state; a poll accepts votes as soon as it exists.
    """

    __tablename__ = "polls"

    __table_args__ = (
        # Owner listing: "my polls, newest first"
        Index("ix_polls_user_created", "user_id", "created_at"),
    )

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

    question: Mapped[str] = mapped_column(Text)
    options: Mapped[list] = mapped_column(JSON, default=list)

    allow_multiple_votes: Mapped[bool] = mapped_column(Boolean, default=False)
    require_authentication: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
    )

    @property
    def option_count(self) -> int:
        return len(self.options or [])
