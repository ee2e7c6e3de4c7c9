"""
Rate limit counter rows for the shared (database) limiter backend.
"""

from datetime import datetime

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class RateLimitRecord(Base):
    """Fixed-window request counter for one client key."""

    __tablename__ = "rate_limits"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    count: Mapped[int] = mapped_column(Integer, default=0)
    reset_time: Mapped[datetime] = mapped_column(DateTime(timezone=True))
