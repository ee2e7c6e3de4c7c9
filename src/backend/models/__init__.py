"""Database models module."""

from models.user import AuthSession, User
from models.poll import Poll
from models.vote import Vote
from models.rate_limit import RateLimitRecord

__all__ = [
    "User",
    "AuthSession",
    "Poll",
    "Vote",
    "RateLimitRecord",
]
