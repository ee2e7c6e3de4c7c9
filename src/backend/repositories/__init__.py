"""Data access for polls, votes and the identity provider's tables."""

from repositories.poll_repository import PollRepository
from repositories.user_repository import UserRepository
from repositories.vote_repository import VoteRepository

__all__ = [
    "PollRepository",
    "UserRepository",
    "VoteRepository",
]
