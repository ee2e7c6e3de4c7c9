"""Schemas module initialization."""

from schemas.auth import ActionResponse, AuthSessionInfo, AuthUser, LoginRequest, RegisterRequest
from schemas.poll import Poll, PollCreate, PollResults, PollUpdate
from schemas.vote import VoteCreate, VoteRecord

__all__ = [
    "LoginRequest",
    "RegisterRequest",
    "AuthUser",
    "AuthSessionInfo",
    "ActionResponse",
    "Poll",
    "PollCreate",
    "PollUpdate",
    "PollResults",
    "VoteCreate",
    "VoteRecord",
]
