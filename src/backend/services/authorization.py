"""
Ownership gate shared by every poll mutation and the edit-page read.
"""

import structlog

from core.errors import AuthorizationDenied, NotFound
from core.result import Err, Ok, Result
from models.poll import Poll
from repositories.poll_repository import PollRepository
from schemas.auth import AuthUser
from services.identity import IdentityGateway

logger = structlog.get_logger(__name__)


async def authorize_mutation(
    polls: PollRepository,
    identity: IdentityGateway,
    poll_id: str,
    user: AuthUser,
    action: str,
) -> Result[Poll]:
    """
    Re-read the poll and allow `action` only for its owner or an admin.

    The row is always re-fetched here, immediately before the caller writes,
    so a decision is never made on a copy loaded earlier in the request.
    """
    poll = await polls.get_fresh(poll_id)
    if poll is None:
        return Err(NotFound("Poll not found"))

    if poll.user_id != user.id and not await identity.is_admin(user.id):
        logger.warning("ownership_denied", poll_id=poll_id, user_id=user.id, action=action)
        return Err(AuthorizationDenied(f"You can only {action} your own polls"))

    return Ok(poll)
