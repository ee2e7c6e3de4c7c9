"""
Poll commands and queries.

Each operation authorizes itself through the identity gateway before touching
the store and returns a `Result`. Reads that back a page are served through
the page cache; mutations revalidate the pages they affect.
"""

from typing import Any

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import (
    AuthenticationRequired,
    DuplicateVote,
    NotFound,
    ProviderError,
    ValidationError,
)
from core.result import Err, Ok, Result
from repositories.poll_repository import PollRepository
from repositories.vote_repository import VoteRepository
from schemas.poll import Poll, PollCreate, PollOptionResult, PollResults, PollUpdate
from schemas.sanitize import sanitize_array, sanitize_html
from schemas.validation import (
    MIN_OPTIONS,
    OPTION_MAX_LENGTH,
    QUESTION_MAX_LENGTH,
    is_valid_uuid,
    iter_form_pairs,
    options_unique,
    validate_form_data,
    validate_payload,
)
from schemas.vote import VoteCreate
from services.authorization import authorize_mutation
from services.cache_service import PageCache
from services.identity import IdentityGateway

logger = structlog.get_logger(__name__)

POLLS_PATH = "/polls"
ADMIN_PATH = "/admin"


def poll_path(poll_id: str) -> str:
    return f"{POLLS_PATH}/{poll_id}"


def _sanitized_options(options: list[str]) -> Result[list[str]]:
    """Escaped, capped options, checked again for count and uniqueness."""
    sanitized = sanitize_array(options, OPTION_MAX_LENGTH)
    if len(sanitized) < MIN_OPTIONS:
        message = "At least 2 options are required"
    elif not options_unique(sanitized):
        message = "All options must be unique"
    else:
        return Ok(sanitized)
    return Err(ValidationError(message, fields={"options": [message]}))


class PollService:
    """Poll CRUD and voting for the caller behind `identity`."""

    def __init__(self, db: AsyncSession, identity: IdentityGateway, cache: PageCache):
        self.db = db
        self.identity = identity
        self.cache = cache
        self.polls = PollRepository(db)
        self.votes = VoteRepository(db)

    async def _store_failure(self, operation: str, error: Exception) -> Err:
        await self.db.rollback()
        logger.error("poll_store_error", operation=operation, error=str(error))
        return Err(ProviderError(detail=str(error)))

    # =========================================================================
    # Commands
    # =========================================================================

    async def create_poll(self, form: Any) -> Result[Poll]:
        validated = validate_form_data(PollCreate, form)
        if isinstance(validated, Err):
            return validated
        data = validated.value

        options = _sanitized_options(data.options)
        if isinstance(options, Err):
            return options

        user = await self.identity.get_current_user()
        if user is None:
            return Err(AuthenticationRequired("You must be logged in to create a poll."))

        try:
            poll = await self.polls.create(
                user_id=user.id,
                question=sanitize_html(data.question, QUESTION_MAX_LENGTH),
                options=options.value,
                allow_multiple_votes=data.allow_multiple_votes,
                require_authentication=data.require_authentication,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            return await self._store_failure("create_poll", e)

        logger.info("poll_created", poll_id=poll.id, user_id=user.id)
        await self.cache.revalidate_path(POLLS_PATH)
        await self.cache.revalidate_path(ADMIN_PATH)
        return Ok(Poll.model_validate(poll))

    async def update_poll(self, poll_id: str, form: Any) -> Result[Poll]:
        if not is_valid_uuid(poll_id):
            return Err(NotFound("Poll not found"))

        # The path id wins over any pollId in the body; repeated options survive
        pairs = [("pollId", poll_id)]
        pairs.extend((k, v) for k, v in iter_form_pairs(form) if k != "pollId")
        validated = validate_form_data(PollUpdate, pairs)
        if isinstance(validated, Err):
            return validated
        data = validated.value

        options = _sanitized_options(data.options)
        if isinstance(options, Err):
            return options

        user = await self.identity.get_current_user()
        if user is None:
            return Err(AuthenticationRequired("You must be logged in to update a poll."))

        try:
            authorized = await authorize_mutation(self.polls, self.identity, data.poll_id, user, "update")
            if isinstance(authorized, Err):
                return authorized

            await self.polls.update_content(
                data.poll_id,
                question=sanitize_html(data.question, QUESTION_MAX_LENGTH),
                options=options.value,
            )
            await self.db.commit()
            poll = await self.polls.get_fresh(data.poll_id)
        except SQLAlchemyError as e:
            return await self._store_failure("update_poll", e)

        logger.info("poll_updated", poll_id=data.poll_id, user_id=user.id)
        for path in (poll_path(data.poll_id), f"{poll_path(data.poll_id)}/edit", POLLS_PATH, ADMIN_PATH):
            await self.cache.revalidate_path(path)
        return Ok(Poll.model_validate(poll))

    async def delete_poll(self, poll_id: str) -> Result[None]:
        if not is_valid_uuid(poll_id):
            return Err(NotFound("Poll not found"))
        poll_id = poll_id.lower()

        user = await self.identity.get_current_user()
        if user is None:
            return Err(AuthenticationRequired("You must be logged in to delete a poll"))

        try:
            authorized = await authorize_mutation(self.polls, self.identity, poll_id, user, "delete")
            if isinstance(authorized, Err):
                return authorized
        except SQLAlchemyError as e:
            return await self._store_failure("delete_poll", e)

        # Votes go first so none outlives its poll
        try:
            removed = await self.votes.delete_by_poll(poll_id)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("poll_store_error", operation="delete_votes", error=str(e))
            return Err(ProviderError("Failed to delete poll votes", detail=str(e)))

        try:
            await self.polls.delete(poll_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            return await self._store_failure("delete_poll", e)

        logger.info("poll_deleted", poll_id=poll_id, user_id=user.id, votes_removed=removed)
        for path in (POLLS_PATH, ADMIN_PATH, poll_path(poll_id)):
            await self.cache.revalidate_path(path)
        return Ok(None)

    async def submit_vote(self, poll_id: Any, option_index: Any) -> Result[None]:
        validated = validate_payload(VoteCreate, {"pollId": poll_id, "optionIndex": option_index})
        if isinstance(validated, Err):
            return validated
        vote = validated.value

        user = await self.identity.get_current_user()

        try:
            # Live option count, not whatever the voter's page was rendered with
            poll = await self.polls.get_fresh(vote.poll_id)
            if poll is None:
                return Err(NotFound("Poll not found"))

            if poll.require_authentication and user is None:
                return Err(AuthenticationRequired("You must be logged in to vote on this poll"))

            if vote.option_index >= poll.option_count:
                return Err(ValidationError(
                    "Invalid option selected", fields={"optionIndex": ["Invalid option selected"]}
                ))

            if user is not None and await self.votes.exists_for_user(vote.poll_id, user.id):
                logger.info("duplicate_vote_rejected", poll_id=vote.poll_id, user_id=user.id)
                return Err(DuplicateVote())

            await self.votes.create(
                poll_id=vote.poll_id,
                option_index=vote.option_index,
                user_id=user.id if user else None,
            )
            await self.db.commit()
        except IntegrityError:
            # A concurrent vote by the same user won the unique index
            await self.db.rollback()
            logger.info("duplicate_vote_rejected", poll_id=vote.poll_id, user_id=user.id if user else None)
            return Err(DuplicateVote())
        except SQLAlchemyError as e:
            return await self._store_failure("submit_vote", e)

        logger.info(
            "vote_recorded",
            poll_id=vote.poll_id,
            option_index=vote.option_index,
            anonymous=user is None,
        )
        await self.cache.revalidate_path(poll_path(vote.poll_id))
        return Ok(None)

    # =========================================================================
    # Queries
    # =========================================================================

    async def get_user_polls(self) -> Result[list[Poll]]:
        user = await self.identity.get_current_user()
        if user is None:
            return Err(AuthenticationRequired("Not authenticated"))

        cached = await self.cache.get(POLLS_PATH, variant=user.id)
        if cached is not None:
            return Ok(cached)

        try:
            rows = await self.polls.list_by_owner(user.id)
        except SQLAlchemyError as e:
            return await self._store_failure("get_user_polls", e)

        polls = [Poll.model_validate(row) for row in rows]
        await self.cache.set(POLLS_PATH, polls, variant=user.id)
        return Ok(polls)

    async def get_poll_by_id(self, poll_id: str) -> Result[Poll]:
        """Public read used by voting pages; no ownership check."""
        if not is_valid_uuid(poll_id):
            return Err(NotFound("Poll not found"))
        poll_id = poll_id.lower()

        cached = await self.cache.get(poll_path(poll_id), variant="poll")
        if cached is not None:
            return Ok(cached)

        try:
            row = await self.polls.get_by_id(poll_id)
        except SQLAlchemyError as e:
            return await self._store_failure("get_poll_by_id", e)
        if row is None:
            return Err(NotFound("Poll not found"))

        poll = Poll.model_validate(row)
        await self.cache.set(poll_path(poll_id), poll, variant="poll")
        return Ok(poll)

    async def get_poll_by_id_for_edit(self, poll_id: str) -> Result[Poll]:
        user = await self.identity.get_current_user()
        if user is None:
            return Err(AuthenticationRequired("You must be logged in to edit polls"))

        if not is_valid_uuid(poll_id):
            return Err(NotFound("Poll not found"))

        try:
            authorized = await authorize_mutation(self.polls, self.identity, poll_id.lower(), user, "edit")
        except SQLAlchemyError as e:
            return await self._store_failure("get_poll_by_id_for_edit", e)
        if isinstance(authorized, Err):
            return authorized

        return Ok(Poll.model_validate(authorized.value))

    async def get_poll_results(self, poll_id: str) -> Result[PollResults]:
        """Per-option vote counts. Public, like `get_poll_by_id`."""
        if not is_valid_uuid(poll_id):
            return Err(NotFound("Poll not found"))
        poll_id = poll_id.lower()

        cached = await self.cache.get(poll_path(poll_id), variant="results")
        if cached is not None:
            return Ok(cached)

        try:
            poll = await self.polls.get_by_id(poll_id)
            if poll is None:
                return Err(NotFound("Poll not found"))
            counts = await self.votes.count_by_option(poll_id)
        except SQLAlchemyError as e:
            return await self._store_failure("get_poll_results", e)

        # Votes for options removed by an edit are not attributed to anything
        tallies = [counts.get(index, 0) for index in range(poll.option_count)]
        total = sum(tallies)
        results = PollResults(
            poll_id=poll.id,
            question=poll.question,
            options=[
                PollOptionResult(
                    index=index,
                    text=text,
                    vote_count=tallies[index],
                    vote_percentage=round(tallies[index] / total * 100, 1) if total else 0.0,
                )
                for index, text in enumerate(poll.options)
            ],
            total_votes=total,
        )
        await self.cache.set(poll_path(poll_id), results, variant="results")
        return Ok(results)

    async def get_all_polls(self) -> Result[list[Poll]]:
        """Admin-only listing of every poll, newest first."""
        admin = await self.identity.require_admin()
        if isinstance(admin, Err):
            return admin

        cached = await self.cache.get(ADMIN_PATH, variant="polls")
        if cached is not None:
            return Ok(cached)

        try:
            rows = await self.polls.list_all()
        except SQLAlchemyError as e:
            return await self._store_failure("get_all_polls", e)

        polls = [Poll.model_validate(row) for row in rows]
        await self.cache.set(ADMIN_PATH, polls, variant="polls")
        return Ok(polls)
