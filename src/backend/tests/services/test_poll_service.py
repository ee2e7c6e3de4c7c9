"""
Tests for poll commands and queries.
"""

import uuid

import pytest
from sqlalchemy import select

from core.errors import (
    AuthenticationRequired,
    AuthorizationDenied,
    DuplicateVote,
    NotFound,
    ValidationError,
)
from core.result import Err, Ok
from models.vote import Vote
from repositories.poll_repository import PollRepository
from repositories.vote_repository import VoteRepository

OWNER = "owner@pollboard.io"
OTHER = "other@pollboard.io"
ADMIN = "admin@pollboard.io"


@pytest.fixture
async def people(create_user) -> dict:
    return {
        "owner": await create_user(OWNER, name="Poll Owner"),
        "other": await create_user(OTHER, name="Someone Else"),
        "admin": await create_user(ADMIN, name="Site Admin", admin=True),
    }


@pytest.fixture
async def owned_poll(people, service_for, poll_form):
    service = await service_for(OWNER)
    result = await service.create_poll(poll_form)
    assert isinstance(result, Ok), result
    return result.value


def _form(question: str, options: list[str]) -> list[tuple[str, str]]:
    return [("question", question)] + [("options", option) for option in options]


@pytest.mark.integration
class TestCreatePoll:
    """Test poll creation."""

    async def test_creates_poll_owned_by_caller(self, people, service_for, poll_form) -> None:
        result = await (await service_for(OWNER)).create_poll(poll_form)

        assert isinstance(result, Ok)
        poll = result.value
        assert poll.user_id == people["owner"].id
        assert poll.options == ["Python", "Go", "Rust"]
        assert poll.allow_multiple_votes is False
        assert poll.require_authentication is True

    @pytest.mark.parametrize("count", [1, 11])
    async def test_option_count_outside_range(self, people, service_for, count: int) -> None:
        options = [f"Choice {i}" for i in range(count)]

        result = await (await service_for(OWNER)).create_poll(_form("Pick a choice", options))

        assert isinstance(result, Err)
        assert isinstance(result.error, ValidationError)

    async def test_case_insensitive_duplicate_options(self, people, service_for) -> None:
        result = await (await service_for(OWNER)).create_poll(_form("Best language?", ["Go", "go"]))

        assert isinstance(result, Err)
        assert result.message == "All options must be unique"

    @pytest.mark.parametrize(
        "options",
        [
            ["a&b", "a&amp;b"],
            ["x" * 195 + "<<<a", "x" * 195 + "<<<b"],
        ],
        ids=["escaping", "length-cap"],
    )
    async def test_options_equal_once_sanitized(
        self, people, service_for, db_session, options: list[str]
    ) -> None:
        result = await (await service_for(OWNER)).create_poll(_form("Which one?", options))

        assert isinstance(result, Err)
        assert isinstance(result.error, ValidationError)
        assert result.error.fields == {"options": ["All options must be unique"]}
        assert await PollRepository(db_session).list_by_owner(people["owner"].id) == []

    async def test_update_options_equal_once_sanitized(
        self, owned_poll, service_for, db_session
    ) -> None:
        result = await (await service_for(OWNER)).update_poll(
            owned_poll.id, _form("Which one?", ["a&b", "a&amp;b"])
        )

        assert isinstance(result, Err)
        assert result.message == "All options must be unique"
        stored = await PollRepository(db_session).get_fresh(owned_poll.id)
        assert stored.options == ["Python", "Go", "Rust"]

    async def test_requires_authentication(self, service_for, poll_form, db_engine: None) -> None:
        result = await (await service_for(None)).create_poll(poll_form)

        assert isinstance(result, Err)
        assert isinstance(result.error, AuthenticationRequired)
        assert result.message == "You must be logged in to create a poll."

    async def test_free_text_is_sanitized(self, people, service_for) -> None:
        result = await (await service_for(OWNER)).create_poll(
            _form("<b>Pick</b> one", ["<script>x</script>", "Tom & Jerry"])
        )

        assert isinstance(result, Ok)
        assert result.value.question == "&lt;b&gt;Pick&lt;/b&gt; one"
        assert result.value.options == ["&lt;script&gt;x&lt;/script&gt;", "Tom &amp; Jerry"]

    async def test_flags_from_form(self, people, service_for) -> None:
        form = _form("Anonymous ok?", ["yes", "no"]) + [
            ("allowMultipleVotes", "on"),
            ("requireAuthentication", "false"),
        ]

        result = await (await service_for(OWNER)).create_poll(form)

        assert isinstance(result, Ok)
        assert result.value.allow_multiple_votes is True
        assert result.value.require_authentication is False


@pytest.mark.integration
class TestUpdatePoll:
    """Test ownership-gated updates."""

    async def test_owner_updates(self, owned_poll, service_for) -> None:
        result = await (await service_for(OWNER)).update_poll(
            owned_poll.id, _form("Which one now?", ["A", "B"])
        )

        assert isinstance(result, Ok)
        assert result.value.question == "Which one now?"
        assert result.value.options == ["A", "B"]

    async def test_non_owner_denied_and_row_unchanged(self, owned_poll, service_for, db_session) -> None:
        result = await (await service_for(OTHER)).update_poll(
            owned_poll.id, _form("Hijacked question", ["X", "Y"])
        )

        assert isinstance(result, Err)
        assert isinstance(result.error, AuthorizationDenied)
        assert result.message == "You can only update your own polls"

        stored = await PollRepository(db_session).get_fresh(owned_poll.id)
        assert stored.question == owned_poll.question
        assert stored.options == owned_poll.options

    async def test_admin_updates_any_poll(self, owned_poll, service_for) -> None:
        result = await (await service_for(ADMIN)).update_poll(
            owned_poll.id, _form("Moderated question", ["A", "B"])
        )

        assert isinstance(result, Ok)
        assert result.value.question == "Moderated question"

    async def test_path_id_wins_over_body(self, owned_poll, service_for) -> None:
        form = [("pollId", str(uuid.uuid4()))] + _form("Which one now?", ["A", "B"])

        result = await (await service_for(OWNER)).update_poll(owned_poll.id, form)

        assert isinstance(result, Ok)
        assert result.value.id == owned_poll.id

    async def test_malformed_id_reads_as_not_found(self, people, service_for) -> None:
        result = await (await service_for(OWNER)).update_poll("not-a-uuid", _form("Which one?", ["A", "B"]))

        assert isinstance(result, Err)
        assert isinstance(result.error, NotFound)
        assert result.message == "Poll not found"

    async def test_missing_poll(self, people, service_for) -> None:
        result = await (await service_for(OWNER)).update_poll(
            str(uuid.uuid4()), _form("Which one?", ["A", "B"])
        )

        assert isinstance(result, Err)
        assert result.message == "Poll not found"

    async def test_requires_authentication(self, owned_poll, service_for) -> None:
        result = await (await service_for(None)).update_poll(owned_poll.id, _form("Which one?", ["A", "B"]))

        assert isinstance(result, Err)
        assert result.message == "You must be logged in to update a poll."

    async def test_invalid_body(self, owned_poll, service_for) -> None:
        result = await (await service_for(OWNER)).update_poll(owned_poll.id, _form("Which one?", ["A"]))

        assert isinstance(result, Err)
        assert isinstance(result.error, ValidationError)


@pytest.mark.integration
class TestDeletePoll:
    """Test ownership-gated deletes."""

    async def test_delete_removes_votes(self, owned_poll, service_for, db_session) -> None:
        for email in (OWNER, OTHER):
            vote = await (await service_for(email)).submit_vote(owned_poll.id, 0)
            assert isinstance(vote, Ok)

        result = await (await service_for(OWNER)).delete_poll(owned_poll.id)

        assert isinstance(result, Ok)
        assert await VoteRepository(db_session).count_by_option(owned_poll.id) == {}
        assert await PollRepository(db_session).get_fresh(owned_poll.id) is None

    async def test_non_owner_denied_and_row_kept(self, owned_poll, service_for, db_session) -> None:
        result = await (await service_for(OTHER)).delete_poll(owned_poll.id)

        assert isinstance(result, Err)
        assert isinstance(result.error, AuthorizationDenied)
        assert result.message == "You can only delete your own polls"
        assert await PollRepository(db_session).get_fresh(owned_poll.id) is not None

    async def test_admin_deletes_any_poll(self, owned_poll, service_for, db_session) -> None:
        result = await (await service_for(ADMIN)).delete_poll(owned_poll.id)

        assert isinstance(result, Ok)
        assert await PollRepository(db_session).get_fresh(owned_poll.id) is None

    async def test_requires_authentication(self, owned_poll, service_for) -> None:
        result = await (await service_for(None)).delete_poll(owned_poll.id)

        assert isinstance(result, Err)
        assert result.message == "You must be logged in to delete a poll"


@pytest.mark.integration
class TestSubmitVote:
    """Test voting rules."""

    async def test_second_vote_is_duplicate(self, owned_poll, service_for, db_session) -> None:
        service = await service_for(OTHER)

        first = await service.submit_vote(owned_poll.id, 1)
        second = await service.submit_vote(owned_poll.id, 2)

        assert isinstance(first, Ok)
        assert isinstance(second, Err)
        assert isinstance(second.error, DuplicateVote)
        assert second.message == "You have already voted on this poll"
        assert await VoteRepository(db_session).count_by_option(owned_poll.id) == {1: 1}

    async def test_unique_index_backstops_the_existence_check(
        self, owned_poll, service_for, db_session, monkeypatch
    ) -> None:
        service = await service_for(OTHER)
        assert isinstance(await service.submit_vote(owned_poll.id, 0), Ok)

        async def never_voted(poll_id: str, user_id: str) -> bool:
            return False

        monkeypatch.setattr(service.votes, "exists_for_user", never_voted)

        result = await service.submit_vote(owned_poll.id, 1)

        assert isinstance(result, Err)
        assert isinstance(result.error, DuplicateVote)
        assert await VoteRepository(db_session).count_by_option(owned_poll.id) == {0: 1}

    async def test_index_checked_against_live_options(self, owned_poll, service_for) -> None:
        voter = await service_for(OTHER)

        # The voter's page was rendered with three options
        loaded = await voter.get_poll_by_id(owned_poll.id)
        assert len(loaded.value.options) == 3

        owner = await service_for(OWNER)
        shrink = await owner.update_poll(owned_poll.id, _form("Which language?", ["Python", "Go"]))
        assert isinstance(shrink, Ok)

        result = await voter.submit_vote(owned_poll.id, 2)

        assert isinstance(result, Err)
        assert isinstance(result.error, ValidationError)
        assert result.message == "Invalid option selected"

    async def test_anonymous_rejected_when_authentication_required(self, owned_poll, service_for) -> None:
        result = await (await service_for(None)).submit_vote(owned_poll.id, 0)

        assert isinstance(result, Err)
        assert isinstance(result.error, AuthenticationRequired)
        assert result.message == "You must be logged in to vote on this poll"

    async def test_anonymous_votes_allowed_and_not_deduplicated(self, people, service_for, db_session) -> None:
        form = _form("Open to everyone?", ["yes", "no"]) + [("requireAuthentication", "false")]
        poll = (await (await service_for(OWNER)).create_poll(form)).value
        anonymous = await service_for(None)

        assert isinstance(await anonymous.submit_vote(poll.id, 0), Ok)
        assert isinstance(await anonymous.submit_vote(poll.id, 0), Ok)

        rows = await db_session.execute(select(Vote.user_id).where(Vote.poll_id == poll.id))
        assert rows.scalars().all() == [None, None]

    async def test_unknown_poll(self, people, service_for) -> None:
        result = await (await service_for(OTHER)).submit_vote(str(uuid.uuid4()), 0)

        assert isinstance(result, Err)
        assert isinstance(result.error, NotFound)

    async def test_invalid_shape(self, owned_poll, service_for) -> None:
        result = await (await service_for(OTHER)).submit_vote(owned_poll.id, "first")

        assert isinstance(result, Err)
        assert result.message == "Option index must be a number"


@pytest.mark.integration
class TestQueries:
    """Test reads and their cache revalidation."""

    async def test_user_polls_newest_first(self, people, service_for) -> None:
        service = await service_for(OWNER)
        first = (await service.create_poll(_form("First question", ["a", "b"]))).value
        second = (await service.create_poll(_form("Second question", ["a", "b"]))).value

        result = await service.get_user_polls()

        assert isinstance(result, Ok)
        assert [poll.id for poll in result.value] == [second.id, first.id]

    async def test_user_polls_exclude_others(self, owned_poll, service_for) -> None:
        result = await (await service_for(OTHER)).get_user_polls()

        assert isinstance(result, Ok)
        assert result.value == []

    async def test_user_polls_requires_authentication(self, service_for, db_engine: None) -> None:
        result = await (await service_for(None)).get_user_polls()

        assert isinstance(result, Err)
        assert result.message == "Not authenticated"

    async def test_poll_by_id_is_public(self, owned_poll, service_for) -> None:
        result = await (await service_for(None)).get_poll_by_id(owned_poll.id)

        assert isinstance(result, Ok)
        assert result.value.id == owned_poll.id

    async def test_poll_by_id_malformed(self, service_for, db_engine: None) -> None:
        result = await (await service_for(None)).get_poll_by_id("1; DROP TABLE polls")

        assert isinstance(result, Err)
        assert result.message == "Poll not found"

    async def test_update_revalidates_cached_poll(self, owned_poll, service_for) -> None:
        reader = await service_for(None)
        assert (await reader.get_poll_by_id(owned_poll.id)).value.question == owned_poll.question

        await (await service_for(OWNER)).update_poll(owned_poll.id, _form("Renamed question", ["A", "B"]))

        assert (await reader.get_poll_by_id(owned_poll.id)).value.question == "Renamed question"

    async def test_edit_fetch_owner_and_admin_only(self, owned_poll, service_for) -> None:
        owner = await (await service_for(OWNER)).get_poll_by_id_for_edit(owned_poll.id)
        admin = await (await service_for(ADMIN)).get_poll_by_id_for_edit(owned_poll.id)
        other = await (await service_for(OTHER)).get_poll_by_id_for_edit(owned_poll.id)
        anonymous = await (await service_for(None)).get_poll_by_id_for_edit(owned_poll.id)

        assert isinstance(owner, Ok)
        assert isinstance(admin, Ok)
        assert isinstance(other, Err) and other.message == "You can only edit your own polls"
        assert isinstance(anonymous, Err) and anonymous.message == "You must be logged in to edit polls"

    async def test_results_count_votes(self, owned_poll, service_for) -> None:
        await (await service_for(OWNER)).submit_vote(owned_poll.id, 0)
        await (await service_for(OTHER)).submit_vote(owned_poll.id, 0)
        await (await service_for(ADMIN)).submit_vote(owned_poll.id, 2)

        result = await (await service_for(None)).get_poll_results(owned_poll.id)

        assert isinstance(result, Ok)
        assert result.value.total_votes == 3
        assert [option.vote_count for option in result.value.options] == [2, 0, 1]
        assert result.value.options[0].vote_percentage == 66.7

    async def test_vote_revalidates_results(self, owned_poll, service_for) -> None:
        reader = await service_for(None)
        assert (await reader.get_poll_results(owned_poll.id)).value.total_votes == 0

        await (await service_for(OTHER)).submit_vote(owned_poll.id, 1)

        assert (await reader.get_poll_results(owned_poll.id)).value.total_votes == 1

    async def test_all_polls_admin_only(self, owned_poll, service_for) -> None:
        admin = await (await service_for(ADMIN)).get_all_polls()
        member = await (await service_for(OTHER)).get_all_polls()
        anonymous = await (await service_for(None)).get_all_polls()

        assert isinstance(admin, Ok)
        assert [poll.id for poll in admin.value] == [owned_poll.id]
        assert isinstance(member, Err) and isinstance(member.error, AuthorizationDenied)
        assert isinstance(anonymous, Err) and isinstance(anonymous.error, AuthenticationRequired)

    async def test_new_poll_revalidates_admin_listing(self, owned_poll, service_for) -> None:
        admin = await service_for(ADMIN)
        assert len((await admin.get_all_polls()).value) == 1

        await (await service_for(OTHER)).create_poll(_form("Another question", ["a", "b"]))

        assert len((await admin.get_all_polls()).value) == 2
