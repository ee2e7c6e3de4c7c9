"""
Tests for user and session repository.
"""

import pytest


@pytest.mark.integration
class TestUserRepository:
    """Test UserRepository against the test database."""

    async def test_email_lookup_is_case_insensitive(self, db_session) -> None:
        from repositories.user_repository import UserRepository

        repo = UserRepository(db_session)
        user = await repo.create("Grace@Pollboard.io", "hash", {"name": "Grace"})

        assert user.email == "grace@pollboard.io"
        assert await repo.email_exists("GRACE@pollboard.io") is True
        assert (await repo.get_by_email("grace@POLLBOARD.io")).id == user.id

    async def test_set_metadata_flag(self, db_session) -> None:
        from repositories.user_repository import UserRepository

        repo = UserRepository(db_session)
        user = await repo.create("grace@pollboard.io", "hash", {"name": "Grace"})

        assert await repo.set_metadata_flag(user.id, "is_admin", True) is True
        assert user.user_metadata == {"name": "Grace", "is_admin": True}
        assert await repo.set_metadata_flag("missing", "is_admin", True) is False

    async def test_session_lifecycle(self, db_session) -> None:
        from repositories.user_repository import UserRepository

        repo = UserRepository(db_session)
        user = await repo.create("grace@pollboard.io", "hash")
        session = await repo.create_session(user.id)
        await db_session.commit()

        assert session.revoked is False
        assert await repo.revoke_session(session.id) is True
        await db_session.commit()

        stored = await repo.get_session(session.id)
        await db_session.refresh(stored)
        assert stored.revoked is True
