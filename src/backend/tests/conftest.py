"""
Pytest fixtures for Pollboard backend tests.
"""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any, Optional

import pytest
from httpx import ASGITransport, AsyncClient

# Set test environment variables before importing app
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("RATE_LIMIT_BACKEND", "memory")

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
PASSWORD = "Str0ng!Pass"


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Use asyncio backend for async tests."""
    return "asyncio"


@pytest.fixture
async def db_engine() -> AsyncGenerator[None, None]:
    """Fresh in-memory database with every table created."""
    from db.session import close_db, configure_engine, init_db
    from services.cache_service import get_page_cache

    configure_engine(TEST_DATABASE_URL)
    await init_db()
    get_page_cache().clear()
    yield
    get_page_cache().clear()
    await close_db()


@pytest.fixture
async def db_session(db_engine: None) -> AsyncGenerator[Any, None]:
    """Database session on the test engine."""
    from db.session import async_session

    async with async_session() as session:
        yield session


@pytest.fixture
def page_cache() -> Any:
    from services.cache_service import PageCache

    return PageCache(ttl_seconds=60)


@pytest.fixture
def create_user(db_session: Any) -> Callable[..., Awaitable[Any]]:
    """Factory registering an account through the provider (optionally an admin)."""
    from repositories.user_repository import UserRepository
    from services.auth_provider import AuthProvider

    async def _create(
        email: str = "owner@pollboard.io",
        name: str = "Poll Owner",
        admin: bool = False,
    ) -> Any:
        user = await AuthProvider(db_session).sign_up(email, PASSWORD, metadata={"name": name})
        if admin:
            await UserRepository(db_session).set_metadata_flag(user.id, "is_admin", True)
            await db_session.commit()
        return user

    return _create


@pytest.fixture
def identity_for(db_session: Any) -> Callable[[Optional[str]], Awaitable[Any]]:
    """Factory for an identity gateway signed in as `email` (None: anonymous)."""
    from services.auth_provider import AuthProvider
    from services.identity import IdentityGateway

    async def _identity(email: Optional[str] = None) -> Any:
        provider = AuthProvider(db_session)
        if email is None:
            return IdentityGateway(provider)
        session = await provider.sign_in_with_password(email, PASSWORD)
        return IdentityGateway(
            provider,
            access_token=session.access_token,
            refresh_token=session.refresh_token,
        )

    return _identity


@pytest.fixture
def service_for(
    db_session: Any,
    identity_for: Callable[[Optional[str]], Awaitable[Any]],
    page_cache: Any,
) -> Callable[[Optional[str]], Awaitable[Any]]:
    """Factory for a poll service acting as `email` (None: anonymous)."""
    from services.poll_service import PollService

    async def _service(email: Optional[str] = None) -> Any:
        return PollService(db_session, await identity_for(email), page_cache)

    return _service


@pytest.fixture
def rate_limiter() -> Any:
    from core.rate_limit import InMemoryRateLimiter

    return InMemoryRateLimiter(max_requests=100, window_seconds=900)


@pytest.fixture
async def app(db_engine: None, rate_limiter: Any) -> Any:
    """Create FastAPI application for testing."""
    from main import create_application

    return create_application(rate_limiter=rate_limiter)


@pytest.fixture
async def client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def login(client: AsyncClient) -> Callable[[str], Awaitable[Any]]:
    """Sign the test client in; the session cookies stay in its jar."""

    async def _login(email: str, password: str = PASSWORD) -> Any:
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": email, "password": password},
        )
        assert response.status_code == 200, response.text
        return response

    return _login


@pytest.fixture
def poll_form() -> dict[str, Any]:
    """A valid create-poll submission."""
    return {
        "question": "Which language should we use?",
        "options": ["Python", "Go", "Rust"],
    }
