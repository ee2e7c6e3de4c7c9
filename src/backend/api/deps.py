"""
Shared dependencies for API endpoints.

Includes:
- Identity gateway bound to the request's session cookies
- Poll service wired to the request-scoped database session
- Payload reading for endpoints that accept either JSON or form posts
"""

from typing import Any

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from db.session import get_db
from services.auth_provider import AuthProvider
from services.cache_service import PageCache, get_page_cache
from services.identity import IdentityGateway
from services.poll_service import PollService


async def get_identity(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> IdentityGateway:
    """
    Identity gateway for the current request.

    Reuses the session the gatekeeper middleware resolved, if any.
    """
    return IdentityGateway(
        AuthProvider(db),
        access_token=request.cookies.get(settings.ACCESS_COOKIE_NAME),
        refresh_token=request.cookies.get(settings.REFRESH_COOKIE_NAME),
        state=getattr(request.state, "auth", None),
    )


async def get_poll_service(
    db: AsyncSession = Depends(get_db),
    identity: IdentityGateway = Depends(get_identity),
    cache: PageCache = Depends(get_page_cache),
) -> PollService:
    return PollService(db, identity, cache)


async def read_payload(request: Request) -> Any:
    """
    Body as JSON (a dict) or as form data (a list of key/value pairs, so
    repeated fields such as `options` keep every value in order).

    Anything unreadable comes back as an empty dict and fails validation.
    """
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}

    form = await request.form()
    return list(form.multi_items())
