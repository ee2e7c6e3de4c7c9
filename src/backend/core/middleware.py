"""
Request gatekeeper and security headers.

Every request passes, in order: per-IP rate limit, session resolution (with
refresh), session age check, and route protection. Security headers are
attached to everything that leaves the application, rejections included.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable
from urllib.parse import urlencode

import structlog
from fastapi import Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from core.config import settings
from core.errors import RateLimited
from core.rate_limit import RateLimiter, get_client_ip
from db.session import async_session
from services.auth_provider import AuthProvider, SessionState
from services.identity import clear_session_cookies, set_session_cookies

logger = structlog.get_logger(__name__)


def server_error_response(request: Request, exc: Exception) -> JSONResponse:
    """Log an unexpected failure and answer with a generic 500 body."""
    logger.exception(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )

    return JSONResponse(
        status_code=500,
        content={
            "error": "An internal server error occurred. Please try again later.",
            "error_type": type(exc).__name__ if settings.DEBUG else "InternalServerError",
        },
    )


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses.

    - X-Frame-Options: Prevents clickjacking attacks
    - X-Content-Type-Options: Prevents MIME type sniffing
    - Referrer-Policy: Controls referrer information
    - X-XSS-Protection: Enables XSS filtering (legacy browsers)
    - Content-Security-Policy: Same-origin content, inline/eval scripts,
      same-origin/data/https images

    Must be the outermost middleware so 429s, redirects and 500s carry the
    headers. Unhandled exceptions are turned into the generic 500 body here,
    since the framework's own error handler runs outside every middleware.
    """

    CONTENT_SECURITY_POLICY = (
        "default-src 'self'; "
        "script-src 'self' 'unsafe-inline' 'unsafe-eval'; "
        "style-src 'self' 'unsafe-inline'; "
        "img-src 'self' data: https:; "
        "font-src 'self' data:;"
    )

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Add security headers to response."""
        try:
            response = await call_next(request)
        except Exception as e:
            response = server_error_response(request, e)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["X-XSS-Protection"] = "1; mode=block"
        response.headers["Content-Security-Policy"] = self.CONTENT_SECURITY_POLICY

        return response


def _login_redirect(**params: str) -> RedirectResponse:
    url = settings.LOGIN_PATH
    if params:
        url = f"{url}?{urlencode(params)}"
    return RedirectResponse(url, status_code=status.HTTP_307_TEMPORARY_REDIRECT)


def is_public_path(path: str) -> bool:
    return any(path.startswith(prefix) for prefix in settings.public_path_prefixes_list)


def sets_session_cookie(response: Response) -> bool:
    """Whether the handler already set or cleared a session cookie."""
    names = (settings.ACCESS_COOKIE_NAME, settings.REFRESH_COOKIE_NAME)
    return any(
        header.split("=", 1)[0].strip() in names
        for header in response.headers.getlist("set-cookie")
    )


class SessionGatekeeperMiddleware(BaseHTTPMiddleware):
    """
    Rate limiting, session validation/refresh and route protection.

    The resolved session is stored on `request.state.auth` so handlers reuse
    it instead of resolving the cookies a second time.
    """

    def __init__(self, app: Callable, rate_limiter: RateLimiter):
        super().__init__(app)
        self.rate_limiter = rate_limiter

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        client_ip = get_client_ip(request)
        if not await self.rate_limiter.allow(client_ip):
            logger.warning("rate_limit_exceeded", client_ip=client_ip, path=request.url.path)
            error = RateLimited()
            return PlainTextResponse(error.message, status_code=error.status_code)

        try:
            state = await self._resolve_session(request)
        except Exception as e:
            logger.exception("session_check_failed", error=str(e), path=request.url.path)
            response = _login_redirect(error="auth_error")
            clear_session_cookies(response)
            return response

        if state.error is not None:
            logger.info("session_invalid", reason=state.error.detail, path=request.url.path)
            response = _login_redirect(error="session_invalid")
            clear_session_cookies(response)
            return response

        if state.session is not None:
            age = datetime.now(timezone.utc) - state.session.created_at
            if age > timedelta(hours=settings.SESSION_MAX_AGE_HOURS):
                logger.info(
                    "session_expired",
                    user_id=state.session.user.id,
                    age_hours=round(age.total_seconds() / 3600, 1),
                )
                response = _login_redirect(error="session_expired")
                clear_session_cookies(response)
                return response

        request.state.auth = state

        path = request.url.path
        if state.user is None and not is_public_path(path):
            return _login_redirect(redirectTo=path)

        response = await call_next(request)

        # Login and logout set or clear the cookies themselves; theirs win
        if state.refreshed and state.session is not None and not sets_session_cookie(response):
            set_session_cookies(response, state.session)

        return response

    async def _resolve_session(self, request: Request) -> SessionState:
        access_token = request.cookies.get(settings.ACCESS_COOKIE_NAME)
        refresh_token = request.cookies.get(settings.REFRESH_COOKIE_NAME)
        if not access_token and not refresh_token:
            return SessionState()

        async with async_session() as db:
            return await AuthProvider(db).get_session(access_token, refresh_token)
