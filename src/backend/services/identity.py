"""
Identity gateway.

Wraps the identity provider for the rest of the application. Every operation
returns a `Result`; lookups (`get_current_user`, `get_session`, `is_admin`)
never raise and fail closed. Provider wording is logged, never returned, for
anything that could reveal whether an account exists.
"""

from typing import Optional

import structlog
from fastapi import Response
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings
from core.errors import AuthenticationRequired, AuthorizationDenied, ProviderError
from core.result import Err, Ok, Result
from schemas.auth import AuthSessionInfo, AuthUser, LoginRequest, RegisterRequest
from schemas.sanitize import sanitize_html
from schemas.validation import validate_payload
from services.auth_provider import AuthProvider, SessionState

logger = structlog.get_logger(__name__)


def _normalize_email(email: str) -> str:
    return sanitize_html(email.lower().strip())


class IdentityGateway:
    """
    Per-request view of the caller's identity.

    `state` is the session the gatekeeper middleware already resolved for this
    request; without it the gateway resolves the cookies' tokens itself.
    """

    def __init__(
        self,
        provider: AuthProvider,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
        state: Optional[SessionState] = None,
    ):
        self.provider = provider
        self.access_token = access_token
        self.refresh_token = refresh_token
        self._state = state

    async def _resolve(self) -> SessionState:
        if self._state is None:
            self._state = await self.provider.get_session(self.access_token, self.refresh_token)
        return self._state

    # =========================================================================
    # Sign-in / sign-up / sign-out
    # =========================================================================

    async def sign_in(self, email: str, password: str) -> Result[AuthSessionInfo]:
        validated = validate_payload(LoginRequest, {"email": email, "password": password})
        if isinstance(validated, Err):
            return validated

        credentials = validated.value
        try:
            session = await self.provider.sign_in_with_password(
                _normalize_email(credentials.email), credentials.password
            )
        except ProviderError as e:
            logger.warning("sign_in_failed", reason=e.detail)
            if e.detail and "Invalid login credentials" in e.detail:
                return Err(ProviderError("Invalid email or password", detail=e.detail))
            return Err(ProviderError("Login failed. Please try again.", detail=e.detail))
        except SQLAlchemyError as e:
            logger.error("auth_provider_error", operation="sign_in", error=str(e))
            return Err(ProviderError("Login failed. Please try again.", detail=str(e)))

        self._state = SessionState(user=session.user, session=session)
        return Ok(session)

    async def sign_up(self, name: str, email: str, password: str) -> Result[AuthUser]:
        validated = validate_payload(
            RegisterRequest, {"name": name, "email": email, "password": password}
        )
        if isinstance(validated, Err):
            return validated

        data = validated.value
        normalized_email = _normalize_email(data.email)
        duplicate = ProviderError("An account with this email already exists")

        try:
            # Best effort; the unique index on users.email settles races
            if await self.provider.email_registered(normalized_email):
                return Err(duplicate)

            user = await self.provider.sign_up(
                normalized_email,
                data.password,
                metadata={"name": sanitize_html(data.name.strip())},
            )
        except ProviderError as e:
            logger.warning("sign_up_failed", reason=e.detail)
            detail = e.detail or ""
            if "already registered" in detail:
                return Err(ProviderError(duplicate.message, detail=detail))
            if "Password" in detail:
                return Err(ProviderError("Password does not meet security requirements", detail=detail))
            return Err(ProviderError("Registration failed. Please try again.", detail=detail))
        except SQLAlchemyError as e:
            logger.error("auth_provider_error", operation="sign_up", error=str(e))
            return Err(ProviderError("Registration failed. Please try again.", detail=str(e)))

        return Ok(user)

    async def sign_out(self) -> Result[None]:
        state = await self._resolve()
        if state.session is None:
            # Already signed out
            self._state = SessionState()
            return Ok(None)

        try:
            await self.provider.sign_out(state.session.id)
        except ProviderError as e:
            return Err(ProviderError(e.detail or e.message, detail=e.detail))
        except SQLAlchemyError as e:
            logger.error("auth_provider_error", operation="sign_out", error=str(e))
            return Err(ProviderError(str(e), detail=str(e)))

        self._state = SessionState()
        return Ok(None)

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_current_user(self) -> Optional[AuthUser]:
        """The signed-in user, or None. Never raises."""
        try:
            state = await self._resolve()
        except SQLAlchemyError as e:
            logger.error("auth_provider_error", operation="get_current_user", error=str(e))
            return None
        return state.user

    async def get_session(self) -> Optional[AuthSessionInfo]:
        """The current session, or None. Never raises."""
        try:
            state = await self._resolve()
        except SQLAlchemyError as e:
            logger.error("auth_provider_error", operation="get_session", error=str(e))
            return None
        return state.session

    async def is_admin(self, user_id: Optional[str] = None) -> bool:
        """
        Whether the given user (default: the caller) is an admin.

        The flag is always re-read from the provider, never taken from a
        cached session. Any failure answers False.
        """
        if user_id is None:
            current = await self.get_current_user()
            if current is None:
                return False
            user_id = current.id

        try:
            user = await self.provider.get_user_by_id(user_id)
        except SQLAlchemyError as e:
            logger.error("auth_provider_error", operation="is_admin", error=str(e))
            return False
        return user is not None and user.is_admin

    async def require_admin(self) -> Result[AuthUser]:
        user = await self.get_current_user()
        if user is None:
            return Err(AuthenticationRequired("Authentication required"))

        if not await self.is_admin(user.id):
            logger.warning("non_admin_access_attempt", user_id=user.id)
            return Err(AuthorizationDenied("Admin access required"))

        return Ok(user)


# =============================================================================
# Cookie transport
# =============================================================================


def set_session_cookies(response: Response, session: AuthSessionInfo) -> None:
    """Write the session's tokens as HttpOnly cookies."""
    response.set_cookie(
        settings.ACCESS_COOKIE_NAME,
        session.access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )
    response.set_cookie(
        settings.REFRESH_COOKIE_NAME,
        session.refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        path="/",
    )


def clear_session_cookies(response: Response) -> None:
    for name in (settings.ACCESS_COOKIE_NAME, settings.REFRESH_COOKIE_NAME):
        response.delete_cookie(
            name,
            path="/",
            httponly=True,
            secure=settings.SESSION_COOKIE_SECURE,
            samesite="lax",
        )
