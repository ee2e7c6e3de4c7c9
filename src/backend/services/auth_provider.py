"""
Built-in identity provider.

Owns the `users` and `auth_sessions` tables and speaks in provider terms:
password sign-in/sign-up, sign-out, token-to-user resolution and session
refresh. Failures raise `ProviderError` whose `detail` is the provider's own
wording; the identity gateway decides what the user gets to see.
"""

from dataclasses import dataclass
from typing import Any, Optional

import structlog
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ProviderError
from core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from models.user import AuthSession, User, as_utc
from repositories.user_repository import UserRepository
from schemas.auth import AuthSessionInfo, AuthUser

logger = structlog.get_logger(__name__)

PROVIDER_MIN_PASSWORD_LENGTH = 8


@dataclass
class SessionState:
    """What the provider knows about the caller of the current request."""

    user: Optional[AuthUser] = None
    session: Optional[AuthSessionInfo] = None
    refreshed: bool = False
    error: Optional[ProviderError] = None


def _to_user(user: User) -> AuthUser:
    return AuthUser(
        id=user.id,
        email=user.email,
        name=user.name,
        user_metadata=dict(user.user_metadata or {}),
        created_at=as_utc(user.created_at) if user.created_at else None,
    )


class AuthProvider:
    """Password-based identity provider backed by the application database."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.users = UserRepository(db)

    def _issue(self, session: AuthSession, user: User) -> AuthSessionInfo:
        claims = {"sub": user.id, "sid": session.id, "email": user.email}
        return AuthSessionInfo(
            id=session.id,
            user=_to_user(user),
            created_at=as_utc(session.created_at),
            access_token=create_access_token(claims),
            refresh_token=create_refresh_token(claims),
        )

    async def _load(self, payload: dict[str, Any]) -> tuple[AuthSession, User]:
        session_id = payload.get("sid")
        user_id = payload.get("sub")
        if not session_id or not user_id:
            raise ProviderError(detail="Invalid token payload")

        session = await self.users.get_session(session_id)
        if session is None or session.revoked or session.user_id != user_id:
            raise ProviderError(detail="Session not found")

        user = await self.users.get_by_id(user_id)
        if user is None:
            raise ProviderError(detail="User not found")
        return session, user

    # =========================================================================
    # Sign-in / sign-up / sign-out
    # =========================================================================

    async def sign_in_with_password(self, email: str, password: str) -> AuthSessionInfo:
        """Open a new session for valid credentials."""
        user = await self.users.get_by_email(email)
        # Same failure for unknown email and wrong password
        if user is None or not verify_password(password, user.password_hash):
            raise ProviderError(detail="Invalid login credentials")

        session = await self.users.create_session(user.id)
        await self.users.touch_sign_in(user.id)
        await self.db.commit()

        logger.info("session_created", user_id=user.id, session_id=session.id)
        return self._issue(session, user)

    async def sign_up(
        self,
        email: str,
        password: str,
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuthUser:
        """Create an account. Metadata never carries privilege flags."""
        if len(password) < PROVIDER_MIN_PASSWORD_LENGTH:
            raise ProviderError(detail="Password should be at least 8 characters")

        user_metadata = {k: v for k, v in (metadata or {}).items() if k != "is_admin"}
        try:
            user = await self.users.create(
                email=email,
                password_hash=hash_password(password),
                user_metadata=user_metadata,
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ProviderError(detail="User already registered")

        logger.info("user_registered", user_id=user.id)
        return _to_user(user)

    async def sign_out(self, session_id: str) -> None:
        """Revoke a session."""
        await self.users.revoke_session(session_id)
        await self.db.commit()
        logger.info("session_revoked", session_id=session_id)

    # =========================================================================
    # Lookups
    # =========================================================================

    async def get_user(self, access_token: str) -> AuthUser:
        """Resolve an access token to its user."""
        payload = decode_token(access_token, expected_type="access")
        if payload is None:
            raise ProviderError(detail="Invalid or expired token")
        _, user = await self._load(payload)
        return _to_user(user)

    async def get_user_by_id(self, user_id: str) -> Optional[AuthUser]:
        user = await self.users.get_by_id(user_id)
        return _to_user(user) if user else None

    async def email_registered(self, email: str) -> bool:
        return await self.users.email_exists(email)

    async def refresh_session(self, refresh_token: str) -> AuthSessionInfo:
        """Mint fresh tokens for an existing, unrevoked session."""
        payload = decode_token(refresh_token, expected_type="refresh")
        if payload is None:
            raise ProviderError(detail="Invalid refresh token")

        session, user = await self._load(payload)
        await self.users.mark_refreshed(session.id)
        await self.db.commit()

        logger.info("session_refreshed", user_id=user.id, session_id=session.id)
        return self._issue(session, user)

    async def get_session(
        self,
        access_token: Optional[str],
        refresh_token: Optional[str] = None,
    ) -> SessionState:
        """
        Resolve the request's session, refreshing it when the access token
        no longer validates but the refresh token does.

        No tokens at all is an anonymous caller, not an error.
        """
        if not access_token and not refresh_token:
            return SessionState()

        if access_token:
            payload = decode_token(access_token, expected_type="access")
            if payload is not None:
                try:
                    session, user = await self._load(payload)
                except ProviderError as e:
                    return SessionState(error=e)
                return SessionState(
                    user=_to_user(user),
                    session=AuthSessionInfo(
                        id=session.id,
                        user=_to_user(user),
                        created_at=as_utc(session.created_at),
                        access_token=access_token,
                        refresh_token=refresh_token or "",
                    ),
                )

        if refresh_token:
            try:
                info = await self.refresh_session(refresh_token)
            except ProviderError as e:
                return SessionState(error=e)
            return SessionState(user=info.user, session=info, refreshed=True)

        return SessionState(error=ProviderError(detail="Invalid or expired token"))
