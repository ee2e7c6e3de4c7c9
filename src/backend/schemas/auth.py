"""
Authentication-related Pydantic schemas.
"""

from datetime import datetime
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict

from schemas.validation import (
    check_email,
    check_login_password,
    check_name,
    check_new_password,
)

Email = Annotated[str, AfterValidator(check_email)]


class LoginRequest(BaseModel):
    """Credentials for password sign-in."""

    model_config = ConfigDict(validate_default=True)

    email: Email = ""
    password: Annotated[str, AfterValidator(check_login_password)] = ""


class RegisterRequest(BaseModel):
    """New account details."""

    model_config = ConfigDict(validate_default=True)

    name: Annotated[str, AfterValidator(check_name)] = ""
    email: Email = ""
    password: Annotated[str, AfterValidator(check_new_password)] = ""


class AuthUser(BaseModel):
    """The current principal as exposed by the identity gateway."""

    id: str
    email: str
    name: Optional[str] = None
    user_metadata: dict[str, Any] = {}
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}

    @property
    def is_admin(self) -> bool:
        return self.user_metadata.get("is_admin") is True


class AuthSessionInfo(BaseModel):
    """A signed-in session, with its tokens."""

    id: str
    user: AuthUser
    created_at: datetime
    access_token: str
    refresh_token: str


class SessionResponse(BaseModel):
    """Session details returned over HTTP (tokens stay in cookies)."""

    id: str
    user: AuthUser
    created_at: datetime


class ActionResponse(BaseModel):
    """Outcome of a mutating action."""

    error: Optional[str] = None


class CurrentUserResponse(BaseModel):
    user: Optional[AuthUser] = None
