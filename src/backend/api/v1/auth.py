"""
Authentication endpoints.

Password sign-in, registration and sign-out. Session tokens travel only in
HttpOnly cookies; response bodies never contain them.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from api.deps import get_identity, read_payload
from api.responses import action_response
from core.result import Ok
from schemas.auth import CurrentUserResponse, SessionResponse
from services.identity import IdentityGateway, clear_session_cookies, set_session_cookies

router = APIRouter()


def _fields(payload: Any) -> dict[str, Any]:
    # Form posts arrive as pairs; a repeated field keeps its last value
    return dict(payload) if isinstance(payload, list) else payload


@router.post("/login")
async def login(
    payload: Any = Depends(read_payload),
    identity: IdentityGateway = Depends(get_identity),
) -> JSONResponse:
    """Sign in with email and password; sets the session cookies."""
    fields = _fields(payload)
    result = await identity.sign_in(fields.get("email", ""), fields.get("password", ""))

    response = action_response(result)
    if isinstance(result, Ok):
        set_session_cookies(response, result.value)
    return response


@router.post("/register")
async def register(
    payload: Any = Depends(read_payload),
    identity: IdentityGateway = Depends(get_identity),
) -> JSONResponse:
    """Create an account. The new user signs in separately."""
    fields = _fields(payload)
    result = await identity.sign_up(
        fields.get("name", ""),
        fields.get("email", ""),
        fields.get("password", ""),
    )
    return action_response(result, success_status=status.HTTP_201_CREATED)


@router.post("/logout")
async def logout(identity: IdentityGateway = Depends(get_identity)) -> JSONResponse:
    result = await identity.sign_out()

    response = action_response(result)
    if isinstance(result, Ok):
        clear_session_cookies(response)
    return response


@router.get("/me", response_model=CurrentUserResponse)
async def get_me(identity: IdentityGateway = Depends(get_identity)) -> CurrentUserResponse:
    """The signed-in user, or `{"user": null}`."""
    return CurrentUserResponse(user=await identity.get_current_user())


@router.get("/session")
async def get_session(identity: IdentityGateway = Depends(get_identity)) -> dict:
    session = await identity.get_session()
    if session is None:
        return {"session": None}
    return {
        "session": SessionResponse(
            id=session.id,
            user=session.user,
            created_at=session.created_at,
        )
    }
