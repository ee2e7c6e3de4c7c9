"""
Admin endpoints.

Every route here checks admin rights itself through the identity gateway;
the middleware only guarantees a signed-in caller.
"""

from urllib.parse import urlencode

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse, RedirectResponse

from api.deps import get_identity, get_poll_service
from api.responses import action_response
from core.config import settings
from core.result import Err, Ok
from services.identity import IdentityGateway
from services.poll_service import PollService

router = APIRouter()


@router.get("")
async def admin_home(identity: IdentityGateway = Depends(get_identity)):
    """Admin page guard: non-admins are sent to the login page."""
    result = await identity.require_admin()
    if isinstance(result, Err):
        query = urlencode({"error": "admin_required"})
        return RedirectResponse(
            f"{settings.LOGIN_PATH}?{query}",
            status_code=status.HTTP_307_TEMPORARY_REDIRECT,
        )
    return {"user": result.value}


@router.get("/polls")
async def get_all_polls(service: PollService = Depends(get_poll_service)) -> JSONResponse:
    """
    Every poll, newest first.

    Returns `{"error": message, "data": null}` when the caller is not an admin.
    """
    result = await service.get_all_polls()
    return action_response(result, data=result.value if isinstance(result, Ok) else None)


@router.delete("/polls/{poll_id}")
async def delete_poll(
    poll_id: str,
    service: PollService = Depends(get_poll_service),
) -> JSONResponse:
    result = await service.delete_poll(poll_id)
    return action_response(result)
