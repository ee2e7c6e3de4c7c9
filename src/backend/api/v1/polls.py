"""
Poll management endpoints.

Create/update accept form posts (repeated `options` or `options[]` fields) as
well as JSON. Every endpoint answers with `{"error": ...}` plus its data.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from api.deps import get_poll_service, read_payload
from api.responses import action_response
from core.result import Ok
from services.poll_service import PollService

router = APIRouter()


@router.post("")
async def create_poll(
    payload: Any = Depends(read_payload),
    service: PollService = Depends(get_poll_service),
) -> JSONResponse:
    """Create a poll owned by the caller."""
    result = await service.create_poll(payload)
    return action_response(result, success_status=status.HTTP_201_CREATED)


@router.get("")
async def get_user_polls(service: PollService = Depends(get_poll_service)) -> JSONResponse:
    """The caller's polls, newest first."""
    result = await service.get_user_polls()
    return action_response(result, polls=result.value if isinstance(result, Ok) else [])


@router.get("/{poll_id}")
async def get_poll(
    poll_id: str,
    service: PollService = Depends(get_poll_service),
) -> JSONResponse:
    result = await service.get_poll_by_id(poll_id)
    return action_response(result, poll=result.value if isinstance(result, Ok) else None)


@router.get("/{poll_id}/edit")
async def get_poll_for_edit(
    poll_id: str,
    service: PollService = Depends(get_poll_service),
) -> JSONResponse:
    """Poll for the edit page; only its owner or an admin gets it."""
    result = await service.get_poll_by_id_for_edit(poll_id)
    return action_response(result, poll=result.value if isinstance(result, Ok) else None)


@router.get("/{poll_id}/results")
async def get_poll_results(
    poll_id: str,
    service: PollService = Depends(get_poll_service),
) -> JSONResponse:
    result = await service.get_poll_results(poll_id)
    return action_response(result, results=result.value if isinstance(result, Ok) else None)


@router.put("/{poll_id}")
async def update_poll(
    poll_id: str,
    payload: Any = Depends(read_payload),
    service: PollService = Depends(get_poll_service),
) -> JSONResponse:
    result = await service.update_poll(poll_id, payload)
    return action_response(result)


@router.delete("/{poll_id}")
async def delete_poll(
    poll_id: str,
    service: PollService = Depends(get_poll_service),
) -> JSONResponse:
    """Delete a poll and all of its votes."""
    result = await service.delete_poll(poll_id)
    return action_response(result)
