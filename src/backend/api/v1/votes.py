"""
Voting endpoint.
"""

from typing import Any

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from api.deps import get_poll_service, read_payload
from api.responses import action_response
from services.poll_service import PollService

router = APIRouter()


def _form_index(value: Any) -> Any:
    # Form fields are strings; JSON numbers pass through untouched
    if isinstance(value, str) and value.strip().lstrip("-").isdigit():
        return int(value)
    return value


@router.post("")
async def submit_vote(
    payload: Any = Depends(read_payload),
    service: PollService = Depends(get_poll_service),
) -> JSONResponse:
    """
    Cast a vote: `{"pollId": "<uuid>", "optionIndex": 0}`.

    Anonymous votes are accepted only on polls that do not require
    authentication.
    """
    if isinstance(payload, list):
        fields = dict(payload)
        option_index = _form_index(fields.get("optionIndex"))
    else:
        fields = payload
        option_index = fields.get("optionIndex")

    result = await service.submit_vote(fields.get("pollId"), option_index)
    return action_response(result, success_status=status.HTTP_201_CREATED)
