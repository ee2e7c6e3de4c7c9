"""
Translation of operation results into HTTP responses.

Every action responds with `{"error": str | null, ...}`; a failed result sets
`error` to the user-facing message and uses the error's status code.
"""

from typing import Any, Optional

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from core.result import Err, Result


def error_message(result: Result[Any]) -> Optional[str]:
    return result.message if isinstance(result, Err) else None


def action_response(
    result: Result[Any],
    success_status: int = status.HTTP_200_OK,
    **extra: Any,
) -> JSONResponse:
    """Build the `{error, ...extra}` response for an action result."""
    content = {"error": error_message(result), **extra}
    status_code = result.error.status_code if isinstance(result, Err) else success_status
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))
