"""
Error taxonomy shared by the identity gateway, poll operations and routers.

User-facing messages for authentication-adjacent failures stay generic so
that responses never reveal whether an account exists.
"""

from typing import Optional


class AppError(Exception):
    """Base class for failures that are returned as data at the action boundary."""

    code = "error"
    status_code = 400
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"


class ValidationError(AppError):
    """Field-level input failure. `fields` maps field path to messages."""

    code = "validation_error"
    status_code = 400
    default_message = "Invalid input data"

    def __init__(
        self,
        message: Optional[str] = None,
        fields: Optional[dict[str, list[str]]] = None,
    ):
        self.fields = fields or {}
        if message is None:
            message = self.first_message(self.fields)
        super().__init__(message)

    @staticmethod
    def first_message(fields: dict[str, list[str]]) -> Optional[str]:
        """First message of the first failing field, what callers display."""
        for messages in fields.values():
            if messages:
                return messages[0]
        return None


class AuthenticationRequired(AppError):
    code = "authentication_required"
    status_code = 401
    default_message = "Authentication required"


class AuthorizationDenied(AppError):
    code = "authorization_denied"
    status_code = 403
    default_message = "Access denied"


class NotFound(AppError):
    """Missing entity or malformed identifier; both read the same."""

    code = "not_found"
    status_code = 404
    default_message = "Not found"


class DuplicateVote(AppError):
    code = "duplicate_vote"
    status_code = 409
    default_message = "You have already voted on this poll"


class RateLimited(AppError):
    code = "rate_limited"
    status_code = 429
    default_message = "Too Many Requests"


class ProviderError(AppError):
    """
    Opaque upstream failure.

    `message` is the generic text shown to the user; `detail` is the
    provider's own description and is only ever logged.
    """

    code = "provider_error"
    status_code = 400
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.detail = detail
        super().__init__(message)
