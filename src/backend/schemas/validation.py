"""
Field checks and the generic decoders that turn raw input into schemas.

Every check raises `PydanticCustomError` so the message a user sees is exactly
the one written here. Decoders never raise for malformed input: they return
`Err(ValidationError)` whose `fields` map a dotted field path to messages.
"""

import re
from collections.abc import Mapping
from typing import Any, Iterable, TypeVar, get_origin

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from core.errors import ValidationError
from core.result import Err, Ok, Result

ModelT = TypeVar("ModelT", bound=BaseModel)

UUID_PATTERN = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
NAME_PATTERN = re.compile(r"^[a-zA-Z\s'-]+$")
PASSWORD_PATTERN = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]")

MIN_OPTIONS = 2
MAX_OPTIONS = 10
QUESTION_MIN_LENGTH = 5
QUESTION_MAX_LENGTH = 500
OPTION_MAX_LENGTH = 200

# Checkbox-style form fields: present as "true"/"on" means checked
BOOLEAN_FORM_FIELDS = frozenset({"allowMultipleVotes", "requireAuthentication"})


def _fail(kind: str, message: str) -> PydanticCustomError:
    return PydanticCustomError(kind, message)


# =============================================================================
# Field checks
# =============================================================================


def check_email(value: str) -> str:
    if not value:
        raise _fail("email_required", "Email is required")
    if len(value) > 255:
        raise _fail("email_too_long", "Email must be less than 255 characters")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        raise _fail("email_invalid", "Please enter a valid email address")
    return value


def check_login_password(value: str) -> str:
    if not value:
        raise _fail("password_required", "Password is required")
    if len(value) < 6:
        raise _fail("password_too_short", "Password must be at least 6 characters")
    if len(value) > 128:
        raise _fail("password_too_long", "Password must be less than 128 characters")
    return value


def check_new_password(value: str) -> str:
    if len(value) < 8:
        raise _fail("password_too_short", "Password must be at least 8 characters")
    if len(value) > 128:
        raise _fail("password_too_long", "Password must be less than 128 characters")
    if not PASSWORD_PATTERN.match(value):
        raise _fail(
            "password_weak",
            "Password must contain at least one uppercase letter, one lowercase letter, "
            "one number, and one special character",
        )
    return value


def check_name(value: str) -> str:
    if not value:
        raise _fail("name_required", "Name is required")
    if len(value) < 2:
        raise _fail("name_too_short", "Name must be at least 2 characters")
    if len(value) > 100:
        raise _fail("name_too_long", "Name must be less than 100 characters")
    if not NAME_PATTERN.match(value):
        raise _fail(
            "name_invalid",
            "Name can only contain letters, spaces, hyphens, and apostrophes",
        )
    return value


def check_question(value: str) -> str:
    if not value:
        raise _fail("question_required", "Question is required")
    value = value.strip()
    if not value:
        raise _fail("question_blank", "Question cannot be only whitespace")
    if len(value) < QUESTION_MIN_LENGTH:
        raise _fail("question_too_short", "Question must be at least 5 characters")
    if len(value) > QUESTION_MAX_LENGTH:
        raise _fail("question_too_long", "Question must be less than 500 characters")
    return value


def check_option(value: str) -> str:
    if not value:
        raise _fail("option_empty", "Option cannot be empty")
    if len(value) > OPTION_MAX_LENGTH:
        raise _fail("option_too_long", "Option must be less than 200 characters")
    value = value.strip()
    if not value:
        raise _fail("option_blank", "Option cannot be only whitespace")
    return value


def check_options(values: list[str]) -> list[str]:
    if len(values) < MIN_OPTIONS:
        raise _fail("options_too_few", "At least 2 options are required")
    if len(values) > MAX_OPTIONS:
        raise _fail("options_too_many", "Maximum 10 options allowed")
    if not options_unique(values):
        raise _fail("options_not_unique", "All options must be unique")
    return values


def options_unique(values: list[str]) -> bool:
    return len({v.strip().lower() for v in values}) == len(values)


def check_poll_id(value: str) -> str:
    if not isinstance(value, str) or not UUID_PATTERN.match(value):
        raise _fail("poll_id_invalid", "Invalid poll ID format")
    return value.lower()


def is_valid_uuid(value: Any) -> bool:
    return isinstance(value, str) and bool(UUID_PATTERN.match(value))


def check_option_index(value: Any) -> int:
    # bool is an int subclass; a checkbox must never count as option 0/1
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _fail("option_index_type", "Option index must be a number")
    if isinstance(value, float) and not value.is_integer():
        raise _fail("option_index_integer", "Option index must be an integer")
    value = int(value)
    if value < 0:
        raise _fail("option_index_negative", "Option index must be non-negative")
    if value > MAX_OPTIONS - 1:
        raise _fail("option_index_too_large", "Option index cannot exceed 9")
    return value


# =============================================================================
# Decoders
# =============================================================================


def collect_errors(exc: PydanticValidationError) -> dict[str, list[str]]:
    """Flatten pydantic errors into {"options.1": ["Option cannot be empty"], ...}."""
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        path = ".".join(str(part) for part in error["loc"]) or "general"
        fields.setdefault(path, []).append(error["msg"])
    return fields


def validate_payload(model: type[ModelT], data: Any) -> Result[ModelT]:
    """Validate a JSON-like payload against a schema."""
    try:
        return Ok(model.model_validate(data))
    except PydanticValidationError as exc:
        return Err(ValidationError(fields=collect_errors(exc)))


def _list_fields(model: type[BaseModel]) -> set[str]:
    names = set()
    for name, field in model.model_fields.items():
        if get_origin(field.annotation) is list:
            names.add(field.alias or name)
            names.add(name)
    return names


def iter_form_pairs(form: Any) -> Iterable[tuple[str, Any]]:
    """Key/value pairs of a form, a mapping (list values expand) or a pair list."""
    if hasattr(form, "multi_items"):
        return form.multi_items()
    if isinstance(form, Mapping):
        pairs = []
        for key, value in form.items():
            if isinstance(value, (list, tuple)):
                pairs.extend((key, item) for item in value)
            else:
                pairs.append((key, value))
        return pairs
    return form


def decode_form(form: Any, list_fields: Iterable[str] = ()) -> dict[str, Any]:
    """
    Adapt a form submission into a plain dict.

    `name[]` keys and declared list fields collect every value in submission
    order; checkbox fields become booleans.
    """
    list_fields = set(list_fields)
    raw: dict[str, Any] = {}
    for key, value in iter_form_pairs(form):
        if key.endswith("[]"):
            raw.setdefault(key[:-2], []).append(value)
        elif key in list_fields:
            raw.setdefault(key, []).append(value)
        elif key in BOOLEAN_FORM_FIELDS:
            raw[key] = value is True or value in ("true", "on")
        else:
            raw[key] = value
    return raw


def validate_form_data(model: type[ModelT], form: Any) -> Result[ModelT]:
    """Decode a form submission and validate it against a schema."""
    try:
        raw = decode_form(form, _list_fields(model))
    except (TypeError, ValueError):
        return Err(ValidationError(fields={"general": ["Invalid form data"]}))
    return validate_payload(model, raw)
