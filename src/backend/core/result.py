"""
Result type returned by every gateway and poll operation.

Callers branch on `isinstance(result, Err)` instead of catching exceptions,
so authorization and validation failures never escape the action boundary.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

from core.errors import AppError

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying a value."""

    value: T

    @property
    def is_ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Err:
    """Failed outcome carrying a typed error."""

    error: AppError

    @property
    def is_ok(self) -> bool:
        return False

    @property
    def message(self) -> str:
        return self.error.message


Result = Union[Ok[T], Err]
