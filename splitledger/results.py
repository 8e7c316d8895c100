"""
Explicit outcomes for ledger operations.

Engine operations return either Success(value) or Failure(kind, message).
Callers branch on the tag; the HTTP layer maps each kind to a status code.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar, Union

T = TypeVar("T")


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    INVALID_STATE = "invalid_state"
    STORE_FAILURE = "store_failure"


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return False


Result = Union[Success[T], Failure]


def not_found(message: str, **details: Any) -> Failure:
    return Failure(ErrorKind.NOT_FOUND, message, details)


def invalid_input(message: str, **details: Any) -> Failure:
    return Failure(ErrorKind.INVALID_INPUT, message, details)


def invalid_state(message: str, **details: Any) -> Failure:
    return Failure(ErrorKind.INVALID_STATE, message, details)


def store_failure(message: str, **details: Any) -> Failure:
    return Failure(ErrorKind.STORE_FAILURE, message, details)
