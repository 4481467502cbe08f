"""Tagged results for branches that are not exceptions (fallbacks, paywall)."""

from dataclasses import dataclass
from typing import Any, Union

from parentmath.exceptions import ErrorKind, ParentMathError


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class Fallback:
    value: Any
    reason: str


@dataclass(frozen=True)
class Err:
    kind: ErrorKind
    message: str

    @classmethod
    def from_error(cls, error: ParentMathError) -> "Err":
        return cls(kind=error.kind, message=error.message)


@dataclass(frozen=True)
class Blocked:
    uses_remaining: int


Result = Union[Ok, Fallback, Err]
