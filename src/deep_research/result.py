"""
Minimal success/failure container.

Used at component boundaries that must report failures without raising:
the search dispatcher, the reliability evaluator and the query planner.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
E = TypeVar("E", bound=BaseException)


@dataclass(frozen=True)
class Result(Generic[T, E]):
    """Either a value (ok) or an error (failed)."""

    value: T | None = None
    error: E | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def Ok(value: T) -> Result[T, E]:
    return Result(value=value)


def Err(error: E) -> Result[T, E]:
    return Result(error=error)
