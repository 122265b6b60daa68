"""Result type for explicit error handling.

Every pipeline step returns a Result instead of raising, so a failing build
job or signing step can be reported per stage without try/except scaffolding.

Usage:
    def resolve(ref: str) -> Result[str, str]:
        if not ref:
            return Err("empty reference")
        return Ok(ref.removeprefix("refs/tags/"))

    match resolve("refs/tags/v1.2.3"):
        case Ok(tag):
            print(f"tag: {tag}")
        case Err(error):
            print(f"error: {error}")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeAlias, TypeVar

T = TypeVar("T")
E = TypeVar("E")
F = TypeVar("F")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """A successful result.

    Attributes:
        value: The success value.
    """

    value: T

    def map_err(self, f: Callable[[Any], object]) -> Ok[T]:
        return self

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """A failed result.

    Attributes:
        error: The error value.
    """

    error: E

    def map_err(self, f: Callable[[E], F]) -> Err[F]:
        """Convert the error, e.g. a GitError into a PipelineError."""
        return Err(f(self.error))

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


Result: TypeAlias = Ok[T] | Err[E]
