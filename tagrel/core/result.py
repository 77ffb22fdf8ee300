"""Result type for explicit error handling.

Every stage of the release pipeline returns a Result instead of raising, so
the orchestrator can branch on the exact failure point and keep going with
the best-effort steps (cache save) after a fatal one.

Usage:
    def derive(ref: str) -> Result[VersionRef, StageError]:
        if not ref:
            return Err(StageError(kind="invalid_tag", message="empty tag"))
        return Ok(VersionRef(tag=ref))

    match derive("v0.3.0"):
        case Ok(version):
            print(version.tag)
        case Err(error):
            print(error.message)
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeGuard, TypeVar

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")


@dataclass(frozen=True, slots=True)
class Ok[T]:
    """Successful result holding a value.

    Attributes:
        value: What the operation produced (a VersionRef, a ReleaseRecord...).
    """

    value: T

    def is_ok(self) -> bool:
        """Always True for Ok."""
        return True

    def is_err(self) -> bool:
        """Always False for Ok."""
        return False

    def unwrap(self) -> T:
        """Get the value out.

        Returns:
            The wrapped value.
        """
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Get the value out, ignoring the fallback.

        Args:
            default: Not used; an Ok always has a value.

        Returns:
            The wrapped value.
        """
        return self.value

    def map(self, f: Callable[[T], U]) -> Ok[U]:
        """Transform the contained value.

        Args:
            f: Called with the value.

        Returns:
            A new Ok holding what f returned.
        """
        return Ok(f(self.value))

    def map_err(self, f: Callable[[E], F]) -> Ok[T]:
        """Leave an Ok untouched; there is no error to transform.

        Args:
            f: Not called.

        Returns:
            This same Ok.
        """
        return self

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err[E]:
    """Failed result holding an error payload.

    Attributes:
        error: The failure, usually a frozen error dataclass (StageError...).
    """

    error: E

    def is_ok(self) -> bool:
        """Always False for Err."""
        return False

    def is_err(self) -> bool:
        """Always True for Err."""
        return True

    def unwrap(self) -> None:
        """Raise, since there is no value.

        Raises:
            ValueError: Always.
        """
        raise ValueError(f"called unwrap on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Fall back to a default value.

        Args:
            default: Returned in place of the missing value.

        Returns:
            The default.
        """
        return default

    def map(self, f: Callable[[T], U]) -> Err[E]:
        """Leave an Err untouched; there is no value to transform.

        Args:
            f: Not called.

        Returns:
            This same Err.
        """
        return self

    def map_err(self, f: Callable[[E], F]) -> Err[F]:
        """Transform the contained error (e.g. wrap a ProcessError into a StageError).

        Args:
            f: Called with the error.

        Returns:
            A new Err holding what f returned.
        """
        return Err(f(self.error))

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


type Result[T, E] = Ok[T] | Err[E]


def is_ok[T, E](result: Result[T, E]) -> TypeGuard[Ok[T]]:
    """Narrow a Result to Ok for type checkers.

    Args:
        result: The Result to check.

    Returns:
        True when result is an Ok.
    """
    return isinstance(result, Ok)


def is_err[T, E](result: Result[T, E]) -> TypeGuard[Err[E]]:
    """Narrow a Result to Err for type checkers.

    Args:
        result: The Result to check.

    Returns:
        True when result is an Err.
    """
    return isinstance(result, Err)
