"""
Result type for explicit error handling.

Every fallible step of the pricing pipeline (parameter parsing, device
discovery, program build, argument binding, dispatch, read-back) returns a
``Result[T, E]`` instead of raising, so the orchestrator can route each
failure to the ``Failed`` state and release its resources deterministically.

Usage:
    >>> def half_width(stddev: float, paths: int) -> Result[float, str]:
    ...     if paths <= 0:
    ...         return Failure("no paths")
    ...     return Success(1.96 * stddev / paths**0.5)
    ...
    >>> match half_width(2.0, 1024):
    ...     case Success(value):
    ...         print(f"+/- {value:.4f}")
    ...     case Failure(error):
    ...         print(f"Error: {error}")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Generic, NoReturn, TypeVar


T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@dataclass(frozen=True)
class Success(Generic[T]):
    """A successful result holding ``value``."""

    value: T

    def unwrap(self) -> T:
        """Return the success value."""
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        """Map the success value through ``f``."""
        return Success(f(self.value))

    def and_then(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Chain a step that itself returns a Result."""
        return f(self.value)


@dataclass(frozen=True)
class Failure(Generic[E]):
    """A failed result holding ``error``."""

    error: E

    def unwrap(self) -> NoReturn:
        """
        Unwrap the success value.

        Raises:
            RuntimeError: Always, since Failure has no value.
        """
        raise RuntimeError(f"Called unwrap() on Failure: {self.error}")

    def map(self, f: Callable[[T], U]) -> Result[U, E]:
        """No-op on Failure."""
        result: Result[U, E] = Failure(self.error)
        return result

    def and_then(self, f: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """No-op on Failure."""
        result: Result[U, E] = Failure(self.error)
        return result


Result = Success[T] | Failure[E]


def collect_results(results: list[Result[T, E]]) -> Result[list[T], E]:
    """
    Collect a list of Results into a Result of list.

    Returns the first Failure encountered, otherwise Success with every value
    in input order. Used to build all kernels of a program in one step.
    """
    first_failure = next((result for result in results if isinstance(result, Failure)), None)
    return (
        first_failure
        if isinstance(first_failure, Failure)
        else Success([result.value for result in results if isinstance(result, Success)])
    )
