"""
Result envelope for warehouse operations.

Single-partition operations report success or failure as a value rather
than by raising: the window scheduler tallies a per-date outcome, and
scheduled jobs log a failure and move on. ``Ok`` carries the value; ``Err``
carries the exception (usually a ``WarehouseError``) that stopped the
operation. Code running inside a transaction raises instead, and the
public entry point converts at the boundary.

Examples:
    >>> Ok(3).map(lambda n: n + 1).unwrap()
    4
    >>> Err(ValueError("bad")).unwrap_or(0)
    0
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        return self.value

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Ok[U]:
        return Ok(f(self.value))


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Re-raise the stored error."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Err[U]:
        return Err(self.error)


Result = Ok[T] | Err[T]


def try_result(f: Callable[[], T]) -> Result[T]:
    """Call *f*; its return value becomes ``Ok``, any exception ``Err``."""
    try:
        return Ok(f())
    except Exception as e:
        return Err(e)


__all__ = ["Ok", "Err", "Result", "try_result"]
