"""
Two-case value containers used at every fallible seam of the operator.

``Result`` is either ``Ok(value)`` or ``Err(error)``; ``Option`` is either
``Some(value)`` or ``Nothing()``. Consumers check the case explicitly with
``isinstance`` (or the ``is_ok``/``is_some`` helpers) instead of passing
``None`` through several call levels.

Example:
    result = calculate_optimal_fee(inputs)
    if isinstance(result, Err):
        logger.warning(f"Fee optimization failed: {result.error}")
        return
    fee = result.value.fee
"""

from dataclasses import dataclass
from typing import Any, Callable, Generic, Optional, TypeVar, Union

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E")
F = TypeVar("F")


@dataclass(frozen=True)
class Ok(Generic[T]):
    """Successful outcome carrying ``value``."""

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def map(self, fn: Callable[[T], U]) -> "Ok[U]":
        return Ok(fn(self.value))

    def map_err(self, fn: Callable[[Any], Any]) -> "Ok[T]":
        return self

    def and_then(self, fn: Callable[[T], "Result"]) -> "Result":
        return fn(self.value)

    def unwrap_or(self, default: T) -> T:
        return self.value

    def fold(self, on_err: Callable[[Any], U], on_ok: Callable[[T], U]) -> U:
        return on_ok(self.value)


@dataclass(frozen=True)
class Err(Generic[E]):
    """Failed outcome carrying ``error``."""

    error: E

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def map(self, fn: Callable[[Any], Any]) -> "Err[E]":
        return self

    def map_err(self, fn: Callable[[E], F]) -> "Err[F]":
        return Err(fn(self.error))

    def and_then(self, fn: Callable[[Any], "Result"]) -> "Err[E]":
        return self

    def unwrap_or(self, default: T) -> T:
        return default

    def fold(self, on_err: Callable[[E], U], on_ok: Callable[[Any], U]) -> U:
        return on_err(self.error)


Result = Union[Ok[T], Err[E]]


@dataclass(frozen=True)
class Some(Generic[T]):
    """Present optional value."""

    value: T

    def is_some(self) -> bool:
        return True

    def is_nothing(self) -> bool:
        return False

    def map(self, fn: Callable[[T], U]) -> "Some[U]":
        return Some(fn(self.value))

    def unwrap_or(self, default: T) -> T:
        return self.value


@dataclass(frozen=True)
class Nothing:
    """Absent optional value."""

    def is_some(self) -> bool:
        return False

    def is_nothing(self) -> bool:
        return True

    def map(self, fn: Callable[[Any], Any]) -> "Nothing":
        return self

    def unwrap_or(self, default: T) -> T:
        return default


Option = Union[Some[T], Nothing]


def from_nullable(value: Optional[T]) -> "Option[T]":
    """Lift a possibly-``None`` value into an ``Option``."""
    return Some(value) if value is not None else Nothing()


def sequence(results) -> "Result":
    """Collect an iterable of results into ``Ok(list)`` or the first ``Err``."""
    values = []
    for result in results:
        if isinstance(result, Err):
            return result
        values.append(result.value)
    return Ok(values)
