"""Either: a two-variant tagged union used by the routing combinators."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, Union

from kompute._types import A, B


@dataclass(frozen=True)
class Left(Generic[A]):
    """
    The LEFT variant of Either.

    Example:
        tagged = Left(42)
        tagged.is_left   # True
        tagged.value     # 42
    """

    value: A

    @property
    def is_left(self) -> bool:
        return True

    @property
    def is_right(self) -> bool:
        return False

    def fold(self, on_left: Callable[[A], Any], on_right: Callable[[Any], Any]) -> Any:
        """Apply on_left to the payload."""
        return on_left(self.value)

    def __repr__(self) -> str:
        return f"Left({self.value!r})"


@dataclass(frozen=True)
class Right(Generic[B]):
    """The RIGHT variant of Either."""

    value: B

    @property
    def is_left(self) -> bool:
        return False

    @property
    def is_right(self) -> bool:
        return True

    def fold(self, on_left: Callable[[Any], Any], on_right: Callable[[B], Any]) -> Any:
        """Apply on_right to the payload."""
        return on_right(self.value)

    def __repr__(self) -> str:
        return f"Right({self.value!r})"


Either = Union[Left[A], Right[B]]
"""A value tagged LEFT (``Left``) or RIGHT (``Right``)."""


def left(value: A) -> Left[A]:
    """Tag a value as LEFT."""
    return Left(value)


def right(value: B) -> Right[B]:
    """Tag a value as RIGHT."""
    return Right(value)
