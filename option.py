"""Absence-safe result wrapper.

``Option`` has exactly two variants: ``Some(value)`` and the ``NOTHING``
singleton. Terminal operations return it wherever "no such element" is an
ordinary outcome, so callers never see ``-1`` or ``None`` standing in for
"not found".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from errors import CursorStateError

V = TypeVar("V")
U = TypeVar("U")


class Option(ABC, Generic[V]):
    """Base for ``Some`` and ``Nothing``. Not instantiated directly."""

    __slots__ = ()

    @staticmethod
    def some(value: V) -> "Option[V]":
        return Some(value)

    @staticmethod
    def none() -> "Option[Any]":
        return NOTHING

    @abstractmethod
    def is_some(self) -> bool:
        """True for ``Some``."""

    def is_none(self) -> bool:
        return not self.is_some()

    @abstractmethod
    def unwrap(self) -> V:
        """The held value. Raises ``CursorStateError`` on ``NOTHING``."""

    @abstractmethod
    def unwrap_or(self, default: V) -> V:
        """The held value, or ``default`` when absent."""

    @abstractmethod
    def map(self, fn: Callable[[V], U]) -> "Option[U]":
        """Apply ``fn`` to a present value; absence stays absent."""

    def __bool__(self) -> bool:
        # Some(0) must stay truthy; absence is the only falsy case.
        return self.is_some()


@dataclass(frozen=True)
class Some(Option[V]):
    """A present value."""
    value: V

    def is_some(self) -> bool:
        return True

    def unwrap(self) -> V:
        return self.value

    def unwrap_or(self, default: V) -> V:
        return self.value

    def map(self, fn: Callable[[V], U]) -> Option[U]:
        return Some(fn(self.value))

    def __repr__(self) -> str:
        return f"Some({self.value!r})"


class Nothing(Option[Any]):
    """The absent value. Use the ``NOTHING`` singleton."""

    __slots__ = ()
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def is_some(self) -> bool:
        return False

    def unwrap(self):
        raise CursorStateError("Cannot unwrap an empty Option")

    def unwrap_or(self, default):
        return default

    def map(self, fn):
        return self

    def __eq__(self, other) -> bool:
        return isinstance(other, Nothing)

    def __hash__(self) -> int:
        return hash(Nothing)

    def __repr__(self) -> str:
        return "NOTHING"


NOTHING = Nothing()
