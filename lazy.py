"""
Pull-based lazy sequences.

A ``Cursor`` hands out one element per ``advance()`` call and nothing else:
there is no peek, so a combinator never has to cache a look-ahead value. A
``LazySequence`` is an immutable recipe that builds a fresh cursor chain each
time iteration starts. Chaining (``map``/``filter``/``skip``/``take``/``batch``)
only composes recipes; no user function runs until a consumer pulls.
"""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Callable, Generic, Iterable, Iterator, Tuple, TypeVar, Union

from errors import CursorOwnershipError, CursorStateError
from option import NOTHING, Option, Some

logger = logging.getLogger(__name__)

T = TypeVar("T")
U = TypeVar("U")


class CursorState(str, Enum):
    """Lifecycle of a cursor. EXHAUSTED is terminal."""
    NOT_STARTED = "not_started"
    HOLDING = "holding"
    EXHAUSTED = "exhausted"


# --------- cursor protocol ----------

class Cursor(ABC, Generic[T]):
    """
    Single-consumer handle that pulls one element at a time.

    Subclasses implement ``_pull()``, returning ``Some(value)`` for the next
    element or ``NOTHING`` once they are out. ``advance()`` owns the state
    machine, so an exhausted cursor never calls ``_pull()`` again.
    """

    # False when an unbounded source reaches this cursor without a take()
    bounded: bool = True

    def __init__(self):
        self._state = CursorState.NOT_STARTED
        self._value = None
        self._owned = False

    @property
    def state(self) -> CursorState:
        return self._state

    @property
    def current(self) -> T:
        """The held value. Only valid while the cursor is HOLDING."""
        if self._state is not CursorState.HOLDING:
            raise CursorStateError(
                f"Cursor has no value to read (state: {self._state.value}); "
                "call advance() and check its result first"
            )
        return self._value

    def advance(self) -> bool:
        """
        Move to the next element. Returns False once exhausted, forever.

        If ``_pull()`` raises (a user callback failing, say), the cursor is
        exhausted before the error propagates, so ``current`` never hands out
        a value the upstream has already moved past.
        """
        if self._state is CursorState.EXHAUSTED:
            return False

        try:
            pulled = self._pull()
        except Exception:
            self._value = None
            self._state = CursorState.EXHAUSTED
            self._release()
            raise
        if pulled.is_some():
            self._value = pulled.unwrap()
            self._state = CursorState.HOLDING
            return True

        self._value = None
        self._state = CursorState.EXHAUSTED
        self._release()
        return False

    @abstractmethod
    def _pull(self) -> Option[T]:
        """Produce the next element, or NOTHING when there is none."""

    def _release(self):
        """Drop references held for iteration. Called once on exhaustion."""

    # --------- python iterator bridge ----------
    def __iter__(self) -> Iterator[T]:
        return self

    def __next__(self) -> T:
        if self.advance():
            return self._value
        raise StopIteration

    def __repr__(self) -> str:
        return f"{type(self).__name__}(state={self._state.value}, bounded={self.bounded})"


def adopt_cursor(cursor: Cursor) -> Cursor:
    """Take exclusive ownership of ``cursor`` for a new consumer."""
    if not isinstance(cursor, Cursor):
        raise TypeError(f"Expected a Cursor, got {type(cursor).__name__}")
    if cursor._owned:
        logger.warning(f"Refusing to share {cursor!r} with a second consumer")
        raise CursorOwnershipError(f"{cursor!r} already has a consumer")
    cursor._owned = True
    logger.debug(f"{cursor!r} handed to a new consumer")
    return cursor


# --------- source adapters ----------

class CollectionCursor(Cursor[T]):
    """Walks an immutable snapshot front to back."""

    def __init__(self, items: Tuple[T, ...]):
        super().__init__()
        self._items = items
        self._index = 0

    def _pull(self) -> Option[T]:
        if self._index >= len(self._items):
            return NOTHING
        item = self._items[self._index]
        self._index += 1
        return Some(item)

    def _release(self):
        self._items = ()


class GenerativeCursor(Cursor[T]):
    """Seed first, then ``successor(previous)`` forever. Holds one value."""

    bounded = False

    def __init__(self, seed: T, successor: Callable[[T], T]):
        super().__init__()
        self._seed = seed
        self._successor = successor

    def _pull(self) -> Option[T]:
        if self._state is CursorState.NOT_STARTED:
            seed, self._seed = self._seed, None
            return Some(seed)
        return Some(self._successor(self._value))


class IteratorCursor(Cursor[T]):
    """Pulls from a Python iterator one element per advance()."""

    def __init__(self, iterator: Iterator[T], bounded: bool = True):
        super().__init__()
        self._iterator = iterator
        self.bounded = bounded

    def _pull(self) -> Option[T]:
        try:
            return Some(next(self._iterator))
        except StopIteration:
            return NOTHING

    def _release(self):
        self._iterator = None


# --------- combinator adapters ----------

class MapCursor(Cursor[U]):
    """Applies ``fn`` exactly once per element the upstream produces."""

    def __init__(self, upstream: Cursor[T], fn: Callable[[T], U]):
        super().__init__()
        self._upstream = adopt_cursor(upstream)
        self._fn = fn
        self.bounded = upstream.bounded

    def _pull(self) -> Option[U]:
        if not self._upstream.advance():
            return NOTHING
        return Some(self._fn(self._upstream.current))

    def _release(self):
        self._upstream = None


class FilterCursor(Cursor[T]):
    """Skips upstream elements until ``pred`` accepts one."""

    def __init__(self, upstream: Cursor[T], pred: Callable[[T], bool]):
        super().__init__()
        self._upstream = adopt_cursor(upstream)
        self._pred = pred
        self.bounded = upstream.bounded

    def _pull(self) -> Option[T]:
        # Iterative so long rejected runs never grow the stack.
        while self._upstream.advance():
            value = self._upstream.current
            if self._pred(value):
                return Some(value)
        return NOTHING

    def _release(self):
        self._upstream = None


class TakeCursor(Cursor[T]):
    """Stops after ``limit`` elements without touching the upstream again."""

    bounded = True

    def __init__(self, upstream: Cursor[T], limit: int):
        super().__init__()
        self._upstream = adopt_cursor(upstream)
        self._limit = limit
        self._taken = 0

    def _pull(self) -> Option[T]:
        if self._taken >= self._limit:
            return NOTHING
        if not self._upstream.advance():
            return NOTHING
        self._taken += 1
        return Some(self._upstream.current)

    def _release(self):
        self._upstream = None


class SkipCursor(Cursor[T]):
    """Discards the first ``count`` upstream elements on the first pull."""

    def __init__(self, upstream: Cursor[T], count: int):
        super().__init__()
        self._upstream = adopt_cursor(upstream)
        self._remaining = count
        self.bounded = upstream.bounded

    def _pull(self) -> Option[T]:
        while self._remaining > 0:
            if not self._upstream.advance():
                return NOTHING
            self._remaining -= 1
        if not self._upstream.advance():
            return NOTHING
        return Some(self._upstream.current)

    def _release(self):
        self._upstream = None


class BatchCursor(Cursor[Tuple[T, ...]]):
    """Groups consecutive elements into tuples of ``size``; the last may be short."""

    def __init__(self, upstream: Cursor[T], size: int):
        super().__init__()
        self._upstream = adopt_cursor(upstream)
        self._size = size
        self.bounded = upstream.bounded

    def _pull(self) -> Option[Tuple[T, ...]]:
        bucket = []
        while len(bucket) < self._size and self._upstream.advance():
            bucket.append(self._upstream.current)
        if not bucket:
            return NOTHING
        return Some(tuple(bucket))

    def _release(self):
        self._upstream = None


# --------- sequences ----------

class LazySequence(Generic[T]):
    """
    An immutable, possibly infinite description of an ordered series.

    Every ``cursor()`` call builds an independent cursor chain, so iterating
    twice never lets one pass observe the other. Sequences built with
    ``from_cursor`` are the exception: they hand out their single cursor once.
    """

    def __init__(self, factory: Callable[[], Cursor[T]], bounded: bool = True):
        self._factory = factory
        self._bounded = bounded

    @property
    def bounded(self) -> bool:
        return self._bounded

    def cursor(self) -> Cursor[T]:
        return self._factory()

    def __iter__(self) -> Iterator[T]:
        return self.cursor()

    def __repr__(self) -> str:
        return f"LazySequence(bounded={self._bounded})"

    # --------- sources ----------
    @classmethod
    def of(cls, items: Iterable[T]) -> "LazySequence[T]":
        """Sequence over a finite collection, snapshotted now."""
        snapshot = tuple(items)
        return cls(lambda: CollectionCursor(snapshot), bounded=True)

    from_collection = of

    @classmethod
    def generate(cls, seed: T, successor: Callable[[T], T]) -> "LazySequence[T]":
        """Unbounded sequence: seed, successor(seed), successor(successor(seed)), ..."""
        return cls(lambda: GenerativeCursor(seed, successor), bounded=False)

    @classmethod
    def counting(cls, start: int = 0, step: int = 1) -> "LazySequence[int]":
        """All integers from ``start`` in increments of ``step``."""
        return cls.generate(start, lambda n: n + step)

    @classmethod
    def from_iterable(cls, factory: Callable[[], Iterable[T]], bounded: bool = True) -> "LazySequence[T]":
        """
        Sequence over whatever ``factory()`` yields, one element per pull.

        ``factory`` is called once per cursor, so a generator function gives a
        re-iterable sequence. Pass ``bounded=False`` for endless iterables.
        """
        return cls(lambda: IteratorCursor(iter(factory()), bounded=bounded), bounded=bounded)

    @classmethod
    def from_cursor(cls, cursor: Cursor[T]) -> "LazySequence[T]":
        """Single-use sequence that hands ``cursor`` to exactly one consumer."""
        adopt_cursor(cursor)
        claimed = [False]

        def _hand_over() -> Cursor[T]:
            if claimed[0]:
                raise CursorOwnershipError("Sequence built from a cursor can only be iterated once")
            claimed[0] = True
            cursor._owned = False
            return cursor

        return cls(_hand_over, bounded=cursor.bounded)

    # --------- chainable operators (lazy) ----------
    def map(self, fn: Callable[[T], U]) -> "LazySequence[U]":
        return lazy_map(self, fn)

    def filter(self, pred: Callable[[T], bool]) -> "LazySequence[T]":
        return lazy_filter(self, pred)

    def take(self, n: int) -> "LazySequence[T]":
        return take(self, n)

    def skip(self, n: int) -> "LazySequence[T]":
        return skip(self, n)

    def batch(self, size: int) -> "LazySequence[Tuple[T, ...]]":
        return batch(self, size)

    def chunk(self, size: int) -> "LazySequence[Tuple[T, ...]]":
        """Alias for batch()"""
        return self.batch(size)

    def page(self, page_number: int, page_size: int) -> "LazySequence[T]":
        """One page of elements, 1-indexed."""
        if page_number < 1:
            raise ValueError("Page number must be >= 1")
        if page_size < 1:
            raise ValueError("Page size must be >= 1")
        return self.skip((page_number - 1) * page_size).take(page_size)

    # --------- terminal operations (force evaluation) ----------
    def to_list(self):
        from terminals import materialize
        return materialize(self)

    materialize = to_list

    def find_index(self, pred: Callable[[T], bool]) -> Option[int]:
        from terminals import find_index
        return find_index(self, pred)

    def group_by(self, key_fn: Callable[[T], Any]):
        from terminals import group_by
        return group_by(self, key_fn)

    def top_k(self, score: Callable[[T], Any], k: int):
        from terminals import top_k
        return top_k(self, score, k)

    def count(self) -> int:
        from terminals import count
        return count(self)

    def first(self) -> Option[T]:
        from terminals import first
        return first(self)

    def reduce(self, fn: Callable[[Any, T], Any], *initial):
        from terminals import reduce
        return reduce(self, fn, *initial)


Source = Union[LazySequence, Cursor]


def as_sequence(source: Source) -> LazySequence:
    """Accept a sequence as-is; wrap a bare cursor as a single-use sequence."""
    if isinstance(source, LazySequence):
        return source
    if isinstance(source, Cursor):
        return LazySequence.from_cursor(source)
    raise TypeError(f"Expected a LazySequence or Cursor, got {type(source).__name__}")


def lazy_map(source: Source, fn: Callable[[T], U]) -> LazySequence[U]:
    """Transform each element with ``fn``. Nothing runs until pulled."""
    upstream = as_sequence(source)
    return LazySequence(lambda: MapCursor(upstream.cursor(), fn), bounded=upstream.bounded)


def lazy_filter(source: Source, pred: Callable[[T], bool]) -> LazySequence[T]:
    """Keep elements ``pred`` accepts. Nothing runs until pulled."""
    upstream = as_sequence(source)
    return LazySequence(lambda: FilterCursor(upstream.cursor(), pred), bounded=upstream.bounded)


def take(source: Source, n: int) -> LazySequence[T]:
    """At most ``n`` elements. The result is always bounded."""
    n = int(n)
    if n < 0:
        raise ValueError("take() count must be >= 0")
    upstream = as_sequence(source)
    return LazySequence(lambda: TakeCursor(upstream.cursor(), n), bounded=True)


def skip(source: Source, n: int) -> LazySequence[T]:
    n = int(n)
    if n < 0:
        raise ValueError("skip() count must be >= 0")
    upstream = as_sequence(source)
    return LazySequence(lambda: SkipCursor(upstream.cursor(), n), bounded=upstream.bounded)


def batch(source: Source, size: int) -> LazySequence[Tuple[T, ...]]:
    size = int(size)
    if size < 1:
        raise ValueError("batch() size must be >= 1")
    upstream = as_sequence(source)
    return LazySequence(lambda: BatchCursor(upstream.cursor(), size), bounded=upstream.bounded)
