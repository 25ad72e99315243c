"""
Terminal operations: drive a cursor to completion (or to an early stop)
and return a concrete result.

Every function accepts a ``LazySequence`` (a fresh cursor is requested) or a
bare ``Cursor`` (which the terminal takes ownership of). Operations that must
see every element refuse unbounded input before pulling anything.
"""

import logging
from typing import Any, Callable, Dict, List, TypeVar

from errors import UnboundedSequenceError
from lazy import Cursor, LazySequence, Source, adopt_cursor
from option import NOTHING, Option, Some

logger = logging.getLogger(__name__)

T = TypeVar("T")
K = TypeVar("K")

_MISSING = object()


def _open(source: Source, operation: str, require_bounded: bool = True) -> Cursor:
    if isinstance(source, LazySequence):
        bounded = source.bounded
    elif isinstance(source, Cursor):
        bounded = source.bounded
    else:
        raise TypeError(f"{operation}() expects a LazySequence or Cursor, got {type(source).__name__}")

    if require_bounded and not bounded:
        logger.warning(f"{operation}() called on an unbounded sequence")
        raise UnboundedSequenceError(
            f"{operation}() would never finish on an unbounded sequence; bound it with take() first"
        )

    if isinstance(source, LazySequence):
        return adopt_cursor(source.cursor())
    return adopt_cursor(source)


def find_index(source: Source, pred: Callable[[T], bool]) -> Option[int]:
    """
    Zero-based position of the first element ``pred`` accepts.

    Stops pulling at the first match, so it is safe on unbounded sequences
    that eventually match. Returns NOTHING if the sequence runs out first.
    """
    cursor = _open(source, "find_index", require_bounded=False)
    position = 0
    while cursor.advance():
        if pred(cursor.current):
            logger.debug(f"find_index matched at position {position}")
            return Some(position)
        position += 1
    logger.debug(f"find_index exhausted after {position} elements without a match")
    return NOTHING


def group_by(source: Source, key_fn: Callable[[T], K]) -> Dict[K, List[T]]:
    """Partition elements by ``key_fn``; keys and values keep pull order."""
    cursor = _open(source, "group_by")
    groups: Dict[K, List[T]] = {}
    for item in cursor:
        key = key_fn(item)
        if key not in groups:
            groups[key] = []
        groups[key].append(item)
    logger.debug(f"group_by produced {len(groups)} groups")
    return groups


def top_k(source: Source, score: Callable[[T], Any], k: int) -> List[T]:
    """
    The ``k`` highest-scoring elements in descending score order.

    Single pass with a buffer of at most ``k`` elements; each element is
    scored once. Ties keep pull order: a later element is placed after every
    incumbent with an equal score and only displaces strictly lower scores.
    """
    if k < 1:
        raise ValueError("top_k() requires k >= 1")
    cursor = _open(source, "top_k")

    buffer: List[T] = []
    scores: List[Any] = []
    pulled = 0
    while cursor.advance():
        item = cursor.current
        item_score = score(item)
        pulled += 1

        if len(buffer) == k and not item_score > scores[-1]:
            continue

        position = _insertion_point(scores, item_score)
        buffer.insert(position, item)
        scores.insert(position, item_score)
        if len(buffer) > k:
            buffer.pop()
            scores.pop()

    logger.debug(f"top_k kept {len(buffer)} of {pulled} elements (k={k})")
    return buffer


def _insertion_point(scores: List[Any], new_score: Any) -> int:
    """First slot whose score is strictly lower than ``new_score``."""
    for position, incumbent in enumerate(scores):
        if incumbent < new_score:
            return position
    return len(scores)


def materialize(source: Source) -> List[T]:
    """Pull every element into a list."""
    cursor = _open(source, "materialize")
    items = []
    while cursor.advance():
        items.append(cursor.current)
    return items


to_list = materialize


# --------- reductions ----------

def count(source: Source) -> int:
    """Number of elements"""
    cursor = _open(source, "count")
    total = 0
    while cursor.advance():
        total += 1
    return total


def first(source: Source) -> Option[T]:
    """The first element, or NOTHING if the sequence is empty."""
    cursor = _open(source, "first", require_bounded=False)
    if cursor.advance():
        return Some(cursor.current)
    return NOTHING


def reduce(source: Source, fn: Callable[[Any, T], Any], initial: Any = _MISSING) -> Any:
    """Fold elements left to right with ``fn``, like ``functools.reduce``."""
    cursor = _open(source, "reduce")
    if initial is _MISSING:
        if not cursor.advance():
            raise TypeError("reduce() of empty sequence with no initial value")
        accumulator = cursor.current
    else:
        accumulator = initial
    while cursor.advance():
        accumulator = fn(accumulator, cursor.current)
    return accumulator
