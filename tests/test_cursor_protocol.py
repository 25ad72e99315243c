import logging

import pytest

from errors import CursorOwnershipError, CursorStateError
from lazy import (
    CollectionCursor, CursorState, FilterCursor, GenerativeCursor, IteratorCursor,
    LazySequence, MapCursor, TakeCursor, adopt_cursor
)


class TestCursorStateMachine:
    """Test the advance()/current contract shared by every cursor"""

    def test_starts_not_started(self):
        """A fresh cursor holds nothing"""
        cursor = CollectionCursor((1, 2))
        assert cursor.state is CursorState.NOT_STARTED

    def test_current_before_advance_raises(self):
        """Reading before the first advance is a precondition violation"""
        cursor = CollectionCursor((1, 2))
        with pytest.raises(CursorStateError):
            cursor.current

    def test_advance_walks_and_holds(self):
        """Each successful advance holds the next value"""
        cursor = CollectionCursor(("x", "y"))
        assert cursor.advance() is True
        assert cursor.state is CursorState.HOLDING
        assert cursor.current == "x"
        # Reading twice does not consume
        assert cursor.current == "x"
        assert cursor.advance() is True
        assert cursor.current == "y"

    def test_exhaustion_is_absorbing(self):
        """Once exhausted, advance keeps failing and current keeps raising"""
        cursor = CollectionCursor((1,))
        assert cursor.advance()
        assert cursor.advance() is False
        assert cursor.state is CursorState.EXHAUSTED
        for _ in range(3):
            assert cursor.advance() is False
        with pytest.raises(CursorStateError):
            cursor.current

    def test_empty_source_exhausts_immediately(self):
        """NOT_STARTED can go straight to EXHAUSTED"""
        cursor = CollectionCursor(())
        assert cursor.advance() is False
        assert cursor.state is CursorState.EXHAUSTED

    def test_exhausted_combinator_stops_pulling_upstream(self, counter):
        """No resurrection: the predicate is never called after exhaustion"""
        pred = counter(lambda x: x > 1)
        cursor = FilterCursor(CollectionCursor((1, 2)), pred)
        assert cursor.advance() and cursor.current == 2
        assert cursor.advance() is False
        calls = pred.count
        assert cursor.advance() is False
        assert pred.count == calls, "Exhausted cursor should not touch its upstream"

    def test_iterator_bridge(self):
        """Cursors are Python iterators"""
        cursor = CollectionCursor((1, 2, 3))
        assert iter(cursor) is cursor
        assert list(cursor) == [1, 2, 3]
        assert list(cursor) == [], "An exhausted cursor yields nothing more"

    def test_iterator_cursor_over_generator(self):
        """IteratorCursor pulls exactly one element per advance"""
        produced = []

        def numbers():
            for n in range(3):
                produced.append(n)
                yield n

        cursor = IteratorCursor(numbers())
        assert produced == []
        assert cursor.advance() and cursor.current == 0
        assert produced == [0], f"Pulled ahead of demand: {produced}"

    def test_callback_error_propagates_unchanged(self):
        """A failing transform is not wrapped or swallowed"""
        def boom(x):
            raise ZeroDivisionError("boom")

        cursor = MapCursor(CollectionCursor((1,)), boom)
        with pytest.raises(ZeroDivisionError, match="boom"):
            cursor.advance()

    def test_failed_pull_exhausts_cursor(self):
        """After a callback raises, the old value is no longer readable"""
        def tenfold_until_two(x):
            if x == 2:
                raise ValueError("bad element")
            return x * 10

        cursor = MapCursor(CollectionCursor((1, 2, 3)), tenfold_until_two)
        assert cursor.advance() and cursor.current == 10

        with pytest.raises(ValueError, match="bad element"):
            cursor.advance()
        assert cursor.state is CursorState.EXHAUSTED
        assert cursor.advance() is False
        with pytest.raises(CursorStateError):
            cursor.current


class TestOwnership:
    """Test single-consumer ownership of cursors"""

    def test_adopt_logs_handover(self, caplog):
        caplog.set_level(logging.DEBUG, logger="lazy")
        adopt_cursor(CollectionCursor((1,)))
        assert any("handed to a new consumer" in message for message in caplog.messages)

    def test_wrapping_an_owned_cursor_raises(self):
        """Two combinators cannot share one upstream"""
        upstream = CollectionCursor((1, 2, 3))
        MapCursor(upstream, lambda x: x)
        with pytest.raises(CursorOwnershipError):
            FilterCursor(upstream, lambda x: True)

    def test_adopt_rejects_non_cursors(self):
        with pytest.raises(TypeError):
            adopt_cursor([1, 2, 3])

    def test_from_cursor_is_single_use(self):
        """A sequence built from a cursor hands it out once"""
        sequence = LazySequence.from_cursor(CollectionCursor((1, 2)))
        assert sequence.to_list() == [1, 2]
        with pytest.raises(CursorOwnershipError):
            sequence.to_list()

    def test_from_cursor_rejects_owned_cursor(self):
        upstream = CollectionCursor((1,))
        TakeCursor(upstream, 1)
        with pytest.raises(CursorOwnershipError):
            LazySequence.from_cursor(upstream)

    def test_from_cursor_keeps_unboundedness(self):
        """Boundedness travels with the cursor"""
        sequence = LazySequence.from_cursor(GenerativeCursor(0, lambda n: n + 1))
        assert sequence.bounded is False
        assert sequence.take(3).to_list() == [0, 1, 2]
