"""Tests for sqlsession/cursor.py - result cursors and the cursor walker."""

from unittest.mock import MagicMock

import pytest

from sqlsession.cursor import (
    ResultCursor,
    all_rows,
    convert_rows,
    first_row_only,
    move_cursor,
    walk_rows,
)
from sqlsession.errors import ExecutionError, PositioningError
from sqlsession.rows import row_to_list

DESCRIPTION = (("ID", None, None, None, None, None, None), ("NAME", None, None, None, None, None, None))
ROWS = [(1, "a"), (2, "b"), (3, "c"), (4, "d"), (5, "e")]


class ForwardCursor:
    """DB-API cursor over a fixed list, no scroll()."""

    description = DESCRIPTION

    def __init__(self, rows):
        self._rows = list(rows)
        self._pos = 0
        self.rowcount = -1
        self.closed = False

    def fetchone(self):
        if self._pos >= len(self._rows):
            return None
        row = self._rows[self._pos]
        self._pos += 1
        return row

    def close(self):
        self.closed = True


class ScrollCursor(ForwardCursor):
    """Client-side cursor with psycopg2-style absolute scrolling."""

    def __init__(self, rows):
        super().__init__(rows)
        self.rowcount = len(self._rows)
        self.scrolls = []

    def scroll(self, value, mode="relative"):
        self.scrolls.append((value, mode))
        if value < 0 or value >= len(self._rows):
            raise IndexError("scroll destination out of bounds")
        self._pos = value


def ids(rows):
    return [row.get(1) for row in rows]


class TestResultCursor:

    def test_next_and_row(self):
        cursor = ResultCursor(ForwardCursor(ROWS[:2]))
        assert cursor.next() is True
        assert cursor.row.values == (1, "a")
        assert cursor.get(2) == "a"
        assert cursor.next() is True
        assert cursor.next() is False

    def test_row_before_next_raises(self):
        cursor = ResultCursor(ForwardCursor(ROWS))
        with pytest.raises(PositioningError):
            cursor.row

    def test_metadata_from_description(self):
        cursor = ResultCursor(ForwardCursor(ROWS))
        assert [c.name for c in cursor.metadata] == ["ID", "NAME"]

    def test_iteration(self):
        assert ids(ResultCursor(ForwardCursor(ROWS))) == [1, 2, 3, 4, 5]

    def test_fetch_error_is_wrapped(self):
        raw = ForwardCursor(ROWS)
        raw.fetchone = MagicMock(side_effect=RuntimeError("lost connection"))
        with pytest.raises(ExecutionError, match="lost connection"):
            ResultCursor(raw).next()

    def test_can_scroll_is_a_capability(self):
        assert ResultCursor(ForwardCursor(ROWS)).can_scroll is False
        assert ResultCursor(ScrollCursor(ROWS)).can_scroll is True

    def test_absolute(self):
        cursor = ResultCursor(ScrollCursor(ROWS))
        assert cursor.absolute(3) is True
        assert cursor.row.values == (3, "c")
        assert cursor.next() is True
        assert cursor.row.values == (4, "d")

    def test_absolute_past_end(self):
        raw = ScrollCursor(ROWS)
        assert ResultCursor(raw).absolute(6) is False
        assert raw.scrolls == []

    def test_absolute_out_of_bounds_from_driver(self):
        raw = ScrollCursor(ROWS)
        raw.rowcount = -1
        assert ResultCursor(raw).absolute(9) is False

    def test_absolute_driver_failure(self):
        raw = ScrollCursor(ROWS)
        raw.scroll = MagicMock(side_effect=RuntimeError("cursor can only scroll forward"))
        with pytest.raises(PositioningError, match="scroll forward"):
            ResultCursor(raw).absolute(2)

    def test_absolute_on_forward_only(self):
        with pytest.raises(PositioningError):
            ResultCursor(ForwardCursor(ROWS)).absolute(2)

    def test_close_is_idempotent(self):
        raw = MagicMock(description=DESCRIPTION)
        cursor = ResultCursor(raw)
        cursor.close()
        cursor.close()
        raw.close.assert_called_once()


class TestMoveCursor:

    @pytest.mark.parametrize("offset", [-1, 0, 1])
    def test_small_offsets_do_not_move(self, offset):
        raw = ScrollCursor(ROWS)
        assert move_cursor(ResultCursor(raw), offset) is True
        assert raw.scrolls == []
        assert raw._pos == 0

    def test_forward_skips_offset_minus_one_rows(self):
        raw = ForwardCursor(ROWS)
        cursor = ResultCursor(raw)
        assert move_cursor(cursor, 3) is True
        assert cursor.next() is True
        assert cursor.row.values == (3, "c")

    def test_forward_exhausted(self):
        assert move_cursor(ResultCursor(ForwardCursor(ROWS)), 7) is False

    def test_scroll_jumps_to_row_before_offset(self):
        raw = ScrollCursor(ROWS)
        cursor = ResultCursor(raw)
        assert move_cursor(cursor, 4) is True
        assert raw.scrolls == [(2, "absolute")]
        assert cursor.next() is True
        assert cursor.row.values == (4, "d")


@pytest.mark.parametrize("cursor_cls", [ForwardCursor, ScrollCursor])
class TestWalkRows:

    @pytest.mark.parametrize("offset", [0, 1])
    @pytest.mark.parametrize("max_rows, expected", [(0, 5), (-1, 5), (2, 2), (5, 5), (10, 5)])
    def test_counts_from_top(self, cursor_cls, offset, max_rows, expected):
        rows = list(walk_rows(ResultCursor(cursor_cls(ROWS)), offset, max_rows))
        assert ids(rows) == [1, 2, 3, 4, 5][:expected]

    def test_offset_and_limit(self, cursor_cls):
        rows = list(walk_rows(ResultCursor(cursor_cls(ROWS)), offset=2, max_rows=2))
        assert ids(rows) == [2, 3]

    def test_offset_to_last_row(self, cursor_cls):
        assert ids(walk_rows(ResultCursor(cursor_cls(ROWS)), offset=5)) == [5]

    @pytest.mark.parametrize("offset", [6, 7, 100])
    def test_offset_past_end_yields_nothing(self, cursor_cls, offset):
        assert list(walk_rows(ResultCursor(cursor_cls(ROWS)), offset=offset)) == []

    def test_empty_result(self, cursor_cls):
        assert list(walk_rows(ResultCursor(cursor_cls([])), 0, 0)) == []


class TestConsumers:

    def test_all_rows(self):
        seen = []
        all_rows(seen.append)(ResultCursor(ForwardCursor(ROWS)))
        assert ids(seen) == [1, 2, 3, 4, 5]

    def test_first_row_only(self):
        seen = []
        first_row_only(seen.append)(ResultCursor(ForwardCursor(ROWS)))
        assert ids(seen) == [1]

    def test_first_row_only_empty(self):
        consumer = MagicMock()
        first_row_only(consumer)(ResultCursor(ForwardCursor([])))
        consumer.assert_not_called()

    def test_convert_rows(self):
        result = convert_rows(ResultCursor(ForwardCursor(ROWS)), row_to_list, offset=4)
        assert result == [[4, "d"], [5, "e"]]
