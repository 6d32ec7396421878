"""Result cursors and the cursor walker.

The walker positions a cursor on an offset and then yields a bounded number
of rows, without putting OFFSET/LIMIT into the SQL. Cursors whose driver
exposes ``scroll()`` jump directly; all others are skipped forward row by row.
"""

import logging
from typing import Any, Callable, Iterator

from .errors import ExecutionError, PositioningError, wrap_errors
from .rows import Row, columns_from_description

logger = logging.getLogger(__name__)


class ResultCursor:
    """Rows produced by one executed query, one current row at a time."""

    def __init__(self, cursor):
        self._cursor = cursor
        self._columns = columns_from_description(cursor.description)
        self._row = None
        self._closed = False

    @property
    def metadata(self) -> tuple:
        return self._columns

    @property
    def rowcount(self) -> int:
        rc = getattr(self._cursor, "rowcount", -1)
        return rc if rc is not None else -1

    @property
    def can_scroll(self) -> bool:
        """True when the cursor can be repositioned arbitrarily."""
        return callable(getattr(self._cursor, "scroll", None))

    @property
    def row(self) -> Row:
        if self._row is None:
            raise PositioningError("Cursor is not positioned on a row")
        return self._row

    def get(self, index: int) -> Any:
        """Value of the 1-based column ``index`` in the current row."""
        return self.row.get(index)

    def next(self) -> bool:
        """Advance to the next row. Returns False once the rows are exhausted."""
        with wrap_errors(ExecutionError, "Failed to fetch row"):
            values = self._cursor.fetchone()
        if values is None:
            self._row = None
            return False
        self._row = Row(tuple(values), self._columns)
        return True

    def absolute(self, position: int) -> bool:
        """Make the 1-based row ``position`` the current row.

        Returns False when the result has fewer rows than ``position``.
        """
        if position < 1:
            raise ValueError(f"Row position must be >= 1, got {position}")
        if not self.can_scroll:
            raise PositioningError("Cursor does not support random access")
        if 0 <= self.rowcount < position:
            return False
        try:
            self._cursor.scroll(position - 1, mode="absolute")
        except IndexError:
            return False
        except Exception as e:
            raise PositioningError(f"Cannot move cursor to row {position}: {e}") from e
        return self.next()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._row = None
        self._cursor.close()

    def __iter__(self) -> Iterator[Row]:
        while self.next():
            yield self._row

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def move_cursor(cursor: ResultCursor, offset: int) -> bool:
    """Position ``cursor`` so that the next advance lands on row ``offset``.

    Returns False if the cursor ran out of rows before getting there.
    """
    if offset <= 1:
        return True
    if cursor.can_scroll:
        return cursor.absolute(offset - 1)
    skipped = 1
    while skipped < offset:
        if not cursor.next():
            logger.debug("Cursor exhausted after %d rows, offset %d unreachable", skipped - 1, offset)
            return False
        skipped += 1
    return True


def walk_rows(cursor: ResultCursor, offset: int = 0, max_rows: int = 0) -> Iterator[Row]:
    """Yield at most ``max_rows`` rows starting at ``offset`` (<= 0 means unlimited)."""
    if not move_cursor(cursor, offset):
        return
    yielded = 0
    while (max_rows <= 0 or yielded < max_rows) and cursor.next():
        yielded += 1
        yield cursor.row


def all_rows(consumer: Callable[[Row], Any]) -> Callable[[ResultCursor], None]:
    """Wrap a row consumer into a cursor consumer that visits every row."""
    def _consume(cursor: ResultCursor) -> None:
        for row in cursor:
            consumer(row)
    return _consume


def first_row_only(consumer: Callable[[Row], Any]) -> Callable[[ResultCursor], None]:
    """Wrap a row consumer into a cursor consumer that visits the first row only."""
    def _consume(cursor: ResultCursor) -> None:
        if cursor.next():
            consumer(cursor.row)
    return _consume


def convert_rows(cursor: ResultCursor, fn: Callable[[Row], Any],
                 offset: int = 0, limit: int = 0) -> list:
    return [fn(row) for row in walk_rows(cursor, offset, limit)]
