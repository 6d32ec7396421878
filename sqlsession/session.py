"""Session: one lazily bound connection and the operations that run on it.

A Session starts unbound. The first operation binds a connection from its
ConnectionSource. An operation that found the Session unbound on entry owns
that binding and releases it on the way out, success or failure. Work done
inside ``with_connection`` / ``with_transaction`` reuses the binding, so
several statements share one connection and one transaction.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, Optional, Sequence, Union

from . import commands
from .connection import ConnectionSource
from .cursor import ResultCursor, walk_rows
from .errors import ConnectionSourceError, ExecutionError, NestedTransactionError, wrap_errors
from .resources import close_quietly, released
from .rows import Row, row_to_list, row_to_map
from .statement import ParamsOrBinder, as_binder, prepare

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Unbound:
    pass


@dataclass(frozen=True)
class Bound:
    connection: Any


UNBOUND = Unbound()


class Session:
    """Execution surface over connections produced by a ConnectionSource.

    Not thread-safe: one Session, and the connection bound to it, belongs to
    one thread at a time.
    """

    def __init__(self, source: ConnectionSource):
        self.source = source
        self._state: Union[Unbound, Bound] = UNBOUND
        self._in_transaction = False

    @classmethod
    def open(cls, source: ConnectionSource) -> "Session":
        return cls(source)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False

    # --- Connection lifecycle ---

    def is_connection_active(self) -> bool:
        """True if a bound connection exists and reports itself open."""
        if not isinstance(self._state, Bound):
            return False
        try:
            return not getattr(self._state.connection, "closed", False)
        except Exception as e:
            logger.debug("Connection state probe failed, treating as closed: %s", e)
            return False

    def _bind(self):
        if isinstance(self._state, Bound):
            logger.debug("Discarding closed connection")
            self._state = UNBOUND
        connection = self.source.create_connection()
        self._state = Bound(connection)
        logger.debug("Bound new connection")
        return connection

    def _unbind(self, connection) -> bool:
        """Drop the binding if it still holds ``connection``."""
        if isinstance(self._state, Bound) and self._state.connection is connection:
            self._state = UNBOUND
            return True
        return False

    @contextmanager
    def _connection(self) -> Iterator[Any]:
        """Yield the bound connection, binding one if needed.

        The binding is released on exit only if it was made here.
        """
        owned = not self.is_connection_active()
        connection = self._bind() if owned else self._state.connection
        if not owned:
            yield connection
            return
        try:
            yield connection
        except BaseException:
            if self._unbind(connection):
                close_quietly(connection, "connection")
            raise
        if self._unbind(connection):
            with wrap_errors(ConnectionSourceError, "Failed to close connection"):
                connection.close()
            logger.debug("Released connection")

    def close(self) -> None:
        """Close the bound connection, if any. Safe to call repeatedly."""
        if not isinstance(self._state, Bound):
            return
        connection = self._state.connection
        self._unbind(connection)
        with wrap_errors(ConnectionSourceError, "Failed to close connection"):
            connection.close()
        logger.debug("Session closed")

    # --- Scopes ---

    def with_connection(self, op: Callable[[Any], Any]) -> Any:
        """Run ``op(connection)`` and return its result."""
        with self._connection() as connection:
            return op(connection)

    def with_transaction(self, op: Callable[[Any], Any],
                         savepoint: Union[str, bool, None] = None) -> Any:
        """Run ``op(connection)`` in a transaction and return its result.

        Commits on normal return. On error rolls back (to ``savepoint`` if
        given; ``True`` for an anonymous one) and re-raises.
        Nested scopes raise NestedTransactionError.
        """
        if self._in_transaction:
            raise NestedTransactionError("A transaction is already active on this session")
        with self._connection() as connection:
            self._in_transaction = True
            try:
                return commands.run_in_transaction(connection, op, savepoint)
            finally:
                self._in_transaction = False

    def _finish_write(self, connection, succeeded: bool) -> None:
        """Outside a transaction scope each write is its own transaction."""
        if self._in_transaction:
            return
        if succeeded:
            with wrap_errors(ExecutionError, "Failed to commit"):
                connection.commit()
            return
        try:
            connection.rollback()
        except Exception as e:
            logger.warning("Rollback after failed write failed: %s", e)

    # --- Execution ---

    def execute_query(self, sql: str, params: ParamsOrBinder,
                      consumer: Callable[[ResultCursor], Any]) -> None:
        """Run a query and pass the open cursor to ``consumer`` once.

        The consumer advances the cursor itself.
        """
        with self._connection() as connection:
            commands.process_result_set(connection, sql, as_binder(params), consumer)

    def execute_update(self, sql: str, params: ParamsOrBinder = None,
                       count_consumer: Optional[Callable[[int], Any]] = None) -> int:
        with self._connection() as connection:
            try:
                count = commands.execute_update(connection, sql, as_binder(params))
            except BaseException:
                self._finish_write(connection, succeeded=False)
                raise
            self._finish_write(connection, succeeded=True)
        if count_consumer is not None:
            count_consumer(count)
        return count

    def execute_batch(self, sql: str, params_list: Optional[Sequence[Sequence[Any]]],
                      counts_consumer: Optional[Callable[[list], Any]] = None) -> list[int]:
        """Execute ``sql`` once per parameter list; all entries commit together."""
        with self._connection() as connection:
            try:
                counts = commands.execute_batch(connection, sql, params_list)
            except BaseException:
                self._finish_write(connection, succeeded=False)
                raise
            self._finish_write(connection, succeeded=True)
        if counts_consumer is not None:
            counts_consumer(counts)
        return counts

    def each_row(self, sql: str, params: ParamsOrBinder = None,
                 meta_consumer: Optional[Callable[[tuple], Any]] = None,
                 offset: int = 0, max_rows: int = 0,
                 row_consumer: Optional[Callable[[Row], Any]] = None) -> None:
        """Call ``row_consumer`` for each row from ``offset`` on, at most ``max_rows`` times.

        ``offset`` is the 1-based row to start from (<= 1 starts at the top),
        ``max_rows <= 0`` means no limit. If the result has fewer rows than
        ``offset`` the consumer is never called. ``meta_consumer`` receives the
        column metadata before any row.
        """
        with self._connection() as connection:
            with released(prepare(connection, sql, as_binder(params)), "statement") as statement:
                with released(statement.execute_query(), "result cursor") as cursor:
                    if meta_consumer is not None:
                        meta_consumer(cursor.metadata)
                    for row in walk_rows(cursor, offset, max_rows):
                        if row_consumer is not None:
                            row_consumer(row)

    def rows(self, sql: str, params: ParamsOrBinder = None,
             offset: int = 0, max_rows: int = 0) -> list[dict]:
        """Rows as mappings, see :meth:`each_row` for offset and max_rows."""
        result = []
        self.each_row(sql, params, None, offset, max_rows,
                      lambda row: result.append(self.create_map_from_row(row)))
        return result

    def first_row(self, sql: str, params: ParamsOrBinder = None) -> Optional[dict]:
        found = self.rows(sql, params, max_rows=1)
        return found[0] if found else None

    def create_map_from_row(self, row: Row) -> dict:
        return row_to_map(row)

    def create_list_from_row(self, row: Row) -> list:
        return row_to_list(row)

    def connection_info(self) -> dict:
        return self.with_connection(commands.describe_connection)


def with_session(source: ConnectionSource, op: Callable[[Session], Any]) -> Any:
    """Run ``op`` with a fresh Session and close it afterwards."""
    with Session.open(source) as session:
        return op(session)
