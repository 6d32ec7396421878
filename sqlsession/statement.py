"""Parameterized statements and parameter binders.

A binder is any callable that receives a :class:`Statement` and sets its
parameters. Positional lists are turned into binders by :func:`bind_params`,
so every execution path binds through the same seam.
"""

import logging
from typing import Any, Callable, Optional, Sequence, Union

from .cursor import ResultCursor
from .errors import ExecutionError, wrap_errors
from .resources import close_quietly

logger = logging.getLogger(__name__)

Binder = Callable[["Statement"], None]
ParamsOrBinder = Union[Sequence[Any], Binder, None]


class Statement:
    """One SQL text bound to one DB-API cursor on one connection."""

    def __init__(self, connection, sql: str):
        self.sql = sql
        with wrap_errors(ExecutionError, "Failed to open statement"):
            self._cursor = connection.cursor()
        self._params: dict[int, Any] = {}
        self._batch: list[tuple] = []
        self._closed = False

    def set_parameter(self, index: int, value: Any) -> None:
        """Bind ``value`` to the 1-based placeholder ``index``."""
        if index < 1:
            raise ValueError(f"Parameter index must be >= 1, got {index}")
        self._params[index] = value

    def clear_parameters(self) -> None:
        self._params.clear()

    @property
    def parameters(self) -> tuple:
        """Bound values in placeholder order."""
        if not self._params:
            return ()
        count = max(self._params)
        missing = [i for i in range(1, count + 1) if i not in self._params]
        if missing:
            raise ExecutionError(f"Parameter(s) {missing} not set for: {self.sql}")
        return tuple(self._params[i] for i in range(1, count + 1))

    def add_batch(self) -> None:
        """Queue the currently bound parameters as one batch entry."""
        self._batch.append(self.parameters)

    def _execute(self, params: tuple) -> None:
        logger.debug("Executing %s with %d parameter(s)", self.sql, len(params))
        with wrap_errors(ExecutionError, f"Failed to execute {self.sql!r}"):
            if params:
                self._cursor.execute(self.sql, params)
            else:
                self._cursor.execute(self.sql)

    def execute_query(self) -> ResultCursor:
        self._execute(self.parameters)
        return ResultCursor(self._cursor)

    def execute_update(self) -> int:
        self._execute(self.parameters)
        rc = self._cursor.rowcount
        return rc if rc is not None else -1

    def execute_batch(self) -> list[int]:
        """Execute every queued entry in order and return their update counts."""
        batch, self._batch = self._batch, []
        counts = []
        for params in batch:
            self._execute(params)
            rc = self._cursor.rowcount
            counts.append(rc if rc is not None else -1)
        return counts

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._cursor.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False


def bind_params(params: Optional[Sequence[Any]]) -> Binder:
    """Binder setting ``params[i]`` on placeholder ``i + 1``."""
    def _bind(statement: Statement) -> None:
        if params is None:
            return
        for i, value in enumerate(params):
            statement.set_parameter(i + 1, value)
    return _bind


def bind_batch(params_list: Optional[Sequence[Sequence[Any]]]) -> Binder:
    """Binder queueing one batch entry per parameter list."""
    def _bind(statement: Statement) -> None:
        for params in params_list or ():
            bind_params(params)(statement)
            statement.add_batch()
            statement.clear_parameters()
    return _bind


def as_binder(params_or_binder: ParamsOrBinder) -> Binder:
    if callable(params_or_binder):
        return params_or_binder
    return bind_params(params_or_binder)


def prepare(connection, sql: str, binder: Binder) -> Statement:
    """Open a statement and run ``binder`` on it, closing it if binding fails."""
    statement = Statement(connection, sql)
    try:
        binder(statement)
    except BaseException:
        close_quietly(statement, "statement")
        raise
    return statement
