"""Operations on an already-open connection.

These never open or close the connection itself; Session wraps them with
connection ownership.
"""

import logging
import re
import uuid
from typing import Any, Callable, Optional, Sequence, Union

from .cursor import ResultCursor
from .errors import SqlSessionError, TransactionError
from .resources import released
from .statement import Binder, bind_batch, prepare

logger = logging.getLogger(__name__)

_SAVEPOINT_NAME = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def process_result_set(conn, sql: str, binder: Binder,
                       consumer: Callable[[ResultCursor], Any]) -> None:
    """Run a query and hand the open cursor to ``consumer`` once."""
    with released(prepare(conn, sql, binder), "statement") as statement:
        with released(statement.execute_query(), "result cursor") as cursor:
            consumer(cursor)


def execute_update(conn, sql: str, binder: Binder) -> int:
    with released(prepare(conn, sql, binder), "statement") as statement:
        return statement.execute_update()


def execute_batch(conn, sql: str, params_list: Optional[Sequence[Sequence[Any]]]) -> list[int]:
    with released(prepare(conn, sql, bind_batch(params_list)), "statement") as statement:
        return statement.execute_batch()


def disable_autocommit(conn) -> None:
    """Switch the connection to manual commit if the driver exposes the switch.

    DB-API connections start in manual-commit mode; only drivers where
    autocommit was turned on need changing.
    """
    if getattr(conn, "autocommit", None) is True:
        conn.autocommit = False


def _savepoint_name(savepoint: Union[str, bool]) -> str:
    if savepoint is True:
        return f"sp_{uuid.uuid4().hex[:12]}"
    if not isinstance(savepoint, str) or not _SAVEPOINT_NAME.match(savepoint):
        raise ValueError(f"Invalid savepoint name: {savepoint!r}")
    return savepoint


def _run_sql(conn, sql: str) -> None:
    with released(conn.cursor(), "cursor") as cur:
        cur.execute(sql)


def _rollback(conn, savepoint: Optional[str]) -> None:
    try:
        if savepoint is not None:
            _run_sql(conn, f"ROLLBACK TO SAVEPOINT {savepoint}")
            logger.debug("Rolled back to savepoint %s", savepoint)
        else:
            conn.rollback()
            logger.debug("Rolled back transaction")
    except Exception as e:
        logger.warning("Rollback failed after transaction error: %s", e)


def run_in_transaction(conn, op: Callable[[Any], Any],
                       savepoint: Union[str, bool, None] = None) -> Any:
    """Run ``op(conn)`` in a transaction and return its result.

    Commits when ``op`` returns. On any error rolls back once, to the
    savepoint when one is given (``True`` for an anonymous one), then
    re-raises: layer errors as-is, anything else wrapped in TransactionError.
    """
    name = _savepoint_name(savepoint) if savepoint not in (None, False) else None
    try:
        disable_autocommit(conn)
        if name is not None:
            _run_sql(conn, f"SAVEPOINT {name}")
    except Exception as e:
        raise TransactionError(f"Cannot begin transaction: {e}") from e

    try:
        result = op(conn)
        conn.commit()
    except Exception as e:
        _rollback(conn, name)
        if isinstance(e, SqlSessionError):
            raise
        raise TransactionError(f"Transaction rolled back: {e}") from e
    logger.debug("Committed transaction")
    return result


def _redact_dsn(dsn: str) -> str:
    return re.sub(r"password=\S+", "password=***", dsn)


def describe_connection(conn) -> dict:
    """Collect what the driver tells about a connection."""
    raw = getattr(conn, "raw_connection", conn)
    info = {
        "driver": type(raw).__module__.split(".")[0],
        "autocommit": getattr(conn, "autocommit", None),
        "closed": bool(getattr(conn, "closed", False)),
    }
    dsn = getattr(conn, "dsn", None)
    if isinstance(dsn, str):
        info["dsn"] = _redact_dsn(dsn)
    for attr in ("server_version", "isolation_level", "encoding", "in_transaction"):
        value = getattr(conn, attr, None)
        if value is not None:
            info[attr] = value
    return info
