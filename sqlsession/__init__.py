"""SQL execution layer — sessions, statements and cursor walking over DB-API connections."""

from .connection import (
    ConnectionSource,
    PooledConnectionSource,
    SettingsConnectionSource,
    get_connection_source,
    settings_from_env,
)
from .errors import (
    ConnectionSourceError,
    ExecutionError,
    NestedTransactionError,
    PositioningError,
    SqlSessionError,
    TransactionError,
)
from .rows import ColumnMetadata, Row, row_to_list, row_to_map
from .session import Session, with_session
from .statement import Statement, bind_batch, bind_params

__all__ = [
    "ColumnMetadata",
    "ConnectionSource",
    "ConnectionSourceError",
    "ExecutionError",
    "NestedTransactionError",
    "PooledConnectionSource",
    "PositioningError",
    "Row",
    "Session",
    "SettingsConnectionSource",
    "SqlSessionError",
    "Statement",
    "TransactionError",
    "bind_batch",
    "bind_params",
    "get_connection_source",
    "row_to_list",
    "row_to_map",
    "settings_from_env",
    "with_session",
]
