"""Error kinds raised by the SQL execution layer.

Driver errors never escape unwrapped: each one is re-raised as one of the
types below with the original chained as ``__cause__``.
"""

from contextlib import contextmanager


class SqlSessionError(Exception):
    """Base class for every error this package raises."""


class ConnectionSourceError(SqlSessionError):
    """A connection could not be created (bad settings or driver failure)."""


class ExecutionError(SqlSessionError):
    """A query, update or batch failed at the driver level."""


class TransactionError(SqlSessionError):
    """A transaction callback failed with a foreign error; rollback was attempted."""


class NestedTransactionError(TransactionError):
    """with_transaction() was called while a transaction scope was already open."""


class PositioningError(SqlSessionError):
    """The result cursor could not be moved to the requested offset."""


@contextmanager
def wrap_errors(error_cls, message: str):
    """Re-raise non-layer exceptions from the block as ``error_cls``."""
    try:
        yield
    except SqlSessionError:
        raise
    except Exception as e:
        raise error_cls(f"{message}: {e}") from e
