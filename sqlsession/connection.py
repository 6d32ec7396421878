"""Connection sources: where a Session gets its live connections from."""

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional

import psycopg2
from psycopg2 import pool as pg_pool

from .errors import ConnectionSourceError

logger = logging.getLogger(__name__)


class ConnectionSource(ABC):
    """Produces a new live DB-API connection on demand."""

    @abstractmethod
    def create_connection(self):
        ...


class PooledConnection:
    """A pooled connection whose close() hands it back to the pool."""

    def __init__(self, pool, connection):
        self._pool = pool
        self._connection = connection
        self._released = False

    @property
    def closed(self) -> bool:
        return self._released or bool(getattr(self._connection, "closed", False))

    @property
    def raw_connection(self):
        return self._connection

    def close(self) -> None:
        if self._released:
            return
        self._released = True
        self._pool.putconn(self._connection)
        logger.debug("Returned connection to pool")

    def __getattr__(self, name):
        return getattr(self._connection, name)

    def __setattr__(self, name, value):
        if name.startswith("_"):
            super().__setattr__(name, value)
        else:
            setattr(self._connection, name, value)


class PooledConnectionSource(ConnectionSource):
    """Draws connections from a psycopg2-style pool (getconn/putconn)."""

    def __init__(self, pool):
        self.pool = pool

    @classmethod
    def from_dsn(cls, dsn: str, minconn: int = 1, maxconn: int = 10, **kwargs) -> "PooledConnectionSource":
        """Build a thread-safe pool, so independent Sessions may share this source."""
        try:
            pool = pg_pool.ThreadedConnectionPool(minconn, maxconn, dsn, **kwargs)
        except Exception as e:
            raise ConnectionSourceError(f"Cannot create connection pool: {e}") from e
        return cls(pool)

    def create_connection(self) -> PooledConnection:
        try:
            connection = self.pool.getconn()
        except Exception as e:
            raise ConnectionSourceError(f"Cannot get connection from pool: {e}") from e
        logger.debug("Took connection from pool")
        return PooledConnection(self.pool, connection)

    def close_all(self) -> None:
        self.pool.closeall()


def _redacted(settings: Mapping[str, Any]) -> dict:
    return {k: ("***" if k == "password" else v) for k, v in settings.items()}


class SettingsConnectionSource(ConnectionSource):
    """Assembles a connection from a flat settings mapping.

    Recognised keys: ``url`` (required), ``user`` and ``password`` (used only
    as a pair), ``options`` (extra keyword arguments for ``connect``). Options
    win over credentials, credentials over the bare url.
    """

    def __init__(self, settings: Mapping[str, Any], connect: Callable = psycopg2.connect):
        self.settings = dict(settings)
        self._connect = connect

    def extract_url(self) -> Optional[str]:
        return self.settings.get("url")

    def extract_credentials(self) -> Optional[tuple]:
        user = self.settings.get("user")
        password = self.settings.get("password")
        if user is not None and password is not None:
            return user, password
        return None

    def extract_options(self) -> Optional[dict]:
        options = self.settings.get("options")
        return dict(options) if options is not None else None

    def create_connection(self):
        url = self.extract_url()
        if not url:
            raise ConnectionSourceError(
                f"Cannot create connection from settings {_redacted(self.settings)}"
            )
        options = self.extract_options()
        credentials = self.extract_credentials()
        try:
            if options is not None:
                connection = self._connect(url, **options)
            elif credentials is not None:
                connection = self._connect(url, user=credentials[0], password=credentials[1])
            else:
                connection = self._connect(url)
        except Exception as e:
            raise ConnectionSourceError(f"Cannot connect to {url}: {e}") from e
        logger.debug("Opened connection to %s", url)
        return connection


def settings_from_env(environ: Optional[Mapping[str, str]] = None) -> dict:
    """Read connection settings from DATABASE_URL, DATABASE_USER, DATABASE_PASSWORD."""
    environ = os.environ if environ is None else environ
    settings = {}
    for key, var in (("url", "DATABASE_URL"), ("user", "DATABASE_USER"), ("password", "DATABASE_PASSWORD")):
        value = environ.get(var)
        if value:
            settings[key] = value
    return settings


def get_connection_source() -> SettingsConnectionSource:
    """Create a connection source configured from the environment."""
    return SettingsConnectionSource(settings_from_env())
