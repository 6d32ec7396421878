"""Shared test fixtures for the sqlsession test suite."""

import sqlite3
from unittest.mock import MagicMock

import pytest

from sqlsession.connection import ConnectionSource, SettingsConnectionSource


# ---------------------------------------------------------------------------
# sqlite3 doubles that count open cursors
# ---------------------------------------------------------------------------

class TrackingCursor(sqlite3.Cursor):
    _released = False

    def close(self):
        if not self._released:
            self._released = True
            self.connection.open_cursors -= 1
        super().close()


class TrackingConnection(sqlite3.Connection):
    """sqlite3 connection that counts cursors not yet closed and reports `closed`."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.open_cursors = 0
        self.closed = False

    def cursor(self, factory=TrackingCursor):
        cur = super().cursor(factory)
        self.open_cursors += 1
        return cur

    def close(self):
        self.closed = True
        super().close()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "test.db")


@pytest.fixture
def sqlite_source(db_path):
    """Settings-based source opening TrackingConnections on a file database."""
    created = []

    def _connect(url, **kwargs):
        conn = sqlite3.connect(url, **kwargs)
        created.append(conn)
        return conn

    source = SettingsConnectionSource(
        {"url": db_path, "options": {"factory": TrackingConnection}},
        connect=_connect,
    )
    source.created = created
    return source


@pytest.fixture
def test_table(sqlite_source):
    """Create TEST(ID, NAME) with three rows."""
    conn = sqlite3.connect(sqlite_source.settings["url"])
    conn.execute("CREATE TABLE TEST(ID INT PRIMARY KEY, NAME VARCHAR(255))")
    conn.executemany("INSERT INTO TEST VALUES(?, ?)", [(1, "Hello"), (2, "World"), (3, "H2")])
    conn.commit()
    conn.close()
    return "TEST"


# ---------------------------------------------------------------------------
# Mock driver fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_cursor():
    """Mock DB-API cursor: forward-only, no rows."""
    cursor = MagicMock(spec=["execute", "fetchone", "close", "description", "rowcount"])
    cursor.fetchone.return_value = None
    cursor.description = (("ID", 23, None, None, None, None, None),)
    cursor.rowcount = 1
    return cursor


@pytest.fixture
def mock_conn(mock_cursor):
    conn = MagicMock()
    conn.closed = 0
    conn.cursor.return_value = mock_cursor
    return conn


class StubSource(ConnectionSource):
    """Hands out the same mock connection and counts calls."""

    def __init__(self, conn):
        self.conn = conn
        self.calls = 0

    def create_connection(self):
        self.calls += 1
        self.conn.closed = 0
        return self.conn


@pytest.fixture
def stub_source(mock_conn):
    return StubSource(mock_conn)
