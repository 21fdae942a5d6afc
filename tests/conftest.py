"""Shared fixtures for the dbwrap test suite."""

from unittest.mock import MagicMock, patch

import pytest

from dbwrap import Connection

SCHEMA = """
CREATE TABLE IF NOT EXISTS table_name (
    "id" INTEGER PRIMARY KEY NOT NULL,
    "name" VARCHAR
);
INSERT INTO table_name (name) VALUES ('Test');
"""

PG_ADDRESS = "pgsql:host=127.0.0.1;port=5432;dbname=test"


# ---------------------------------------------------------------------------
# SQLite fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "dbwrap_test.db")


@pytest.fixture
def sqlite_conn(db_path):
    """Connection to an empty SQLite file in tmp_path."""
    conn = Connection(default_path=db_path)
    yield conn
    conn.close()


@pytest.fixture
def seeded_conn(sqlite_conn):
    """SQLite connection with table_name holding one 'Test' row."""
    assert sqlite_conn.exec(SCHEMA) == 1
    return sqlite_conn


# ---------------------------------------------------------------------------
# PostgreSQL fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def pg_cursor():
    """Mock psycopg2 cursor that is its own context manager."""
    cursor = MagicMock()
    cursor.__enter__.return_value = cursor
    cursor.fetchall.return_value = []
    cursor.fetchone.return_value = None
    cursor.rowcount = 1
    cursor.description = [("datname",)]
    return cursor


@pytest.fixture
def pg_raw(pg_cursor):
    """Mock psycopg2 connection handing out pg_cursor."""
    raw = MagicMock()
    raw.cursor.return_value = pg_cursor
    raw.autocommit = True
    raw.closed = 0
    return raw


@pytest.fixture
def pg_conn(pg_raw):
    """Connection on the pgsql driver with psycopg2.connect patched."""
    with patch("dbwrap.drivers.psycopg2.connect", return_value=pg_raw) as mock_connect:
        conn = Connection(PG_ADDRESS, "root", "secret")
        conn.mock_connect = mock_connect
        yield conn


# ---------------------------------------------------------------------------
# External tool fixtures
# ---------------------------------------------------------------------------

def make_proc(returncode=0, stderr=b""):
    """Mock Popen object that has already finished."""
    proc = MagicMock()
    proc.returncode = returncode
    proc.communicate.return_value = (None, stderr)
    return proc


@pytest.fixture
def tools_installed():
    """Every external tool resolves on PATH."""
    with patch("dbwrap.backup.shutil.which", side_effect=lambda tool: f"/usr/bin/{tool}") as m:
        yield m


@pytest.fixture
def mock_popen():
    """Patch subprocess.Popen in the backup module; every process succeeds."""
    with patch("dbwrap.backup.subprocess.Popen") as m:
        m.side_effect = lambda *args, **kwargs: make_proc()
        yield m
