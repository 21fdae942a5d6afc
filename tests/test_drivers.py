"""Tests for dbwrap/drivers.py - address parsing and driver adapters."""

import sqlite3
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

from dbwrap.drivers import (
    EMBEDDED,
    NETWORKED,
    Descriptor,
    PostgresDriver,
    SQLiteDriver,
    get_driver,
    parse_params,
    row_values,
)
from dbwrap.errors import DBConnectionError, InvalidRequest, UnsupportedAttribute, UnsupportedOperation


class TestDescriptor:
    """Tests for Descriptor and parse_params()."""

    def test_prefix_and_target(self):
        d = Descriptor("pgsql:host=db;dbname=app")
        assert d.prefix == "pgsql"
        assert d.target == "host=db;dbname=app"

    def test_params(self):
        d = Descriptor("pgsql:host=db; port=5433 ;dbname=app;")
        assert d.params == {"host": "db", "port": "5433", "dbname": "app"}

    def test_params_skip_fragments_without_equals(self):
        assert parse_params("/tmp/x.db") == {}

    def test_sqlite_memory_target(self):
        assert Descriptor("sqlite::memory:").target == ":memory:"

    def test_params_are_a_copy(self):
        d = Descriptor("pgsql:host=db")
        d.params["host"] = "other"
        assert d.address == "pgsql:host=db"
        assert d.params == {"host": "db"}


class TestGetDriver:
    """Tests for get_driver()."""

    @pytest.mark.parametrize("prefix", ["pgsql", "postgres", "postgresql"])
    def test_postgres_aliases(self, prefix):
        driver = get_driver(prefix)
        assert isinstance(driver, PostgresDriver)
        assert driver.kind == NETWORKED

    def test_sqlite(self):
        driver = get_driver("sqlite")
        assert isinstance(driver, SQLiteDriver)
        assert driver.kind == EMBEDDED

    def test_unknown(self):
        with pytest.raises(InvalidRequest, match="Unsupported driver"):
            get_driver("mysql")


class TestRowValues:
    """Tests for row_values()."""

    def test_dict_row(self):
        assert row_values({"a": 1, "b": 2}) == [1, 2]

    def test_tuple_row(self):
        assert row_values((1, "x")) == [1, "x"]

    def test_sqlite_row(self):
        conn = sqlite3.connect(":memory:")
        conn.row_factory = sqlite3.Row
        row = conn.execute("SELECT 1 AS a, 'x' AS b").fetchone()
        assert row_values(row) == [1, "x"]
        conn.close()


class TestSQLiteDriver:
    """Tests for SQLiteDriver."""

    def test_memory_connection(self):
        driver = SQLiteDriver()
        conn = driver.connect(Descriptor("sqlite::memory:"))
        assert conn.row_factory is sqlite3.Row
        assert conn.isolation_level is None
        conn.close()

    def test_autocommit_off(self):
        conn = SQLiteDriver().connect(Descriptor("sqlite::memory:", options={"autocommit": False}))
        assert conn.isolation_level == "DEFERRED"
        conn.close()

    def test_raw_execute_counts_changes(self):
        driver = SQLiteDriver()
        conn = driver.connect(Descriptor("sqlite::memory:"))
        changed = driver.raw_execute(conn, "CREATE TABLE t (x); INSERT INTO t VALUES (1); INSERT INTO t VALUES (2);")
        assert changed == 2
        conn.close()

    def test_unsupported_attribute(self):
        driver = SQLiteDriver()
        conn = driver.connect(Descriptor("sqlite::memory:"))
        with pytest.raises(UnsupportedAttribute):
            driver.attribute(conn, "prefetch", {})
        conn.close()

    def test_no_dump_tooling(self):
        with pytest.raises(UnsupportedOperation):
            SQLiteDriver().dump_command({}, "main", None)
        with pytest.raises(UnsupportedOperation):
            SQLiteDriver().restore_command({}, "main", None)


class TestPostgresDriver:
    """Tests for PostgresDriver."""

    @patch("dbwrap.drivers.psycopg2.connect")
    def test_connect_passes_params(self, mock_connect):
        raw = MagicMock()
        mock_connect.return_value = raw
        descriptor = Descriptor("pgsql:host=db;dbname=app", "bob", "pw", {"autocommit": False})

        assert PostgresDriver().connect(descriptor) is raw
        mock_connect.assert_called_once_with(host="db", dbname="app", user="bob", password="pw")
        assert raw.autocommit is False

    @patch("dbwrap.drivers.psycopg2.connect", side_effect=psycopg2.OperationalError("timeout expired"))
    def test_connect_failure(self, mock_connect):
        with pytest.raises(DBConnectionError, match="timeout expired"):
            PostgresDriver().connect(Descriptor("pgsql:host=db;dbname=app"))

    def test_raw_execute_returns_rowcount(self):
        raw = MagicMock()
        cur = raw.cursor.return_value.__enter__.return_value
        cur.rowcount = -1
        assert PostgresDriver().raw_execute(raw, "CREATE TABLE t (x int)") == 0
        cur.rowcount = 4
        assert PostgresDriver().raw_execute(raw, "DELETE FROM t") == 4

    def test_dump_command(self):
        cmd = PostgresDriver().dump_command({"host": "db", "port": "5433"}, "app", "bob")
        assert cmd == [
            "pg_dump", "--clean", "--if-exists", "--no-owner",
            "--host=db", "--port=5433", "--username=bob", "--no-password", "--dbname=app",
        ]

    def test_restore_command_without_host(self):
        cmd = PostgresDriver().restore_command({}, "app", None)
        assert cmd == ["psql", "--quiet", "--set=ON_ERROR_STOP=1", "--no-password", "--dbname=app"]

    def test_hostile_principal_stays_one_argument(self):
        cmd = PostgresDriver().dump_command({}, "app", "bob; rm -rf /")
        assert "--username=bob; rm -rf /" in cmd

    def test_tool_env_carries_password(self):
        env = PostgresDriver().tool_env("s3cret")
        assert env["PGPASSWORD"] == "s3cret"

    def test_tool_env_without_password(self, monkeypatch):
        monkeypatch.delenv("PGPASSWORD", raising=False)
        assert "PGPASSWORD" not in PostgresDriver().tool_env(None)

    def test_closed_connection_status(self):
        raw = MagicMock()
        raw.closed = 1
        assert PostgresDriver().attribute(raw, "connection_status", {}) == "closed"

    def test_generic_attributes_come_from_options(self):
        driver = PostgresDriver()
        options = {"error_mode": "silent", "case": "lower"}
        assert driver.attribute(None, "error_mode", options) == "silent"
        assert driver.attribute(None, "case", options) == "lower"
        assert driver.attribute(None, "null_handling", options) == "natural"
        assert driver.attribute(None, "persistent", options) is False
