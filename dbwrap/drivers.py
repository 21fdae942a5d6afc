"""Driver adapters behind the connection facade.

Each adapter covers one address prefix and exposes the narrow capability
set the facade, catalog and backup code need: connect, cursors, raw
execution, catalog queries, provisioning, attributes and the command
lines of the vendor dump/restore tools.
"""

import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import psycopg2
import psycopg2.extensions
from psycopg2 import sql

from .errors import DBConnectionError, InvalidRequest, UnsupportedAttribute, UnsupportedOperation

logger = logging.getLogger("dbwrap.drivers")

ATTRIBUTE_NAMES = (
    "autocommit",
    "error_mode",
    "case",
    "client_version",
    "connection_status",
    "null_handling",
    "persistent",
    "prefetch",
    "server_info",
    "server_version",
    "timeout",
    "driver_name",
)

EMBEDDED = "embedded"
NETWORKED = "networked"


@dataclass(frozen=True)
class Descriptor:
    """Where and how to connect. The address is parsed, never rewritten."""
    address: str
    principal: Optional[str] = None
    credential: Optional[str] = None
    options: dict = field(default_factory=dict)

    @property
    def prefix(self) -> str:
        return self.address.split(":", 1)[0]

    @property
    def target(self) -> str:
        """Everything after the driver prefix."""
        _, _, rest = self.address.partition(":")
        return rest

    @property
    def params(self) -> dict[str, str]:
        """`key=value` pairs of the target, split on `;`."""
        return parse_params(self.target)


def parse_params(target: str) -> dict[str, str]:
    params = {}
    for part in target.split(";"):
        key, sep, value = part.partition("=")
        if sep and key.strip():
            params[key.strip()] = value.strip()
    return params


def row_values(row: Any) -> list:
    """Column values of a driver row in column order."""
    if isinstance(row, dict):
        return list(row.values())
    return list(row)


class Driver(ABC):
    """Capability set shared by all driver adapters."""

    name: str = ""
    kind: str = ""
    error_class: type = Exception
    list_databases_sql: str = ""
    list_tables_sql: str = ""
    required_tools: tuple = ()

    @abstractmethod
    def connect(self, descriptor: Descriptor) -> Any:
        """Open and return a raw DB-API connection."""

    @abstractmethod
    def cursor(self, raw: Any) -> Any:
        """New cursor; rows are shaped from cursor.description by the caller."""

    @abstractmethod
    def raw_execute(self, raw: Any, statement: str) -> int:
        """Run statement text without parameters; return affected rows."""

    @abstractmethod
    def begin(self, raw: Any) -> None:
        """Open an explicit transaction."""

    @abstractmethod
    def end(self, raw: Any, options: dict) -> None:
        """Restore the configured commit behaviour after a transaction."""

    def create_database(self, raw: Any, name: str, principal: Optional[str],
                        credential: Optional[str]) -> None:
        raise UnsupportedOperation(f"Driver {self.name} cannot create databases")

    def dump_command(self, params: dict, database: str, principal: Optional[str]) -> list[str]:
        raise UnsupportedOperation(f"Driver not supported for dump: {self.name}")

    def restore_command(self, params: dict, database: str, principal: Optional[str]) -> list[str]:
        raise UnsupportedOperation(f"Driver not supported for restore: {self.name}")

    def tool_env(self, credential: Optional[str]) -> dict:
        return os.environ.copy()

    def attribute(self, raw: Any, name: str, options: dict) -> Any:
        """Value of one attribute; UnsupportedAttribute if unavailable."""
        if name == "error_mode":
            return options.get("error_mode")
        if name == "case":
            return options.get("case", "natural")
        if name == "null_handling":
            return options.get("null_handling", "natural")
        if name == "persistent":
            return bool(options.get("persistent", False))
        if name == "driver_name":
            return self.name
        return self._attribute(raw, name, options)

    def _attribute(self, raw: Any, name: str, options: dict) -> Any:
        raise UnsupportedAttribute(name)


# --- SQLite ---

class SQLiteDriver(Driver):
    """Embedded, file-backed driver on the standard library sqlite3 module."""

    name = "sqlite"
    kind = EMBEDDED
    error_class = sqlite3.Error
    list_databases_sql = "SELECT name FROM pragma_database_list ORDER BY seq"
    list_tables_sql = (
        "SELECT name FROM sqlite_master "
        "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name"
    )

    def connect(self, descriptor: Descriptor) -> sqlite3.Connection:
        path = descriptor.target or ":memory:"
        options = descriptor.options
        try:
            conn = sqlite3.connect(
                path,
                timeout=float(options.get("timeout", 5.0)),
                isolation_level=None if options.get("autocommit", True) else "DEFERRED",
            )
        except sqlite3.Error as e:
            raise DBConnectionError(f"Could not open SQLite database {path!r}: {e}") from e
        conn.row_factory = sqlite3.Row
        logger.debug("Opened SQLite database %s", path)
        return conn

    def cursor(self, raw: sqlite3.Connection) -> sqlite3.Cursor:
        return raw.cursor()

    def raw_execute(self, raw: sqlite3.Connection, statement: str) -> int:
        """Run a script of one or more statements.

        executescript() commits any pending transaction before it runs.
        """
        before = raw.total_changes
        raw.executescript(statement)
        return raw.total_changes - before

    def begin(self, raw: sqlite3.Connection) -> None:
        if not raw.in_transaction:
            raw.execute("BEGIN")

    def end(self, raw: sqlite3.Connection, options: dict) -> None:
        return None

    def _attribute(self, raw: sqlite3.Connection, name: str, options: dict) -> Any:
        if name == "autocommit":
            return raw.isolation_level is None
        if name == "client_version":
            return sqlite3.sqlite_version
        if name == "server_version":
            return raw.execute("SELECT sqlite_version()").fetchone()[0]
        if name == "timeout":
            return float(options.get("timeout", 5.0))
        raise UnsupportedAttribute(name)


# --- PostgreSQL ---

class PostgresDriver(Driver):
    """Networked driver on psycopg2; dumps with pg_dump, restores with psql."""

    name = "pgsql"
    kind = NETWORKED
    error_class = psycopg2.Error
    list_databases_sql = "SELECT datname FROM pg_database WHERE NOT datistemplate ORDER BY datname"
    list_tables_sql = """
        SELECT table_name FROM information_schema.tables
        WHERE table_schema = current_schema() AND table_type = 'BASE TABLE'
        ORDER BY table_name
    """
    required_tools = ("pg_dump", "psql")

    def connect(self, descriptor: Descriptor) -> Any:
        params = descriptor.params
        if descriptor.principal is not None:
            params["user"] = descriptor.principal
        if descriptor.credential is not None:
            params["password"] = descriptor.credential
        try:
            conn = psycopg2.connect(**params)
        except psycopg2.Error as e:
            raise DBConnectionError(f"Could not connect to PostgreSQL: {e}") from e
        conn.autocommit = bool(descriptor.options.get("autocommit", True))
        logger.debug("Connected to PostgreSQL host=%s dbname=%s",
                     params.get("host"), params.get("dbname"))
        return conn

    def cursor(self, raw: Any) -> Any:
        """Plain tuple rows, so columns sharing a name keep their own values."""
        return raw.cursor()

    def raw_execute(self, raw: Any, statement: str) -> int:
        with raw.cursor() as cur:
            cur.execute(statement)
            return max(cur.rowcount, 0)

    def begin(self, raw: Any) -> None:
        raw.autocommit = False

    def end(self, raw: Any, options: dict) -> None:
        raw.autocommit = bool(options.get("autocommit", True))

    def create_database(self, raw: Any, name: str, principal: Optional[str],
                        credential: Optional[str]) -> None:
        """Create database `name`, role `principal` and grant it everything.

        CREATE DATABASE cannot run inside a transaction block, so autocommit
        is forced for the duration.
        """
        previous = raw.autocommit
        raw.autocommit = True
        try:
            with raw.cursor() as cur:
                cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(name)))
                if not principal:
                    return
                cur.execute("SELECT 1 FROM pg_roles WHERE rolname = %s", (principal,))
                if cur.fetchone() is None:
                    if credential is None:
                        cur.execute(sql.SQL("CREATE ROLE {} LOGIN").format(sql.Identifier(principal)))
                    else:
                        cur.execute(
                            sql.SQL("CREATE ROLE {} LOGIN PASSWORD %s").format(sql.Identifier(principal)),
                            (credential,),
                        )
                cur.execute(
                    sql.SQL("GRANT ALL PRIVILEGES ON DATABASE {} TO {}").format(
                        sql.Identifier(name), sql.Identifier(principal)
                    )
                )
        finally:
            raw.autocommit = previous

    def _connection_args(self, params: dict, database: str, principal: Optional[str]) -> list[str]:
        args = []
        if params.get("host"):
            args.append(f"--host={params['host']}")
        if params.get("port"):
            args.append(f"--port={params['port']}")
        if principal:
            args.append(f"--username={principal}")
        args.append("--no-password")
        args.append(f"--dbname={database}")
        return args

    def dump_command(self, params: dict, database: str, principal: Optional[str]) -> list[str]:
        return ["pg_dump", "--clean", "--if-exists", "--no-owner"] + \
            self._connection_args(params, database, principal)

    def restore_command(self, params: dict, database: str, principal: Optional[str]) -> list[str]:
        return ["psql", "--quiet", "--set=ON_ERROR_STOP=1"] + \
            self._connection_args(params, database, principal)

    def tool_env(self, credential: Optional[str]) -> dict:
        env = os.environ.copy()
        if credential is not None:
            env["PGPASSWORD"] = credential
        return env

    def _attribute(self, raw: Any, name: str, options: dict) -> Any:
        if name == "autocommit":
            return raw.autocommit
        if name == "client_version":
            return psycopg2.extensions.libpq_version()
        if name == "server_version":
            return raw.server_version
        if name == "connection_status":
            if raw.closed:
                return "closed"
            return f"connected to {raw.info.host}:{raw.info.port}"
        if name == "server_info":
            info = raw.info
            return (
                f"PID: {info.backend_pid}; "
                f"Client Encoding: {raw.encoding}; "
                f"Is Superuser: {info.parameter_status('is_superuser')}; "
                f"Session Authorization: {info.parameter_status('session_authorization')}; "
                f"Date Style: {info.parameter_status('DateStyle')}"
            )
        raise UnsupportedAttribute(name)


DRIVERS = {
    "sqlite": SQLiteDriver,
    "pgsql": PostgresDriver,
    "postgres": PostgresDriver,
    "postgresql": PostgresDriver,
}


def get_driver(prefix: str) -> Driver:
    """Driver adapter for an address prefix."""
    try:
        return DRIVERS[prefix]()
    except KeyError:
        raise InvalidRequest(f"Unsupported driver in address: {prefix!r}") from None
