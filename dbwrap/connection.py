"""Connection facade: one live driver connection plus helper methods."""

import logging
from collections.abc import Mapping
from contextlib import contextmanager
from typing import Any, Optional

from . import backup
from .catalog import Catalog
from .config import default_sqlite_path, load_config
from .drivers import ATTRIBUTE_NAMES, Descriptor, get_driver, row_values
from .errors import DBConnectionError, InvalidRequest, MethodNotFound, UnsupportedAttribute

logger = logging.getLogger("dbwrap.connection")

ERRMODE_EXCEPTION = "exception"
ERRMODE_WARNING = "warning"
ERRMODE_SILENT = "silent"

FETCH_ASSOC = "assoc"
FETCH_NUM = "num"
FETCH_BOTH = "both"

DEFAULT_OPTIONS = {
    "error_mode": ERRMODE_EXCEPTION,
    "fetch_mode": FETCH_ASSOC,
    "emulate_prepares": False,
}

ALLOWED_OPTION_VALUES = {
    "error_mode": (ERRMODE_EXCEPTION, ERRMODE_WARNING, ERRMODE_SILENT),
    "fetch_mode": (FETCH_ASSOC, FETCH_NUM, FETCH_BOTH),
    "case": ("natural", "lower", "upper"),
    "null_handling": ("natural", "empty_string", "to_string"),
}

EMPTY_STATEMENT = "statement cannot be empty"
MALFORMED_BATCH = "bindings must be a sequence of parameter sets"


def _is_parameter_set(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def _is_batch(bindings: Any) -> bool:
    return (
        isinstance(bindings, (list, tuple))
        and len(bindings) > 0
        and _is_parameter_set(bindings[0])
    )


def merge_options(options: Optional[dict]) -> dict:
    """Caller options over DEFAULT_OPTIONS, with values checked."""
    merged = dict(DEFAULT_OPTIONS)
    merged.update(options or {})
    for key, allowed in ALLOWED_OPTION_VALUES.items():
        if key in merged and merged[key] not in allowed:
            raise InvalidRequest(f"Option {key} must be one of {allowed}, got {merged[key]!r}")
    return merged


class Connection:
    """A database connection with query, catalog and backup helpers.

    Without an address the connection opens the embedded SQLite database at
    `default_path`, falling back to config.default_sqlite_path().

    Public names the facade does not define are looked up on the driver
    connection (`cursor`, `isolation_level`, ...). Anything else raises
    MethodNotFound.
    """

    def __init__(
        self,
        address: Optional[str] = None,
        principal: Optional[str] = None,
        credential: Optional[str] = None,
        options: Optional[dict] = None,
        default_path: Optional[str] = None,
    ):
        if address is None:
            address = f"sqlite:{default_path or default_sqlite_path()}"

        self.descriptor = Descriptor(address, principal, credential, merge_options(options))
        self.driver = get_driver(self.descriptor.prefix)
        self.raw = self.driver.connect(self.descriptor)
        self.catalog = Catalog(self)
        self._closed = False
        logger.debug("Opened %s connection", self.driver.name)

    @classmethod
    def from_env(cls, options: Optional[dict] = None) -> "Connection":
        """Connect with the DBWRAP_* environment settings."""
        config = load_config()
        return cls(
            config.address,
            config.user,
            config.password,
            options,
            default_path=config.sqlite_path,
        )

    @property
    def address(self) -> str:
        return self.descriptor.address

    @property
    def principal(self) -> Optional[str]:
        return self.descriptor.principal

    @property
    def options(self) -> dict:
        return dict(self.descriptor.options)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name in ("raw", "driver", "descriptor", "catalog"):
            raise AttributeError(name)
        raw = self.__dict__.get("raw")
        if raw is not None and hasattr(raw, name):
            return getattr(raw, name)
        raise MethodNotFound(f"Call to undefined method {type(self).__name__}::{name}()")

    def __enter__(self) -> "Connection":
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def __repr__(self) -> str:
        return f"<Connection driver={self.driver.name} closed={self._closed}>"

    # --- Error handling ---

    def _fail(self, error: Exception, statement: str):
        mode = self.descriptor.options["error_mode"]
        if mode == ERRMODE_EXCEPTION:
            raise DBConnectionError(f"{error} | Statement: {statement!r}") from error
        if mode == ERRMODE_WARNING:
            logger.warning("Statement failed: %s | Statement: %r", error, statement)
        return None

    # --- Execution ---

    def execute(self, statement: str, bindings=None):
        """Run a statement.

        Without bindings the statement runs as-is. A flat parameter set
        (sequence or mapping) is bound once. A list of parameter sets is
        handed to execute_batch() and the summed row count is returned.

        Returns:
            The cursor, or the affected-row count for batches. None when
            the statement failed and error_mode is warning or silent.
        """
        if not statement:
            raise InvalidRequest(EMPTY_STATEMENT)

        if _is_batch(bindings):
            return self.execute_batch(statement, bindings)

        cursor = self.driver.cursor(self.raw)
        try:
            if bindings:
                cursor.execute(statement, bindings)
            else:
                cursor.execute(statement)
        except self.driver.error_class as e:
            cursor.close()
            return self._fail(e, statement)
        return cursor

    def execute_batch(self, statement: str, bindings_list) -> Optional[int]:
        """Run one statement once per parameter set, in order.

        Stops at the first failing set; sets already run stay applied.
        Returns the sum of the per-execution row counts.
        """
        if not statement:
            raise InvalidRequest(EMPTY_STATEMENT)
        if (
            not isinstance(bindings_list, (list, tuple))
            or not bindings_list
            or not all(_is_parameter_set(params) for params in bindings_list)
        ):
            raise InvalidRequest(MALFORMED_BATCH)

        cursor = self.driver.cursor(self.raw)
        row_count = 0
        try:
            for params in bindings_list:
                cursor.execute(statement, params)
                row_count += max(cursor.rowcount, 0)
        except self.driver.error_class as e:
            return self._fail(e, statement)
        finally:
            cursor.close()

        logger.debug("Batch of %d parameter sets affected %d rows", len(bindings_list), row_count)
        return row_count

    def exec(self, statement: str) -> Optional[int]:
        """Run raw statement text without parameters; return affected rows."""
        if not statement:
            raise InvalidRequest(EMPTY_STATEMENT)
        try:
            return self.driver.raw_execute(self.raw, statement)
        except self.driver.error_class as e:
            return self._fail(e, statement)

    # --- Readers ---

    def _fold(self, column: str) -> str:
        case = self.descriptor.options.get("case", "natural")
        if case == "lower":
            return column.lower()
        if case == "upper":
            return column.upper()
        return column

    def _null(self, value: Any) -> Any:
        handling = self.descriptor.options.get("null_handling", "natural")
        if handling == "empty_string" and value == "":
            return None
        if handling == "to_string" and value is None:
            return ""
        return value

    def _shape(self, cursor, row):
        values = [self._null(v) for v in row_values(row)]
        fetch_mode = self.descriptor.options["fetch_mode"]
        if fetch_mode == FETCH_NUM:
            return tuple(values)
        shaped = dict(zip((self._fold(d[0]) for d in cursor.description), values))
        if fetch_mode == FETCH_BOTH:
            shaped.update(enumerate(values))
        return shaped

    def _query(self, statement: str, bindings):
        if _is_batch(bindings):
            raise InvalidRequest("readers take a single parameter set, not a batch")
        cursor = self.execute(statement, bindings)
        if cursor is None or cursor.description is None:
            return None
        return cursor

    def all(self, statement: str, bindings=None) -> list:
        """Every row of the result, shaped by fetch_mode."""
        cursor = self._query(statement, bindings)
        if cursor is None:
            return []
        return [self._shape(cursor, row) for row in cursor.fetchall()]

    def row(self, statement: str, bindings=None):
        """First row of the result; empty when there is none."""
        cursor = self._query(statement, bindings)
        row = cursor.fetchone() if cursor is not None else None
        if row is None:
            return () if self.descriptor.options["fetch_mode"] == FETCH_NUM else {}
        return self._shape(cursor, row)

    def cell(self, statement: str, bindings=None) -> Optional[str]:
        """First column of the first row as a string, or None."""
        cursor = self._query(statement, bindings)
        row = cursor.fetchone() if cursor is not None else None
        if row is None:
            return None
        value = self._null(row_values(row)[0])
        return None if value is None else str(value)

    # --- Attributes ---

    def attributes(self, name: Optional[str] = None):
        """Snapshot of driver attributes, or one attribute by name.

        Attributes the driver cannot report are None. Unknown names raise
        InvalidRequest.
        """
        if name is not None and name not in ATTRIBUTE_NAMES:
            raise InvalidRequest(f"unknown attribute: {name}")

        snapshot = {}
        for attr in ATTRIBUTE_NAMES if name is None else (name,):
            try:
                snapshot[attr] = self.driver.attribute(self.raw, attr, self.descriptor.options)
            except UnsupportedAttribute:
                snapshot[attr] = None
        return snapshot if name is None else snapshot[name]

    # --- Transactions and lifecycle ---

    def commit(self) -> None:
        self.raw.commit()

    def rollback(self) -> None:
        self.raw.rollback()

    @contextmanager
    def transaction(self):
        """Commit on success, roll back and re-raise on error."""
        self.driver.begin(self.raw)
        try:
            yield self
        except Exception:
            self.raw.rollback()
            raise
        else:
            self.raw.commit()
        finally:
            self.driver.end(self.raw, self.descriptor.options)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Close the driver connection. Safe to call more than once."""
        if self._closed:
            return
        self.raw.close()
        self._closed = True

    # --- Catalog ---

    def database_name(self) -> str:
        return self.catalog.database_name(self.descriptor.address)

    def databases(self) -> list:
        return self.catalog.list_databases()

    def tables(self) -> list:
        return self.catalog.list_tables()

    def create_database(self, name: str) -> bool:
        """Create `name` and grant this connection's principal full rights."""
        return self.catalog.create_database(name, self.descriptor.principal, self.descriptor.credential)

    # --- Backup ---

    def export(self, destination: str = ".") -> str:
        return backup.export_database(self, destination)

    def import_(self, source: str, backup_first: bool = True) -> bool:
        return backup.import_database(self, source, backup=backup_first)
