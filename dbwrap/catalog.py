"""Catalog helper: database names, listings and provisioning."""

import logging
import re
from typing import Optional

from .drivers import row_values
from .errors import DBConnectionError, InvalidRequest, ParseError

logger = logging.getLogger("dbwrap.catalog")

DBNAME_PATTERN = re.compile(r"(?:^|[:;])\s*dbname=(\w+)(?:;|$)", re.ASCII)
IDENTIFIER_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_identifier(value: str, what: str) -> str:
    """Allow-list check for names that end up as SQL identifiers."""
    if not isinstance(value, str) or not IDENTIFIER_PATTERN.match(value):
        raise InvalidRequest(f"Invalid {what}: {value!r}")
    return value


class Catalog:
    """Metadata and provisioning operations over a Connection."""

    def __init__(self, connection):
        self.connection = connection

    def database_name(self, address: str) -> str:
        """Database name from the `dbname=<name>` entry of an address."""
        match = DBNAME_PATTERN.search(address)
        if not match:
            raise ParseError("Could not match database name from address")
        return match.group(1)

    def _column(self, statement: str) -> list:
        cursor = self.connection.execute(statement)
        if cursor is None:
            return []
        return [row_values(row)[0] for row in cursor.fetchall()]

    def list_databases(self) -> list:
        """Names of the databases visible to the connection."""
        return self._column(self.connection.driver.list_databases_sql)

    def list_tables(self) -> list:
        """Names of the tables in the current database or schema."""
        return self._column(self.connection.driver.list_tables_sql)

    def create_database(self, name: str, principal: Optional[str] = None,
                        credential: Optional[str] = None) -> bool:
        """Create database `name` and a principal with full rights on it.

        Returns False without touching anything if the database already
        exists, True once it has been created.
        """
        validate_identifier(name, "database name")
        if principal is not None:
            validate_identifier(principal, "principal")

        if name in self.list_databases():
            logger.info("Database %s already exists", name)
            return False

        driver = self.connection.driver
        try:
            driver.create_database(self.connection.raw, name, principal, credential)
        except driver.error_class as e:
            raise DBConnectionError(f"Could not create database {name}: {e}") from e

        logger.info("Created database %s (principal=%s)", name, principal)
        return True
