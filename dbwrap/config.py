"""Environment-driven configuration for dbwrap."""

import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

DEFAULT_SQLITE_FILENAME = "dbwrap.db"


@dataclass
class DbwrapConfig:
    """Connection and logging settings read from the environment."""
    address: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    sqlite_path: Optional[str] = None
    log_level: int = logging.INFO
    log_dir: str = "logs"


def default_sqlite_path() -> str:
    """Path of the embedded database used when no address is given."""
    path = os.environ.get("DBWRAP_SQLITE_PATH")
    if path:
        return path
    return os.path.join(tempfile.gettempdir(), DEFAULT_SQLITE_FILENAME)


def _log_level(value: Optional[str]) -> int:
    if not value:
        return logging.INFO
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"DBWRAP_LOG_LEVEL must be a logging level name, got {value!r}")
    return level


def load_config() -> DbwrapConfig:
    """Load DbwrapConfig from DBWRAP_* environment variables.

    Recognized variables:
        DBWRAP_ADDRESS      connection address, e.g. pgsql:host=db;dbname=app
        DBWRAP_USER         principal
        DBWRAP_PASSWORD     credential
        DBWRAP_SQLITE_PATH  embedded database file used without an address
        DBWRAP_LOG_LEVEL    DEBUG, INFO, WARNING, ...
        DBWRAP_LOG_DIR      directory for rotating log files
    """
    return DbwrapConfig(
        address=os.environ.get("DBWRAP_ADDRESS") or None,
        user=os.environ.get("DBWRAP_USER") or None,
        password=os.environ.get("DBWRAP_PASSWORD") or None,
        sqlite_path=default_sqlite_path(),
        log_level=_log_level(os.environ.get("DBWRAP_LOG_LEVEL")),
        log_dir=os.environ.get("DBWRAP_LOG_DIR", "logs"),
    )
