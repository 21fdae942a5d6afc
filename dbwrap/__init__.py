"""dbwrap - helper layer over DB-API database connections."""

from .catalog import Catalog
from .connection import (
    DEFAULT_OPTIONS,
    ERRMODE_EXCEPTION,
    ERRMODE_SILENT,
    ERRMODE_WARNING,
    FETCH_ASSOC,
    FETCH_BOTH,
    FETCH_NUM,
    Connection,
)
from .drivers import ATTRIBUTE_NAMES
from .errors import (
    BackupError,
    DBConnectionError,
    DbwrapError,
    InvalidRequest,
    MethodNotFound,
    ParseError,
    UnsupportedOperation,
)

__version__ = "0.1.0"

__all__ = [
    "ATTRIBUTE_NAMES",
    "BackupError",
    "Catalog",
    "Connection",
    "DBConnectionError",
    "DEFAULT_OPTIONS",
    "DbwrapError",
    "ERRMODE_EXCEPTION",
    "ERRMODE_SILENT",
    "ERRMODE_WARNING",
    "FETCH_ASSOC",
    "FETCH_BOTH",
    "FETCH_NUM",
    "InvalidRequest",
    "MethodNotFound",
    "ParseError",
    "UnsupportedOperation",
]
