"""Exceptions raised by dbwrap."""


class DbwrapError(Exception):
    """Base exception for dbwrap."""


class DBConnectionError(DbwrapError):
    """The driver could not connect, or a statement failed against it."""


class InvalidRequest(DbwrapError, ValueError):
    """Empty statement, malformed bindings, bad path or unknown name."""


class ParseError(DbwrapError):
    """A value could not be extracted from a connection address."""


class UnsupportedOperation(DbwrapError):
    """The active driver or host cannot perform the operation."""


class MethodNotFound(DbwrapError, AttributeError):
    """Neither the facade nor the driver connection has the attribute."""


class BackupError(DbwrapError):
    """An external dump/restore tool exited with a non-zero status."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class UnsupportedAttribute(DbwrapError):
    """Raised by drivers for attributes they cannot report."""
