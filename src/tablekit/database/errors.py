"""Exception types raised by tablekit itself.

Errors coming from the DB-API driver are never wrapped: they propagate to
the caller unchanged. The types here only cover invariant violations and
bad input detected before anything is sent to the backing store.
"""

from __future__ import annotations


class TablekitError(Exception):
    """Base exception for tablekit errors."""


class TransactionStateError(TablekitError):
    """Raised when a transaction is begun twice or finished when none is open."""


class TableBindingError(TablekitError):
    """Raised when a declared table slot cannot be wired to an accessor."""


class DatabaseClosedError(TablekitError):
    """Raised when a Database is used before init() or after close()."""


class EmptyRecordError(TablekitError, ValueError):
    """Raised when a record yields no columns to write."""


class ParameterError(TablekitError, KeyError):
    """Raised when a SQL placeholder has no bound value."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the message readable.
        return str(self.args[0]) if self.args else ""


class MultiMapError(TablekitError):
    """Raised when a multi-mapping query cannot find its split column."""


class GridReaderConsumedError(TablekitError):
    """Raised when reading past the last result set of a GridReader."""


class UnknownDialectError(TablekitError, KeyError):
    """Raised when a dialect name is not registered."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class DialectConfigError(TablekitError, ValueError):
    """Raised when a dialect YAML file is missing keys or has unknown ones."""


def ensure_open(connection: object | None, message: str = "Database is not open") -> object:
    """Raise DatabaseClosedError if a connection is missing, otherwise return it.

    Args:
        connection: Connection handle to check (may be None).
        message: Error message to use if connection is None.

    Returns:
        The connection unchanged.

    Raises:
        DatabaseClosedError: If connection is None.
    """
    if connection is None:
        raise DatabaseClosedError(message)
    return connection
