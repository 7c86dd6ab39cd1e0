"""Transaction handles and connection helpers.

DB-API connections have no transaction object of their own: work is
committed or rolled back on the connection. ``Transaction`` gives a
Database something to hold while a unit of work is open, and starts that
unit with the dialect's isolation and begin statements.
"""

from __future__ import annotations

import logging
import sqlite3
from enum import Enum
from pathlib import Path
from typing import Any

from .dialects import CrudTemplate

logger = logging.getLogger(__name__)


class IsolationLevel(str, Enum):
    """Standard SQL isolation levels, valued by their SQL keywords."""

    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"
    SNAPSHOT = "SNAPSHOT"


class Transaction:
    """An open unit of work on one connection."""

    def __init__(self, connection: Any, isolation_level: IsolationLevel) -> None:
        self.connection = connection
        self.isolation_level = isolation_level
        self._active = True

    @classmethod
    def begin(
        cls,
        connection: Any,
        dialect: CrudTemplate,
        isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED,
    ) -> Transaction:
        """Start a transaction using the dialect's statements.

        Args:
            connection: DB-API connection.
            dialect: Supplies the optional isolation and begin statements.
            isolation_level: Requested isolation level. Ignored (with a
                debug log) by dialects without an isolation statement.

        Returns:
            The open Transaction.

        Raises:
            Exception: Any driver error, re-raised unchanged.

        Logs:
            - DEBUG: "Beginning transaction ({level})" at start.
        """
        level = IsolationLevel(isolation_level)
        logger.debug("Beginning transaction (%s)", level.value)
        cursor = connection.cursor()
        try:
            if dialect.isolation:
                cursor.execute(dialect.isolation.format(level.value))
            else:
                logger.debug("Dialect %s ignores isolation level %s", dialect.name, level.value)
            if dialect.begin:
                cursor.execute(dialect.begin)
        finally:
            cursor.close()
        return cls(connection, level)

    @property
    def active(self) -> bool:
        return self._active

    def commit(self) -> None:
        self.connection.commit()
        self._active = False
        logger.debug("Transaction committed")

    def rollback(self) -> None:
        self.connection.rollback()
        self._active = False
        logger.debug("Transaction rolled back")


def _configure_connection(conn: sqlite3.Connection) -> None:
    """Apply standard pragmas to a new SQLite connection.

    Args:
        conn: SQLite connection to configure.

    Side Effects:
        - Enables foreign key constraints.
    """
    conn.execute("PRAGMA foreign_keys = ON")


def get_connection(db_path: Path) -> sqlite3.Connection:
    """Return a configured SQLite connection for an existing database file.

    Unlike ``sqlite3.connect``, a missing file is an error rather than a
    silently created empty database.

    Args:
        db_path: Path to the SQLite database file.

    Returns:
        Configured SQLite connection.

    Raises:
        FileNotFoundError: If db_path does not exist.

    Logs:
        - DEBUG: "Opening SQLite database at {path}" when creating connection.
    """
    resolved = Path(db_path)
    if not resolved.exists():
        raise FileNotFoundError(f"SQLite database not found: {resolved}")

    logger.debug("Opening SQLite database at %s", resolved)
    conn = sqlite3.connect(str(resolved))
    _configure_connection(conn)
    return conn
