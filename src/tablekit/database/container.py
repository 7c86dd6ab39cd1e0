"""The Database container: connection, transaction and dialect in one place.

Subclass ``Database`` and annotate one ``Table[Entity]`` slot per table::

    class AppDb(Database):
        sql_crud_template = SQLITE

        Users: Table[User]

    with AppDb.init(sqlite3.connect("app.sqlite")) as db:
        user_id = db.Users.insert(User(Name="ada"))
        db.Users.get(user_id)

A Database instance is meant for one thread at a time. Use one instance
per thread of control.
"""

from __future__ import annotations

import contextlib
import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Any, TypeVar

from .. import global_config as g
from . import mapper
from .binder import bind_tables
from .connection import IsolationLevel, Transaction
from .dialects import CrudTemplate, get_dialect
from .errors import DatabaseClosedError, TransactionStateError, ensure_open
from .mapper import GridReader
from .tables import Table

logger = logging.getLogger(__name__)

TDatabase = TypeVar("TDatabase", bound="Database")


class Database:
    """Base class for a database container; assumes every table has an ``Id`` column."""

    # Dialect for generated CRUD SQL; set on a subclass or pass to init().
    sql_crud_template: CrudTemplate | None = None
    # Accessor base class whose annotated slots are wired by init().
    table_type: type = Table

    def __init__(self) -> None:
        self._connection: Any = None
        self._transaction: Transaction | None = None
        self.command_timeout: int | None = None

    @classmethod
    def init(
        cls: type[TDatabase],
        connection: Any,
        command_timeout: int | None = g.DEFAULT_COMMAND_TIMEOUT,
        *,
        dialect: CrudTemplate | None = None,
    ) -> TDatabase:
        """Create an instance bound to connection with every Table slot wired.

        Args:
            connection: Open DB-API connection. Closed by close().
            command_timeout: Seconds applied to every statement where the
                driver supports a statement timeout.
            dialect: Overrides the class's sql_crud_template. Defaults to
                SQL Server when neither is set.

        Returns:
            The initialized Database.

        Raises:
            TableBindingError: If a declared slot is malformed.
        """
        db = cls()
        if dialect is not None:
            db.sql_crud_template = dialect
        if db.sql_crud_template is None:
            db.sql_crud_template = get_dialect(g.DEFAULT_DIALECT)
        db._init_database(connection, command_timeout)
        return db

    def _init_database(self, connection: Any, command_timeout: int | None) -> None:
        self._connection = connection
        self.command_timeout = command_timeout
        bind_tables(self)
        logger.debug(
            "Initialized %s (dialect=%s, timeout=%s)",
            type(self).__name__,
            self.sql_crud_template.name,
            command_timeout,
        )

    @property
    def connection(self) -> Any:
        return ensure_open(self._connection, f"{type(self).__name__} is not open")

    @property
    def in_transaction(self) -> bool:
        return self._transaction is not None

    # -- transactions ------------------------------------------------------

    def begin_transaction(
        self, isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED
    ) -> None:
        """Open a transaction; only one may be open at a time.

        Raises:
            TransactionStateError: If a transaction is already open.
            DatabaseClosedError: If the Database is not open.
        """
        if self._transaction is not None:
            raise TransactionStateError("A transaction is already open on this Database")
        self._transaction = Transaction.begin(
            self.connection, self.sql_crud_template, isolation_level
        )

    def commit_transaction(self) -> None:
        """Commit and clear the open transaction.

        Raises:
            TransactionStateError: If no transaction is open.
        """
        transaction = self._require_transaction("commit")
        self._transaction = None
        transaction.commit()

    def rollback_transaction(self) -> None:
        """Roll back and clear the open transaction.

        Raises:
            TransactionStateError: If no transaction is open.
        """
        transaction = self._require_transaction("roll back")
        self._transaction = None
        transaction.rollback()

    def _require_transaction(self, action: str) -> Transaction:
        if self._transaction is None:
            raise TransactionStateError(f"Cannot {action}: no transaction is open")
        return self._transaction

    @contextlib.contextmanager
    def transaction(
        self, isolation_level: IsolationLevel = IsolationLevel.READ_COMMITTED
    ) -> Iterator[Database]:
        """Context manager for a transactional block.

        Commits on success, rolls back and re-raises on error.

        Logs:
            - ERROR: "Transaction rolled back due to error" on failure.
        """
        self.begin_transaction(isolation_level)
        try:
            yield self
        except Exception:
            logger.exception("Transaction rolled back due to error")
            if self._transaction is not None:
                self.rollback_transaction()
            raise
        if self._transaction is not None:
            self.commit_transaction()

    # -- passthroughs ------------------------------------------------------

    def execute(self, sql: str, params: Any = None) -> int:
        return mapper.execute(
            self.connection,
            sql,
            params,
            transaction=self._transaction,
            timeout=self.command_timeout,
        )

    def execute_scalar(self, sql: str, params: Any = None, *, cls: type | None = None) -> Any:
        return mapper.execute_scalar(
            self.connection,
            sql,
            params,
            cls=cls,
            transaction=self._transaction,
            timeout=self.command_timeout,
        )

    def query(
        self,
        sql: str,
        params: Any = None,
        *,
        cls: type | None = None,
        buffered: bool = True,
    ) -> list[Any] | Iterator[Any]:
        return mapper.query(
            self.connection,
            sql,
            params,
            cls=cls,
            transaction=self._transaction,
            buffered=buffered,
            timeout=self.command_timeout,
        )

    def query_map(
        self,
        sql: str,
        types: Sequence[type | None],
        map_fn: Callable[..., Any],
        params: Any = None,
        *,
        buffered: bool = True,
        split_on: str = g.ID_COLUMN,
    ) -> list[Any] | Iterator[Any]:
        """Map joined rows onto several types; see mapper.query_map."""
        return mapper.query_map(
            self.connection,
            sql,
            types,
            map_fn,
            params,
            transaction=self._transaction,
            buffered=buffered,
            split_on=split_on,
            timeout=self.command_timeout,
        )

    def query_multiple(self, sql: str, params: Any = None) -> GridReader:
        return mapper.query_multiple(
            self.connection,
            sql,
            params,
            transaction=self._transaction,
            timeout=self.command_timeout,
        )

    def table_exists(self, name: str) -> bool:
        """Return True if the schema catalog lists a table called name."""
        rows = self.query(self.sql_crud_template.table_exists, {"name": name}, cls=int)
        return bool(rows and rows[0])

    # -- lifecycle ---------------------------------------------------------

    def close(self) -> None:
        """Roll back any open transaction and close the connection.

        Safe to call more than once.

        Logs:
            - DEBUG: "Closed {type}" when a connection was closed.
        """
        connection = self._connection
        if connection is None:
            return
        transaction = self._transaction
        self._transaction = None
        self._connection = None
        try:
            if transaction is not None:
                transaction.rollback()
        finally:
            connection.close()
        logger.debug("Closed %s", type(self).__name__)

    def __enter__(self: TDatabase) -> TDatabase:
        if self._connection is None:
            raise DatabaseClosedError(f"{type(self).__name__} is not open")
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
