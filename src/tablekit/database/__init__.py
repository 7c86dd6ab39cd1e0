"""Public interface for the database package.

This module exposes the primitives applications build on: the Database
container, the Table accessor, dialect templates, parameter bags and the
error types.
"""

from .connection import IsolationLevel, Transaction, get_connection
from .container import Database
from .dialects import (
    DIALECTS,
    MYSQL,
    SQLITE,
    SQLSERVER,
    CrudTemplate,
    get_dialect,
    load_dialect,
)
from .errors import (
    DatabaseClosedError,
    DialectConfigError,
    EmptyRecordError,
    GridReaderConsumedError,
    MultiMapError,
    ParameterError,
    TableBindingError,
    TablekitError,
    TransactionStateError,
    UnknownDialectError,
)
from .mapper import GridReader
from .params import Parameters, names_for
from .tables import Table, resolve_table_name

__all__ = [
    "Database",
    "Table",
    "Parameters",
    "GridReader",
    "Transaction",
    "IsolationLevel",
    "CrudTemplate",
    "SQLSERVER",
    "MYSQL",
    "SQLITE",
    "DIALECTS",
    "get_dialect",
    "load_dialect",
    "get_connection",
    "names_for",
    "resolve_table_name",
    "TablekitError",
    "TransactionStateError",
    "TableBindingError",
    "DatabaseClosedError",
    "EmptyRecordError",
    "ParameterError",
    "MultiMapError",
    "GridReaderConsumedError",
    "UnknownDialectError",
    "DialectConfigError",
]
