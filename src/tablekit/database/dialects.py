"""SQL dialect templates used to render CRUD statements.

A dialect is pure data: a handful of format strings with positional
placeholders. Supporting another SQL flavour means supplying new strings
(in code or in a YAML file), never a new code path.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from .errors import DialectConfigError, UnknownDialectError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CrudTemplate:
    """SQL skeletons for one dialect.

    Placeholders:
        insert: {0} table, {1} column list, {2} value placeholders.
        update: {0} table, {1} assignments, {2} predicate.
        delete / select_all: {0} table, {1} predicate.
        select_first: {0} table.
        select_last_inserted_id: none.
        table_exists: binds ``@name``; must return a single row count.
        isolation: {0} isolation level keyword (optional).
        begin: explicit transaction start statement (optional).
        insert_with_id: placeholders as insert, followed in the same batch
            by the identity select (optional). When set, insert sends this
            single batch instead of insert plus select_last_inserted_id.
    """

    name: str
    insert: str
    update: str
    delete: str
    select_all: str
    select_first: str
    select_last_inserted_id: str
    table_exists: str = (
        "SELECT COUNT(*) FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_NAME = @name"
    )
    isolation: str | None = None
    begin: str | None = None
    insert_with_id: str | None = None


# SCOPE_IDENTITY() is batch scoped, so the id is read in the insert batch.
SQLSERVER = CrudTemplate(
    name="sqlserver",
    insert="SET NOCOUNT ON INSERT {0} ({1}) VALUES ({2})",
    update="UPDATE {0} SET {1} WHERE {2}",
    delete="DELETE FROM {0} WHERE {1}",
    select_all="SELECT * FROM {0} WHERE {1}",
    select_first="SELECT TOP 1 * FROM {0}",
    select_last_inserted_id="SELECT CAST(SCOPE_IDENTITY() AS INT)",
    isolation="SET TRANSACTION ISOLATION LEVEL {0}",
    insert_with_id=(
        "SET NOCOUNT ON INSERT {0} ({1}) VALUES ({2}) SELECT CAST(SCOPE_IDENTITY() AS INT)"
    ),
)

MYSQL = CrudTemplate(
    name="mysql",
    insert="INSERT INTO {0} ({1}) VALUES ({2})",
    update="UPDATE {0} SET {1} WHERE {2}",
    delete="DELETE FROM {0} WHERE {1}",
    select_all="SELECT * FROM {0} WHERE {1}",
    select_first="SELECT * FROM {0} LIMIT 1",
    select_last_inserted_id="SELECT LAST_INSERT_ID()",
    isolation="SET TRANSACTION ISOLATION LEVEL {0}",
    begin="START TRANSACTION",
)

# SQLite has a single (serializable) isolation level, so no isolation statement.
SQLITE = CrudTemplate(
    name="sqlite",
    insert="INSERT INTO {0} ({1}) VALUES ({2})",
    update="UPDATE {0} SET {1} WHERE {2}",
    delete="DELETE FROM {0} WHERE {1}",
    select_all="SELECT * FROM {0} WHERE {1}",
    select_first="SELECT * FROM {0} LIMIT 1",
    select_last_inserted_id="SELECT last_insert_rowid()",
    table_exists="SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = @name",
    begin="BEGIN",
)

DIALECTS: dict[str, CrudTemplate] = {
    d.name: d for d in (SQLSERVER, MYSQL, SQLITE)
}


def get_dialect(name: str) -> CrudTemplate:
    """Return a built-in dialect by name (case-insensitive).

    Raises:
        UnknownDialectError: If no dialect is registered under name.
    """
    try:
        return DIALECTS[name.strip().lower()]
    except KeyError:
        known = ", ".join(sorted(DIALECTS))
        raise UnknownDialectError(f"Unknown dialect {name!r} (known: {known})") from None


def load_dialect(path: Path) -> CrudTemplate:
    """Load a dialect from a YAML mapping of template names to strings.

    Keys must match CrudTemplate field names. ``name`` defaults to the file
    stem; ``table_exists``, ``isolation``, ``begin`` and ``insert_with_id`` keep their defaults
    when omitted.

    Args:
        path: Path to the YAML file.

    Returns:
        A new CrudTemplate.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
        DialectConfigError: If the document is not a mapping, has unknown
            keys, or lacks a required template.

    Logs:
        - DEBUG: "Loaded dialect {name} from {path}" on success.
    """
    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data: Any = yaml.safe_load(f)

    if not isinstance(data, dict):
        raise DialectConfigError(f"Dialect file {path} must contain a mapping")

    fields = {f.name: f for f in dataclasses.fields(CrudTemplate)}
    unknown = sorted(set(data) - set(fields))
    if unknown:
        raise DialectConfigError(f"Unknown dialect keys in {path}: {', '.join(unknown)}")

    values = {"name": path.stem, **data}
    missing = [
        name
        for name, field in fields.items()
        if name not in values
        and field.default is dataclasses.MISSING
    ]
    if missing:
        raise DialectConfigError(f"Dialect file {path} is missing: {', '.join(missing)}")

    for key, value in values.items():
        if value is not None and not isinstance(value, str):
            raise DialectConfigError(f"Dialect key {key!r} in {path} must be a string")

    dialect = CrudTemplate(**values)
    logger.debug("Loaded dialect %s from %s", dialect.name, path)
    return dialect
