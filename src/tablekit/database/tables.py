"""Per-entity CRUD accessors and table name resolution.

A ``Table[T]`` renders Insert/Update/Delete/Select statements from the
owning Database's dialect templates and runs them through that Database.
Every table is assumed to have a single identity column named ``Id``.

Table names are resolved once per entity type and cached for the life of
the process: the slot name is used if such a table exists, otherwise the
entity class name. Restart the process if the schema changes.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Generic, TypeVar, get_args, get_origin

from ..global_config import ID_COLUMN
from .dialects import CrudTemplate
from .errors import EmptyRecordError, TableBindingError
from .params import Parameters, names_for

if TYPE_CHECKING:
    from .container import Database

logger = logging.getLogger(__name__)

T = TypeVar("T")
TId = TypeVar("TId")

# Process-wide, write-once per entity type. Never invalidated.
_table_name_cache: dict[type, str] = {}
_table_name_lock = threading.Lock()


def _validate_identifier(name: str) -> None:
    """Validate SQL identifier to prevent injection.

    Checks that identifier contains only alphanumeric characters and
    underscores. This is a basic safeguard, not comprehensive protection.

    Args:
        name: SQL identifier (table or column name) to validate.

    Raises:
        ValueError: If identifier contains unsafe characters.
    """
    if not name or not name.replace("_", "").isalnum():
        msg = f"Unsafe SQL identifier: {name!r}"
        raise ValueError(msg)


def resolve_table_name(database: Database, likely_table_name: str, entity_type: type) -> str:
    """Return the backing table name for entity_type.

    On the first call for a type, checks the schema catalog for a table
    named likely_table_name and falls back to the entity class name when
    there is none. Later calls return the cached name without touching the
    database, even if the schema has changed since.

    Args:
        database: Database used for the existence check.
        likely_table_name: Candidate name, usually the slot name.
        entity_type: Entity class the table stores.

    Returns:
        The resolved table name.

    Raises:
        Exception: Any driver error from the existence check, unchanged.

    Logs:
        - DEBUG: "Resolved table for {type}: {name}" on a cache miss.
    """
    name = _table_name_cache.get(entity_type)
    if name is not None:
        return name

    candidate = likely_table_name
    if not database.table_exists(candidate):
        candidate = entity_type.__name__
    with _table_name_lock:
        name = _table_name_cache.setdefault(entity_type, candidate)
    logger.debug("Resolved table for %s: %s", entity_type.__qualname__, name)
    return name


def clear_cache() -> None:
    """Drop every resolved table name. Intended for tests only."""
    with _table_name_lock:
        _table_name_cache.clear()


def entity_type_of(accessor_type: type) -> type | None:
    """Return T for a class deriving from ``Table[T]``, or None."""
    for klass in accessor_type.__mro__:
        for base in getattr(klass, "__orig_bases__", ()):
            origin = get_origin(base)
            if isinstance(origin, type) and issubclass(origin, Table):
                args = get_args(base)
                if args and isinstance(args[0], type):
                    return args[0]
    return None


def _value(record: Any, name: str) -> Any:
    if isinstance(record, (Parameters, Mapping)):
        return record.get(name)
    return getattr(record, name, None)


def _checked(names: Sequence[str], action: str, table: str, record_type: str) -> None:
    if not names:
        raise EmptyRecordError(f"{record_type} has no columns to {action} {table}")
    for name in names:
        _validate_identifier(name)


# Statement rendering, shared by Table and the CLI preview.

def render_insert(
    template: CrudTemplate, table: str, names: Sequence[str], *, with_id: bool = False
) -> str:
    """Render the insert template, or the insert-with-id batch when with_id is set."""
    skeleton = template.insert_with_id if with_id and template.insert_with_id else template.insert
    return skeleton.format(
        table, ", ".join(names), ", ".join(f"@{n}" for n in names)
    )


def render_update(template: CrudTemplate, table: str, names: Sequence[str]) -> str:
    """Render an update of every name except ``Id``, keyed on ``@Id``."""
    assignments = ", ".join(f"{n} = @{n}" for n in names if n != ID_COLUMN)
    return template.update.format(table, assignments, f"{ID_COLUMN} = @{ID_COLUMN}")


def render_delete(template: CrudTemplate, table: str) -> str:
    return template.delete.format(table, f"{ID_COLUMN} = @id")


def render_get(template: CrudTemplate, table: str) -> str:
    return template.select_all.format(table, f"{ID_COLUMN} = @id")


def render_first(template: CrudTemplate, table: str) -> str:
    return template.select_first.format(table)


def render_all(template: CrudTemplate, table: str) -> str:
    return template.select_all.format(table, "1 = 1")


class Table(Generic[T]):
    """CRUD surface for one entity type, bound to a Database."""

    def __init__(
        self,
        database: Database,
        likely_table_name: str,
        entity_type: type[T] | None = None,
    ) -> None:
        self.database = database
        self.likely_table_name = likely_table_name
        self._entity_type = entity_type
        self._table_name: str | None = None

    @property
    def entity_type(self) -> type[T]:
        if self._entity_type is None:
            found = entity_type_of(type(self))
            if found is None:
                # Table[User](db, "Users") records its alias after __init__.
                args = get_args(getattr(self, "__orig_class__", None))
                found = args[0] if args and isinstance(args[0], type) else None
            if found is None:
                raise TableBindingError(
                    f"Cannot determine the entity type of {type(self).__name__} "
                    f"for table {self.likely_table_name!r}"
                )
            self._entity_type = found
        return self._entity_type

    @property
    def table_name(self) -> str:
        if self._table_name is None:
            name = resolve_table_name(self.database, self.likely_table_name, self.entity_type)
            _validate_identifier(name)
            self._table_name = name
        return self._table_name

    def insert(self, record: Any, id_type: type[TId] = int) -> TId | None:
        """Insert a row and return the identity value generated for it.

        Dialects with an insert_with_id batch read the identity in the same
        batch as the insert. Otherwise the dialect's last-inserted-id query
        runs once, right after the insert and in the same transaction
        context. It is not issued if the insert fails.

        Args:
            record: Parameters bag, mapping, or record object. An ``Id``
                whose value is None is left out so the store generates it.
            id_type: Type the generated identity is converted to.

        Returns:
            The new identity value, or None if the store reports none.

        Raises:
            EmptyRecordError: If the record has no columns to insert.
            ValueError: If a column name is not a plain identifier.
        """
        names = [
            n for n in names_for(record)
            if not (n == ID_COLUMN and _value(record, n) is None)
        ]
        _checked(names, "insert into", self.table_name, type(record).__name__)

        template = self.database.sql_crud_template
        if template.insert_with_id:
            sql = render_insert(template, self.table_name, names, with_id=True)
            return self.database.execute_scalar(sql, record, cls=id_type)

        self.database.execute(render_insert(template, self.table_name, names), record)
        rows = self.database.query(template.select_last_inserted_id, cls=id_type)
        return rows[0] if rows else None

    def update(self, id: Any, record: Any) -> int:
        """Update the row with the given Id from record's fields.

        The ``Id`` column is never assigned; the predicate always uses the
        id argument, even if record carries a different ``Id``.

        Returns:
            Number of rows affected.

        Raises:
            EmptyRecordError: If record has no columns besides ``Id``.
            ValueError: If a column name is not a plain identifier.
        """
        names = [n for n in names_for(record) if n != ID_COLUMN]
        _checked(names, "update in", self.table_name, type(record).__name__)

        parameters = Parameters(record)
        parameters.add(ID_COLUMN, id)
        sql = render_update(self.database.sql_crud_template, self.table_name, names)
        return self.database.execute(sql, parameters)

    def delete(self, id: Any) -> bool:
        """Delete the row with the given Id; True if any row was removed."""
        sql = render_delete(self.database.sql_crud_template, self.table_name)
        return self.database.execute(sql, {"id": id}) > 0

    def get(self, id: Any) -> T | None:
        """Return the row with the given Id, or None."""
        sql = render_get(self.database.sql_crud_template, self.table_name)
        rows = self.database.query(sql, {"id": id}, cls=self.entity_type)
        return rows[0] if rows else None

    def first(self) -> T | None:
        sql = render_first(self.database.sql_crud_template, self.table_name)
        rows = self.database.query(sql, cls=self.entity_type)
        return rows[0] if rows else None

    def all(self) -> Iterator[T]:
        """Stream every row. Each call runs the query again."""
        sql = render_all(self.database.sql_crud_template, self.table_name)
        return self.database.query(sql, cls=self.entity_type, buffered=False)

    def __repr__(self) -> str:
        entity = self._entity_type.__name__ if self._entity_type else "?"
        return f"<{type(self).__name__}[{entity}] {self.likely_table_name!r}>"
