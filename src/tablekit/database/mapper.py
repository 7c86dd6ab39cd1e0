"""Statement execution and row mapping over a DB-API 2.0 connection.

These helpers are the only place tablekit touches cursors. They accept SQL
written with ``@name`` placeholders, rewrite it to the driver's
``paramstyle``, run it, and turn result rows into dicts, scalars or
instances of a caller-supplied class.

Statements run outside an explicit transaction are committed right away,
so callers see per-statement autocommit regardless of the driver default.
"""

from __future__ import annotations

import dataclasses
import logging
import re
import sys
from collections.abc import Callable, Iterator, Sequence
from decimal import Decimal
from typing import Any

from .. import global_config as g
from .errors import GridReaderConsumedError, MultiMapError, ParameterError
from .params import as_mapping

logger = logging.getLogger(__name__)

_SCALAR_TYPES: tuple[type, ...] = (int, float, str, bytes, bool, Decimal)

# Quoted literals and bracketed identifiers are copied through untouched.
_TOKEN = re.compile(
    r"(?P<literal>'(?:[^']|'')*'|\"(?:[^\"]|\"\")*\"|\[[^\]]*\])"
    r"|(?<![@\w])@(?P<name>[A-Za-z_]\w*)"
)

RowFactory = Callable[[Sequence[Any]], Any]


def _paramstyle(connection: Any) -> str:
    """Return the PEP 249 paramstyle for connection's driver.

    A ``paramstyle`` attribute on the connection wins; otherwise the
    driver's top-level module is consulted, falling back to ``named``.
    """
    style = getattr(connection, "paramstyle", None)
    if style:
        return style
    module = sys.modules.get(type(connection).__module__.split(".")[0])
    return getattr(module, "paramstyle", "named")


def compile_sql(sql: str, params: Any, paramstyle: str) -> tuple[str, Any]:
    """Rewrite ``@name`` placeholders for a driver paramstyle.

    Args:
        sql: SQL text using ``@name`` placeholders.
        params: Anything accepted by params.as_mapping.
        paramstyle: One of qmark, numeric, named, format, pyformat.

    Returns:
        Tuple of (driver SQL, driver arguments). Arguments are None when the
        statement has no placeholders, a list for positional styles and a
        dict for named styles.

    Raises:
        ParameterError: If a placeholder has no value in params.
        ValueError: If paramstyle is not a PEP 249 style.
    """
    if paramstyle not in ("qmark", "numeric", "named", "format", "pyformat"):
        raise ValueError(f"Unsupported paramstyle: {paramstyle!r}")

    values = as_mapping(params)
    positional: list[Any] = []
    named: dict[str, Any] = {}
    # (chunk, is_placeholder) pairs; plain text may need % escaping later.
    pieces: list[tuple[str, bool]] = []
    pos = 0

    for match in _TOKEN.finditer(sql):
        pieces.append((sql[pos : match.start()], False))
        pos = match.end()
        if match.group("literal") is not None:
            pieces.append((match.group("literal"), False))
            continue

        name = match.group("name")
        if name not in values:
            raise ParameterError(f"No value supplied for parameter @{name}")
        if paramstyle == "qmark":
            positional.append(values[name])
            pieces.append(("?", True))
        elif paramstyle == "numeric":
            positional.append(values[name])
            pieces.append((f":{len(positional)}", True))
        elif paramstyle == "format":
            positional.append(values[name])
            pieces.append(("%s", True))
        elif paramstyle == "pyformat":
            named[name] = values[name]
            pieces.append((f"%({name})s", True))
        else:
            named[name] = values[name]
            pieces.append((f":{name}", True))
    pieces.append((sql[pos:], False))

    if not positional and not named:
        return sql, None

    # format/pyformat drivers %-interpolate the whole statement.
    escape_percent = paramstyle in ("format", "pyformat")
    text = "".join(
        chunk.replace("%", "%%") if escape_percent and not is_placeholder else chunk
        for chunk, is_placeholder in pieces
    )
    return text, (positional if paramstyle in ("qmark", "numeric", "format") else named)


def _apply_timeout(connection: Any, timeout: int | None) -> None:
    if timeout is None:
        return
    if hasattr(connection, "timeout"):
        connection.timeout = timeout
    else:
        logger.debug(
            "%s has no statement timeout; ignoring %ss",
            type(connection).__name__,
            timeout,
        )


def _run(connection: Any, sql: str, params: Any, timeout: int | None) -> Any:
    """Compile and execute sql on a fresh cursor and return the cursor.

    Raises:
        ParameterError: If a placeholder has no value.
        Exception: Any driver error, re-raised unchanged.

    Logs:
        - DEBUG: "Executed query: {sql}" on success.
        - ERROR: "Query execution failed: {exc}" with traceback on failure.
    """
    text, args = compile_sql(sql, params, _paramstyle(connection))
    _apply_timeout(connection, timeout)
    cursor = connection.cursor()
    try:
        if args is None:
            cursor.execute(text)
        else:
            cursor.execute(text, args)
    except Exception as exc:
        logger.exception("Query execution failed: %s", exc)
        cursor.close()
        raise
    logger.debug("Executed query: %s", sql[: g.SQL_PREVIEW_MAX_CHARS])
    return cursor


def _columns(cursor: Any) -> list[str]:
    return [d[0] for d in cursor.description or ()]


def _convert_scalar(cls: type, value: Any) -> Any:
    if value is None or type(value) is cls:
        return value
    if cls is Decimal and isinstance(value, float):
        return Decimal(str(value))
    return cls(value)


def _keyword_factory(cls: type, columns: Sequence[str], accepted: set[str]) -> RowFactory:
    picked = [(i, name) for i, name in enumerate(columns) if name in accepted]

    def build(row: Sequence[Any]) -> Any:
        return cls(**{name: row[i] for i, name in picked})

    return build


def row_factory(cls: type | None, columns: Sequence[str]) -> RowFactory:
    """Return a callable that turns one result row into a cls value.

    - None or dict: a dict keyed by column name.
    - int, float, str, bytes, bool, Decimal: the first column, converted.
    - dataclasses and namedtuples: keyword construction from the columns
      they declare; other columns are ignored.
    - anything else: ``cls()`` followed by one setattr per column.
    """
    columns = list(columns)
    if cls is None or cls is dict:
        return lambda row: dict(zip(columns, row))
    if cls in _SCALAR_TYPES:
        return lambda row: _convert_scalar(cls, row[0])
    if dataclasses.is_dataclass(cls):
        accepted = {f.name for f in dataclasses.fields(cls) if f.init}
        return _keyword_factory(cls, columns, accepted)
    fields = getattr(cls, "_fields", None)
    if isinstance(cls, type) and issubclass(cls, tuple) and fields is not None:
        return _keyword_factory(cls, columns, set(fields))

    def build(row: Sequence[Any]) -> Any:
        obj = cls()
        for name, value in zip(columns, row):
            setattr(obj, name, value)
        return obj

    return build


def _finish(connection: Any, transaction: Any) -> None:
    if transaction is None:
        connection.commit()


def execute(
    connection: Any,
    sql: str,
    params: Any = None,
    *,
    transaction: Any = None,
    timeout: int | None = None,
) -> int:
    """Execute INSERT/UPDATE/DELETE and return number of affected rows.

    Args:
        connection: DB-API connection.
        sql: SQL with ``@name`` placeholders.
        params: Parameters bag, mapping, record object or None.
        transaction: Active transaction, or None to commit immediately.
        timeout: Statement timeout in seconds, where the driver supports it.

    Returns:
        The cursor's rowcount.

    Logs:
        - DEBUG: "Statement affected {rowcount} rows" on success.
    """
    cursor = _run(connection, sql, params, timeout)
    try:
        rowcount = cursor.rowcount
    finally:
        cursor.close()
    _finish(connection, transaction)
    logger.debug("Statement affected %s rows", rowcount)
    return rowcount


def _iterate(cursor: Any, cls: type | None) -> Iterator[Any]:
    try:
        build = row_factory(cls, _columns(cursor))
        for row in cursor:
            yield build(row)
    finally:
        cursor.close()


def query(
    connection: Any,
    sql: str,
    params: Any = None,
    *,
    cls: type | None = None,
    transaction: Any = None,
    buffered: bool = True,
    timeout: int | None = None,
) -> list[Any] | Iterator[Any]:
    """Run a query and map each row through row_factory(cls, ...).

    Args:
        connection: DB-API connection.
        sql: SQL with ``@name`` placeholders.
        params: Parameters bag, mapping, record object or None.
        cls: Target row type (see row_factory). None yields dicts.
        transaction: Active transaction (threaded for symmetry with execute).
        buffered: If True, fetch everything and return a list; otherwise
            return a generator that runs the statement on first iteration,
            streams rows and closes the cursor when exhausted.
        timeout: Statement timeout in seconds, where the driver supports it.

    Returns:
        List of mapped rows, or an iterator when buffered is False.
    """
    if buffered:
        return list(_iterate(_run(connection, sql, params, timeout), cls))
    return _stream(connection, sql, params, cls, timeout)


def _stream(
    connection: Any, sql: str, params: Any, cls: type | None, timeout: int | None
) -> Iterator[Any]:
    # Nothing is sent until the first row is requested.
    yield from _iterate(_run(connection, sql, params, timeout), cls)


def execute_scalar(
    connection: Any,
    sql: str,
    params: Any = None,
    *,
    cls: type | None = None,
    transaction: Any = None,
    timeout: int | None = None,
) -> Any:
    """Execute a writing statement that also selects one value, and return it.

    Used for batches such as an INSERT followed by an identity select. The
    first row of the result is mapped through row_factory(cls, ...), and the
    work is committed when no transaction is active, as with execute().

    Returns:
        The first mapped row, or None if the statement returned no rows.
    """
    rows = list(_iterate(_run(connection, sql, params, timeout), cls))
    _finish(connection, transaction)
    return rows[0] if rows else None


def _split_points(columns: Sequence[str], count: int, split_on: str) -> list[int]:
    names = [s.strip() for s in split_on.split(",") if s.strip()]
    if len(names) == 1:
        names = names * (count - 1)
    if len(names) != count - 1:
        raise MultiMapError(
            f"split_on {split_on!r} gives {len(names)} split columns for {count} types"
        )

    lowered = [c.lower() for c in columns]
    points: list[int] = []
    start = 1
    for name in names:
        try:
            index = lowered.index(name.lower(), start)
        except ValueError:
            raise MultiMapError(
                f"Split column {name!r} not found after column {start} in {list(columns)}"
            ) from None
        points.append(index)
        start = index + 1
    return points


def query_map(
    connection: Any,
    sql: str,
    types: Sequence[type | None],
    map_fn: Callable[..., Any],
    params: Any = None,
    *,
    transaction: Any = None,
    buffered: bool = True,
    split_on: str = g.ID_COLUMN,
    timeout: int | None = None,
) -> list[Any] | Iterator[Any]:
    """Map each joined row onto several types and combine them with map_fn.

    Columns are cut at successive occurrences of the split column(s);
    each slice becomes one argument to map_fn. A slice whose split column
    is NULL (an outer join with no match) is passed as None.

    Raises:
        MultiMapError: If fewer than two types are given or a split column
            cannot be found.
    """
    if len(types) < 2:
        raise MultiMapError("query_map needs at least two types")

    def _rows() -> Iterator[Any]:
        cursor = _run(connection, sql, params, timeout)
        try:
            columns = _columns(cursor)
            bounds = [0, *_split_points(columns, len(types), split_on), len(columns)]
            factories = [
                row_factory(cls, columns[bounds[i] : bounds[i + 1]])
                for i, cls in enumerate(types)
            ]
            for row in cursor:
                parts = []
                for i, build in enumerate(factories):
                    chunk = row[bounds[i] : bounds[i + 1]]
                    if i > 0 and chunk[0] is None:
                        parts.append(None)
                    else:
                        parts.append(build(chunk))
                yield map_fn(*parts)
        finally:
            cursor.close()

    if buffered:
        return list(_rows())
    return _rows()


class GridReader:
    """Reads several result sets from one statement, in order.

    Each read() consumes the current result set and advances the cursor.
    Drivers without ``nextset`` (such as sqlite3) expose one result set.
    """

    def __init__(self, cursor: Any) -> None:
        self._cursor = cursor
        self._consumed = False

    @property
    def is_consumed(self) -> bool:
        return self._consumed

    def read(self, cls: type | None = None) -> list[Any]:
        if self._consumed:
            raise GridReaderConsumedError("All result sets have already been read")
        build = row_factory(cls, _columns(self._cursor))
        rows = [build(row) for row in self._cursor.fetchall()]
        self._advance()
        return rows

    def read_first(self, cls: type | None = None) -> Any:
        rows = self.read(cls)
        return rows[0] if rows else None

    def _advance(self) -> None:
        nextset = getattr(self._cursor, "nextset", None)
        if nextset is None or not nextset():
            self.close()

    def close(self) -> None:
        if not self._consumed:
            self._consumed = True
            self._cursor.close()

    def __enter__(self) -> GridReader:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def query_multiple(
    connection: Any,
    sql: str,
    params: Any = None,
    *,
    transaction: Any = None,
    timeout: int | None = None,
) -> GridReader:
    """Execute sql and return a GridReader over its result sets."""
    return GridReader(_run(connection, sql, params, timeout))
