"""Tests for statement compilation, execution and row mapping."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from decimal import Decimal
from typing import NamedTuple

import pytest
from fakes import FakeResult, RecordingConnection

from tablekit.database import mapper
from tablekit.database.errors import GridReaderConsumedError, MultiMapError, ParameterError
from tablekit.database.params import Parameters


@dataclass
class Post:
    Id: int
    Title: str


@dataclass
class Author:
    Id: int
    Name: str


class Row(NamedTuple):
    Id: int
    Name: str


class Bare:
    pass


@pytest.mark.unit
class TestCompileSql:
    """Tests for rewriting @name placeholders per paramstyle."""

    SQL = "UPDATE Users SET Name = @Name WHERE Id = @Id"
    PARAMS = {"Name": "ada", "Id": 3}

    def test_qmark(self) -> None:
        sql, args = mapper.compile_sql(self.SQL, self.PARAMS, "qmark")
        assert sql == "UPDATE Users SET Name = ? WHERE Id = ?"
        assert args == ["ada", 3]

    def test_numeric(self) -> None:
        sql, args = mapper.compile_sql(self.SQL, self.PARAMS, "numeric")
        assert sql == "UPDATE Users SET Name = :1 WHERE Id = :2"
        assert args == ["ada", 3]

    def test_named(self) -> None:
        sql, args = mapper.compile_sql(self.SQL, self.PARAMS, "named")
        assert sql == "UPDATE Users SET Name = :Name WHERE Id = :Id"
        assert args == {"Name": "ada", "Id": 3}

    def test_format(self) -> None:
        sql, args = mapper.compile_sql(self.SQL, self.PARAMS, "format")
        assert sql == "UPDATE Users SET Name = %s WHERE Id = %s"
        assert args == ["ada", 3]

    def test_pyformat_escapes_literal_percent(self) -> None:
        """Test that % outside placeholders survives driver interpolation."""
        sql, args = mapper.compile_sql(
            "SELECT * FROM Users WHERE Name LIKE 'a%' AND Id = @Id", {"Id": 1}, "pyformat"
        )
        assert sql == "SELECT * FROM Users WHERE Name LIKE 'a%%' AND Id = %(Id)s"
        assert args == {"Id": 1}

    def test_no_placeholders_passes_sql_through(self) -> None:
        """Test that statements without placeholders are untouched."""
        sql, args = mapper.compile_sql("SELECT 'a%'", None, "pyformat")
        assert sql == "SELECT 'a%'"
        assert args is None

    def test_literals_and_server_variables_are_skipped(self) -> None:
        """Test that @ inside quotes, brackets or @@ is not a placeholder."""
        sql, args = mapper.compile_sql(
            "SELECT [a@b], 'x@y.com', @@IDENTITY FROM T WHERE Id = @Id", {"Id": 1}, "qmark"
        )
        assert sql == "SELECT [a@b], 'x@y.com', @@IDENTITY FROM T WHERE Id = ?"
        assert args == [1]

    def test_repeated_placeholder(self) -> None:
        sql, args = mapper.compile_sql("SELECT @a, @a", {"a": 5}, "qmark")
        assert sql == "SELECT ?, ?"
        assert args == [5, 5]

    def test_missing_parameter(self) -> None:
        with pytest.raises(ParameterError, match="@Email"):
            mapper.compile_sql("SELECT @Email", {}, "qmark")

    def test_parameters_bag_and_record(self) -> None:
        bag = Parameters(Author(Id=1, Name="ada"))
        assert mapper.compile_sql("SELECT @Name", bag, "qmark") == ("SELECT ?", ["ada"])
        assert mapper.compile_sql("SELECT @Name", Author(2, "bo"), "qmark") == ("SELECT ?", ["bo"])

    def test_unsupported_paramstyle(self) -> None:
        with pytest.raises(ValueError, match="Unsupported paramstyle"):
            mapper.compile_sql("SELECT 1", None, "dollar")


@pytest.mark.unit
class TestRowFactory:
    """Tests for mapping result rows onto types."""

    COLUMNS = ["Id", "Name", "Extra"]
    ROW = (1, "ada", "x")

    def test_dict_rows(self) -> None:
        build = mapper.row_factory(None, self.COLUMNS)
        assert build(self.ROW) == {"Id": 1, "Name": "ada", "Extra": "x"}

    def test_dataclass_ignores_unknown_columns(self) -> None:
        build = mapper.row_factory(Author, self.COLUMNS)
        assert build(self.ROW) == Author(Id=1, Name="ada")

    def test_namedtuple(self) -> None:
        build = mapper.row_factory(Row, self.COLUMNS)
        assert build(self.ROW) == Row(1, "ada")

    def test_plain_class_gets_attributes(self) -> None:
        obj = mapper.row_factory(Bare, self.COLUMNS)(self.ROW)
        assert isinstance(obj, Bare)
        assert (obj.Id, obj.Name, obj.Extra) == (1, "ada", "x")

    def test_scalars(self) -> None:
        assert mapper.row_factory(int, ["n"])((Decimal("7"),)) == 7
        assert mapper.row_factory(int, ["n"])((None,)) is None
        assert mapper.row_factory(Decimal, ["n"])((1.5,)) == Decimal("1.5")
        assert mapper.row_factory(str, ["n"])(("x",)) == "x"


@pytest.mark.unit
class TestExecuteAndQuery:
    """Tests for execute/query against a recording connection."""

    def test_execute_commits_without_transaction(self) -> None:
        conn = RecordingConnection([FakeResult(rowcount=2)])
        assert mapper.execute(conn, "DELETE FROM T WHERE Id = @id", {"id": 1}) == 2
        assert conn.statements == [("DELETE FROM T WHERE Id = :id", {"id": 1})]
        assert conn.commits == 1
        assert conn.cursors[0].closed

    def test_execute_in_transaction_defers_commit(self) -> None:
        conn = RecordingConnection([FakeResult(rowcount=1)])
        mapper.execute(conn, "DELETE FROM T", transaction=object())
        assert conn.commits == 0

    def test_query_buffered_and_streaming(self) -> None:
        result = FakeResult(["Id", "Name"], [(1, "ada"), (2, "bo")])
        conn = RecordingConnection([result, FakeResult(["Id", "Name"], [(3, "cy")])])

        assert mapper.query(conn, "SELECT 1", cls=Author) == [Author(1, "ada"), Author(2, "bo")]

        rows = mapper.query(conn, "SELECT 2", cls=Author, buffered=False)
        assert not isinstance(rows, list)
        assert list(rows) == [Author(3, "cy")]
        assert conn.cursors[1].closed

    def test_streaming_query_waits_for_first_row(self) -> None:
        conn = RecordingConnection([FakeResult(["n"], [(1,)])])

        rows = mapper.query(conn, "SELECT @n", {"n": 1}, cls=int, buffered=False)
        assert conn.statements == []
        assert conn.cursors == []

        assert next(rows) == 1
        assert conn.statements == [("SELECT :n", {"n": 1})]

    def test_execute_scalar(self) -> None:
        """Test that the first value is returned and the work committed."""
        conn = RecordingConnection([FakeResult(["id"], [(7,), (8,)])])

        assert mapper.execute_scalar(conn, "INSERT ... SELECT 7", cls=int) == 7
        assert conn.commits == 1
        assert conn.cursors[0].closed

    def test_execute_scalar_in_transaction(self) -> None:
        conn = RecordingConnection([FakeResult(["id"], [])])

        assert mapper.execute_scalar(conn, "INSERT ...", transaction=object()) is None
        assert conn.commits == 0

    def test_timeout_applied_when_driver_supports_it(self) -> None:
        class TimeoutConnection(RecordingConnection):
            timeout = 0

        conn = TimeoutConnection([FakeResult(["n"], [(1,)])])
        mapper.query(conn, "SELECT 1", cls=int, timeout=15)
        assert conn.timeout == 15

    def test_paramstyle_comes_from_driver_module(self, db_conn: sqlite3.Connection) -> None:
        assert mapper._paramstyle(db_conn) == "qmark"
        assert mapper._paramstyle(RecordingConnection()) == "named"


@pytest.mark.integration
class TestSqliteExecution:
    """Tests for the helpers against a real SQLite connection."""

    def test_round_trip(self, db_conn: sqlite3.Connection) -> None:
        db_conn.execute("CREATE TABLE T (Id INTEGER PRIMARY KEY, Name TEXT)")
        assert mapper.execute(db_conn, "INSERT INTO T (Name) VALUES (@Name)", {"Name": "a@b"}) == 1
        assert mapper.query(db_conn, "SELECT * FROM T", cls=Author) == [Author(1, "a@b")]

    def test_driver_errors_propagate_unchanged(self, db_conn: sqlite3.Connection) -> None:
        with pytest.raises(sqlite3.OperationalError):
            mapper.query(db_conn, "SELECT * FROM missing_table")


@pytest.mark.unit
class TestQueryMap:
    """Tests for splitting joined rows across types."""

    def test_split_on_id_with_null_join(self) -> None:
        conn = RecordingConnection(
            [
                FakeResult(
                    ["Id", "Title", "Id", "Name"], [(1, "t1", 7, "ada"), (2, "t2", None, None)]
                )
            ]
        )

        pairs = mapper.query_map(conn, "SELECT ...", [Post, Author], lambda p, a: (p, a))

        assert pairs == [
            (Post(1, "t1"), Author(7, "ada")),
            (Post(2, "t2"), None),
        ]

    def test_custom_split_columns(self) -> None:
        conn = RecordingConnection(
            [FakeResult(["Id", "Title", "AuthorId", "Name"], [(1, "t", 7, "ada")])]
        )

        rows = mapper.query_map(
            conn, "SELECT ...", [None, None], lambda p, a: (p, a), split_on="authorid"
        )

        assert rows == [({"Id": 1, "Title": "t"}, {"AuthorId": 7, "Name": "ada"})]

    def test_missing_split_column(self) -> None:
        conn = RecordingConnection([FakeResult(["Id", "Title"], [(1, "t")])])
        with pytest.raises(MultiMapError, match="'Id' not found"):
            mapper.query_map(conn, "SELECT ...", [Post, Author], lambda p, a: p)

    def test_needs_two_types(self) -> None:
        with pytest.raises(MultiMapError):
            mapper.query_map(RecordingConnection(), "SELECT 1", [Post], lambda p: p)


@pytest.mark.unit
class TestGridReader:
    """Tests for reading several result sets."""

    def test_reads_sets_in_order(self) -> None:
        conn = RecordingConnection(
            [[FakeResult(["Id", "Title"], [(1, "t")]), FakeResult(["n"], [(3,)])]]
        )

        with mapper.query_multiple(conn, "SELECT ...; SELECT ...") as grid:
            assert grid.read(Post) == [Post(1, "t")]
            assert grid.read_first(int) == 3
            assert grid.is_consumed
            with pytest.raises(GridReaderConsumedError):
                grid.read()

        assert conn.cursors[0].closed

    def test_single_set_driver(self, db_conn: sqlite3.Connection) -> None:
        """Test that drivers without nextset expose exactly one result set."""
        grid = mapper.query_multiple(db_conn, "SELECT 1 AS n")
        assert grid.read(int) == [1]
        with pytest.raises(GridReaderConsumedError):
            grid.read()
