"""Tests for dialect templates and YAML dialect loading."""

from __future__ import annotations

from pathlib import Path

import pytest

from tablekit.database import (
    MYSQL,
    SQLITE,
    SQLSERVER,
    DialectConfigError,
    UnknownDialectError,
    get_dialect,
    load_dialect,
)

FULL_DIALECT = """\
insert: "INSERT INTO {0} ({1}) VALUES ({2})"
update: "UPDATE {0} SET {1} WHERE {2}"
delete: "DELETE FROM {0} WHERE {1}"
select_all: "SELECT * FROM {0} WHERE {1}"
select_first: "SELECT * FROM {0} FETCH FIRST 1 ROWS ONLY"
select_last_inserted_id: "SELECT lastval()"
"""


@pytest.mark.unit
class TestBuiltinDialects:
    """Tests for the shipped dialect templates."""

    def test_generated_id_queries_differ(self) -> None:
        """Test that each dialect fetches generated keys its own way."""
        assert "SCOPE_IDENTITY()" in SQLSERVER.select_last_inserted_id
        assert MYSQL.select_last_inserted_id == "SELECT LAST_INSERT_ID()"
        assert SQLITE.select_last_inserted_id == "SELECT last_insert_rowid()"

    def test_select_first_templates(self) -> None:
        """Test top/limit semantics for the select-first template."""
        assert SQLSERVER.select_first.format("Users") == "SELECT TOP 1 * FROM Users"
        assert MYSQL.select_first.format("Users") == "SELECT * FROM Users LIMIT 1"

    def test_sql_server_reads_identity_in_insert_batch(self) -> None:
        assert SQLSERVER.insert_with_id.format("Users", "Name", "@Name") == (
            "SET NOCOUNT ON INSERT Users (Name) VALUES (@Name) "
            "SELECT CAST(SCOPE_IDENTITY() AS INT)"
        )
        assert MYSQL.insert_with_id is None
        assert SQLITE.insert_with_id is None

    def test_templates_are_immutable(self) -> None:
        """Test that dialects cannot be modified in place."""
        with pytest.raises(AttributeError):
            SQLSERVER.insert = "nope"  # type: ignore[misc]

    def test_get_dialect_is_case_insensitive(self) -> None:
        """Test looking up built-in dialects by name."""
        assert get_dialect("MySQL") is MYSQL
        assert get_dialect(" sqlite ") is SQLITE

    def test_get_dialect_unknown(self) -> None:
        """Test that unknown names raise a KeyError subclass."""
        with pytest.raises(UnknownDialectError, match="known: mysql, sqlite, sqlserver"):
            get_dialect("oracle")
        with pytest.raises(KeyError):
            get_dialect("oracle")


@pytest.mark.unit
class TestLoadDialect:
    """Tests for load_dialect."""

    def test_load_full_dialect(self, tmp_path: Path) -> None:
        """Test that a YAML file with all required keys loads, named after the file."""
        path = tmp_path / "postgres.yaml"
        path.write_text(FULL_DIALECT)

        dialect = load_dialect(path)

        assert dialect.name == "postgres"
        assert dialect.select_last_inserted_id == "SELECT lastval()"
        assert dialect.table_exists == SQLSERVER.table_exists
        assert dialect.begin is None
        assert dialect.insert_with_id is None

    def test_explicit_name_and_optional_keys(self, tmp_path: Path) -> None:
        """Test overriding the name and optional templates."""
        path = tmp_path / "custom.yaml"
        path.write_text(FULL_DIALECT + 'name: pg\nbegin: "BEGIN"\n')

        dialect = load_dialect(path)

        assert dialect.name == "pg"
        assert dialect.begin == "BEGIN"

    def test_missing_key(self, tmp_path: Path) -> None:
        """Test that a missing required template is rejected."""
        path = tmp_path / "broken.yaml"
        path.write_text("insert: 'INSERT INTO {0} ({1}) VALUES ({2})'\n")

        with pytest.raises(DialectConfigError, match="missing: update"):
            load_dialect(path)

    def test_unknown_key(self, tmp_path: Path) -> None:
        """Test that typos in template names are rejected."""
        path = tmp_path / "typo.yaml"
        path.write_text(FULL_DIALECT + "select_frist: 'SELECT 1'\n")

        with pytest.raises(DialectConfigError, match="select_frist"):
            load_dialect(path)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        """Test that a YAML list is rejected."""
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")

        with pytest.raises(DialectConfigError, match="must contain a mapping"):
            load_dialect(path)

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file surfaces as FileNotFoundError."""
        with pytest.raises(FileNotFoundError):
            load_dialect(tmp_path / "absent.yaml")
