from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from pathlib import Path

import pytest

from tablekit.database import binder, params, tables


@pytest.fixture(autouse=True)
def clear_process_caches() -> Iterator[None]:
    """
    The table name, parameter name and table constructor caches are
    process-wide; start and finish every test with them empty.
    """
    binder.clear_cache()
    params.clear_cache()
    tables.clear_cache()
    yield
    binder.clear_cache()
    params.clear_cache()
    tables.clear_cache()


@pytest.fixture
def project_root(tmp_path: Path) -> Path:
    """
    A dedicated temp root directory for each test.
    All filesystem writes in tests should be under this root (or tmp_path directly).
    """
    root = tmp_path / "proj"
    (root / "data" / "out").mkdir(parents=True)
    return root


@pytest.fixture(autouse=True)
def chdir_to_project_root(project_root: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """
    Automatically change working directory to project_root for all tests.
    This ensures relative-path operations go into the temp directory by default.
    """
    monkeypatch.chdir(project_root)


@pytest.fixture
def sqlite_path(project_root: Path) -> Path:
    """
    On-disk SQLite DB under the temp project root (more realistic than :memory:).
    """
    return project_root / "data" / "out" / "test.sqlite"


@pytest.fixture
def db_conn(sqlite_path: Path, project_root: Path) -> Iterator[sqlite3.Connection]:
    """
    A SQLite connection that is always closed after each test.

    Safety enforcement:
    - Path assertion: DB must be under project_root (prevents touching real DBs)
    - Safety pragmas:
      - foreign_keys: catch relational bugs early
      - journal_mode=WAL: closer to real-world usage
      - busy_timeout: helps avoid flaky "database is locked" errors
    """
    try:
        sqlite_path.resolve().relative_to(project_root.resolve())
    except ValueError:
        raise AssertionError(
            f"SQLite path {sqlite_path} is not under project_root {project_root}. "
            "This prevents accidental writes to real databases."
        )

    conn = sqlite3.connect(sqlite_path)
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.execute("PRAGMA journal_mode = WAL;")
        conn.execute("PRAGMA busy_timeout = 2000;")
        yield conn
    finally:
        conn.close()


@pytest.fixture
def app_schema(db_conn: sqlite3.Connection) -> sqlite3.Connection:
    """
    Schema used by the CRUD tests: a `Users` table and a `Post` table.

    There is deliberately no `Posts` table, so a `Posts` slot falls back
    to the entity name.
    """
    db_conn.executescript(
        """
        CREATE TABLE Users (
            Id INTEGER PRIMARY KEY AUTOINCREMENT,
            Name TEXT NOT NULL,
            Email TEXT
        );
        CREATE TABLE Post (
            Id INTEGER PRIMARY KEY AUTOINCREMENT,
            Title TEXT NOT NULL,
            UserId INTEGER REFERENCES Users (Id)
        );
        """
    )
    db_conn.commit()
    return db_conn
