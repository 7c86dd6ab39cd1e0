"""CLI commands for inspecting SQLite databases."""

from pathlib import Path
from typing import Annotated, Any

import typer

from ..base import BaseCLI
from ...database import SQLITE, Database, get_connection, resolve_table_name

db_app = typer.Typer(help="SQLite inspection commands.")


class DatabaseCLI(BaseCLI):
    """CLI helpers for probing a SQLite database."""

    def __init__(self) -> None:
        """Initialize DatabaseCLI with db domain name."""
        super().__init__("db")

    def list_tables(self, *, db_path: Path) -> dict[str, Any]:
        """List user tables using CLI operation handler.

        Args:
            db_path: Path to SQLite database.

        Returns:
            Standardized result dictionary with one item per table.
        """
        return self.handle_cli_operation(
            operation="db tables",
            op_callable=lambda: self._tables_operation(db_path=db_path),
        )

    def resolve(self, *, db_path: Path, candidate: str, entity: str) -> dict[str, Any]:
        """Show the table name a Table slot would bind to.

        Args:
            db_path: Path to SQLite database.
            candidate: Slot name, used if a table with that name exists.
            entity: Entity class name, used as the fallback.

        Returns:
            Standardized result dictionary with the resolved name.
        """
        return self.handle_cli_operation(
            operation="db resolve",
            op_callable=lambda: self._resolve_operation(
                db_path=db_path, candidate=candidate, entity=entity
            ),
        )

    def _tables_operation(self, *, db_path: Path) -> dict[str, Any]:
        """Internal tables operation that returns standardized result.

        Raises:
            FileNotFoundError: If the database file is missing.
            sqlite3.Error: If the catalog query fails.
        """
        with Database.init(get_connection(db_path), dialect=SQLITE) as db:
            names = db.query(
                "SELECT name FROM sqlite_master "
                "WHERE type = 'table' AND name NOT LIKE 'sqlite_%' ORDER BY name",
                cls=str,
            )
        return {
            "success": True,
            "message": f"{len(names)} table(s) in {db_path}",
            "items": list(names),
        }

    def _resolve_operation(self, *, db_path: Path, candidate: str, entity: str) -> dict[str, Any]:
        """Internal resolve operation that returns standardized result.

        Uses a throwaway entity class so the process-wide cache never
        answers for a previous run.

        Raises:
            FileNotFoundError: If the database file is missing.
            sqlite3.Error: If the catalog query fails.
        """
        entity_type = type(entity, (), {})
        with Database.init(get_connection(db_path), dialect=SQLITE) as db:
            name = resolve_table_name(db, candidate, entity_type)
        source = "candidate" if name == candidate else "entity name"
        return {"success": True, "message": f"{candidate} -> {name} ({source})"}


cli = DatabaseCLI()

DbPathOption = Annotated[
    Path,
    typer.Option("--db-path", help="Path to SQLite database file"),
]


@db_app.command("tables")
def tables_command(db_path: DbPathOption) -> None:
    """List the tables of a SQLite database.

    Exits with code 1 if the file is missing or cannot be read.
    """
    cli.list_tables(db_path=db_path)


@db_app.command("resolve")
def resolve_command(
    candidate: Annotated[str, typer.Argument(help="Slot (candidate table) name")],
    entity: Annotated[str, typer.Argument(help="Entity class name used as fallback")],
    db_path: DbPathOption,
) -> None:
    """Show which table name a Table slot would resolve to.

    The candidate is used when a table with that exact name exists;
    otherwise the entity name is.
    """
    cli.resolve(db_path=db_path, candidate=candidate, entity=entity)


app = db_app
