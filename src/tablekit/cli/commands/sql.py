"""CLI commands for previewing generated CRUD SQL."""

from pathlib import Path
from typing import Annotated, Any

import typer

from ..base import BaseCLI
from ...database import CrudTemplate, get_dialect, load_dialect
from ...database.tables import (
    render_all,
    render_delete,
    render_first,
    render_get,
    render_insert,
    render_update,
)
from ...global_config import DEFAULT_DIALECT, ID_COLUMN

sql_app = typer.Typer(help="Generated SQL commands.")


class SqlCLI(BaseCLI):
    """CLI helpers for rendering CRUD statements."""

    def __init__(self) -> None:
        """Initialize SqlCLI with sql domain name."""
        super().__init__("sql")

    def render(
        self,
        *,
        table: str,
        columns: list[str],
        dialect: str,
        dialect_file: Path | None,
    ) -> dict[str, Any]:
        """Render every statement a Table would send for table and columns.

        Args:
            table: Table name to render against.
            columns: Column names, as a record would report them.
            dialect: Built-in dialect name (ignored if dialect_file is set).
            dialect_file: Optional YAML dialect definition.

        Returns:
            Standardized result dictionary, one item per statement.

        User Output:
            - Formatted result via BaseCLI.handle_cli_operation.
        """
        return self.handle_cli_operation(
            operation="sql render",
            op_callable=lambda: self._render_operation(
                table=table,
                columns=columns,
                dialect=dialect,
                dialect_file=dialect_file,
            ),
        )

    def _render_operation(
        self,
        *,
        table: str,
        columns: list[str],
        dialect: str,
        dialect_file: Path | None,
    ) -> dict[str, Any]:
        """Internal render operation that returns standardized result.

        Raises:
            UnknownDialectError: If dialect is not a built-in name.
            DialectConfigError: If dialect_file is malformed.
        """
        template: CrudTemplate = (
            load_dialect(dialect_file) if dialect_file else get_dialect(dialect)
        )
        inserted = [c for c in columns if c != ID_COLUMN]
        statements = {"insert": render_insert(template, table, inserted)}
        if template.insert_with_id:
            statements["insert+id"] = render_insert(template, table, inserted, with_id=True)
        statements |= {
            "id": template.select_last_inserted_id,
            "update": render_update(template, table, columns),
            "delete": render_delete(template, table),
            "get": render_get(template, table),
            "first": render_first(template, table),
            "all": render_all(template, table),
        }
        return {
            "success": True,
            "message": f"{template.name} statements for {table}",
            "items": [{"item": k, "detail": v} for k, v in statements.items()],
        }


cli = SqlCLI()


@sql_app.command("render")
def render_command(
    table: Annotated[str, typer.Argument(help="Table name")],
    columns: Annotated[
        str,
        typer.Option("--columns", "-c", help="Comma-separated column names"),
    ],
    dialect: Annotated[
        str,
        typer.Option("--dialect", "-d", help="Built-in dialect (sqlserver, mysql, sqlite)"),
    ] = DEFAULT_DIALECT,
    dialect_file: Annotated[
        Path | None,
        typer.Option("--dialect-file", help="YAML file defining a custom dialect"),
    ] = None,
) -> None:
    """Print the Insert/Update/Delete/Get/First/All SQL for a table.

    Exits with code 1 if the dialect is unknown or the dialect file is
    invalid.
    """
    names = [c.strip() for c in columns.split(",") if c.strip()]
    cli.render(table=table, columns=names, dialect=dialect, dialect_file=dialect_file)


app = sql_app
