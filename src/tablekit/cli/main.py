from __future__ import annotations

import typer

from .. import global_config as g
from ..database import DIALECTS
from .base import configure_logging, format_result
from .commands.db import app as db_app
from .commands.sql import app as sql_app

configure_logging()
app = typer.Typer(
    help=f"{g.PROJECT_NAME} CLI",
    context_settings={"help_option_names": ["-h", "--help"]},
)

app.add_typer(db_app, name="db")
app.add_typer(sql_app, name="sql")


@app.command("dialects")
def dialects() -> None:
    """List the built-in SQL dialects.

    Shows each dialect's select-first and last-inserted-id templates, the
    two places dialects differ most.
    """
    items = [
        {
            "item": name,
            "detail": f"{d.select_first} | {d.select_last_inserted_id}",
        }
        for name, d in sorted(DIALECTS.items())
    ]
    typer.echo(format_result({"success": True, "items": items}, operation="dialects"))


def main() -> None:
    """Main entry point for package CLI.

    Invokes the Typer application, which handles command parsing and
    execution.

    Side Effects:
        - Processes CLI arguments and executes commands.
        - May exit with non-zero code on errors.
    """
    app()


if __name__ == "__main__":
    main()
