"""
tablekit core package.

A convention-based micro data-access layer over DB-API connections:
- `tablekit.database`: the Database container, Table accessors, dialect
  templates and the execution helpers they share
- A Typer-based CLI (`tablekit.cli`) for previewing generated SQL and
  probing SQLite schemas

Configuration:
- Shared, project-wide defaults live in `tablekit.global_config`.
"""

from .database import Database, Parameters, Table

__all__ = ["Database", "Parameters", "Table"]
