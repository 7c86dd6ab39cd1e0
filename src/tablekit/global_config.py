"""Global, project-wide configuration constants.

This module intentionally contains **no business logic**: only simple,
shared names and cross-cutting defaults that many modules can import.

Dialect-specific SQL lives in `tablekit.database.dialects`; custom
dialects are supplied as YAML files rather than new constants here.
"""

# Core Names
PROJECT_NAME = "tablekit"

# Every table is assumed to carry a single identity column with this name.
ID_COLUMN = "Id"

# Seconds; applied to every statement a Database issues.
DEFAULT_COMMAND_TIMEOUT = 30

# Dialect used when neither the Database subclass nor init() picks one.
DEFAULT_DIALECT = "sqlserver"

# Debug logs show at most this many characters of each statement.
SQL_PREVIEW_MAX_CHARS = 80
