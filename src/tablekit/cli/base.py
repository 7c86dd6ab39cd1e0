from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from contextlib import contextmanager
from typing import Any

import typer

from ..database import TablekitError

_LOGGING_CONFIGURED = False


def configure_logging(level: int = logging.INFO) -> None:
    """Configure CLI-wide logging once.

    The library modules only create loggers; this is the one place that
    installs a handler. Later calls are no-ops.

    Args:
        level: Logging level (defaults to INFO).

    Side Effects:
        - Calls logging.basicConfig on first use.
    """
    global _LOGGING_CONFIGURED
    if _LOGGING_CONFIGURED:
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    _LOGGING_CONFIGURED = True


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name)


@contextmanager
def handle_errors(
    operation: str,
    *,
    logger: logging.Logger | None = None,
) -> Generator[None, None, None]:
    """Turn a failed CLI operation into a red message and exit code 1.

    Library errors (TablekitError) are usage problems such as an unknown
    dialect or a malformed dialect file, so they are logged without a
    traceback. Anything else, typically a driver or filesystem error, is
    logged with one.

    Raises:
        typer.Exit: With code 1 on any exception other than typer.Exit.

    Logs:
        - WARNING: "{operation}: {exc}" for TablekitError.
        - ERROR: "Error during {operation}" with traceback otherwise.

    User Output:
        - "✗ {operation} failed: {exc}" in red.
    """
    logger = logger or get_logger(__name__)
    try:
        yield
    except typer.Exit:
        raise
    except TablekitError as exc:
        logger.warning("%s: %s", operation, exc)
        typer.secho(f"✗ {operation} failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(1) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Error during %s", operation)
        typer.secho(f"✗ {operation} failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(1) from exc


def format_result(result: Any, *, operation: str | None = None) -> str:
    """Render an operation result for the terminal.

    Dicts follow the ``{"success", "message", "items"}`` shape used by the
    command groups; lists become bullet lists; anything else is shown on
    one line after the operation label.
    """
    label = operation or "Result"

    if result is None or result is True:
        return f"✓ {label}"
    if result is False:
        return f"✗ {label}"
    if isinstance(result, dict):
        return _format_result_dict(result, label)
    if isinstance(result, list):
        if not result:
            return f"{label}: []"
        return "\n".join([f"{label}:", *(f"  • {r}" for r in result)])
    return f"{label}: {result}"


class BaseCLI:
    """Shared plumbing for a group of CLI commands."""

    def __init__(self, domain: str) -> None:
        self.domain = domain
        self.logger = get_logger(f"{__name__}.{domain}")

    def handle_cli_operation(
        self,
        *,
        operation: str,
        op_callable: Callable[[], Any],
        pre_message: str | None = None,
    ) -> Any:
        """Run op_callable under handle_errors and echo its formatted result.

        Args:
            operation: Label used in output and error messages.
            op_callable: Zero-argument callable doing the work.
            pre_message: Echoed before the work starts, if given.

        Returns:
            Whatever op_callable returned.
        """
        if pre_message:
            typer.echo(pre_message)

        with handle_errors(operation, logger=self.logger):
            result = op_callable()

        typer.echo(format_result(result, operation=operation))
        return result


def _format_result_dict(result: dict[str, Any], label: str) -> str:
    """Format ``{"success", "message", "items"}``; dict items print as ``item: detail``."""
    lines = [f"{'✓' if result.get('success', True) else '✗'} {label}"]

    if result.get("message"):
        lines.append(f"  ℹ {result['message']}")

    items = result.get("items") or []
    if items:
        lines.append("  Items:")
    for item in items:
        if not isinstance(item, dict):
            lines.append(f"    • {item}")
            continue
        detail = item.get("detail")
        name = item.get("item", "item")
        lines.append(f"    • {name}: {detail}" if detail else f"    • {name}")

    return "\n".join(lines)
