"""Output formatting utilities for the CLI."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table
from rich.theme import Theme

from dbadmin.cli.common.tui_style import QUESTIONARY_STYLE_CONFIRM

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)
err_console = Console(theme=_THEME, stderr=True)


def configure_logging(verbose: bool = False) -> None:
    """Route engine logging through Rich on stderr."""
    handler = RichHandler(console=err_console, show_path=False, markup=False)
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )


def _cell(value: Any) -> str:
    if value is None:
        return "[meta]NULL[/]"
    if isinstance(value, (bytes, bytearray, memoryview)):
        return f"[meta]<{len(bytes(value))} bytes>[/]"
    return escape(str(value))


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer", "auto_enter"):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def _q(self, message: str) -> str:
        """Prefix Questionary prompts to be DBADMIN consistent."""
        return f"[DBADMIN] {message}"

    def info(self, msg: str) -> None:
        """Print an info message."""
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        """Print a success message."""
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        """Print a warning message."""
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        """Print an error message."""
        console.print(f"[err]✗[/] {escape(msg)}")

    def header(self, title: str) -> None:
        """Print a header message."""
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {_cell(v)}")

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """
        Ask the user for confirmation using a standardized Questionary prompt.

        Args:
            message: Confirmation question shown to the user.
            default: Default answer if the user just presses enter.

        Returns:
            True if the user confirms, False otherwise.
        """
        # Questionary renders `instruction=...` inline next to the echoed answer
        console.print("[meta]Use y/n then Enter[/]")

        prompt = self._q_try(
            questionary.confirm,
            self._q(message),
            default=default,
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
            auto_enter=False,
            pointer="❯",
        )
        return bool(prompt.ask())

    def result_table(self, result: Any, title: str = "Result") -> None:
        """
        Render a query result.

        Expects an object with `.columns` and `.rows`
        (like dbadmin.core.query.QueryResult).
        """
        t = Table(title=title, show_lines=False)
        for i, column in enumerate(result.columns):
            t.add_column(escape(column), style="ok" if i == 0 else None)

        for row in result.rows:
            t.add_row(*(_cell(v) for v in row))

        console.print(t)

    def steps_table(self, steps: Iterable[Any], title: str = "Statements") -> None:
        """Expects objects with `.sql` and `.parameters` (like DropStep)."""
        t = Table(title=title, show_lines=True)
        t.add_column("#", style="meta", no_wrap=True)
        t.add_column("Statement")
        t.add_column("Parameters", style="meta")

        for i, step in enumerate(steps, start=1):
            params = ", ".join(f"@{k}={v!r}" for k, v in (step.parameters or {}).items())
            t.add_row(str(i), _cell(step.sql), _cell(params))

        console.print(t)

    def cache_entries_table(self, entries: Iterable[Any], title: str = "Driver cache") -> None:
        """Expects objects with `.package_id`, `.version`, `.downloaded`, `.extracted`, `.path`."""
        t = Table(title=title, show_lines=False)
        t.add_column("Package", style="ok", no_wrap=True)
        t.add_column("Version")
        t.add_column("Downloaded")
        t.add_column("Extracted")
        t.add_column("Path", style="meta")

        for e in entries:
            t.add_row(
                e.package_id,
                e.version,
                "yes" if e.downloaded else "no",
                "yes" if e.extracted else "no",
                str(e.path),
            )

        console.print(t)


out = Out()
