"""Terminal output helpers for the CLI, backed by rich."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.table import Table

_out = Console(highlight=False, emoji=False)
_err = Console(stderr=True, highlight=False, emoji=False)


def header(text: str) -> None:
    _out.print(f"[bold cyan]{text}[/bold cyan]")
    _out.print("[cyan]" + "=" * len(text) + "[/cyan]")


def subheader(text: str) -> None:
    _out.print(f"[bold]{text}[/bold]")


def key_value(key: str, value: Any, indent: int = 0) -> None:
    pad = " " * indent
    _out.print(f"{pad}[dim]{key}:[/dim] {escape(str(value))}")


def table(title: str, columns: list[str], rows: list[list[Any]]) -> None:
    t = Table(title=title, show_lines=False)
    for col in columns:
        t.add_column(col)
    for row in rows:
        t.add_row(*(escape(str(v)) for v in row))
    _out.print(t)


def raw(text: str) -> None:
    """Write machine-readable text to stdout exactly as given.

    Bypasses rich rendering, which would expand tabs and substitute
    emoji codes found in entity source.
    """
    out = _out.file
    out.write(text + "\n")
    out.flush()


def success(text: str) -> None:
    _out.print(f"[green]{escape(text)}[/green]")


def info(text: str) -> None:
    _out.print(escape(text))


def dim(text: str) -> None:
    _out.print(f"[dim]{escape(text)}[/dim]")


def warning(text: str) -> None:
    _err.print(f"[yellow]warning:[/yellow] {escape(text)}")


def error(text: str) -> None:
    _err.print(f"[red]error:[/red] {escape(text)}")
