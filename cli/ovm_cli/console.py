from __future__ import annotations

from rich.console import Console
from rich.markup import escape
from rich.table import Table

console = Console()
err_console = Console(stderr=True)


def info(msg: str) -> None:
    console.print(f"[bold cyan]•[/] {escape(msg)}")


def ok(msg: str) -> None:
    console.print(f"[bold green]OK[/] {escape(msg)}")


def warn(msg: str) -> None:
    err_console.print(f"[bold yellow]WARN[/] {escape(msg)}")


def err(msg: str) -> None:
    err_console.print(f"[bold red]ERR[/] {escape(msg)}")


def print_fields(title: str, rows: list[tuple[str, object]]) -> None:
    table = Table(title=title, show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    for key, value in rows:
        table.add_row(key, escape(str(value)))
    console.print(table)
