"""Terminal diagnostics for hook output."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

console = Console(stderr=True, highlight=False, soft_wrap=True)
stdout = Console(highlight=False, soft_wrap=True)


def error(message: str) -> None:
    console.print(f"[bold red]snag:[/bold red] {escape(message)}")


def warn(message: str) -> None:
    console.print(f"[yellow]snag:[/yellow] {escape(message)}")


def info(message: str) -> None:
    console.print(f"[green]snag:[/green] {escape(message)}")


def hint(message: str) -> None:
    console.print(f"[dim]  {escape(message)}[/dim]")


def bell() -> None:
    """Ring the terminal bell, only when stderr is a terminal."""
    if console.is_terminal:
        console.bell()


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
    )
