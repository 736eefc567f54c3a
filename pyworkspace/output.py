"""Output formatting for the command line interface."""

import json
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table


class OutputFormatter:
    """Formats messages, tables and JSON for the terminal."""

    def __init__(
        self,
        json_output: bool = False,
        quiet: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize output formatter.

        Args:
            json_output: Emit machine readable JSON instead of text
            quiet: Suppress non-essential output
            console: Console to print to (defaults to stdout)
        """
        self.json_output = json_output
        self.quiet = quiet
        self.console = console or Console(highlight=False)
        self.err_console = Console(stderr=True, highlight=False)

    def print(self, message: str = "") -> None:
        """Print a plain message."""
        if not self.quiet:
            self.console.print(message, markup=False, soft_wrap=True)

    def info(self, message: str) -> None:
        """Print an informational message."""
        if not self.quiet and not self.json_output:
            self.console.print(message, markup=False, soft_wrap=True)

    def success(self, message: str) -> None:
        """Print a success message."""
        if not self.quiet and not self.json_output:
            self.console.print(f"[green]{escape(message)}[/green]", soft_wrap=True)

    def warning(self, message: str) -> None:
        """Print a warning to stderr."""
        self.err_console.print(f"[yellow]{escape(message)}[/yellow]", soft_wrap=True)

    def error(self, message: str) -> None:
        """Print an error to stderr."""
        self.err_console.print(f"[red]Error: {escape(message)}[/red]", soft_wrap=True)

    def output_json(self, data: Any) -> None:
        """Print data as JSON."""
        self.console.print(
            json.dumps(data, indent=2, default=str), markup=False, soft_wrap=True
        )

    def print_summary(self, title: str, items: list[tuple[str, str]]) -> None:
        """Print a two column summary table.

        Args:
            title: Table title
            items: (label, value) rows
        """
        if self.quiet:
            return
        table = Table(title=title, show_header=False)
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for label, value in items:
            table.add_row(label, value)
        self.console.print(table)
