"""Output formatting for CLI commands.

Every command prints through OutputFormatter so ``--json`` switches all of them
between rich tables/panels and machine-readable JSON on stdout.
"""

import json
from collections.abc import Iterable, Sequence
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from rowmap.core.types import ColumnInfo
from rowmap.exceptions import RowMapError

console = Console()


def _cell(value: Any) -> str:
    return "" if value is None else str(value)


class OutputFormatter:
    """Formats command output for the terminal or as JSON."""

    def __init__(self, json_mode: bool = False) -> None:
        self.json_mode = json_mode

    def _print_json(self, payload: Any) -> None:
        print(json.dumps(payload, default=str, indent=2))

    def _print_grid(
        self,
        title: str,
        headers: Sequence[str],
        rows: Iterable[Sequence[Any]],
        header_style: str = "bold magenta",
    ) -> None:
        grid = Table(title=title, show_header=True, header_style=header_style)
        for header in headers:
            grid.add_column(header)
        for row in rows:
            grid.add_row(*[_cell(value) for value in row])
        console.print(grid)

    def print_table(self, title: str, data: list[dict[str, Any]], columns: list[str]) -> None:
        """Print rows, one line per row and one column per name in ``columns``."""
        if self.json_mode:
            self._print_json(data)
            return
        self._print_grid(title, columns, ([row.get(col) for col in columns] for row in data))

    def print_columns(self, table_name: str, columns: list[ColumnInfo]) -> None:
        """Print the column descriptors of a table."""
        if self.json_mode:
            self._print_json([info.model_dump() for info in columns])
            return
        self._print_grid(
            table_name,
            ["Name", "Type", "Default", "Key"],
            (
                [info.name, info.type, info.default, "PK" if info.primary_key else ""]
                for info in columns
            ),
            header_style="bold cyan",
        )

    def print_record(self, title: str, record: dict[str, Any]) -> None:
        """Print one row as column/value pairs."""
        if self.json_mode:
            self._print_json(record)
            return
        self._print_grid(title, ["Column", "Value"], record.items())

    def print_success(self, message: str, details: dict[str, Any] | None = None) -> None:
        """Print a success line followed by its details."""
        if self.json_mode:
            self._print_json({"success": True, "message": message, **(details or {})})
            return
        console.print(f"✓ {message}", style="green")
        for key, value in (details or {}).items():
            console.print(f"  {key}: {value}", style="dim")

    def print_error(self, error: Exception) -> None:
        """Print an error, with the context of rowmap errors."""
        if self.json_mode:
            if isinstance(error, RowMapError):
                self._print_json(error.to_dict())
            else:
                self._print_json({"error": type(error).__name__, "message": str(error)})
            return

        body = str(error)
        if isinstance(error, RowMapError) and error.context:
            body += "\n\n" + "\n".join(f"{k}: {v}" for k, v in error.context.items())
        console.print(Panel(body, title="[red]Error[/red]", border_style="red"))
