"""Custom exceptions for rowmap.

Errors carry a context dict so callers (and the CLI's JSON mode) can report
what went wrong without parsing messages:
- Schema-shape problems (unknown table or column) are raised immediately
- Load failures name the table, identity column and requested id
- Expected persistence failures are NOT exceptions, they are falsy return values
"""

from __future__ import annotations

from typing import Any


class RowMapError(Exception):
    """Base exception for all rowmap errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        """Return error as JSON-serializable dict."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConnectionError(RowMapError):
    """Failed to connect to the database."""

    pass


class QueryError(RowMapError):
    """Query execution failed."""

    pass


class SchemaError(RowMapError):
    """A referenced table or column does not exist."""

    pass


class TableNotFoundError(SchemaError):
    """Table does not exist in the database."""

    def __init__(self, table: str) -> None:
        message = f"Table '{table}' does not exist."
        super().__init__(message, {"table": table})
        self.table = table


class ColumnNotFoundError(SchemaError):
    """Column does not exist on table."""

    def __init__(self, column: str, table: str, available_columns: list[str] | None = None) -> None:
        available = available_columns or []
        if available:
            message = (
                f"Column '{column}' not found on '{table}'. "
                f"Available columns: {', '.join(available)}"
            )
        else:
            message = f"Column '{column}' not found on '{table}'."

        super().__init__(
            message,
            {"column": column, "table": table, "available_columns": available},
        )
        self.column = column
        self.table = table
        self.available_columns = available


class LoadError(RowMapError):
    """Loading a row by identity failed."""

    def __init__(
        self, table: str, id_column: str, item_id: Any, reason: str | None = None
    ) -> None:
        if reason:
            message = f"Failed to load data from {table}: {reason}"
        else:
            message = f"The table {table} does not contain the {id_column} {item_id}!"

        super().__init__(
            message,
            {"table": table, "id_column": id_column, "item_id": item_id, "reason": reason},
        )
        self.table = table
        self.id_column = id_column
        self.item_id = item_id
        self.reason = reason


class OutOfBoundsError(RowMapError, LookupError):
    """Seek to a key that the item does not hold."""

    def __init__(self, key: Any, table: str) -> None:
        message = f"Invalid seek position ({key}) on '{table}'."
        super().__init__(message, {"key": key, "table": table})
        self.key = key
        self.table = table
