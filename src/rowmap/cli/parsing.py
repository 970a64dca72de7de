"""Input parsing utilities for CLI commands."""

import json
from typing import Any


def parse_value(raw: str) -> Any:
    """Parse a command-line value as JSON, falling back to the raw string.

    Examples:
        "7" -> 7, "null" -> None, '["a", "b"]' -> ["a", "b"], "open" -> "open"
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def parse_criteria(specs: list[str] | None) -> dict[str, Any]:
    """Parse ``column=value`` search criteria.

    Args:
        specs: Criteria strings, e.g. ["status=open", "customerId=7"]

    Returns:
        Mapping of column name to parsed value

    Raises:
        ValueError: If a spec has no '='
    """
    criteria: dict[str, Any] = {}
    for spec in specs or []:
        if "=" not in spec:
            raise ValueError(f"Invalid criterion: '{spec}'. Expected format: column=value")
        name, value = spec.split("=", 1)
        criteria[name.strip()] = parse_value(value)
    return criteria


def parse_declared_types(specs: list[str] | None) -> dict[str, dict[str, str]]:
    """Parse ``table.column=declared type`` overrides.

    Example:
        "orders.status=enum('open','closed')" -> {"orders": {"status": "enum('open','closed')"}}

    Raises:
        ValueError: If a spec is malformed
    """
    declared: dict[str, dict[str, str]] = {}
    for spec in specs or []:
        target, sep, declared_type = spec.partition("=")
        table, dot, column = target.partition(".")
        if not sep or not dot or not table or not column or not declared_type:
            raise ValueError(
                f"Invalid type override: '{spec}'. Expected format: table.column=type"
            )
        declared.setdefault(table.strip(), {})[column.strip()] = declared_type.strip()
    return declared
