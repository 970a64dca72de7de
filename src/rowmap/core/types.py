"""Core types for rowmap.

Column descriptors are pydantic models so they serialize cleanly for the CLI
and for anything else that wants to describe a table.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class ColumnKind(StrEnum):
    """Declared column types with dedicated coercion rules."""

    BOOLEAN = "boolean"
    DOLLAR = "dollar"
    PHONE = "phone"
    SET = "set"
    ENUM = "enum"

    @classmethod
    def values(cls) -> list[str]:
        """Return all special-cased type names."""
        return [k.value for k in cls]

    @classmethod
    def listable(cls) -> tuple[str, ...]:
        """Types whose definition carries a list of allowed values."""
        return (cls.SET.value, cls.ENUM.value)


class ColumnInfo(BaseModel):
    """Descriptor for one table column (output of schema reflection)."""

    name: str = Field(..., description="Real column name as stored")
    type: str = Field(default="", description="Declared type, e.g. dollar or enum('a','b')")
    default: Any = Field(default=None, description="Declared default value")
    nullable: bool = Field(default=True, description="Whether the column accepts NULL")
    primary_key: bool = Field(default=False, description="Whether the column is part of the PK")
