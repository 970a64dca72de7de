"""Core components for rowmap."""

from rowmap.core.connection import DatabaseConnection
from rowmap.core.database import (
    Database,
    PreparedStatement,
    get_default_database,
    set_default_database,
)
from rowmap.core.item import Item, column_setter, item_class_for
from rowmap.core.item_list import ItemList
from rowmap.core.relations import RelationResolver, relation_column
from rowmap.core.types import ColumnInfo, ColumnKind

__all__ = [
    "DatabaseConnection",
    "Database",
    "PreparedStatement",
    "get_default_database",
    "set_default_database",
    "Item",
    "ItemList",
    "column_setter",
    "item_class_for",
    "RelationResolver",
    "relation_column",
    "ColumnInfo",
    "ColumnKind",
]
