"""rowmap - schema-driven row mapper.

Represents one relational table row as a dynamically typed Item: columns,
declared types and defaults come from the database schema at runtime, values
are coerced between storage and application form, and ``<name>Id`` columns
resolve lazily into related items.

Example:
    from rowmap import Database, Item

    db = Database("sqlite:///shop.db", declared_types={"orders": {"status": "enum('open','closed')"}})

    order = Item.from_array("orders", {"customerId": 7, "totalDollar": "$19.99"}, db)
    order_id = order.save()

    order = Item.from_id("orders", order_id, db)
    order["total"]        # "$19.99"
    order["statusList"]   # ["open", "closed"]
    order["customer"]     # related customers Item (empty if the row is missing)

    open_orders = Item.search("orders", {"status": "open"}, "id DESC", db)
"""

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
from rowmap.data.codec import ValueCodec, allowed_values, split_type
from rowmap.data.statements import StatementCache
from rowmap.exceptions import (
    ColumnNotFoundError,
    ConnectionError,
    LoadError,
    OutOfBoundsError,
    QueryError,
    RowMapError,
    SchemaError,
    TableNotFoundError,
)
from rowmap.schema.catalog import SchemaCatalog

__version__ = "0.1.0"

__all__ = [
    # Main classes
    "Item",
    "ItemList",
    "Database",
    "DatabaseConnection",
    "PreparedStatement",
    "get_default_database",
    "set_default_database",
    "column_setter",
    "item_class_for",
    # Components
    "SchemaCatalog",
    "ValueCodec",
    "StatementCache",
    "RelationResolver",
    "relation_column",
    "split_type",
    "allowed_values",
    # Types
    "ColumnInfo",
    "ColumnKind",
    # Exceptions
    "RowMapError",
    "ConnectionError",
    "QueryError",
    "SchemaError",
    "TableNotFoundError",
    "ColumnNotFoundError",
    "LoadError",
    "OutOfBoundsError",
]
