"""The Item: one table row with generic, schema-driven access.

An item knows nothing about its table up front. Column names, declared types
and defaults come from the schema catalog; values are coerced by the value
codec; ``<name>Id`` columns turn into lazily loaded related items.

Example:
    from rowmap import Database, Item, set_default_database

    set_default_database(Database("sqlite:///shop.db"))

    order = Item.from_array("orders", {"customerId": 7, "totalDollar": "$19.99"})
    order.save()
    order["total"]           # "$19.99"
    order["customer"]        # the customers row with id 7, as an Item

Tables can get their own Item subclass to declare relation aliases, extra
write-once columns and setter handlers:

    class Order(Item, table="orders"):
        relations = {"buyer": "customers"}
        no_update = ("number",)

        @column_setter("status")
        def _status_changed(self, value):
            ...
"""

from __future__ import annotations

import logging
import numbers
import re
from collections.abc import Callable, Iterator, Mapping
from typing import TYPE_CHECKING, Any, ClassVar

from rowmap.core.database import get_default_database
from rowmap.core.item_list import ItemList
from rowmap.core.relations import RelationResolver
from rowmap.data.codec import ValueCodec, split_type
from rowmap.data.statements import StatementCache
from rowmap.exceptions import ColumnNotFoundError, LoadError, OutOfBoundsError
from rowmap.schema.catalog import SchemaCatalog

if TYPE_CHECKING:
    from rowmap.core.database import Database
    from rowmap.core.types import ColumnInfo

logger = logging.getLogger(__name__)

SetterHandler = Callable[["Item", Any], Any]

_LIST_NAME = re.compile(r"^(.+)List$")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")

# table name (lowercased) -> registered Item subclass
_item_classes: dict[str, type[Item]] = {}


def column_setter(column: str) -> Callable[[SetterHandler], SetterHandler]:
    """Register a method as the setter handler for a column.

    The handler runs after the coerced value is stored and receives the raw
    input value.
    """

    def decorator(func: SetterHandler) -> SetterHandler:
        func.__column_setter__ = column  # type: ignore[attr-defined]
        return func

    return decorator


def item_class_for(table: str) -> type[Item] | None:
    """Return the Item subclass registered for a table, if any."""
    return _item_classes.get(table.lower())


def _to_int(value: Any) -> int:
    if isinstance(value, numbers.Real):
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return 0


class Item:
    """A row of a table, accessed generically by column name."""

    # Per-subclass configuration
    relations: ClassVar[Mapping[str, str]] = {}
    no_update: ClassVar[tuple[str, ...]] = ()
    identity: ClassVar[str] = ""

    # Names answered by a computation rather than a column
    accessors: ClassVar[Mapping[str, str]] = {
        "all": "get_all",
        "columns": "get_columns",
        "columnlist": "get_column_names",
        "idcolumn": "get_id_column",
        "table": "get_table",
    }

    _registered_table: ClassVar[str | None] = None
    _setters: ClassVar[dict[str, SetterHandler]] = {}

    def __init_subclass__(cls, table: str | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)

        setters = dict(cls._setters)
        for attr in cls.__dict__.values():
            column = getattr(attr, "__column_setter__", None)
            if column:
                setters[column.lower()] = attr
        cls._setters = setters

        if table is not None:
            cls._registered_table = table
            _item_classes[table.lower()] = cls

    def __init__(self, table: str | None = None, database: Database | None = None) -> None:
        """Create an empty item with every column at its declared default.

        Args:
            table: Backing table (ignored by subclasses registered for a table)
            database: Database to use instead of the process-wide default

        Raises:
            TableNotFoundError: If the table does not exist
        """
        self._database = database
        self._table = type(self)._registered_table or table
        if not self._table:
            raise ValueError("An item needs a table name")

        self._catalog = SchemaCatalog.for_database(self.database)
        self._statements = StatementCache.for_database(self.database)
        self._resolver = RelationResolver(self._catalog)
        self.codec = ValueCodec.for_database(self.database)

        columns = self._catalog.columns(self._table)
        if type(self).identity:
            self._id_column = self._catalog.has_column(self._table, type(self).identity)
        else:
            self._id_column = self._catalog.identity_column(self._table)
        self._no_update = {self._id_column, *self._real_columns(type(self).no_update)}
        self._data: dict[str, Any] = {}
        self._relation_cache: dict[str, Item] = {}
        self._reset(columns)

    def _real_columns(self, names: tuple[str, ...]) -> set[str]:
        return {real for real in (self._catalog.has_column(self._table, n) for n in names) if real}

    def _reset(self, columns: Mapping[str, ColumnInfo] | None = None) -> None:
        columns = columns if columns is not None else self._catalog.columns(self._table)
        self._data = {name: info.default for name, info in columns.items()}
        self._relation_cache = {}

    # === Factories ===

    @classmethod
    def factory(cls, table: str, database: Database | None = None) -> Item:
        """Create an empty item for a table, using its registered subclass if any."""
        item_cls = item_class_for(table)
        if item_cls is not None:
            return item_cls(database=database)
        return Item(table, database)

    @classmethod
    def from_id(cls, table: str, item_id: Any, database: Database | None = None) -> Item:
        """Create an item and load it by identity.

        Raises:
            LoadError: If no row has that identity
        """
        item = cls.factory(table, database)
        item.load(item_id)
        return item

    @classmethod
    def from_array(
        cls, table: str, data: Mapping[str, Any], database: Database | None = None
    ) -> Item:
        """Create an item filled from a mapping (not persisted)."""
        item = cls.factory(table, database)
        item.set_all(data)
        return item

    @classmethod
    def get_list(cls, table: str, statement: Any, database: Database | None = None) -> ItemList:
        """Run an already built query and wrap its rows as items of ``table``."""
        db = database if database is not None else get_default_database()
        return ItemList(table, db.query(statement), database)

    @classmethod
    def search(
        cls,
        table: str,
        criteria: Mapping[str, Any] | None = None,
        order: str | list[str] | None = None,
        database: Database | None = None,
    ) -> ItemList:
        """Find the items of ``table`` matching ``criteria``, in ``order``."""
        statement = cls.factory(table, database).make_search_query(criteria, order)
        return cls.get_list(table, statement, database)

    # === Metadata ===

    @property
    def database(self) -> Database:
        """The item's database (the process-wide default unless one was given)."""
        if self._database is not None:
            return self._database
        return get_default_database()

    @property
    def table(self) -> str:
        return self._table

    @property
    def id_column(self) -> str:
        return self._id_column

    @property
    def relation_cache(self) -> dict[str, Item]:
        """Related items resolved so far, keyed by lowercased relation name."""
        return self._relation_cache

    def get_table(self) -> str:
        return self._table

    def get_id_column(self) -> str:
        return self._id_column

    def get_columns(self) -> dict[str, ColumnInfo]:
        return dict(self._catalog.columns(self._table))

    def get_column_names(self) -> list[str]:
        return self._catalog.column_names(self._table)

    def get_column(self, name: str) -> ColumnInfo:
        return self._catalog.column(self._table, name)

    def has_column(self, name: str) -> str:
        """Return the real name of a column (case-insensitive), or ''."""
        return self._catalog.has_column(self._table, name)

    def get_all(self, formatted: bool = False) -> dict[str, Any]:
        """Return a copy of the row data.

        Args:
            formatted: Decode every value to its application form
        """
        if not formatted:
            return dict(self._data)
        return {name: self._decode(name) for name in self._data}

    # === Generic access ===

    def _decode(self, real_name: str) -> Any:
        type_name, extra = split_type(self._catalog.columns(self._table)[real_name].type)
        return self.codec.decode(type_name, extra, self._data[real_name])

    def _allowed_values(self, name: str) -> list[str] | None:
        match = _LIST_NAME.match(name)
        if not match:
            return None
        real_name = self._catalog.has_column(self._table, match.group(1))
        if not real_name:
            return None
        return self.codec.decode_allowed(self._catalog.columns(self._table)[real_name].type)

    def get(self, name: str) -> Any:
        """Return a value by name.

        In order: computed accessors (all, columns, columnlist, idcolumn, table),
        relations (``name`` + "Id" is a column), allowed values of a set/enum
        column (``<column>List``), decoded column values. Unknown names give None.
        """
        accessor = self.accessors.get(name.lower())
        if accessor:
            return getattr(self, accessor)()

        if self._resolver.relation_id_column(self._table, name):
            return self._resolver.resolve(self, name)

        allowed = self._allowed_values(name)
        if allowed is not None:
            return allowed

        real_name = self._catalog.resolve_column(self._table, name)
        if real_name:
            return self._decode(real_name)
        return None

    def set(self, name: str, value: Any) -> None:
        """Store a value, coerced to its column's storage form.

        Write-once columns (the identity and ``no_update``) are silently left
        alone once the item is created. A registered setter handler for the
        column runs afterwards with the raw value.

        Raises:
            ColumnNotFoundError: If ``name`` matches no column
        """
        real_name = self._catalog.resolve_column(self._table, name)
        if not real_name:
            raise ColumnNotFoundError(name, self._table, self.get_column_names())

        if real_name in self._no_update and self.is_created():
            return

        declared_type = self._catalog.columns(self._table)[real_name].type
        self._data[real_name] = self.codec.encode(declared_type, value)

        handler = self._setters.get(real_name.lower())
        if handler is not None:
            handler(self, value)

    def set_all(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Set every column named in ``data`` (case-insensitive).

        The identity column is applied last so setter handlers see the other
        columns first.

        Returns:
            The entries that matched no column, with lowercased keys
        """
        leftover = {str(key).lower(): value for key, value in data.items()}
        identity = None

        for key in list(leftover):
            real_name = self._catalog.has_column(self._table, key)
            if not real_name:
                continue

            value = leftover.pop(key)
            if real_name == self._id_column:
                identity = value
            else:
                self.set(real_name, value)

        if identity is not None:
            self.set(self._id_column, identity)

        return leftover

    def unset(self, name: str) -> None:
        """Reset a column to None."""
        real_name = self._catalog.resolve_column(self._table, name)
        if real_name:
            self._data[real_name] = None

    # === Persistence ===

    def is_created(self) -> bool:
        """Check whether the identity column holds a positive number."""
        value = self._data.get(self._id_column) if self._id_column else None
        if value is None or isinstance(value, bool):
            return False
        if isinstance(value, numbers.Real):
            return value > 0
        if isinstance(value, str):
            try:
                return float(value) > 0
            except ValueError:
                return False
        return False

    def create(self) -> Any:
        """Insert the item's row (without the identity column).

        Returns:
            The new identity, or False on failure
        """
        row = dict(self._data)
        row.pop(self._id_column, None)
        new_id = self.database.insert(self._table, row, id_column=self._id_column or None)

        if not new_id:
            return False

        if self._id_column:
            self._data[self._id_column] = new_id
        return new_id

    def update(self) -> bool:
        """Write the current row over the stored row with the same identity.

        Items that were never created (or whose table has no identity) fail
        with False.
        """
        if not self.is_created():
            return False
        return self.database.update(
            self._table,
            self._data[self._id_column],
            dict(self._data),
            id_column=self._id_column,
        )

    def save(self) -> Any:
        """Update the item if it is created, otherwise create it."""
        return self.update() if self.is_created() else self.create()

    def load(self, item_id: Any) -> None:
        """Replace the item's data with the stored row that has ``item_id``.

        Raises:
            LoadError: If no such row exists or the query fails
        """
        if not self._id_column:
            raise ColumnNotFoundError("id", self._table, self.get_column_names())

        item_id = _to_int(item_id)
        statement = self._statements.load_statement(self._table, self._id_column)

        with statement.lock:
            statement.bind_param("item_id", item_id)
            if not statement.execute():
                raise LoadError(self._table, self._id_column, item_id, statement.error_info()[2])
            row = statement.fetch()

        if row is None:
            raise LoadError(self._table, self._id_column, item_id)

        self._reset()
        self.set_all(row)

    def delete(self) -> bool:
        """Delete the stored row. Items that were never created succeed trivially."""
        if not self.is_created():
            return True
        return self.database.delete(
            self._table, self._data[self._id_column], id_column=self._id_column
        )

    def make_search_query(
        self,
        criteria: Mapping[str, Any] | None = None,
        order: str | list[str] | None = None,
    ) -> Any:
        """Build a search statement over this item's table (see Database.make_search_query)."""
        return self.database.make_search_query(self._table, criteria, order)

    # === Container protocol ===

    def __getitem__(self, name: str) -> Any:
        return self.get(name)

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __delitem__(self, name: str) -> None:
        self.unset(name)

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        if self._catalog.resolve_column(self._table, name):
            return True
        if name.lower() in self.accessors:
            return True
        if self._resolver.relation_id_column(self._table, name):
            return True
        match = _LIST_NAME.match(name)
        return bool(match) and match.group(1) in self

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._data))

    def keys(self) -> list[str]:
        return list(self._data)

    def values(self) -> Iterator[Any]:
        return (self._decode(name) for name in list(self._data))

    def items(self) -> Iterator[tuple[str, Any]]:
        return ((name, self._decode(name)) for name in list(self._data))

    def seek(self, key: str) -> Iterator[tuple[str, Any]]:
        """Iterate (column, value) pairs starting at column ``key``.

        Raises:
            OutOfBoundsError: If the item has no such column
        """
        keys = list(self._data)
        if key not in keys:
            raise OutOfBoundsError(key, self._table)
        return ((name, self._decode(name)) for name in keys[keys.index(key) :])

    def __getattr__(self, name: str) -> Any:
        # Only reached when normal lookup fails: order.customer, order.total
        if name.startswith("_"):
            raise AttributeError(name)
        if name in self:
            return self.get(name)
        raise AttributeError(f"{type(self).__name__!r} object has no attribute {name!r}")

    def __repr__(self) -> str:
        identity = self._data.get(self._id_column) if self._id_column else None
        return f"<{type(self).__name__} {self._table} {self._id_column or 'id'}={identity!r}>"
