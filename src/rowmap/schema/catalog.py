"""Schema catalog: cached column metadata per table.

Each Database gets one catalog for the lifetime of the process. Entries are
populated once per table under a per-table lock and never invalidated; the
schema is assumed static while the process runs.
"""

from __future__ import annotations

import logging
import threading
import weakref
from typing import TYPE_CHECKING

from rowmap.core.types import ColumnInfo
from rowmap.exceptions import ColumnNotFoundError

if TYPE_CHECKING:
    from rowmap.core.database import Database

logger = logging.getLogger(__name__)


class SchemaCatalog:
    """Caches table column descriptors fetched from a Database.

    Readers never see a partially populated entry: a table's mapping is only
    published once fully built.
    """

    _instances: weakref.WeakKeyDictionary[Database, SchemaCatalog] = weakref.WeakKeyDictionary()
    _instances_lock = threading.Lock()

    def __init__(self, database: Database) -> None:
        """Initialize the catalog.

        Args:
            database: Database the column metadata is fetched from
        """
        self._database = database
        self._tables: dict[str, dict[str, ColumnInfo]] = {}
        self._relation_tables: dict[str, str] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @classmethod
    def for_database(cls, database: Database) -> SchemaCatalog:
        """Return the shared catalog for a database, creating it on first use."""
        with cls._instances_lock:
            catalog = cls._instances.get(database)
            if catalog is None:
                catalog = cls(database)
                cls._instances[database] = catalog
            return catalog

    def _table_lock(self, table: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(table, threading.Lock())

    def columns(self, table: str) -> dict[str, ColumnInfo]:
        """Get the ordered column descriptors for a table.

        Raises:
            TableNotFoundError: If the table does not exist
        """
        columns = self._tables.get(table)
        if columns is not None:
            return columns

        with self._table_lock(table):
            columns = self._tables.get(table)
            if columns is None:
                columns = self._database.get_columns(table)
                self._tables[table] = columns
                logger.debug(f"Cached {len(columns)} columns for table {table}")
        return columns

    def is_cached(self, table: str) -> bool:
        """Check whether a table's columns are already cached."""
        return table in self._tables

    def find_table(self, table: str) -> str:
        """Return the real name of a table (case-insensitive), or ''.

        Cached tables answer without a query.
        """
        if self.is_cached(table):
            return table
        return self._database.find_table(table)

    def has_table(self, table: str) -> bool:
        """Check whether a table exists."""
        return bool(self.find_table(table))

    def relation_table(self, name: str) -> str:
        """Return the table a relation name points at by convention, or ''.

        A table named like the relation wins over the plural ``<name>s`` table.
        The answer is cached per relation name.
        """
        key = name.lower()
        if key in self._relation_tables:
            return self._relation_tables[key]

        real_name = self.find_table(name) or self.find_table(f"{name}s")
        self._relation_tables[key] = real_name
        logger.debug(f"Relation {name} maps to table {real_name or '(none)'}")
        return real_name

    def has_column(self, table: str, name: str) -> str:
        """Return the real column name matching ``name`` case-insensitively, or ''."""
        lowered = name.lower()
        for real_name in self.columns(table):
            if real_name.lower() == lowered:
                return real_name
        return ""

    def resolve_column(self, table: str, name: str) -> str:
        """Like has_column, but also accept a column named ``name`` + its declared type.

        A column ``totalDollar`` declared as ``dollar`` can be addressed as ``total``.
        """
        real_name = self.has_column(table, name)
        if real_name:
            return real_name

        lowered = name.lower()
        for real_name, info in self.columns(table).items():
            type_name = info.type.lower().split("(", 1)[0].strip()
            if type_name and real_name.lower() == lowered + type_name:
                return real_name
        return ""

    def column(self, table: str, name: str) -> ColumnInfo:
        """Return the descriptor for one column.

        Raises:
            ColumnNotFoundError: If the column does not exist
        """
        real_name = self.has_column(table, name)
        if not real_name:
            raise ColumnNotFoundError(name, table, list(self.columns(table)))
        return self.columns(table)[real_name]

    def column_type(self, table: str, name: str) -> str:
        """Return the lowercased declared type of a column, or '' if unknown."""
        real_name = self.has_column(table, name)
        if not real_name:
            return ""
        return self.columns(table)[real_name].type.lower()

    def column_names(self, table: str) -> list[str]:
        """Return column names in table order."""
        return list(self.columns(table))

    def identity_column(self, table: str) -> str:
        """Return the table's identity column name ('id', any case), or ''."""
        return self.has_column(table, "id")
