"""Prepared statement cache.

One "load by identity" statement per table, prepared on first use and reused
by every item of that table for the lifetime of the process.
"""

from __future__ import annotations

import logging
import threading
import weakref
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from rowmap.core.database import Database, PreparedStatement

logger = logging.getLogger(__name__)


class StatementCache:
    """Per-database cache of prepared load statements, keyed by table name.

    The cached statements are shared; callers hold ``statement.lock`` while
    binding, executing and fetching.
    """

    _instances: weakref.WeakKeyDictionary[Database, StatementCache] = weakref.WeakKeyDictionary()
    _instances_lock = threading.Lock()

    def __init__(self, database: Database) -> None:
        self._database = database
        self._statements: dict[str, PreparedStatement] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    @classmethod
    def for_database(cls, database: Database) -> StatementCache:
        """Return the shared statement cache for a database."""
        with cls._instances_lock:
            cache = cls._instances.get(database)
            if cache is None:
                cache = cls(database)
                cls._instances[database] = cache
            return cache

    def load_statement(self, table: str, id_column: str) -> PreparedStatement:
        """Get the statement selecting one full row of ``table`` by identity.

        The statement binds the identity as ``:item_id``.
        """
        statement = self._statements.get(table)
        if statement is not None:
            return statement

        with self._guard:
            lock = self._locks.setdefault(table, threading.Lock())

        with lock:
            statement = self._statements.get(table)
            if statement is None:
                statement = self._database.prepare(self._database.load_sql(table, id_column))
                self._statements[table] = statement
                logger.debug(f"Prepared load statement for table {table}")
        return statement

    def __len__(self) -> int:
        return len(self._statements)

    def __contains__(self, table: object) -> bool:
        return table in self._statements
