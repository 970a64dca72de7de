"""Shared test fixtures for rowmap."""

import os
import threading
import time
from collections import Counter
from collections.abc import Generator
from typing import Any

import pytest
from sqlalchemy import text

from rowmap import Database, set_default_database
from rowmap.core.types import ColumnInfo
from rowmap.exceptions import TableNotFoundError

SHOP_DECLARED_TYPES = {
    "orders": {"status": "enum('open','closed')", "tags": "set('red','green','blue')"},
}

SHOP_TABLES = [
    """
    CREATE TABLE customers (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name VARCHAR(100) NOT NULL DEFAULT '',
        phone PHONE,
        active BOOLEAN DEFAULT 1
    )
    """,
    """
    CREATE TABLE orders (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        customerId INTEGER,
        totalDollar DOLLAR DEFAULT 0,
        status VARCHAR(10) DEFAULT 'open',
        tags TEXT,
        notes TEXT
    )
    """,
]


def create_shop_schema(database: Database) -> None:
    """Create the customers/orders tables used across the tests."""
    with database.engine.begin() as conn:
        for ddl in SHOP_TABLES:
            conn.execute(text(ddl))


def execute_sql(database: Database, sql: str, **params: Any) -> None:
    """Run a statement against a test database and commit."""
    with database.engine.begin() as conn:
        conn.execute(text(sql), params)


def _psycopg_available() -> bool:
    """Check if psycopg is installed."""
    try:
        import psycopg  # noqa: F401

        return True
    except ImportError:
        return False


def _postgresql_connectable(url: str) -> bool:
    """Check if we can connect to PostgreSQL."""
    if not _psycopg_available():
        return False
    try:
        from rowmap.core.connection import DatabaseConnection

        conn = DatabaseConnection(url)
        result = conn.test_connection()
        conn.close()
        return result
    except Exception:
        return False


@pytest.fixture
def postgresql_url() -> str:
    """Get PostgreSQL URL from environment or skip."""
    url = os.environ.get("TEST_DATABASE_URL") or "postgresql://localhost/rowmap_test"

    if not _psycopg_available():
        pytest.skip("psycopg not installed")

    if not _postgresql_connectable(url):
        pytest.skip(f"Cannot connect to PostgreSQL at {url}")

    return url


@pytest.fixture
def db() -> Generator[Database, None, None]:
    """SQLite in-memory database with the customers/orders schema."""
    database = Database("sqlite:///:memory:", declared_types=SHOP_DECLARED_TYPES)
    create_shop_schema(database)
    yield database
    database.close()


@pytest.fixture
def default_db(db: Database) -> Generator[Database, None, None]:
    """The shop database installed as the process-wide default."""
    set_default_database(db)
    yield db
    set_default_database(None)


class StubDatabase:
    """In-memory stand-in for Database that counts reflection calls."""

    def __init__(self, tables: dict[str, dict[str, str]], delay: float = 0.0) -> None:
        self.tables = tables
        self.delay = delay
        self.column_calls: Counter[str] = Counter()
        self.prepared: list[str] = []
        self.table_lookups: Counter[str] = Counter()
        self._lock = threading.Lock()

    def get_columns(self, table: str) -> dict[str, ColumnInfo]:
        with self._lock:
            self.column_calls[table] += 1
        if self.delay:
            time.sleep(self.delay)
        if table not in self.tables:
            raise TableNotFoundError(table)
        return {
            name: ColumnInfo(name=name, type=declared)
            for name, declared in self.tables[table].items()
        }

    def find_table(self, table: str) -> str:
        with self._lock:
            self.table_lookups[table] += 1
        for name in self.tables:
            if name.lower() == table.lower():
                return name
        return ""

    def load_sql(self, table: str, id_column: str) -> str:
        return f"SELECT * FROM {table} WHERE {id_column} = :item_id LIMIT 1"

    def prepare(self, sql: str) -> object:
        with self._lock:
            self.prepared.append(sql)
        if self.delay:
            time.sleep(self.delay)
        return object()

    @staticmethod
    def filter_value(declared_type: str, value: Any) -> Any:
        return value


@pytest.fixture
def stub_db() -> StubDatabase:
    """Stub database with a small orders/customers schema."""
    return StubDatabase(
        {
            "orders": {
                "id": "integer",
                "customerId": "integer",
                "totalDollar": "dollar",
                "status": "enum('open','closed')",
            },
            "customers": {"id": "integer", "name": "varchar(100)"},
        }
    )


@pytest.fixture
def make_stub_db() -> type[StubDatabase]:
    """The StubDatabase class, for tests that need their own schema."""
    return StubDatabase
