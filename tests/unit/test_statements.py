"""Tests for the prepared statement cache."""

from concurrent.futures import ThreadPoolExecutor

from rowmap.core.database import Database, PreparedStatement
from rowmap.data.statements import StatementCache
from conftest import execute_sql


class TestStatementCache:
    """Tests for StatementCache."""

    def test_prepared_once_per_table(self, stub_db):
        """The load statement is prepared on first use and reused."""
        cache = StatementCache(stub_db)
        first = cache.load_statement("orders", "id")
        second = cache.load_statement("orders", "id")
        assert first is second
        assert len(stub_db.prepared) == 1
        assert "orders" in cache
        assert len(cache) == 1

    def test_keyed_by_table(self, stub_db):
        """Different tables get different statements."""
        cache = StatementCache(stub_db)
        assert cache.load_statement("orders", "id") is not cache.load_statement("customers", "id")
        assert len(stub_db.prepared) == 2

    def test_load_sql(self, stub_db):
        """The statement selects one row by identity."""
        StatementCache(stub_db).load_statement("orders", "id")
        assert stub_db.prepared[0] == "SELECT * FROM orders WHERE id = :item_id LIMIT 1"

    def test_concurrent_preparation(self, make_stub_db):
        """Concurrent first use prepares the statement exactly once."""
        stub = make_stub_db({"orders": {"id": "integer"}}, delay=0.02)
        cache = StatementCache(stub)

        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: cache.load_statement("orders", "id"), range(16)))

        assert len(stub.prepared) == 1
        assert all(result is results[0] for result in results)

    def test_shared_per_database(self, stub_db):
        """for_database returns one cache per database."""
        assert StatementCache.for_database(stub_db) is StatementCache.for_database(stub_db)


class TestPreparedStatement:
    """Tests for PreparedStatement against SQLite."""

    def test_bind_execute_fetch(self, db: Database):
        """Bound statements return buffered rows."""
        execute_sql(db, "INSERT INTO customers (name) VALUES ('Ann'), ('Bob')")
        statement = db.prepare("SELECT name FROM customers WHERE id >= :low ORDER BY id")
        statement.bind_param(":low", 1)

        assert statement.execute() is True
        assert statement.fetch() == {"name": "Ann"}
        assert statement.fetch() == {"name": "Bob"}
        assert statement.fetch() is None
        assert statement.error_info() == PreparedStatement.NO_ERROR

    def test_reexecute_rebinds(self, db: Database):
        """A statement can be executed again with new parameters."""
        execute_sql(db, "INSERT INTO customers (name) VALUES ('Ann'), ('Bob')")
        statement = db.prepare(db.load_sql("customers", "id"))

        statement.bind_param("item_id", 2)
        statement.execute()
        assert statement.fetch()["name"] == "Bob"

        statement.bind_param("item_id", 1)
        statement.execute()
        assert statement.fetch()["name"] == "Ann"

    def test_failure_reported(self, db: Database):
        """Execution errors are returned, not raised."""
        statement = db.prepare("SELECT * FROM no_such_table")
        assert statement.execute() is False
        assert "no_such_table" in statement.error_info()[2]
        assert statement.fetch() is None
