"""CLI command tests for rowmap."""

import json
import os
import tempfile
from collections.abc import Generator

import pytest
from typer.testing import CliRunner

from rowmap import Database, get_default_database
from rowmap.cli.context import DEFAULT_DATABASE_URL, CLIContext, get_database_url
from rowmap.cli.main import app
from rowmap.cli.parsing import parse_criteria, parse_declared_types, parse_value
from rowmap.exceptions import ConnectionError
from conftest import create_shop_schema

runner = CliRunner()

STATUS_TYPE = "orders.status=enum('open','closed')"


@pytest.fixture
def temp_db() -> Generator[str, None, None]:
    """Create a temporary SQLite database file with the shop schema."""
    with tempfile.NamedTemporaryFile(suffix=".db", delete=False) as f:
        db_path = f.name
    url = f"sqlite:///{db_path}"

    database = Database(url)
    create_shop_schema(database)
    database.close()

    yield url
    if os.path.exists(db_path):
        os.remove(db_path)


def save(url: str, table: str, data: dict, *extra: str) -> dict:
    result = runner.invoke(app, ["-d", url, "--json", "save", table, json.dumps(data), *extra])
    assert result.exit_code == 0, f"Failed with: {result.stdout}"
    return json.loads(result.stdout)


class TestParsing:
    """Tests for command-line value parsing."""

    def test_parse_value(self):
        assert parse_value("7") == 7
        assert parse_value("null") is None
        assert parse_value('["a", "b"]') == ["a", "b"]
        assert parse_value("open") == "open"

    def test_parse_criteria(self):
        assert parse_criteria(["status=open", "customerId=7", "name=a=b"]) == {
            "status": "open",
            "customerId": 7,
            "name": "a=b",
        }
        assert parse_criteria(None) == {}
        with pytest.raises(ValueError):
            parse_criteria(["status"])

    def test_parse_declared_types(self):
        assert parse_declared_types([STATUS_TYPE]) == {
            "orders": {"status": "enum('open','closed')"}
        }
        with pytest.raises(ValueError):
            parse_declared_types(["status=enum('a')"])


class TestContext:
    """Tests for per-run CLI state."""

    def test_database_url_priority(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ROWMAP_DATABASE_URL", raising=False)
        assert get_database_url(None) == DEFAULT_DATABASE_URL

        monkeypatch.setenv("ROWMAP_DATABASE_URL", "sqlite:///env.db")
        assert get_database_url(None) == "sqlite:///env.db"
        assert get_database_url("sqlite:///cli.db") == "sqlite:///cli.db"

    def test_database_installed_as_default(self, temp_db: str, monkeypatch: pytest.MonkeyPatch) -> None:
        """The run's database is the default until the context closes."""
        monkeypatch.delenv("ROWMAP_DATABASE_URL", raising=False)
        cli_ctx = CLIContext(database_url=temp_db, echo=False, json_output=True)
        try:
            db = cli_ctx.get_db()
            assert get_default_database() is db
            assert cli_ctx.get_db() is db
            assert cli_ctx.formatter.json_mode is True
        finally:
            cli_ctx.close()

        with pytest.raises(ConnectionError):
            get_default_database()


class TestVersionCommand:
    """Test the version command."""

    def test_version_output(self) -> None:
        result = runner.invoke(app, ["version"])
        assert result.exit_code == 0
        assert "rowmap v" in result.stdout


class TestColumnsCommand:
    """Test the columns command."""

    def test_columns_json(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "--json", "-t", STATUS_TYPE, "columns", "orders"])
        assert result.exit_code == 0, f"Failed with: {result.stdout}"
        data = json.loads(result.stdout)
        assert [c["name"] for c in data] == [
            "id",
            "customerId",
            "totalDollar",
            "status",
            "tags",
            "notes",
        ]
        assert data[3]["type"] == "enum('open','closed')"
        assert data[0]["primary_key"] is True

    def test_columns_table(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "columns", "customers"])
        assert result.exit_code == 0
        assert "phone" in result.stdout

    def test_unknown_table(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "--json", "columns", "missing"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "TableNotFoundError"

    def test_bad_type_override(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "-t", "bogus", "columns", "orders"])
        assert result.exit_code != 0


class TestSaveAndShow:
    """Test creating, updating and showing rows."""

    def test_save_creates(self, temp_db: str) -> None:
        data = save(temp_db, "orders", {"customerId": 7, "totalDollar": "$19.99", "bogus": 1})
        assert data["success"] is True
        assert data["table"] == "orders"
        assert data["id"] == 1
        assert data["ignored"] == ["bogus"]

    def test_show_decodes(self, temp_db: str) -> None:
        save(temp_db, "orders", {"totalDollar": "$1,234.5", "status": "closed"})
        result = runner.invoke(app, ["-d", temp_db, "--json", "-t", STATUS_TYPE, "show", "orders", "1"])
        assert result.exit_code == 0, f"Failed with: {result.stdout}"
        data = json.loads(result.stdout)
        assert data["totalDollar"] == "$1234.50"
        assert data["status"] == ["closed"]

    def test_show_raw(self, temp_db: str) -> None:
        save(temp_db, "orders", {"totalDollar": "$5"})
        result = runner.invoke(app, ["-d", temp_db, "--json", "show", "orders", "1", "--raw"])
        assert result.exit_code == 0
        assert json.loads(result.stdout)["totalDollar"] == 5.0

    def test_save_updates(self, temp_db: str) -> None:
        save(temp_db, "orders", {"notes": "first"})
        data = save(temp_db, "orders", {"notes": "second"}, "--id", "1")
        assert data["id"] == 1

        result = runner.invoke(app, ["-d", temp_db, "--json", "show", "orders", "1"])
        assert json.loads(result.stdout)["notes"] == "second"

    def test_show_missing(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "--json", "show", "orders", "404"])
        assert result.exit_code == 1
        data = json.loads(result.stdout)
        assert data["error"] == "LoadError"
        assert data["context"]["item_id"] == 404

    def test_save_rejects_non_object(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "--json", "save", "orders", "[1, 2]"])
        assert result.exit_code == 1

    def test_save_failure(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "--json", "save", "customers", '{"name": null}'])
        assert result.exit_code == 1


class TestSearchCommand:
    """Test the search command."""

    def test_search_json(self, temp_db: str) -> None:
        for status in ["open", "closed", "open"]:
            save(temp_db, "orders", {"status": status})

        result = runner.invoke(
            app,
            ["-d", temp_db, "--json", "search", "orders", "-w", "status=open", "-o", "id DESC"],
        )
        assert result.exit_code == 0, f"Failed with: {result.stdout}"
        assert [row["id"] for row in json.loads(result.stdout)] == [3, 1]

    def test_search_limit(self, temp_db: str) -> None:
        for _ in range(3):
            save(temp_db, "orders", {})
        result = runner.invoke(app, ["-d", temp_db, "--json", "search", "orders", "--limit", "2"])
        assert len(json.loads(result.stdout)) == 2

    def test_search_table_output(self, temp_db: str) -> None:
        save(temp_db, "customers", {"name": "Ann"})
        result = runner.invoke(app, ["-d", temp_db, "search", "customers", "-w", "name=An%"])
        assert result.exit_code == 0
        assert "1 found" in result.stdout

    def test_search_unknown_column(self, temp_db: str) -> None:
        result = runner.invoke(app, ["-d", temp_db, "--json", "search", "orders", "-w", "nope=1"])
        assert result.exit_code == 1
        assert json.loads(result.stdout)["error"] == "ColumnNotFoundError"
