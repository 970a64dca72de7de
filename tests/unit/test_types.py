"""Tests for core types."""

from rowmap.core.types import ColumnInfo, ColumnKind


class TestColumnKind:
    """Tests for ColumnKind enum."""

    def test_all_kinds_exist(self):
        """All special-cased types should exist."""
        assert ColumnKind.values() == ["boolean", "dollar", "phone", "set", "enum"]

    def test_string_values(self):
        assert ColumnKind.DOLLAR == "dollar"
        assert ColumnKind("enum") == ColumnKind.ENUM

    def test_listable(self):
        assert ColumnKind.listable() == ("set", "enum")


class TestColumnInfo:
    """Tests for ColumnInfo model."""

    def test_minimal(self):
        """Can create info with just a name."""
        info = ColumnInfo(name="notes")
        assert info.type == ""
        assert info.default is None
        assert info.nullable is True
        assert info.primary_key is False

    def test_serializes(self):
        info = ColumnInfo(name="status", type="enum('open','closed')", default="open")
        assert info.model_dump() == {
            "name": "status",
            "type": "enum('open','closed')",
            "default": "open",
            "nullable": True,
            "primary_key": False,
        }
