"""Tests for belongs-to relation resolution."""

import pytest

from rowmap import Database, Item
from rowmap.core.relations import RelationResolver, relation_column
from rowmap.exceptions import TableNotFoundError
from rowmap.schema.catalog import SchemaCatalog
from conftest import execute_sql


@pytest.fixture
def shop(db: Database) -> Database:
    execute_sql(db, "INSERT INTO customers (id, name) VALUES (7, 'Ann'), (8, 'Bob')")
    return db


class TestNaming:
    """Tests for relation naming rules."""

    def test_relation_column(self):
        assert relation_column("customer") == "customerId"

    def test_relation_id_column(self, db: Database):
        resolver = RelationResolver(SchemaCatalog.for_database(db))
        assert resolver.relation_id_column("orders", "CUSTOMER") == "customerId"
        assert resolver.relation_id_column("orders", "status") == ""

    def test_target_table(self, db: Database):
        resolver = RelationResolver(SchemaCatalog.for_database(db))
        execute_sql(db, "CREATE TABLE region (id INTEGER PRIMARY KEY, name TEXT)")

        assert resolver.target_table("customer") == "customers"
        assert resolver.target_table("region") == "region"
        assert resolver.target_table("buyer", {"Buyer": "customers"}) == "customers"
        assert resolver.target_table("nowhere") == "nowhere"


class TestResolve:
    """Tests for loading related items."""

    def test_loads_related_item(self, shop: Database):
        order = Item.from_array("orders", {"customerId": 7}, shop)
        customer = order.get("customer")

        assert isinstance(customer, Item)
        assert customer.table == "customers"
        assert customer.get("name") == "Ann"
        assert customer.is_created() is True

    def test_memoized(self, shop: Database):
        """The same related item comes back until the item is reloaded."""
        order = Item.from_array("orders", {"customerId": 7}, shop)
        first = order["customer"]

        order.set("customerId", 8)
        assert order["Customer"] is first
        assert order.relation_cache == {"customer": first}

    def test_missing_row_gives_empty_item(self, db: Database):
        order = Item.from_array("orders", {"customerId": 99}, db)
        customer = order.get("customer")

        assert customer.table == "customers"
        assert customer.is_created() is False
        assert customer.get("name") == ""

    def test_unset_relation_gives_empty_item(self, db: Database):
        customer = Item("orders", db).get("customer")
        assert customer.is_created() is False

    def test_missing_target_table(self, db: Database):
        execute_sql(db, "CREATE TABLE shipments (id INTEGER PRIMARY KEY, carrierId INTEGER)")
        shipment = Item.from_array("shipments", {"carrierId": 1}, db)
        with pytest.raises(TableNotFoundError):
            shipment.get("carrier")

    def test_alias(self, db: Database):
        execute_sql(
            db,
            "CREATE TABLE receipts (id INTEGER PRIMARY KEY AUTOINCREMENT, payerId INTEGER)",
        )
        execute_sql(db, "INSERT INTO customers (id, name) VALUES (3, 'Cy')")

        class Receipt(Item, table="receipts"):
            relations = {"payer": "customers"}

        receipt = Item.from_array("receipts", {"payerId": 3}, db)
        assert isinstance(receipt, Receipt)
        assert receipt.get("payer").get("name") == "Cy"

    def test_load_clears_cache(self, shop: Database):
        order_id = Item.from_array("orders", {"customerId": 7}, shop).save()
        other_id = Item.from_array("orders", {"customerId": 8}, shop).save()

        order = Item.from_id("orders", order_id, shop)
        assert order.get("customer").get("name") == "Ann"

        order.load(other_id)
        assert order.relation_cache == {}
        assert order.get("customer").get("name") == "Bob"

    def test_attribute_access(self, shop: Database):
        order = Item.from_array("orders", {"customerId": 8}, shop)
        assert order.customer.get("name") == "Bob"
