"""Tests for ``litelib.core.context`` -- discovery, schema creation and lifetime."""

import sqlite3
import uuid
from dataclasses import dataclass

import pytest

from litelib.core.context import ContextRegistry, LiteContext, declared_entity_sets, default_registry
from litelib.core.entity_set import EntitySet
from litelib.core.errors import (
    ContextClosedError,
    DefinitionError,
    EntitySetNotAttachedError,
    EntitySetNotFoundError,
    ErrorCategory,
    MissingRowIdError,
)
from litelib.core.model import LiteModel

from _support.models import ComplexDetail, Extra, ExtraContext, Order, TestDbContext, Warehouse


@dataclass
class Unregistered(LiteModel):
    name: str = ""


@dataclass
class OrderSummary:
    RowId: int = 0
    customer_name: str = ""
    total: int = 0


def audit_insert(entity_set, args):
    args.entity.shipper_city = "Audited"


class PreassignedContext(LiteContext):
    orders: EntitySet[Order] = EntitySet(Order)


PreassignedContext.orders.on_before_insert += audit_insert


class ChildContext(TestDbContext):
    extras_free: EntitySet[Unregistered]


def table_names(context):
    rows = context.adapter.query("SELECT name FROM sqlite_master WHERE type = 'table'")
    return {row["name"] for row in rows}


def index_names(context):
    rows = context.adapter.query("SELECT name FROM sqlite_master WHERE type = 'index'")
    return {row["name"] for row in rows}


class TestDiscovery:
    def test_set_names_in_declaration_order(self, db):
        assert db.set_names() == ["orders", "warehouses", "details"]

    def test_entity_sets_view_is_read_only(self, db):
        view = db.entity_sets
        assert set(view) == {"orders", "warehouses", "details"}
        with pytest.raises(TypeError):
            view["other"] = db.orders

    def test_declared_entity_sets(self):
        assert declared_entity_sets(TestDbContext) == (
            ("orders", Order),
            ("warehouses", Warehouse),
            ("details", ComplexDetail),
        )

    def test_inherited_sets_come_first(self, db_path, settings, registry):
        with ChildContext(db_path, settings=settings, registry=registry) as context:
            assert context.set_names() == ["orders", "warehouses", "details", "extras_free"]

    def test_preassigned_set_handlers_are_copied(self, db_path, settings, registry):
        template = PreassignedContext.orders
        with PreassignedContext(db_path, settings=settings, registry=registry) as context:
            assert context.orders is not template
            assert context.orders.context is context
            assert list(context.orders.on_before_insert) == [audit_insert]

            order = Order(customer_name="John", shipper_city="Leon")
            context.orders.insert(order)
            assert context.orders.single(order.RowId).shipper_city == "Audited"

        assert template.name is None
        with pytest.raises(EntitySetNotAttachedError):
            template.context

    def test_preassigned_set_per_context(self, tmp_path, settings, registry):
        first = PreassignedContext(tmp_path / "a.db", settings=settings, registry=registry)
        second = PreassignedContext(tmp_path / "b.db", settings=settings, registry=registry)
        try:
            assert first.orders is not second.orders
            assert first.orders.context is first
            assert second.orders.context is second

            first.orders.insert(Order(customer_name="John", shipper_city="Leon"))
            assert first.orders.count() == 1
            assert second.orders.count() == 0
        finally:
            first.close()
            second.close()

        with PreassignedContext(tmp_path / "a.db", settings=settings, registry=registry) as reopened:
            assert reopened.orders.count() == 1
        with PreassignedContext(tmp_path / "b.db", settings=settings, registry=registry) as reopened:
            assert reopened.orders.count() == 0

    def test_set_lookup(self, db):
        assert db.set(Order) is db.orders
        assert db.set(Warehouse) is db.warehouses

    def test_set_lookup_missing(self, db):
        with pytest.raises(EntitySetNotFoundError) as exc_info:
            db.set(Unregistered)
        assert isinstance(exc_info.value, LookupError)
        assert exc_info.value.category is ErrorCategory.PRECONDITION
        assert exc_info.value.entity_type is Unregistered

    def test_unmappable_set_fails_construction(self, db_path, settings, registry):
        with pytest.raises(DefinitionError):
            ExtraContext(db_path, settings=settings, registry=registry)
        assert len(registry) == 0


class TestSchema:
    def test_tables_created(self, db):
        assert {"Order", "CustomWarehouse", "ComplexDetails"} <= table_names(db)

    def test_indexes_created(self, db):
        assert {
            "UX_Order_unique_id",
            "IX_Order_customer_name",
            "UX_CustomWarehouse_unique_id",
            "UX_ComplexDetails_id",
        } <= index_names(db)

    def test_reopen_keeps_data(self, db_path, settings, registry):
        with TestDbContext(db_path, settings=settings, registry=registry) as first:
            first.orders.insert(Order(customer_name="John"))

        with TestDbContext(db_path, settings=settings, registry=registry) as second:
            assert second.orders.count() == 1

    def test_database_created_fires_each_construction(self, db_path, settings, registry):
        created = []
        for _ in range(2):
            context = TestDbContext(db_path, settings=settings, registry=registry, on_database_created=created.append)
            context.close()
        assert len(created) == 2
        assert all(isinstance(context, TestDbContext) for context in created)

    def test_database_created_sees_tables(self, db_path, settings, registry):
        seen = []
        context = TestDbContext(
            db_path,
            settings=settings,
            registry=registry,
            on_database_created=lambda ctx: seen.append(table_names(ctx)),
        )
        context.close()
        assert "Order" in seen[0]

    def test_failed_schema_rolls_back(self, db_path, settings, registry):
        conn = sqlite3.connect(db_path)
        conn.execute("CREATE VIEW [CustomWarehouse] AS SELECT 1 AS x")
        conn.commit()
        conn.close()

        with pytest.raises(sqlite3.OperationalError):
            TestDbContext(db_path, settings=settings, registry=registry)

        conn = sqlite3.connect(db_path)
        tables = {row[0] for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'")}
        conn.close()
        assert "Order" not in tables
        assert len(registry) == 0

    def test_create_schema_is_idempotent(self, db):
        db.create_schema()
        assert {"Order", "CustomWarehouse", "ComplexDetails"} <= table_names(db)

    def test_memory_database(self, settings, registry):
        with TestDbContext(":memory:", settings=settings, registry=registry) as context:
            assert context.database_path == ":memory:"
            assert context.orders.insert(Order()) == 1

    def test_path_is_resolved(self, db, db_path):
        assert db.database_path == str(db_path.resolve())


class TestGenericCommands:
    def test_insert_assigns_row_id_without_events(self, db):
        calls = []
        db.orders.on_before_insert += lambda sender, args: calls.append("before")
        db.orders.on_after_insert += lambda sender, args: calls.append("after")

        order = Order(customer_name="John")
        assert db.insert(order) == 1
        assert order.RowId > 0
        assert calls == []

    def test_update_without_events(self, db):
        order = Order(customer_name="John")
        db.insert(order)
        db.orders.on_before_update += lambda sender, args: setattr(args, "cancel", True)

        order.customer_name = "Johnny"
        assert db.update(order) == 1
        assert db.orders.single(order.RowId).customer_name == "Johnny"

    def test_delete_resets_row_id_without_events(self, db):
        order = Order(customer_name="John")
        db.insert(order)
        db.orders.on_before_delete += lambda sender, args: setattr(args, "cancel", True)

        assert db.delete(order) == 1
        assert order.RowId == 0
        assert db.orders.count() == 0

    def test_delete_requires_row_id(self, db):
        with pytest.raises(MissingRowIdError):
            db.delete(Order())

    def test_unregistered_type(self, db):
        with pytest.raises(EntitySetNotFoundError):
            db.insert(Unregistered(name="x"))

    def test_select(self, db, orders_source):
        db.orders.insert_range(orders_source)
        orders = list(db.select(db.orders, "[amount] >= @amount", {"amount": 30}))
        assert len(orders) == 6

    def test_query_into_unregistered_type(self, db, orders_source):
        db.orders.insert_range(orders_source)
        rows = db.query(
            OrderSummary,
            "SELECT MIN([RowId]) AS RowId, [customer_name], SUM([amount]) AS total "
            "FROM [Order] GROUP BY [customer_name] ORDER BY [customer_name]",
        )
        summaries = list(rows)
        assert [summary.customer_name for summary in summaries] == ["John", "Margarita", "Peter"]
        assert all(summary.total == 100 for summary in summaries)

    def test_query_registered_type_converts(self, db, orders_source):
        db.orders.insert_range(orders_source)
        orders = list(db.query(Order, "SELECT * FROM [Order] WHERE [is_shipped] = @shipped", {"shipped": True}))
        assert len(orders) == 6
        assert all(order.is_shipped is True for order in orders)

    def test_vacuum(self, db, orders_source):
        db.orders.insert_range(orders_source)
        db.orders.delete_where("1 = 1")
        db.vacuum()
        assert db.orders.count() == 0


class TestLifetime:
    def test_registered_while_open(self, db, registry):
        assert db in registry
        assert registry.get(db.unique_id) is db
        assert registry.instances() == (db,)

    def test_close_unregisters(self, db, registry):
        db.close()
        assert db not in registry
        assert db.closed is True
        assert db.adapter.is_connected is False

    def test_close_twice(self, db, registry):
        db.close()
        db.close()
        assert len(registry) == 0

    @pytest.mark.parametrize(
        "command",
        [
            lambda db: db.orders.insert(Order(customer_name="John", shipper_city="Leon")),
            lambda db: db.orders.insert_range([Order(customer_name="John", shipper_city="Leon")]),
            lambda db: db.orders.update(Order(RowId=1)),
            lambda db: db.orders.delete(Order(RowId=1)),
            lambda db: db.orders.count(),
            lambda db: db.orders.any(),
            lambda db: db.orders.select_all(),
            lambda db: db.orders.single(1),
            lambda db: db.orders.delete_where("1 = 1"),
            lambda db: db.insert(Order(customer_name="John", shipper_city="Leon")),
            lambda db: db.update(Order(RowId=1)),
            lambda db: db.delete(Order(RowId=1)),
            lambda db: db.query(Order, "SELECT * FROM [Order]"),
            lambda db: db.vacuum(),
            lambda db: db.connection,
        ],
    )
    def test_commands_after_close_raise(self, db, command):
        db.close()
        with pytest.raises(ContextClosedError) as exc_info:
            command(db)
        assert exc_info.value.category == ErrorCategory.PRECONDITION
        assert db.adapter.is_connected is False

    def test_close_does_not_reconnect(self, db, registry):
        db.close()
        with pytest.raises(ContextClosedError):
            db.orders.insert(Order(customer_name="John", shipper_city="Leon"))
        db.close()
        assert db.adapter.is_connected is False
        assert len(registry) == 0

    def test_handlers_not_fired_after_close(self, db):
        fired = []
        db.orders.on_before_insert += lambda entity_set, args: fired.append(args.entity)
        db.close()
        with pytest.raises(ContextClosedError):
            db.orders.insert(Order(customer_name="John", shipper_city="Leon"))
        assert fired == []

    def test_context_manager(self, db_path, settings, registry):
        with TestDbContext(db_path, settings=settings, registry=registry) as context:
            assert len(registry) == 1
        assert context.closed is True
        assert len(registry) == 0

    def test_unique_ids_differ(self, db_path, settings, registry):
        with TestDbContext(db_path, settings=settings, registry=registry) as first:
            with TestDbContext(db_path, settings=settings, registry=registry) as second:
                assert isinstance(first.unique_id, uuid.UUID)
                assert first.unique_id != second.unique_id
                assert len(registry) == 2

    def test_default_registry(self, db_path, settings):
        context = TestDbContext(db_path, settings=settings)
        try:
            assert context in default_registry
        finally:
            context.close()
        assert context not in default_registry

    def test_unregister_unknown(self, db):
        assert ContextRegistry().unregister(db) is False
