"""Tests for the SQLAlchemy repositories and unit of work (SQLite)."""

from dataclasses import replace
from datetime import timezone

import pytest
from sqlalchemy.orm import sessionmaker

from marketflow.domain.exceptions import ConcurrencyConflict, ValidationError
from marketflow.domain.model.inventory import InventoryRecord
from marketflow.domain.model.order import (
    FulfillmentRequirement,
    Order,
    OrderKind,
    OrderLine,
    OrderStatus,
    ProductSnapshot,
    new_order_number,
)
from marketflow.domain.model.product import Product
from marketflow.domain.model.proxy_order import CancelledBy, ProxyOrder, ProxyOrderStatus
from marketflow.domain.model.store import Store, StoreRole
from marketflow.domain.model.value_objects import Money, Quantity
from marketflow.infrastructure.persistence.sqlalchemy_unit_of_work import (
    SqlAlchemyUnitOfWork,
    build_engine,
    create_schema,
)


def _setup(url: str = "sqlite:///:memory:"):
    """Schema plus a retailer, a wholesaler, rice in both and an order."""
    engine = build_engine(url)
    create_schema(engine)
    factory = sessionmaker(bind=engine)
    uow = SqlAlchemyUnitOfWork(factory)

    with uow:
        retailer = Store.create("Corner Shop", StoreRole.RETAILER, "ravi")
        wholesaler = Store.create("Grain Depot", StoreRole.WHOLESALER, "wendy")
        uow.stores.save(retailer)
        uow.stores.save(wholesaler)
        rice = Product.create("Basmati Rice", image_url="https://img.example/rice.png")
        uow.products.save(rice)
        shelf = _record(retailer, rice, 5, "80.00")
        wholesale = _record(wholesaler, rice, 10, "60.00")
        uow.inventory.save(shelf)
        uow.inventory.save(wholesale)

        order = Order.place(
            order_number=new_order_number(OrderKind.CUSTOMER),
            buyer_id="cust-1",
            seller_store_id=retailer.id,
            lines=[_line(shelf, rice, 5)],
            requirements=[_requirement(shelf, wholesale, rice, 3)],
        )
        uow.orders.save(order)
        uow.commit()
    return engine, uow, retailer, wholesaler, rice, shelf, wholesale, order


def _record(store, product, stock, price):
    return InventoryRecord(
        id=None,
        store_id=store.id,
        product_id=product.id,
        unit_price=Money.of(price),
        stock_qty=stock,
    )


def _line(record, product, qty):
    return OrderLine(
        id=None,
        inventory_id=record.id,
        product_id=product.id,
        quantity=Quantity(qty),
        unit_price=record.unit_price,
        snapshot=ProductSnapshot(
            name=product.name, price=record.unit_price, image_url=product.image_url
        ),
    )


def _requirement(shelf, wholesale, product, qty):
    return FulfillmentRequirement(
        id=None,
        product_id=product.id,
        product_name=product.name,
        quantity=Quantity(qty),
        wholesaler_store_id=wholesale.store_id,
        wholesaler_inventory_id=wholesale.id,
        unit_price=wholesale.unit_price,
        wholesaler_delivery_days=wholesale.delivery_days,
        retailer_delivery_days=shelf.delivery_days,
        retailer_inventory_id=shelf.id,
        retail_unit_price=shelf.unit_price,
    )


def _proxy(uow, order, retailer):
    proxy = ProxyOrder.awaiting_wholesaler(
        order.requirements[0], retailer_store_id=retailer.id, customer_order_id=order.id
    )
    uow.proxy_orders.save(proxy)
    return proxy


class TestOrderRepository:

    def test_round_trip_keeps_lines_requirements_and_money(self):
        _, uow, retailer, _, _, _, wholesale, order = _setup()

        with uow:
            loaded = uow.orders.get_by_id(order.id)

        assert loaded.order_number == order.order_number
        assert loaded.version == 1
        assert loaded.lines[0].id is not None
        assert loaded.lines[0].snapshot.image_url == "https://img.example/rice.png"
        assert loaded.lines[0].unit_price == Money.of("80.00")
        assert loaded.requirements[0].wholesaler_inventory_id == wholesale.id
        assert loaded.requirements[0].unit_price == Money.of("60.00")
        assert loaded.total == Money.of("640.00")
        assert loaded.created_at.tzinfo == timezone.utc

    def test_saving_a_stale_copy_conflicts(self):
        _, uow, _, _, _, _, _, order = _setup()
        with uow:
            first = uow.orders.get_by_id(order.id)
        with uow:
            second = uow.orders.get_by_id(order.id)
            second.advance_to(OrderStatus.CONFIRMED)
            uow.orders.save(second)
            uow.commit()

        with uow:
            first.cancel("too late")
            with pytest.raises(ConcurrencyConflict):
                uow.orders.save(first)

    def test_resolving_requirements_replaces_them_with_lines(self):
        _, uow, _, _, rice, shelf, _, order = _setup()
        with uow:
            loaded = uow.orders.get_by_id(order.id)
            loaded.resolve_requirements(
                [replace(_line(shelf, rice, 3), sourced_via_proxy=True)]
            )
            uow.orders.save(loaded)
            uow.commit()

        with uow:
            reloaded = uow.orders.get_by_id(order.id)
        assert reloaded.requirements == []
        assert [l.sourced_via_proxy for l in reloaded.lines] == [False, True]
        assert reloaded.proxy_approved_at is not None
        assert reloaded.version == 2

    def test_awaiting_approval_queue(self):
        _, uow, retailer, wholesaler, _, _, _, order = _setup()
        with uow:
            assert [o.id for o in uow.orders.list_awaiting_approval(retailer.id)] == [order.id]
            assert uow.orders.list_awaiting_approval(wholesaler.id) == []


class TestInventoryRepository:

    def test_compare_and_set_stock(self):
        _, uow, _, _, _, shelf, _, _ = _setup()
        with uow:
            assert uow.inventory.get_by_id(shelf.id).stock_qty == 5
            assert not uow.inventory.compare_and_set_stock(shelf.id, 4, 1)
            assert uow.inventory.compare_and_set_stock(shelf.id, 5, 2)
            assert uow.inventory.get_by_id(shelf.id).stock_qty == 2
            uow.commit()

        with uow:
            assert uow.inventory.get_by_id(shelf.id).stock_qty == 2

    def test_stock_cannot_go_negative(self):
        _, uow, _, _, _, shelf, _, _ = _setup()
        with uow:
            with pytest.raises(ValidationError):
                uow.inventory.compare_and_set_stock(shelf.id, 5, -1)

    def test_save_leaves_stock_alone(self):
        _, uow, _, _, _, shelf, _, _ = _setup()
        with uow:
            record = uow.inventory.get_by_id(shelf.id)
            uow.inventory.compare_and_set_stock(shelf.id, 5, 1)
            record.unit_price = Money.of("82.00")
            uow.inventory.save(record)
            uow.commit()

        with uow:
            stored = uow.inventory.get_by_id(shelf.id)
        assert stored.stock_qty == 1
        assert stored.unit_price == Money.of("82.00")

    def test_find_wholesale_stock_matches_names_loosely(self):
        _, uow, _, _, _, _, wholesale, _ = _setup()
        with uow:
            assert [r.id for r in uow.inventory.find_wholesale_stock("  BASMATI rice", 10)] == [
                wholesale.id
            ]
            assert uow.inventory.find_wholesale_stock("Basmati Rice", 11) == []
            assert uow.inventory.find_wholesale_stock("Jasmine Rice", 1) == []

    def test_duplicate_store_product_rejected(self):
        _, uow, retailer, _, rice, _, _, _ = _setup()
        with uow:
            with pytest.raises(ValidationError):
                uow.inventory.save(_record(retailer, rice, 1, "1.00"))


class TestProxyOrderRepository:

    def test_version_conflict_between_sessions(self, tmp_path):
        _, uow, retailer, _, _, _, _, order = _setup(f"sqlite:///{tmp_path / 'mf.sqlite3'}")
        with uow:
            proxy = _proxy(uow, order, retailer)
            uow.commit()

        other = SqlAlchemyUnitOfWork(uow._session_factory)
        with uow:
            mine = uow.proxy_orders.get_by_id(proxy.id)
            with other:
                theirs = other.proxy_orders.get_by_id(proxy.id)
                theirs.approve("ok")
                other.proxy_orders.save(theirs)
                other.commit()

            mine.cancel("changed plans", CancelledBy.RETAILER)
            with pytest.raises(ConcurrencyConflict):
                uow.proxy_orders.save(mine)

        with uow:
            assert uow.proxy_orders.get_by_id(proxy.id).status == ProxyOrderStatus.APPROVED

    def test_wholesalers_used_by_skips_closed_proxies(self):
        _, uow, retailer, wholesaler, rice, _, _, order = _setup()
        with uow:
            open_proxy = _proxy(uow, order, retailer)
            rejected = _proxy(uow, order, retailer)
            rejected.reject("no")
            uow.proxy_orders.save(rejected)
            uow.commit()

        with uow:
            assert uow.proxy_orders.wholesalers_used_by(retailer.id, rice.id) == [wholesaler.id]
            open_proxy = uow.proxy_orders.get_by_id(open_proxy.id)
            open_proxy.reject("no")
            uow.proxy_orders.save(open_proxy)
            assert uow.proxy_orders.wholesalers_used_by(retailer.id, rice.id) == []


class TestUnitOfWork:

    def test_leaving_without_commit_rolls_back(self):
        _, uow, _, _, _, shelf, _, _ = _setup()
        with uow:
            uow.inventory.compare_and_set_stock(shelf.id, 5, 0)
            uow.stores.save(Store.create("Ghost Shop", StoreRole.RETAILER, "nobody"))

        with uow:
            assert uow.inventory.get_by_id(shelf.id).stock_qty == 5
            assert [s.name for s in uow.stores.list_all()] == ["Corner Shop", "Grain Depot"]

    def test_exception_rolls_back_and_propagates(self):
        _, uow, _, _, _, shelf, _, _ = _setup()
        with pytest.raises(RuntimeError):
            with uow:
                uow.inventory.compare_and_set_stock(shelf.id, 5, 0)
                raise RuntimeError("boom")

        with uow:
            assert uow.inventory.get_by_id(shelf.id).stock_qty == 5
