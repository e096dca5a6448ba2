"""In-memory fake repositories for testing.

These implement the same abstract interfaces as the SQLAlchemy
repositories but keep everything in dicts on a shared FakeDatabase. No
database, no side effects.

Reads and writes hand out copies, so a loaded aggregate behaves like one
read from a real store: changes are invisible until saved, and saving a
stale copy raises ConcurrencyConflict.  FakeUnitOfWork snapshots the
database on entry and restores it on rollback.
"""

from __future__ import annotations

import copy
from dataclasses import replace
from decimal import Decimal
from typing import Callable

from marketflow.application.ports import PaymentGateway
from marketflow.domain.exceptions import ConcurrencyConflict, ValidationError
from marketflow.domain.model.inventory import InventoryRecord, SourceType
from marketflow.domain.model.order import TERMINAL_STATUSES, Order
from marketflow.domain.model.product import Product, normalize_name
from marketflow.domain.model.proxy_order import ProxyOrder, ProxyOrderStatus
from marketflow.domain.model.store import Actor, ActorRole, Store, StoreRole
from marketflow.domain.model.value_objects import Money
from marketflow.domain.repository.inventory_repository import InventoryRepository
from marketflow.domain.repository.order_repository import OrderRepository
from marketflow.domain.repository.product_repository import ProductRepository
from marketflow.domain.repository.proxy_order_repository import ProxyOrderRepository
from marketflow.domain.repository.store_repository import StoreRepository
from marketflow.domain.repository.unit_of_work import UnitOfWork


def _copy(entity):
    clone = copy.deepcopy(entity)
    if hasattr(clone, "events"):
        clone.events = []
    return clone


class FakeDatabase:
    """Shared state behind the fake repositories."""

    def __init__(self) -> None:
        self.stores: dict[int, Store] = {}
        self.products: dict[int, Product] = {}
        self.inventory: dict[int, InventoryRecord] = {}
        self.orders: dict[int, Order] = {}
        self.proxy_orders: dict[int, ProxyOrder] = {}
        self.next_ids: dict[str, int] = {}
        # Each stock CAS first runs the next queued callable, simulating a
        # concurrent writer that committed first.  Such writes survive rollback.
        self.before_next_cas: list[Callable[[], None]] = []
        self.concurrent_writes: list[Callable[[], None]] = []

    def next_id(self, table: str) -> int:
        value = self.next_ids.get(table, 1)
        self.next_ids[table] = value + 1
        return value

    def snapshot(self) -> dict:
        return copy.deepcopy(
            {
                "stores": self.stores,
                "products": self.products,
                "inventory": self.inventory,
                "orders": self.orders,
                "proxy_orders": self.proxy_orders,
                "next_ids": self.next_ids,
            }
        )

    def restore(self, state: dict) -> None:
        state = copy.deepcopy(state)
        self.stores = state["stores"]
        self.products = state["products"]
        self.inventory = state["inventory"]
        self.orders = state["orders"]
        self.proxy_orders = state["proxy_orders"]
        self.next_ids = state["next_ids"]

    # --- Seeding helpers ------------------------------------------------------

    def add_store(self, name: str, role: StoreRole, owner_id: str) -> Store:
        store = Store.create(name=name, role=role, owner_id=owner_id)
        store.id = self.next_id("stores")
        self.stores[store.id] = _copy(store)
        return store

    def add_product(self, name: str, image_url: str | None = None) -> Product:
        product = Product.create(name=name, image_url=image_url)
        product.id = self.next_id("products")
        self.products[product.id] = _copy(product)
        return product

    def add_inventory(
        self,
        store: Store,
        product: Product,
        stock: int,
        price: str,
        delivery_days: int = 3,
        source_type: SourceType = SourceType.LISTED,
        source_order_id: int | None = None,
    ) -> InventoryRecord:
        record = InventoryRecord(
            id=self.next_id("inventory"),
            store_id=store.id,
            product_id=product.id,
            unit_price=Money.of(price),
            stock_qty=stock,
            delivery_days=delivery_days,
            source_type=source_type,
            source_order_id=source_order_id,
        )
        self.inventory[record.id] = _copy(record)
        return record

    def stock_of(self, inventory_id: int) -> int:
        return self.inventory[inventory_id].stock_qty

    def set_stock(self, inventory_id: int, quantity: int) -> None:
        self.inventory[inventory_id].stock_qty = quantity


class FakeStoreRepository(StoreRepository):

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def get_by_id(self, store_id: int) -> Store | None:
        store = self._db.stores.get(store_id)
        return _copy(store) if store else None

    def list_all(self, role: StoreRole | None = None) -> list[Store]:
        return [
            _copy(s)
            for s in sorted(self._db.stores.values(), key=lambda s: s.id)
            if role is None or s.role == role
        ]

    def save(self, store: Store) -> None:
        if store.id is None:
            store.id = self._db.next_id("stores")
        self._db.stores[store.id] = _copy(store)


class FakeProductRepository(ProductRepository):

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def get_by_id(self, product_id: int) -> Product | None:
        product = self._db.products.get(product_id)
        return _copy(product) if product else None

    def get_by_name(self, name: str) -> Product | None:
        for p in self._db.products.values():
            if p.match_key == normalize_name(name):
                return _copy(p)
        return None

    def list_all(self) -> list[Product]:
        return [_copy(p) for p in sorted(self._db.products.values(), key=lambda p: p.id)]

    def save(self, product: Product) -> None:
        if product.id is None:
            product.id = self._db.next_id("products")
        self._db.products[product.id] = _copy(product)


class FakeInventoryRepository(InventoryRepository):

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def get_by_id(self, inventory_id: int) -> InventoryRecord | None:
        record = self._db.inventory.get(inventory_id)
        return _copy(record) if record else None

    def get_for_store_product(
        self, store_id: int, product_id: int
    ) -> InventoryRecord | None:
        for r in self._db.inventory.values():
            if r.store_id == store_id and r.product_id == product_id:
                return _copy(r)
        return None

    def list_by_store(self, store_id: int) -> list[InventoryRecord]:
        return [r for r in self.list_all() if r.store_id == store_id]

    def list_all(self) -> list[InventoryRecord]:
        return [_copy(r) for r in sorted(self._db.inventory.values(), key=lambda r: r.id)]

    def find_wholesale_stock(
        self, product_name: str, min_quantity: int
    ) -> list[InventoryRecord]:
        key = normalize_name(product_name)
        matches = []
        for r in self.list_all():
            store = self._db.stores.get(r.store_id)
            product = self._db.products.get(r.product_id)
            if (
                store is not None
                and store.role == StoreRole.WHOLESALER
                and product is not None
                and product.match_key == key
                and r.stock_qty >= min_quantity
            ):
                matches.append(r)
        return matches

    def save(self, record: InventoryRecord) -> None:
        if record.id is None:
            record.id = self._db.next_id("inventory")
            self._db.inventory[record.id] = _copy(record)
            return
        stored = self._db.inventory[record.id]
        self._db.inventory[record.id] = replace(
            _copy(record), stock_qty=stored.stock_qty
        )

    def compare_and_set_stock(self, inventory_id: int, expected: int, new: int) -> bool:
        if new < 0:
            raise ValidationError("Stock quantity cannot be negative")
        if self._db.before_next_cas:
            write = self._db.before_next_cas.pop(0)
            write()
            self._db.concurrent_writes.append(write)
        record = self._db.inventory.get(inventory_id)
        if record is None or record.stock_qty != expected:
            return False
        record.stock_qty = new
        return True


class FakeOrderRepository(OrderRepository):

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def get_by_id(self, order_id: int) -> Order | None:
        order = self._db.orders.get(order_id)
        return _copy(order) if order else None

    def list_by_seller(self, store_id: int) -> list[Order]:
        orders = [o for o in self._db.orders.values() if o.seller_store_id == store_id]
        orders.sort(key=lambda o: (o.created_at, o.id), reverse=True)
        return [_copy(o) for o in orders]

    def list_awaiting_approval(self, store_id: int) -> list[Order]:
        return [
            _copy(o)
            for o in sorted(self._db.orders.values(), key=lambda o: o.id)
            if o.seller_store_id == store_id
            and o.is_customer_order
            and o.is_awaiting_approval
            and o.status not in TERMINAL_STATUSES
        ]

    def save(self, order: Order) -> None:
        if order.id is None:
            order.id = self._db.next_id("orders")
            order.version = 1
        else:
            stored = self._db.orders.get(order.id)
            if stored is None or stored.version != order.version:
                raise ConcurrencyConflict(
                    f"Order {order.order_number} was changed by another writer"
                )
            order.version += 1
        order.lines = [
            line if line.id is not None else replace(line, id=self._db.next_id("order_lines"))
            for line in order.lines
        ]
        order.requirements = [
            req if req.id is not None else replace(req, id=self._db.next_id("requirements"))
            for req in order.requirements
        ]
        self._db.orders[order.id] = _copy(order)


class FakeProxyOrderRepository(ProxyOrderRepository):

    def __init__(self, db: FakeDatabase) -> None:
        self._db = db

    def get_by_id(self, proxy_order_id: int, for_update: bool = False) -> ProxyOrder | None:
        proxy = self._db.proxy_orders.get(proxy_order_id)
        return _copy(proxy) if proxy else None

    def list_for_customer_order(
        self, customer_order_id: int, for_update: bool = False
    ) -> list[ProxyOrder]:
        return [p for p in self._all() if p.customer_order_id == customer_order_id]

    def list_for_wholesaler_order(self, wholesaler_order_id: int) -> list[ProxyOrder]:
        return [p for p in self._all() if p.wholesaler_order_id == wholesaler_order_id]

    def list_by_retailer(self, store_id: int) -> list[ProxyOrder]:
        return [p for p in self._newest_first() if p.retailer_store_id == store_id]

    def list_by_wholesaler(self, store_id: int) -> list[ProxyOrder]:
        return [p for p in self._newest_first() if p.wholesaler_store_id == store_id]

    def wholesalers_used_by(self, retailer_store_id: int, product_id: int) -> list[int]:
        seen: list[int] = []
        for p in self._newest_first():
            if (
                p.retailer_store_id == retailer_store_id
                and p.product_id == product_id
                and p.status not in (ProxyOrderStatus.CANCELLED, ProxyOrderStatus.REJECTED)
                and p.wholesaler_store_id not in seen
            ):
                seen.append(p.wholesaler_store_id)
        return seen

    def save(self, proxy_order: ProxyOrder) -> None:
        if proxy_order.id is None:
            proxy_order.id = self._db.next_id("proxy_orders")
            proxy_order.version = 1
        else:
            stored = self._db.proxy_orders.get(proxy_order.id)
            if stored is None or stored.version != proxy_order.version:
                raise ConcurrencyConflict(
                    f"Proxy order #{proxy_order.id} was changed by another writer"
                )
            proxy_order.version += 1
        self._db.proxy_orders[proxy_order.id] = _copy(proxy_order)

    def _all(self) -> list[ProxyOrder]:
        return [_copy(p) for p in sorted(self._db.proxy_orders.values(), key=lambda p: p.id)]

    def _newest_first(self) -> list[ProxyOrder]:
        return sorted(self._all(), key=lambda p: (p.created_at, p.id), reverse=True)


class FakeUnitOfWork(UnitOfWork):

    def __init__(self, db: FakeDatabase | None = None) -> None:
        self.db = db or FakeDatabase()
        self.stores = FakeStoreRepository(self.db)
        self.products = FakeProductRepository(self.db)
        self.inventory = FakeInventoryRepository(self.db)
        self.orders = FakeOrderRepository(self.db)
        self.proxy_orders = FakeProxyOrderRepository(self.db)
        self.commits = 0
        # Raised by the next commit instead of committing, once.
        self.commit_error: Exception | None = None
        self._snapshot: dict | None = None

    def __enter__(self) -> FakeUnitOfWork:
        self._snapshot = self.db.snapshot()
        return self

    def commit(self) -> None:
        if self.commit_error is not None:
            error, self.commit_error = self.commit_error, None
            raise error
        self.commits += 1
        self.db.concurrent_writes.clear()
        self._snapshot = self.db.snapshot()

    def rollback(self) -> None:
        if self._snapshot is not None:
            self.db.restore(self._snapshot)
        for write in self.db.concurrent_writes:
            write()
        self.db.concurrent_writes.clear()


class FakePaymentGateway(PaymentGateway):

    def __init__(self, approve: bool = True) -> None:
        self.approve = approve
        self.charges: list[tuple[Money, str]] = []
        self.declined: list[tuple[Money, str]] = []
        self.refunds: list[tuple[Money, str]] = []
        # Runs inside the next charge, before it is decided, e.g. to race
        # a second request against the first.
        self.during_next_charge: Callable[[], None] | None = None

    def charge(self, amount: Money, method: str) -> bool:
        if self.during_next_charge is not None:
            hook, self.during_next_charge = self.during_next_charge, None
            hook()
        if not self.approve:
            self.declined.append((amount, method))
            return False
        self.charges.append((amount, method))
        return True

    def refund(self, amount: Money, method: str) -> None:
        self.refunds.append((amount, method))

    @property
    def total_charged(self) -> Decimal:
        return sum((amount.amount for amount, _ in self.charges), Decimal("0"))


# --- Actors -------------------------------------------------------------------


def customer(user_id: str = "cust-1") -> Actor:
    return Actor(user_id=user_id, role=ActorRole.CUSTOMER)


def owner_of(store: Store) -> Actor:
    return Actor(
        user_id=store.owner_id, role=ActorRole(store.role.value), store_id=store.id
    )
