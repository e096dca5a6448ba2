"""SQLAlchemy implementations of the domain repositories.

Each repository works inside the session owned by the unit of work and
never commits.  Writes are flushed immediately so generated IDs are
available and conflicts surface at the call that caused them.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Iterator

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from marketflow.domain.exceptions import (
    ConcurrencyConflict,
    ExternalFailure,
    ValidationError,
)
from marketflow.domain.model.inventory import InventoryRecord, SourceType
from marketflow.domain.model.order import (
    FulfillmentRequirement,
    Order,
    OrderKind,
    OrderLine,
    OrderStatus,
    PaymentStatus,
    ProductSnapshot,
)
from marketflow.domain.model.product import Product, normalize_name
from marketflow.domain.model.proxy_order import (
    CancelledBy,
    CreationPath,
    ProxyOrder,
    ProxyOrderStatus,
    ProxyPaymentStatus,
)
from marketflow.domain.model.store import Store, StoreRole
from marketflow.domain.model.value_objects import Money, Quantity
from marketflow.domain.repository.inventory_repository import InventoryRepository
from marketflow.domain.repository.order_repository import OrderRepository
from marketflow.domain.repository.product_repository import ProductRepository
from marketflow.domain.repository.proxy_order_repository import ProxyOrderRepository
from marketflow.domain.repository.store_repository import StoreRepository
from marketflow.infrastructure.persistence.sqlalchemy_models import (
    InventoryRow,
    OrderLineRow,
    OrderRow,
    ProductRow,
    ProxyOrderRow,
    RequirementRow,
    StoreRow,
)

logger = logging.getLogger(__name__)

_CLOSED_PROXY_STATUSES = (
    ProxyOrderStatus.CANCELLED.value,
    ProxyOrderStatus.REJECTED.value,
)
_CLOSED_ORDER_STATUSES = (
    OrderStatus.DELIVERED.value,
    OrderStatus.CANCELLED.value,
    OrderStatus.REFUNDED.value,
)


@contextmanager
def translate_errors() -> Iterator[None]:
    """Re-raise storage errors as domain exceptions."""
    try:
        yield
    except StaleDataError as exc:
        raise ConcurrencyConflict("The record was changed by another writer") from exc
    except IntegrityError as exc:
        raise ValidationError(f"Write rejected by the store: {exc.orig}") from exc
    except OperationalError as exc:
        # SQLite reports a held write lock as "database is locked".
        if "locked" in str(exc.orig).lower():
            raise ConcurrencyConflict("The database is busy, try again") from exc
        raise ExternalFailure(f"Database error: {exc.orig}") from exc
    except SQLAlchemyError as exc:
        raise ExternalFailure(f"Database error: {exc}") from exc


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqlAlchemyStoreRepository(StoreRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, store_id: int) -> Store | None:
        row = self._session.get(StoreRow, store_id)
        return self._to_domain(row) if row else None

    def list_all(self, role: StoreRole | None = None) -> list[Store]:
        stmt = select(StoreRow).order_by(StoreRow.id)
        if role is not None:
            stmt = stmt.where(StoreRow.role == role.value)
        return [self._to_domain(r) for r in self._session.scalars(stmt)]

    def save(self, store: Store) -> None:
        row = self._session.get(StoreRow, store.id) if store.id else None
        if row is None:
            row = StoreRow()
            self._session.add(row)
        row.name = store.name
        row.role = store.role.value
        row.owner_id = store.owner_id
        with translate_errors():
            self._session.flush()
        store.id = row.id

    @staticmethod
    def _to_domain(row: StoreRow) -> Store:
        return Store(
            id=row.id, name=row.name, role=StoreRole(row.role), owner_id=row.owner_id
        )


class SqlAlchemyProductRepository(ProductRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, product_id: int) -> Product | None:
        row = self._session.get(ProductRow, product_id)
        return self._to_domain(row) if row else None

    def get_by_name(self, name: str) -> Product | None:
        row = self._session.scalars(
            select(ProductRow).where(ProductRow.match_key == normalize_name(name))
        ).first()
        return self._to_domain(row) if row else None

    def list_all(self) -> list[Product]:
        rows = self._session.scalars(select(ProductRow).order_by(ProductRow.id))
        return [self._to_domain(r) for r in rows]

    def save(self, product: Product) -> None:
        row = self._session.get(ProductRow, product.id) if product.id else None
        if row is None:
            row = ProductRow()
            self._session.add(row)
        row.name = product.name
        row.match_key = product.match_key
        row.image_url = product.image_url
        with translate_errors():
            self._session.flush()
        product.id = row.id

    @staticmethod
    def _to_domain(row: ProductRow) -> Product:
        return Product(id=row.id, name=row.name, image_url=row.image_url)


class SqlAlchemyInventoryRepository(InventoryRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, inventory_id: int) -> InventoryRecord | None:
        row = self._session.get(InventoryRow, inventory_id)
        return self._to_domain(row) if row else None

    def get_for_store_product(
        self, store_id: int, product_id: int
    ) -> InventoryRecord | None:
        row = self._session.scalars(
            select(InventoryRow).where(
                InventoryRow.store_id == store_id,
                InventoryRow.product_id == product_id,
            )
        ).first()
        return self._to_domain(row) if row else None

    def list_by_store(self, store_id: int) -> list[InventoryRecord]:
        rows = self._session.scalars(
            select(InventoryRow)
            .where(InventoryRow.store_id == store_id)
            .order_by(InventoryRow.id)
        )
        return [self._to_domain(r) for r in rows]

    def list_all(self) -> list[InventoryRecord]:
        rows = self._session.scalars(select(InventoryRow).order_by(InventoryRow.id))
        return [self._to_domain(r) for r in rows]

    def find_wholesale_stock(
        self, product_name: str, min_quantity: int
    ) -> list[InventoryRecord]:
        stmt = (
            select(InventoryRow)
            .join(ProductRow, InventoryRow.product_id == ProductRow.id)
            .join(StoreRow, InventoryRow.store_id == StoreRow.id)
            .where(
                StoreRow.role == StoreRole.WHOLESALER.value,
                func.lower(func.trim(ProductRow.name)) == normalize_name(product_name),
                InventoryRow.stock_qty >= min_quantity,
            )
            .order_by(InventoryRow.id)
        )
        return [self._to_domain(r) for r in self._session.scalars(stmt)]

    def save(self, record: InventoryRecord) -> None:
        row = self._session.get(InventoryRow, record.id) if record.id else None
        if row is None:
            row = InventoryRow(
                store_id=record.store_id,
                product_id=record.product_id,
                stock_qty=record.stock_qty,
            )
            self._session.add(row)
        row.unit_price = record.unit_price.amount
        row.currency = record.unit_price.currency
        row.list_price = record.list_price.amount if record.list_price else None
        row.delivery_days = record.delivery_days
        row.source_type = record.source_type.value
        row.source_order_id = record.source_order_id
        with translate_errors():
            self._session.flush()
        record.id = row.id

    def compare_and_set_stock(self, inventory_id: int, expected: int, new: int) -> bool:
        if new < 0:
            raise ValidationError("Stock quantity cannot be negative")
        stmt = (
            update(InventoryRow)
            .where(InventoryRow.id == inventory_id, InventoryRow.stock_qty == expected)
            .values(stock_qty=new)
            .execution_options(synchronize_session=False)
        )
        with translate_errors():
            result = self._session.execute(stmt)
        if result.rowcount != 1:
            logger.debug(
                "Stock CAS on inventory #%s missed (expected %d)", inventory_id, expected
            )
            return False
        cached = self._session.identity_map.get(
            self._session.identity_key(InventoryRow, inventory_id)
        )
        if cached is not None:
            self._session.expire(cached, ["stock_qty"])
        return True

    @staticmethod
    def _to_domain(row: InventoryRow) -> InventoryRecord:
        return InventoryRecord(
            id=row.id,
            store_id=row.store_id,
            product_id=row.product_id,
            unit_price=Money(row.unit_price, row.currency),
            stock_qty=row.stock_qty,
            delivery_days=row.delivery_days,
            list_price=(
                Money(row.list_price, row.currency) if row.list_price is not None else None
            ),
            source_order_id=row.source_order_id,
            source_type=SourceType(row.source_type),
        )


class SqlAlchemyOrderRepository(OrderRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, order_id: int) -> Order | None:
        row = self._session.get(OrderRow, order_id)
        return self._to_domain(row) if row else None

    def list_by_seller(self, store_id: int) -> list[Order]:
        rows = self._session.scalars(
            select(OrderRow)
            .where(OrderRow.seller_store_id == store_id)
            .order_by(OrderRow.created_at.desc(), OrderRow.id.desc())
        )
        return [self._to_domain(r) for r in rows]

    def list_awaiting_approval(self, store_id: int) -> list[Order]:
        rows = self._session.scalars(
            select(OrderRow)
            .where(
                OrderRow.seller_store_id == store_id,
                OrderRow.kind == OrderKind.CUSTOMER.value,
                OrderRow.needs_proxy_approval.is_(True),
                OrderRow.proxy_approved_at.is_(None),
                OrderRow.status.not_in(_CLOSED_ORDER_STATUSES),
            )
            .order_by(OrderRow.created_at, OrderRow.id)
        )
        return [self._to_domain(r) for r in rows]

    def save(self, order: Order) -> None:
        if order.id is None:
            row = OrderRow(version=1)
            self._session.add(row)
        else:
            row = self._session.get(OrderRow, order.id)
            if row is None or row.version != order.version:
                raise ConcurrencyConflict(
                    f"Order {order.order_number} was changed by another writer"
                )
            row.version = order.version + 1

        row.order_number = order.order_number
        row.kind = order.kind.value
        row.buyer_id = order.buyer_id
        row.buyer_store_id = order.buyer_store_id
        row.seller_store_id = order.seller_store_id
        row.status = order.status.value
        row.payment_status = order.payment_status.value
        row.needs_proxy_approval = order.needs_proxy_approval
        row.proxy_approved_at = order.proxy_approved_at
        row.currency = order.currency
        row.cancellation_reason = order.cancellation_reason
        row.created_at = order.created_at
        row.updated_at = order.updated_at
        row.cancelled_at = order.cancelled_at
        row.delivered_at = order.delivered_at
        line_rows = self._sync_lines(row, order.lines)
        requirement_rows = self._sync_requirements(row, order.requirements)

        with translate_errors():
            self._session.flush()

        order.id = row.id
        order.version = row.version
        order.lines = [
            replace(line, id=line_row.id) for line, line_row in zip(order.lines, line_rows)
        ]
        order.requirements = [
            replace(req, id=req_row.id)
            for req, req_row in zip(order.requirements, requirement_rows)
        ]

    # --- Child collections ----------------------------------------------------

    @staticmethod
    def _sync_lines(row: OrderRow, lines: list[OrderLine]) -> list[OrderLineRow]:
        # Lines are immutable once written; only new ones need rows.
        existing = {r.id: r for r in row.lines}
        synced = []
        for line in lines:
            line_row = existing.get(line.id) if line.id is not None else None
            if line_row is None:
                line_row = OrderLineRow(
                    inventory_id=line.inventory_id,
                    product_id=line.product_id,
                    quantity=line.quantity.value,
                    unit_price=line.unit_price.amount,
                    product_name=line.snapshot.name,
                    product_image_url=line.snapshot.image_url,
                    sourced_via_proxy=line.sourced_via_proxy,
                )
            synced.append(line_row)
        row.lines = synced
        return synced

    @staticmethod
    def _sync_requirements(
        row: OrderRow, requirements: list[FulfillmentRequirement]
    ) -> list[RequirementRow]:
        existing = {r.id: r for r in row.requirements}
        synced = []
        for req in requirements:
            req_row = existing.get(req.id) if req.id is not None else None
            if req_row is None:
                req_row = RequirementRow()
            req_row.product_id = req.product_id
            req_row.product_name = req.product_name
            req_row.quantity = req.quantity.value
            req_row.wholesaler_store_id = req.wholesaler_store_id
            req_row.wholesaler_inventory_id = req.wholesaler_inventory_id
            req_row.unit_price = req.unit_price.amount
            req_row.wholesaler_delivery_days = req.wholesaler_delivery_days
            req_row.retailer_delivery_days = req.retailer_delivery_days
            req_row.retailer_inventory_id = req.retailer_inventory_id
            req_row.retail_unit_price = req.retail_unit_price.amount
            synced.append(req_row)
        row.requirements = synced
        return synced

    # --- Mapping --------------------------------------------------------------

    @staticmethod
    def _to_domain(row: OrderRow) -> Order:
        currency = row.currency
        lines = [
            OrderLine(
                id=r.id,
                inventory_id=r.inventory_id,
                product_id=r.product_id,
                quantity=Quantity(r.quantity),
                unit_price=Money(r.unit_price, currency),
                snapshot=ProductSnapshot(
                    name=r.product_name,
                    price=Money(r.unit_price, currency),
                    image_url=r.product_image_url,
                ),
                sourced_via_proxy=r.sourced_via_proxy,
            )
            for r in row.lines
        ]
        requirements = [
            FulfillmentRequirement(
                id=r.id,
                product_id=r.product_id,
                product_name=r.product_name,
                quantity=Quantity(r.quantity),
                wholesaler_store_id=r.wholesaler_store_id,
                wholesaler_inventory_id=r.wholesaler_inventory_id,
                unit_price=Money(r.unit_price, currency),
                wholesaler_delivery_days=r.wholesaler_delivery_days,
                retailer_delivery_days=r.retailer_delivery_days,
                retailer_inventory_id=r.retailer_inventory_id,
                retail_unit_price=Money(r.retail_unit_price, currency),
            )
            for r in row.requirements
        ]
        return Order(
            id=row.id,
            order_number=row.order_number,
            kind=OrderKind(row.kind),
            buyer_id=row.buyer_id,
            buyer_store_id=row.buyer_store_id,
            seller_store_id=row.seller_store_id,
            lines=lines,
            status=OrderStatus(row.status),
            payment_status=PaymentStatus(row.payment_status),
            needs_proxy_approval=row.needs_proxy_approval,
            proxy_approved_at=_aware(row.proxy_approved_at),
            requirements=requirements,
            currency=currency,
            cancellation_reason=row.cancellation_reason,
            created_at=_aware(row.created_at),
            updated_at=_aware(row.updated_at),
            cancelled_at=_aware(row.cancelled_at),
            delivered_at=_aware(row.delivered_at),
            version=row.version,
        )


class SqlAlchemyProxyOrderRepository(ProxyOrderRepository):

    def __init__(self, session: Session) -> None:
        self._session = session

    def get_by_id(self, proxy_order_id: int, for_update: bool = False) -> ProxyOrder | None:
        stmt = select(ProxyOrderRow).where(ProxyOrderRow.id == proxy_order_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self._session.scalars(stmt).first()
        return self._to_domain(row) if row else None

    def list_for_customer_order(
        self, customer_order_id: int, for_update: bool = False
    ) -> list[ProxyOrder]:
        stmt = (
            select(ProxyOrderRow)
            .where(ProxyOrderRow.customer_order_id == customer_order_id)
            .order_by(ProxyOrderRow.id)
        )
        if for_update:
            # NOTE: SQLite ignores FOR UPDATE; the version check still applies.
            stmt = stmt.with_for_update()
        return [self._to_domain(r) for r in self._session.scalars(stmt)]

    def list_for_wholesaler_order(self, wholesaler_order_id: int) -> list[ProxyOrder]:
        rows = self._session.scalars(
            select(ProxyOrderRow)
            .where(ProxyOrderRow.wholesaler_order_id == wholesaler_order_id)
            .order_by(ProxyOrderRow.id)
        )
        return [self._to_domain(r) for r in rows]

    def list_by_retailer(self, store_id: int) -> list[ProxyOrder]:
        rows = self._session.scalars(
            select(ProxyOrderRow)
            .where(ProxyOrderRow.retailer_store_id == store_id)
            .order_by(ProxyOrderRow.created_at.desc(), ProxyOrderRow.id.desc())
        )
        return [self._to_domain(r) for r in rows]

    def list_by_wholesaler(self, store_id: int) -> list[ProxyOrder]:
        rows = self._session.scalars(
            select(ProxyOrderRow)
            .where(ProxyOrderRow.wholesaler_store_id == store_id)
            .order_by(ProxyOrderRow.created_at.desc(), ProxyOrderRow.id.desc())
        )
        return [self._to_domain(r) for r in rows]

    def wholesalers_used_by(self, retailer_store_id: int, product_id: int) -> list[int]:
        rows = self._session.execute(
            select(ProxyOrderRow.wholesaler_store_id)
            .where(
                ProxyOrderRow.retailer_store_id == retailer_store_id,
                ProxyOrderRow.product_id == product_id,
                ProxyOrderRow.status.not_in(_CLOSED_PROXY_STATUSES),
            )
            .order_by(ProxyOrderRow.created_at.desc(), ProxyOrderRow.id.desc())
        )
        seen: list[int] = []
        for (store_id,) in rows:
            if store_id not in seen:
                seen.append(store_id)
        return seen

    def save(self, proxy_order: ProxyOrder) -> None:
        if proxy_order.id is None:
            row = ProxyOrderRow(version=1)
            self._session.add(row)
        else:
            row = self._session.get(ProxyOrderRow, proxy_order.id)
            if row is None or row.version != proxy_order.version:
                raise ConcurrencyConflict(
                    f"Proxy order #{proxy_order.id} was changed by another writer"
                )
            row.version = proxy_order.version + 1

        row.retailer_store_id = proxy_order.retailer_store_id
        row.wholesaler_store_id = proxy_order.wholesaler_store_id
        row.product_id = proxy_order.product_id
        row.inventory_id = proxy_order.inventory_id
        row.quantity = proxy_order.quantity.value
        row.unit_price = proxy_order.unit_price.amount
        row.currency = proxy_order.unit_price.currency
        row.customer_order_id = proxy_order.customer_order_id
        row.wholesaler_order_id = proxy_order.wholesaler_order_id
        row.creation_path = proxy_order.creation_path.value
        row.status = proxy_order.status.value
        row.payment_status = proxy_order.payment_status.value
        row.wholesaler_delivery_days = proxy_order.wholesaler_delivery_days
        row.retailer_delivery_days = proxy_order.retailer_delivery_days
        row.wholesaler_notes = proxy_order.wholesaler_notes
        row.cancellation_reason = proxy_order.cancellation_reason
        row.cancelled_by = proxy_order.cancelled_by.value if proxy_order.cancelled_by else None
        row.created_at = proxy_order.created_at
        row.approved_at = proxy_order.approved_at
        row.rejected_at = proxy_order.rejected_at
        row.paid_at = proxy_order.paid_at
        row.delivered_to_retailer_at = proxy_order.delivered_to_retailer_at
        row.completed_at = proxy_order.completed_at
        row.cancelled_at = proxy_order.cancelled_at

        with translate_errors():
            self._session.flush()
        proxy_order.id = row.id
        proxy_order.version = row.version

    @staticmethod
    def _to_domain(row: ProxyOrderRow) -> ProxyOrder:
        return ProxyOrder(
            id=row.id,
            retailer_store_id=row.retailer_store_id,
            wholesaler_store_id=row.wholesaler_store_id,
            product_id=row.product_id,
            inventory_id=row.inventory_id,
            quantity=Quantity(row.quantity),
            unit_price=Money(row.unit_price, row.currency),
            customer_order_id=row.customer_order_id,
            creation_path=CreationPath(row.creation_path),
            status=ProxyOrderStatus(row.status),
            payment_status=ProxyPaymentStatus(row.payment_status),
            wholesaler_order_id=row.wholesaler_order_id,
            wholesaler_delivery_days=row.wholesaler_delivery_days,
            retailer_delivery_days=row.retailer_delivery_days,
            wholesaler_notes=row.wholesaler_notes,
            cancellation_reason=row.cancellation_reason,
            cancelled_by=CancelledBy(row.cancelled_by) if row.cancelled_by else None,
            created_at=_aware(row.created_at),
            approved_at=_aware(row.approved_at),
            rejected_at=_aware(row.rejected_at),
            paid_at=_aware(row.paid_at),
            delivered_to_retailer_at=_aware(row.delivered_to_retailer_at),
            completed_at=_aware(row.completed_at),
            cancelled_at=_aware(row.cancelled_at),
            version=row.version,
        )
