"""Application service: Place Order (checkout) use case.

Turns a customer's cart into one order per retailer store.  Every store's
allocation, stock reservation and order insert happen in one unit of
work: checkout either succeeds for the whole cart or leaves no trace.

Retailer stock is reserved with compare-and-swap.  If another checkout
moved the same stock first, the whole placement is re-run from a fresh
snapshot (bounded retries).
"""

from __future__ import annotations

import logging

from marketflow.application.concurrency import run_with_retry
from marketflow.application.dto import CartItemSpec, PlacementDTO, order_to_dto
from marketflow.domain.exceptions import (
    ConcurrencyConflict,
    EmptyOrderError,
    EntityNotFoundError,
    PermissionDenied,
    ValidationError,
)
from marketflow.domain.model.order import (
    Order,
    OrderKind,
    PaymentStatus,
    new_order_number,
)
from marketflow.domain.model.store import Actor, ActorRole, StoreRole
from marketflow.domain.model.value_objects import Quantity
from marketflow.domain.repository.unit_of_work import UnitOfWork
from marketflow.domain.service.allocator import Allocation, Allocator, CartLine
from marketflow.domain.service.sourcing_matcher import SourcingMatcher

logger = logging.getLogger(__name__)


class PlaceOrderHandler:

    def __init__(
        self,
        uow: UnitOfWork,
        allow_partial_orders: bool = False,
        retry_attempts: int = 3,
        retry_backoff: float = 0.05,
    ) -> None:
        self._uow = uow
        self._allow_partial = allow_partial_orders
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff

    def handle(
        self,
        actor: Actor,
        items: list[CartItemSpec],
        payment_status: str = "pending",
    ) -> PlacementDTO:
        """Place the cart.

        Steps:
        1. Validate quantities and resolve each inventory record.
        2. Group the cart by retailer store.
        3. Allocate each group between retailer stock and wholesalers.
        4. Reserve retailer stock and persist the orders, atomically.
        """
        if actor.role != ActorRole.CUSTOMER:
            raise PermissionDenied("Only customers can place orders")
        if not items:
            raise EmptyOrderError("Order must contain at least one item")
        try:
            payment = PaymentStatus(payment_status)
        except ValueError:
            raise ValidationError(f"Unknown payment status '{payment_status}'")

        return run_with_retry(
            lambda: self._place(actor, items, payment),
            attempts=self._retry_attempts,
            backoff_base=self._retry_backoff,
        )

    def _place(
        self, actor: Actor, items: list[CartItemSpec], payment: PaymentStatus
    ) -> PlacementDTO:
        with self._uow as uow:
            groups = self._group_by_store(uow, items)
            allocator = Allocator(
                SourcingMatcher(uow.inventory, uow.proxy_orders, uow.orders),
                allow_partial=self._allow_partial,
            )

            orders: list[Order] = []
            omitted: dict[str, int] = {}
            for store_id, cart_lines in groups.items():
                allocation = allocator.allocate(store_id, cart_lines)
                omitted.update(allocation.omitted)
                if allocation.is_empty:
                    logger.warning(
                        "Nothing in the cart can be supplied by store #%s", store_id
                    )
                    continue

                self._reserve(uow, allocation)
                order = Order.place(
                    order_number=new_order_number(OrderKind.CUSTOMER),
                    buyer_id=actor.user_id,
                    seller_store_id=store_id,
                    lines=allocation.lines,
                    requirements=allocation.requirements,
                    payment_status=payment,
                    currency=cart_lines[0].inventory.unit_price.currency,
                )
                uow.orders.save(order)
                orders.append(order)
                logger.info(
                    "Placed order %s at store #%s: %d line(s), %d requirement(s)",
                    order.order_number, store_id,
                    len(order.lines), len(order.requirements),
                )

            if not orders:
                raise EmptyOrderError("None of the ordered items can be supplied")

            uow.commit()
            return PlacementDTO(
                orders=[order_to_dto(order) for order in orders],
                omitted=omitted,
            )

    # --- Internal helpers -----------------------------------------------------

    @staticmethod
    def _group_by_store(
        uow: UnitOfWork, items: list[CartItemSpec]
    ) -> dict[int, list[CartLine]]:
        groups: dict[int, list[CartLine]] = {}
        for spec in items:
            quantity = Quantity(spec.quantity)
            record = uow.inventory.get_by_id(spec.inventory_id)
            if record is None:
                raise EntityNotFoundError(f"Inventory #{spec.inventory_id} not found")

            store = uow.stores.get_by_id(record.store_id)
            if store is None:
                raise EntityNotFoundError(f"Store #{record.store_id} not found")
            if store.role != StoreRole.RETAILER:
                raise ValidationError(
                    f"Store '{store.name}' is not a retailer; customers buy from retailers"
                )

            product = uow.products.get_by_id(record.product_id)
            if product is None:
                raise EntityNotFoundError(f"Product #{record.product_id} not found")

            groups.setdefault(store.id, []).append(
                CartLine(inventory=record, product=product, quantity=quantity)
            )
        return groups

    @staticmethod
    def _reserve(uow: UnitOfWork, allocation: Allocation) -> None:
        for reservation in allocation.reservations:
            if not uow.inventory.compare_and_set_stock(
                reservation.inventory_id,
                reservation.expected_stock,
                reservation.new_stock,
            ):
                raise ConcurrencyConflict(
                    f"Stock of inventory #{reservation.inventory_id} changed during checkout"
                )
