"""Domain service: Fulfillment Coordinator.

The single place where a change to one aggregate ripples into others.
Aggregates raise events while they transition; the application handler
saves them and passes the events here, inside the same unit of work.

Cascades:
  * ProxyOrderCancelled    -> cancel the customer order; cancel the
                              wholesale order once all its proxy orders
                              are cancelled.
  * ProxyOrderDelivered    -> mark the wholesale order delivered once all
                              its proxy orders have reached the retailer.
  * CustomerOrderDelivered -> complete proxy orders delivered to the retailer.
  * OrderCancelled         -> cancel the customer order's open proxy
                              orders and, if nothing had shipped, return
                              retailer-held units to stock.  For a
                              wholesale order, cancel its open proxy
                              orders, which in turn cancels the
                              customer orders they were sourcing for.
  * OrderRefunded          -> cancel the open proxy orders, as above,
                              without touching stock.
"""

from __future__ import annotations

import logging
from collections import deque

from marketflow.domain.events import (
    CustomerOrderDelivered,
    DomainEvent,
    OrderCancelled,
    OrderRefunded,
    ProxyOrderCancelled,
    ProxyOrderDelivered,
)
from marketflow.domain.exceptions import ConcurrencyConflict
from marketflow.domain.model.order import TERMINAL_STATUSES, OrderStatus
from marketflow.domain.model.proxy_order import (
    CANCELLABLE_STATUSES,
    CancelledBy,
    ProxyOrderStatus,
)
from marketflow.domain.repository.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

# A cancelled order returns stock only if it had not left the retailer yet.
_RESTOCKABLE = frozenset(
    {OrderStatus.PENDING.value, OrderStatus.CONFIRMED.value, OrderStatus.PACKED.value}
)


class FulfillmentCoordinator:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def dispatch(self, events: list[DomainEvent]) -> None:
        """Handle *events* and any events their cascades raise, in order."""
        queue = deque(events)
        while queue:
            event = queue.popleft()
            logger.debug("Dispatching %s", event)
            if isinstance(event, ProxyOrderCancelled):
                queue.extend(self._on_proxy_cancelled(event))
            elif isinstance(event, ProxyOrderDelivered):
                self._on_proxy_delivered(event)
            elif isinstance(event, CustomerOrderDelivered):
                self._on_customer_order_delivered(event)
            elif isinstance(event, OrderCancelled):
                queue.extend(self._on_order_cancelled(event))
            elif isinstance(event, OrderRefunded):
                queue.extend(self._on_order_refunded(event))

    # --- Handlers -------------------------------------------------------------

    def _on_proxy_cancelled(self, event: ProxyOrderCancelled) -> list[DomainEvent]:
        raised: list[DomainEvent] = []

        order = self._uow.orders.get_by_id(event.customer_order_id)
        if order is not None and order.status not in TERMINAL_STATUSES:
            order.cancel(f"Wholesaler sourcing cancelled: {event.reason}")
            self._uow.orders.save(order)
            logger.info(
                "Cancelled customer order %s after proxy order #%s was cancelled",
                order.order_number, event.proxy_order_id,
            )
            raised.extend(order.pull_events())

        if event.wholesaler_order_id is not None:
            siblings = self._uow.proxy_orders.list_for_wholesaler_order(
                event.wholesaler_order_id
            )
            if all(po.status == ProxyOrderStatus.CANCELLED for po in siblings):
                wholesale = self._uow.orders.get_by_id(event.wholesaler_order_id)
                if wholesale is not None and wholesale.status not in TERMINAL_STATUSES:
                    wholesale.cancel(event.reason)
                    self._uow.orders.save(wholesale)
                    wholesale.pull_events()
        return raised

    def _on_proxy_delivered(self, event: ProxyOrderDelivered) -> None:
        if event.wholesaler_order_id is None:
            return
        siblings = self._uow.proxy_orders.list_for_wholesaler_order(
            event.wholesaler_order_id
        )
        if not all(po.is_settled for po in siblings):
            return
        wholesale = self._uow.orders.get_by_id(event.wholesaler_order_id)
        if wholesale is not None and wholesale.status not in TERMINAL_STATUSES:
            wholesale.advance_to(OrderStatus.DELIVERED)
            self._uow.orders.save(wholesale)
            wholesale.pull_events()

    def _on_customer_order_delivered(self, event: CustomerOrderDelivered) -> None:
        proxies = self._uow.proxy_orders.list_for_customer_order(
            event.order_id, for_update=True
        )
        for proxy in proxies:
            if proxy.status == ProxyOrderStatus.DELIVERED_TO_RETAILER:
                proxy.complete()
                self._uow.proxy_orders.save(proxy)
                logger.info("Completed proxy order #%s", proxy.id)

    def _on_order_cancelled(self, event: OrderCancelled) -> list[DomainEvent]:
        order = self._uow.orders.get_by_id(event.order_id)
        if order is None:
            return []

        raised = self._cancel_open_proxies(order, "cancelled")
        if order.is_customer_order and event.previous_status in _RESTOCKABLE:
            self._release_retailer_stock(order)
        return raised

    def _on_order_refunded(self, event: OrderRefunded) -> list[DomainEvent]:
        order = self._uow.orders.get_by_id(event.order_id)
        if order is None:
            return []
        return self._cancel_open_proxies(order, "refunded")

    # --- Internal helpers -----------------------------------------------------

    def _cancel_open_proxies(self, order, outcome: str) -> list[DomainEvent]:
        if order.is_customer_order:
            proxies = self._uow.proxy_orders.list_for_customer_order(
                order.id, for_update=True
            )
            reason = f"Customer order {order.order_number} {outcome}"
            cancelled_by = CancelledBy.RETAILER
        else:
            proxies = self._uow.proxy_orders.list_for_wholesaler_order(order.id)
            reason = f"Wholesale order {order.order_number} {outcome}"
            cancelled_by = CancelledBy.WHOLESALER

        raised: list[DomainEvent] = []
        for proxy in proxies:
            if proxy.status not in CANCELLABLE_STATUSES:
                continue
            proxy.cancel(reason, cancelled_by)
            self._uow.proxy_orders.save(proxy)
            logger.info("Cancelled proxy order #%s: %s", proxy.id, reason)
            raised.extend(proxy.pull_events())
        return raised

    def _release_retailer_stock(self, order) -> None:
        for line in order.lines:
            if line.sourced_via_proxy:
                continue
            record = self._uow.inventory.get_by_id(line.inventory_id)
            if record is None:
                logger.warning(
                    "Inventory #%s gone; cannot restock %d units of order %s",
                    line.inventory_id, line.quantity.value, order.order_number,
                )
                continue
            restored = record.stock_qty + line.quantity.value
            if not self._uow.inventory.compare_and_set_stock(
                record.id, record.stock_qty, restored
            ):
                raise ConcurrencyConflict(
                    f"Stock of inventory #{record.id} changed while restocking"
                )
            logger.info(
                "Returned %d units to inventory #%s from cancelled order %s",
                line.quantity.value, record.id, order.order_number,
            )
