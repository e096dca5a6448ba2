"""Application service: Update Order Status use case.

The seller moves one of its orders along
pending → confirmed → packed → shipped → delivered, or cancels/refunds it.

For customer orders the Order Status Guard runs first, in the same unit
of work that reads the linked proxy orders (locked) and writes the new
status, so a proxy order changing concurrently cannot slip past it.

Cancelling or refunding an order cancels the proxy orders still open
against it.  For a wholesale order that also cancels the customer orders
those proxy orders were sourcing for.
"""

from __future__ import annotations

import logging

from marketflow.application.concurrency import run_with_retry
from marketflow.application.dto import OrderDTO, order_to_dto
from marketflow.domain.exceptions import EntityNotFoundError, ValidationError
from marketflow.domain.model.order import OrderStatus
from marketflow.domain.model.store import Actor
from marketflow.domain.repository.unit_of_work import UnitOfWork
from marketflow.domain.service.fulfillment_coordinator import FulfillmentCoordinator
from marketflow.domain.service.order_status_guard import OrderStatusGuard

logger = logging.getLogger(__name__)


class UpdateOrderStatusHandler:

    def __init__(
        self,
        uow: UnitOfWork,
        retry_attempts: int = 3,
        retry_backoff: float = 0.05,
    ) -> None:
        self._uow = uow
        self._guard = OrderStatusGuard()
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff

    def handle(
        self,
        actor: Actor,
        order_id: int,
        status: str,
        reason: str | None = None,
    ) -> OrderDTO:
        try:
            target = OrderStatus(status.strip().lower())
        except ValueError:
            raise ValidationError(f"Unknown order status '{status}'")

        return run_with_retry(
            lambda: self._update(actor, order_id, target, reason),
            attempts=self._retry_attempts,
            backoff_base=self._retry_backoff,
        )

    def _update(
        self,
        actor: Actor,
        order_id: int,
        target: OrderStatus,
        reason: str | None,
    ) -> OrderDTO:
        with self._uow as uow:
            order = uow.orders.get_by_id(order_id)
            if order is None:
                raise EntityNotFoundError(f"Order #{order_id} not found")
            store = uow.stores.get_by_id(order.seller_store_id)
            if store is None:
                raise EntityNotFoundError(f"Store #{order.seller_store_id} not found")
            actor.require_owner(store)

            if target == OrderStatus.CANCELLED:
                order.cancel(reason)
            elif target == OrderStatus.REFUNDED:
                order.refund()
            else:
                proxies = (
                    uow.proxy_orders.list_for_customer_order(order.id, for_update=True)
                    if order.is_customer_order
                    else []
                )
                self._guard.check(order, target, proxies)
                order.advance_to(target)

            uow.orders.save(order)
            FulfillmentCoordinator(uow).dispatch(order.pull_events())
            uow.commit()

            proxies = (
                uow.proxy_orders.list_for_customer_order(order.id)
                if order.is_customer_order
                else []
            )
            result = order_to_dto(order, proxies)

        logger.info("Order %s is now %s", order.order_number, order.status.value)
        return result
