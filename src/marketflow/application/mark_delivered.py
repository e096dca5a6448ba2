"""Application service: Mark Delivered use case.

The wholesaler confirms the proxy order's units reached the retailer.
Delivery Settlement takes the units out of wholesaler stock exactly once;
the coordinator then updates the wholesale order.  Calling this again for
a settled proxy order is harmless.
"""

from __future__ import annotations

from marketflow.application.concurrency import run_with_retry
from marketflow.application.dto import ProxyOrderDTO, proxy_order_to_dto
from marketflow.application.review_proxy_order import load_proxy_for_wholesaler
from marketflow.domain.model.store import Actor
from marketflow.domain.repository.unit_of_work import UnitOfWork
from marketflow.domain.service.delivery_settlement import DeliverySettlement
from marketflow.domain.service.fulfillment_coordinator import FulfillmentCoordinator


class MarkDeliveredHandler:

    def __init__(
        self,
        uow: UnitOfWork,
        retry_attempts: int = 3,
        retry_backoff: float = 0.05,
    ) -> None:
        self._uow = uow
        self._retry_attempts = retry_attempts
        self._retry_backoff = retry_backoff

    def handle(self, actor: Actor, proxy_order_id: int) -> ProxyOrderDTO:
        return run_with_retry(
            lambda: self._deliver(actor, proxy_order_id),
            attempts=self._retry_attempts,
            backoff_base=self._retry_backoff,
        )

    def _deliver(self, actor: Actor, proxy_order_id: int) -> ProxyOrderDTO:
        with self._uow as uow:
            proxy = load_proxy_for_wholesaler(uow, actor, proxy_order_id)
            settlement = DeliverySettlement(uow.inventory, uow.proxy_orders)
            if settlement.settle(proxy):
                FulfillmentCoordinator(uow).dispatch(proxy.pull_events())
                uow.commit()
            return proxy_order_to_dto(proxy)
