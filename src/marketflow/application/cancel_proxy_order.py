"""Application service: Cancel Proxy Order use case.

Either party may cancel a proxy order before its units are delivered.
The customer order it was created for is cancelled with it.
"""

from __future__ import annotations

import logging

from marketflow.application.dto import ProxyOrderDTO, proxy_order_to_dto
from marketflow.domain.exceptions import EntityNotFoundError, PermissionDenied
from marketflow.domain.model.proxy_order import CancelledBy
from marketflow.domain.model.store import Actor, ActorRole
from marketflow.domain.repository.unit_of_work import UnitOfWork
from marketflow.domain.service.fulfillment_coordinator import FulfillmentCoordinator

logger = logging.getLogger(__name__)


class CancelProxyOrderHandler:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, actor: Actor, proxy_order_id: int, reason: str) -> ProxyOrderDTO:
        with self._uow as uow:
            proxy = uow.proxy_orders.get_by_id(proxy_order_id, for_update=True)
            if proxy is None:
                raise EntityNotFoundError(f"Proxy order #{proxy_order_id} not found")

            if actor.role == ActorRole.RETAILER:
                store_id, cancelled_by = proxy.retailer_store_id, CancelledBy.RETAILER
            elif actor.role == ActorRole.WHOLESALER:
                store_id, cancelled_by = proxy.wholesaler_store_id, CancelledBy.WHOLESALER
            else:
                raise PermissionDenied("Only the retailer or wholesaler can cancel a proxy order")
            store = uow.stores.get_by_id(store_id)
            if store is None:
                raise EntityNotFoundError(f"Store #{store_id} not found")
            actor.require_owner(store)

            proxy.cancel(reason, cancelled_by)
            uow.proxy_orders.save(proxy)
            FulfillmentCoordinator(uow).dispatch(proxy.pull_events())
            uow.commit()

        logger.info(
            "Proxy order #%s cancelled by %s: %s",
            proxy.id, cancelled_by.value, proxy.cancellation_reason,
        )
        return proxy_order_to_dto(proxy)
