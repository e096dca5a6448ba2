"""Application service: Request Wholesaler Approval use case.

The wholesaler-approval lifecycle: instead of paying up front, the
retailer turns each requirement into a PENDING proxy order that the
wholesaler must accept before anything is paid.  No wholesale order
exists until the retailer pays (see PayProxyOrderHandler).
"""

from __future__ import annotations

import logging

from marketflow.application.dto import ProxyOrderDTO, proxy_order_to_dto
from marketflow.application.sourcing import (
    load_order_for_retailer,
    proxy_sourced_lines,
    revalidate_requirements,
)
from marketflow.domain.model.proxy_order import ProxyOrder
from marketflow.domain.model.store import Actor
from marketflow.domain.repository.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class RequestWholesalerApprovalHandler:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, actor: Actor, order_id: int) -> list[ProxyOrderDTO]:
        with self._uow as uow:
            order, store = load_order_for_retailer(uow, actor, order_id)
            requirements = revalidate_requirements(uow, order)

            proxies = []
            for req in requirements:
                proxy = ProxyOrder.awaiting_wholesaler(
                    req, retailer_store_id=store.id, customer_order_id=order.id
                )
                uow.proxy_orders.save(proxy)
                proxies.append(proxy)

            order.resolve_requirements(proxy_sourced_lines(uow, requirements))
            uow.orders.save(order)
            uow.commit()

        logger.info(
            "Order %s: %d proxy order(s) sent for wholesaler approval",
            order.order_number, len(proxies),
        )
        return [proxy_order_to_dto(p) for p in proxies]
