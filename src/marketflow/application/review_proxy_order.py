"""Application service: wholesaler approves or rejects a PENDING proxy order."""

from __future__ import annotations

import logging

from marketflow.application.dto import ProxyOrderDTO, proxy_order_to_dto
from marketflow.domain.exceptions import EntityNotFoundError
from marketflow.domain.model.proxy_order import ProxyOrder
from marketflow.domain.model.store import Actor
from marketflow.domain.repository.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def load_proxy_for_wholesaler(uow: UnitOfWork, actor: Actor, proxy_order_id: int) -> ProxyOrder:
    proxy = uow.proxy_orders.get_by_id(proxy_order_id, for_update=True)
    if proxy is None:
        raise EntityNotFoundError(f"Proxy order #{proxy_order_id} not found")
    store = uow.stores.get_by_id(proxy.wholesaler_store_id)
    if store is None:
        raise EntityNotFoundError(f"Store #{proxy.wholesaler_store_id} not found")
    actor.require_owner(store)
    return proxy


class ApproveProxyOrderHandler:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, actor: Actor, proxy_order_id: int, notes: str | None = None) -> ProxyOrderDTO:
        with self._uow as uow:
            proxy = load_proxy_for_wholesaler(uow, actor, proxy_order_id)
            proxy.approve(notes)
            uow.proxy_orders.save(proxy)
            uow.commit()
        logger.info("Proxy order #%s approved by wholesaler", proxy.id)
        return proxy_order_to_dto(proxy)


class RejectProxyOrderHandler:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, actor: Actor, proxy_order_id: int, notes: str) -> ProxyOrderDTO:
        with self._uow as uow:
            proxy = load_proxy_for_wholesaler(uow, actor, proxy_order_id)
            proxy.reject(notes)
            uow.proxy_orders.save(proxy)
            uow.commit()
        logger.info("Proxy order #%s rejected by wholesaler: %s", proxy.id, notes)
        return proxy_order_to_dto(proxy)
