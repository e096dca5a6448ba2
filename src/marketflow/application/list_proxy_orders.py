"""Application services: retailer/wholesaler work queues (queries)."""

from __future__ import annotations

from marketflow.application.dto import (
    OrderDTO,
    ProxyOrderDTO,
    order_to_dto,
    proxy_order_to_dto,
)
from marketflow.domain.exceptions import EntityNotFoundError, ValidationError
from marketflow.domain.model.store import Actor, StoreRole
from marketflow.domain.repository.unit_of_work import UnitOfWork


class ListProxyOrdersHandler:
    """Proxy orders a store is party to, as retailer or as wholesaler."""

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, actor: Actor, store_id: int) -> list[ProxyOrderDTO]:
        with self._uow as uow:
            store = uow.stores.get_by_id(store_id)
            if store is None:
                raise EntityNotFoundError(f"Store #{store_id} not found")
            actor.require_owner(store)

            if store.role == StoreRole.RETAILER:
                proxies = uow.proxy_orders.list_by_retailer(store_id)
            else:
                proxies = uow.proxy_orders.list_by_wholesaler(store_id)
            return [proxy_order_to_dto(p) for p in proxies]


class ListPendingApprovalsHandler:
    """Customer orders a retailer still has to approve sourcing for."""

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, actor: Actor, store_id: int) -> list[OrderDTO]:
        with self._uow as uow:
            store = uow.stores.get_by_id(store_id)
            if store is None:
                raise EntityNotFoundError(f"Store #{store_id} not found")
            if store.role != StoreRole.RETAILER:
                raise ValidationError("Only retailers have orders awaiting approval")
            actor.require_owner(store)
            return [order_to_dto(o) for o in uow.orders.list_awaiting_approval(store_id)]
