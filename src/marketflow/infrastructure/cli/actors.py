"""Resolve the acting identity for store-scoped commands.

The CLI has no login; ``--user`` and ``--store`` name the caller and the
store they act for, and the store's role decides the actor's role.
Ownership is still checked by each use case.
"""

from __future__ import annotations

from marketflow.domain.exceptions import EntityNotFoundError
from marketflow.domain.model.store import Actor, ActorRole
from marketflow.infrastructure import bootstrap


def store_actor(user_id: str, store_id: int) -> Actor:
    with bootstrap.unit_of_work() as uow:
        store = uow.stores.get_by_id(store_id)
    if store is None:
        raise EntityNotFoundError(f"Store #{store_id} not found")
    return Actor(user_id=user_id, role=ActorRole(store.role.value), store_id=store.id)


def customer_actor(user_id: str) -> Actor:
    return Actor(user_id=user_id, role=ActorRole.CUSTOMER)
