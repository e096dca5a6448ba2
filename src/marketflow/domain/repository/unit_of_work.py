"""Abstract unit of work: one transaction across all repositories.

Usage::

    with uow:
        ...  # read and write through uow.orders, uow.inventory, ...
        uow.commit()

Leaving the block without ``commit()`` (including by exception) rolls
every write back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from marketflow.domain.repository.inventory_repository import InventoryRepository
from marketflow.domain.repository.order_repository import OrderRepository
from marketflow.domain.repository.product_repository import ProductRepository
from marketflow.domain.repository.proxy_order_repository import ProxyOrderRepository
from marketflow.domain.repository.store_repository import StoreRepository


class UnitOfWork(ABC):
    stores: StoreRepository
    products: ProductRepository
    inventory: InventoryRepository
    orders: OrderRepository
    proxy_orders: ProxyOrderRepository

    def __enter__(self) -> UnitOfWork:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.rollback()

    @abstractmethod
    def commit(self) -> None:
        """Make every write since ``__enter__`` durable."""

    @abstractmethod
    def rollback(self) -> None:
        """Discard uncommitted writes (a no-op after ``commit()``)."""
