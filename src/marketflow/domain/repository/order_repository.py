"""Abstract repository for Order aggregate (lines and requirements included)."""

from __future__ import annotations

from abc import ABC, abstractmethod

from marketflow.domain.model.order import Order


class OrderRepository(ABC):

    @abstractmethod
    def get_by_id(self, order_id: int) -> Order | None:
        """Return an order by its ID, or None if not found."""

    @abstractmethod
    def list_by_seller(self, store_id: int) -> list[Order]:
        """Return every order sold by a store, newest first."""

    @abstractmethod
    def list_awaiting_approval(self, store_id: int) -> list[Order]:
        """Return a retailer's orders whose requirements are still unresolved."""

    @abstractmethod
    def save(self, order: Order) -> None:
        """Persist a new or updated order.

        Updates are conditional on ``order.version``; if another writer
        saved the order first, raises ConcurrencyConflict.
        """
