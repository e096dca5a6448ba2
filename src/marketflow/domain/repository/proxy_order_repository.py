"""Abstract repository for ProxyOrder aggregate."""

from __future__ import annotations

from abc import ABC, abstractmethod

from marketflow.domain.model.proxy_order import ProxyOrder


class ProxyOrderRepository(ABC):

    @abstractmethod
    def get_by_id(self, proxy_order_id: int, for_update: bool = False) -> ProxyOrder | None:
        """Return a proxy order by its ID, or None if not found."""

    @abstractmethod
    def list_for_customer_order(
        self, customer_order_id: int, for_update: bool = False
    ) -> list[ProxyOrder]:
        """Return every proxy order created for a customer order."""

    @abstractmethod
    def list_for_wholesaler_order(self, wholesaler_order_id: int) -> list[ProxyOrder]:
        """Return every proxy order paid through one wholesale order."""

    @abstractmethod
    def list_by_retailer(self, store_id: int) -> list[ProxyOrder]:
        """Return a retailer's proxy orders, newest first."""

    @abstractmethod
    def list_by_wholesaler(self, store_id: int) -> list[ProxyOrder]:
        """Return a wholesaler's proxy orders, newest first."""

    @abstractmethod
    def wholesalers_used_by(self, retailer_store_id: int, product_id: int) -> list[int]:
        """Return wholesaler store IDs that supplied this retailer and product.

        Most recent first, without duplicates; cancelled and rejected proxy
        orders do not count.
        """

    @abstractmethod
    def save(self, proxy_order: ProxyOrder) -> None:
        """Persist a new or updated proxy order.

        Updates are conditional on ``proxy_order.version``; raises
        ConcurrencyConflict if another writer got there first.
        """
