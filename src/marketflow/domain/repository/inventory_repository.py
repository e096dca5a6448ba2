"""Abstract repository for InventoryRecord aggregate.

Stock levels are changed only through ``compare_and_set_stock`` so that
two writers working from the same snapshot cannot both succeed.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from marketflow.domain.model.inventory import InventoryRecord


class InventoryRepository(ABC):

    @abstractmethod
    def get_by_id(self, inventory_id: int) -> InventoryRecord | None:
        """Return the inventory record with this ID, or None."""

    @abstractmethod
    def get_for_store_product(
        self, store_id: int, product_id: int
    ) -> InventoryRecord | None:
        """Return a store's record for a product, or None."""

    @abstractmethod
    def list_by_store(self, store_id: int) -> list[InventoryRecord]:
        """Return every record held by a store."""

    @abstractmethod
    def list_all(self) -> list[InventoryRecord]:
        """Return every inventory record."""

    @abstractmethod
    def find_wholesale_stock(
        self, product_name: str, min_quantity: int
    ) -> list[InventoryRecord]:
        """Return wholesaler-held records for products named *product_name*.

        Names are compared trimmed and case-insensitively.  Only records
        with at least *min_quantity* in stock are returned.
        """

    @abstractmethod
    def save(self, record: InventoryRecord) -> None:
        """Insert a new record (assigning its ID), or update an existing one.

        Updates cover price, lead time and provenance only; the stock of an
        existing record changes solely through ``compare_and_set_stock``.
        """

    @abstractmethod
    def compare_and_set_stock(self, inventory_id: int, expected: int, new: int) -> bool:
        """Set ``stock_qty`` to *new* only if it currently equals *expected*.

        Returns False, without changing anything, if the stock has moved.
        """
