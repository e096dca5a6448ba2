"""Abstract repository for Product references."""

from __future__ import annotations

from abc import ABC, abstractmethod

from marketflow.domain.model.product import Product


class ProductRepository(ABC):

    @abstractmethod
    def get_by_id(self, product_id: int) -> Product | None:
        """Return a product by its ID, or None if not found."""

    @abstractmethod
    def get_by_name(self, name: str) -> Product | None:
        """Return a product by name (trimmed, case-insensitive), or None."""

    @abstractmethod
    def list_all(self) -> list[Product]:
        """Return every product."""

    @abstractmethod
    def save(self, product: Product) -> None:
        """Persist a new or updated product."""
