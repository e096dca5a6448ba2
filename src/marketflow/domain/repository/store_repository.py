"""Abstract repository for Store aggregate.

Defined in the domain layer so the domain never depends on
infrastructure. Concrete implementations live in the infrastructure
layer.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from marketflow.domain.model.store import Store, StoreRole


class StoreRepository(ABC):

    @abstractmethod
    def get_by_id(self, store_id: int) -> Store | None:
        """Return a store by its ID, or None if not found."""

    @abstractmethod
    def list_all(self, role: StoreRole | None = None) -> list[Store]:
        """Return every store, optionally only those with *role*."""

    @abstractmethod
    def save(self, store: Store) -> None:
        """Persist a new store (assigning its ID) or update an existing one."""
