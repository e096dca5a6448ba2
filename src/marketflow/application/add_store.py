"""Application service: Add Store use case."""

from __future__ import annotations

from marketflow.domain.exceptions import ValidationError
from marketflow.domain.model.store import Store, StoreRole
from marketflow.domain.repository.unit_of_work import UnitOfWork


class AddStoreHandler:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, name: str, role: str, owner_id: str) -> Store:
        """Register a retailer or wholesaler store.  Its role is fixed for good."""
        try:
            store_role = StoreRole(role.strip().lower())
        except ValueError:
            raise ValidationError(
                f"Unknown store role '{role}' (expected retailer or wholesaler)"
            )

        store = Store.create(name=name, role=store_role, owner_id=owner_id)
        with self._uow as uow:
            uow.stores.save(store)
            uow.commit()
        return store
