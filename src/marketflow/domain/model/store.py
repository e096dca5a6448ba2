"""Store aggregate and the acting identity.

A store is either a retailer (sells to customers, buys from wholesalers)
or a wholesaler (sells only to retailers).  The role never changes once
the store exists.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from marketflow.domain.exceptions import PermissionDenied, ValidationError


class StoreRole(Enum):
    RETAILER = "retailer"
    WHOLESALER = "wholesaler"


class ActorRole(Enum):
    CUSTOMER = "customer"
    RETAILER = "retailer"
    WHOLESALER = "wholesaler"


@dataclass
class Store:
    id: int | None
    name: str
    role: StoreRole
    owner_id: str

    @staticmethod
    def create(name: str, role: StoreRole, owner_id: str) -> Store:
        if not name or not name.strip():
            raise ValidationError("Store name is required")
        if not owner_id or not owner_id.strip():
            raise ValidationError("Store owner is required")
        return Store(id=None, name=name.strip(), role=role, owner_id=owner_id.strip())


@dataclass(frozen=True)
class Actor:
    """The authenticated caller, as supplied by the identity provider."""

    user_id: str
    role: ActorRole
    store_id: int | None = None

    def require_owner(self, store: Store) -> None:
        """Raise PermissionDenied unless this actor owns *store*."""
        expected = ActorRole(store.role.value)
        if (
            self.role != expected
            or self.store_id != store.id
            or self.user_id != store.owner_id
        ):
            raise PermissionDenied(
                f"User '{self.user_id}' may not act for {store.role.value} "
                f"store '{store.name}'"
            )
