"""InventoryRecord aggregate: a store's stock of one product.

Each (store, product) pair has one InventoryRecord that knows the stock on
hand, the store's selling price and how long the store takes to deliver.

Records are addressed by id and their ``stock_qty`` is only ever changed
through a compare-and-swap in the repository: callers compute the new
value here, then ask the repository to apply it if the stock has not
moved since it was read.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from marketflow.domain.exceptions import InsufficientStock, ValidationError
from marketflow.domain.model.value_objects import Money

DEFAULT_DELIVERY_DAYS = 3


class SourceType(Enum):
    LISTED = "listed"
    PURCHASED = "purchased"


@dataclass
class InventoryRecord:
    """Aggregate root for per-store stock.

    Invariants:
    - ``stock_qty`` is never negative
    - ``delivery_days`` is never negative
    """

    id: int | None
    store_id: int
    product_id: int
    unit_price: Money
    stock_qty: int
    delivery_days: int = DEFAULT_DELIVERY_DAYS
    list_price: Money | None = None
    source_order_id: int | None = None
    source_type: SourceType = SourceType.LISTED

    def __post_init__(self) -> None:
        if self.stock_qty < 0:
            raise ValidationError("Stock quantity cannot be negative")
        if self.delivery_days < 0:
            raise ValidationError("Delivery days cannot be negative")

    def can_supply(self, quantity: int) -> bool:
        return self.stock_qty >= quantity

    def stock_after_removing(self, quantity: int) -> int:
        """Return the stock level left once *quantity* units are taken out.

        Raises InsufficientStock if the record cannot cover the quantity.
        """
        if quantity <= 0:
            raise ValidationError("Stock removal quantity must be positive")
        if quantity > self.stock_qty:
            raise InsufficientStock(
                f"Inventory #{self.id} has {self.stock_qty} in stock, "
                f"{quantity} requested"
            )
        return self.stock_qty - quantity

    def restock(
        self,
        quantity: int,
        unit_price: Money | None = None,
        delivery_days: int | None = None,
    ) -> None:
        """Set the stock level (and optionally the price and lead time)."""
        if quantity < 0:
            raise ValidationError("Stock quantity cannot be negative")
        self.stock_qty = quantity
        if unit_price is not None:
            self.unit_price = unit_price
        if delivery_days is not None:
            if delivery_days < 0:
                raise ValidationError("Delivery days cannot be negative")
            self.delivery_days = delivery_days
