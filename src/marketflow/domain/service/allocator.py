"""Domain service: Allocator.

Decides, for the cart lines of one retailer store, how much of each line
the retailer ships from its own stock and how much must come from a
wholesaler.

For every line:
  * ``desired <= stock``  -> one retailer-sourced OrderLine;
  * otherwise             -> an OrderLine for whatever stock the retailer
    has, plus a FulfillmentRequirement for the shortfall pointing at the
    wholesaler record chosen by the SourcingMatcher.

Allocation only reads inventory.  The retailer-held quantities come back
as StockReservations; the caller applies them with compare-and-swap in
the same unit of work that saves the order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from marketflow.domain.exceptions import InsufficientStock, ValidationError
from marketflow.domain.model.inventory import InventoryRecord
from marketflow.domain.model.order import (
    FulfillmentRequirement,
    OrderLine,
    ProductSnapshot,
)
from marketflow.domain.model.product import Product
from marketflow.domain.model.value_objects import Quantity
from marketflow.domain.service.sourcing_matcher import SourcingMatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    """A retailer inventory record the customer picked, and how many units."""

    inventory: InventoryRecord
    product: Product
    quantity: Quantity


@dataclass(frozen=True)
class StockReservation:
    inventory_id: int
    expected_stock: int
    quantity: int

    @property
    def new_stock(self) -> int:
        return self.expected_stock - self.quantity


@dataclass
class Allocation:
    retailer_store_id: int
    lines: list[OrderLine] = field(default_factory=list)
    requirements: list[FulfillmentRequirement] = field(default_factory=list)
    reservations: list[StockReservation] = field(default_factory=list)
    omitted: dict[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not self.lines and not self.requirements


class Allocator:

    def __init__(self, matcher: SourcingMatcher, allow_partial: bool = False) -> None:
        self._matcher = matcher
        self._allow_partial = allow_partial

    def allocate(self, retailer_store_id: int, cart_lines: list[CartLine]) -> Allocation:
        """Split the cart lines of one retailer store.

        Raises InsufficientStock when a shortfall has no wholesaler source,
        unless partial orders are allowed, in which case the shortfall is
        dropped and reported in ``Allocation.omitted``.
        """
        allocation = Allocation(retailer_store_id=retailer_store_id)

        for line in self._merge(cart_lines):
            if line.inventory.store_id != retailer_store_id:
                raise ValidationError(
                    f"Inventory #{line.inventory.id} does not belong to "
                    f"store #{retailer_store_id}"
                )
            self._allocate_line(allocation, line)

        return allocation

    # --- Internal helpers -----------------------------------------------------

    def _allocate_line(self, allocation: Allocation, line: CartLine) -> None:
        inventory = line.inventory
        desired = line.quantity.value
        from_retailer = min(desired, inventory.stock_qty)

        if from_retailer > 0:
            allocation.lines.append(self._retailer_line(line, from_retailer))
            allocation.reservations.append(
                StockReservation(
                    inventory_id=inventory.id,
                    expected_stock=inventory.stock_qty,
                    quantity=from_retailer,
                )
            )

        shortfall = desired - from_retailer
        if shortfall == 0:
            return

        logger.info(
            "Retailer store %s short %d x %r (has %d, wants %d)",
            inventory.store_id, shortfall, line.product.name,
            inventory.stock_qty, desired,
        )
        candidate = self._matcher.match(line.product, inventory, shortfall)
        if candidate is None:
            if not self._allow_partial:
                raise InsufficientStock(
                    f"Only {from_retailer} of {desired} x '{line.product.name}' "
                    f"available and no wholesaler can supply the remaining {shortfall}"
                )
            logger.warning(
                "Dropping unsourceable shortfall of %d x %r from order",
                shortfall, line.product.name,
            )
            allocation.omitted[line.product.name] = shortfall
            return

        allocation.requirements.append(
            FulfillmentRequirement(
                id=None,
                product_id=line.product.id,
                product_name=line.product.name,
                quantity=Quantity(shortfall),
                wholesaler_store_id=candidate.store_id,
                wholesaler_inventory_id=candidate.id,
                unit_price=candidate.unit_price,
                wholesaler_delivery_days=candidate.delivery_days,
                retailer_delivery_days=inventory.delivery_days,
                retailer_inventory_id=inventory.id,
                retail_unit_price=inventory.unit_price,
            )
        )

    @staticmethod
    def _retailer_line(line: CartLine, quantity: int) -> OrderLine:
        return OrderLine(
            id=None,
            inventory_id=line.inventory.id,
            product_id=line.product.id,
            quantity=Quantity(quantity),
            unit_price=line.inventory.unit_price,
            snapshot=ProductSnapshot(
                name=line.product.name,
                price=line.inventory.unit_price,
                image_url=line.product.image_url,
            ),
        )

    @staticmethod
    def _merge(cart_lines: list[CartLine]) -> list[CartLine]:
        """Combine cart lines that point at the same inventory record."""
        merged: dict[int, CartLine] = {}
        for line in cart_lines:
            existing = merged.get(line.inventory.id)
            if existing is None:
                merged[line.inventory.id] = line
            else:
                merged[line.inventory.id] = CartLine(
                    inventory=existing.inventory,
                    product=existing.product,
                    quantity=Quantity(existing.quantity.value + line.quantity.value),
                )
        return list(merged.values())
