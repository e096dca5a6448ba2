"""Domain service: Sourcing Matcher.

Finds the wholesaler inventory record that should cover a retailer's
shortfall for one product.

Ranking:
  1. a wholesaler that already supplied this retailer with this product
     (proxy-order history, then the provenance of the retailer's own
     ``purchased`` record), if it still has enough stock;
  2. otherwise the wholesaler record with the most stock among all
     wholesalers carrying a product of the same name.

The answer is a point-in-time snapshot.  Stock is re-checked when the
retailer approves, because it may move in between.
"""

from __future__ import annotations

import logging

from marketflow.domain.model.inventory import InventoryRecord, SourceType
from marketflow.domain.model.product import Product
from marketflow.domain.repository.inventory_repository import InventoryRepository
from marketflow.domain.repository.order_repository import OrderRepository
from marketflow.domain.repository.proxy_order_repository import ProxyOrderRepository

logger = logging.getLogger(__name__)


def _by_stock(record: InventoryRecord) -> tuple[int, int]:
    # Highest stock wins; lowest id breaks ties.
    return (record.stock_qty, -(record.id or 0))


class SourcingMatcher:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        proxy_order_repo: ProxyOrderRepository,
        order_repo: OrderRepository,
    ) -> None:
        self._inventory_repo = inventory_repo
        self._proxy_order_repo = proxy_order_repo
        self._order_repo = order_repo

    def match(
        self,
        product: Product,
        retailer_record: InventoryRecord,
        needed_qty: int,
        exclude_inventory_ids: frozenset[int] = frozenset(),
    ) -> InventoryRecord | None:
        """Return the best wholesaler record for *needed_qty* units, or None."""
        candidates = [
            record
            for record in self._inventory_repo.find_wholesale_stock(product.name, needed_qty)
            if record.id not in exclude_inventory_ids
        ]
        if not candidates:
            logger.info(
                "No wholesaler stocks %d x %r for retailer store %s",
                needed_qty, product.name, retailer_record.store_id,
            )
            return None

        by_store: dict[int, InventoryRecord] = {}
        for record in candidates:
            best = by_store.get(record.store_id)
            if best is None or _by_stock(record) > _by_stock(best):
                by_store[record.store_id] = record

        for store_id in self.previous_suppliers(product, retailer_record):
            if store_id in by_store:
                chosen = by_store[store_id]
                logger.debug(
                    "Matched %r to previous supplier store %s (inventory #%s)",
                    product.name, store_id, chosen.id,
                )
                return chosen

        chosen = max(candidates, key=_by_stock)
        logger.debug(
            "Matched %r to store %s by highest stock (%d)",
            product.name, chosen.store_id, chosen.stock_qty,
        )
        return chosen

    def previous_suppliers(
        self, product: Product, retailer_record: InventoryRecord
    ) -> list[int]:
        """Wholesaler store IDs that supplied this retailer and product before."""
        store_ids = list(
            self._proxy_order_repo.wholesalers_used_by(
                retailer_record.store_id, product.id
            )
        )
        if (
            retailer_record.source_type == SourceType.PURCHASED
            and retailer_record.source_order_id is not None
        ):
            source_order = self._order_repo.get_by_id(retailer_record.source_order_id)
            if source_order is not None and source_order.seller_store_id not in store_ids:
                store_ids.append(source_order.seller_store_id)
        return store_ids
