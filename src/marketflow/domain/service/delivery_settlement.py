"""Domain service: Delivery Settlement.

When a wholesaler confirms delivery of a proxy order to the retailer,
the wholesaler's stock goes down by the proxy order's quantity, exactly
once.

Both writes happen in the caller's unit of work:
  * the stock decrement is a compare-and-swap on the wholesaler record;
  * the proxy order save is conditional on the version that was read.
A retried call for an already-settled proxy order changes nothing.
"""

from __future__ import annotations

import logging

from marketflow.domain.exceptions import ConcurrencyConflict, EntityNotFoundError
from marketflow.domain.model.proxy_order import ProxyOrder
from marketflow.domain.repository.inventory_repository import InventoryRepository
from marketflow.domain.repository.proxy_order_repository import ProxyOrderRepository

logger = logging.getLogger(__name__)


class DeliverySettlement:

    def __init__(
        self,
        inventory_repo: InventoryRepository,
        proxy_order_repo: ProxyOrderRepository,
    ) -> None:
        self._inventory_repo = inventory_repo
        self._proxy_order_repo = proxy_order_repo

    def settle(self, proxy_order: ProxyOrder) -> bool:
        """Mark *proxy_order* delivered and take its units out of wholesaler stock.

        Returns False if the proxy order was already settled.
        """
        if proxy_order.is_settled:
            logger.warning(
                "Proxy order #%s already settled (%s); skipping stock decrement",
                proxy_order.id, proxy_order.status.value,
            )
            return False

        # Validates state and payment before any stock is touched.
        proxy_order.mark_delivered()

        record = self._inventory_repo.get_by_id(proxy_order.inventory_id)
        if record is None:
            raise EntityNotFoundError(
                f"Wholesaler inventory #{proxy_order.inventory_id} not found"
            )
        new_stock = record.stock_after_removing(proxy_order.quantity.value)
        if not self._inventory_repo.compare_and_set_stock(
            record.id, record.stock_qty, new_stock
        ):
            raise ConcurrencyConflict(
                f"Stock of inventory #{record.id} changed during settlement"
            )

        self._proxy_order_repo.save(proxy_order)
        logger.info(
            "Settled proxy order #%s: inventory #%s %d -> %d",
            proxy_order.id, record.id, record.stock_qty, new_stock,
        )
        return True
