"""Domain service: Order Status Guard.

A customer order may only move forward (confirmed, packed, shipped,
delivered) once

  1. the retailer has approved sourcing for any shortfall, and
  2. every linked proxy order has reached the retailer
     (``delivered_to_retailer`` or ``completed``).

Cancelling or refunding is never blocked here.  Wholesale orders are not
guarded.
"""

from __future__ import annotations

from marketflow.domain.exceptions import ApprovalRequired, FulfillmentPending
from marketflow.domain.model.order import Order, OrderStatus
from marketflow.domain.model.proxy_order import ProxyOrder

GUARDED_TARGETS = frozenset(
    {
        OrderStatus.CONFIRMED,
        OrderStatus.PACKED,
        OrderStatus.SHIPPED,
        OrderStatus.DELIVERED,
    }
)


class OrderStatusGuard:

    def check(
        self,
        order: Order,
        target: OrderStatus,
        proxy_orders: list[ProxyOrder],
    ) -> None:
        """Raise ApprovalRequired / FulfillmentPending if *order* may not move to *target*."""
        if not order.is_customer_order or target not in GUARDED_TARGETS:
            return

        if order.is_awaiting_approval:
            names = sorted({req.product_name for req in order.requirements})
            raise ApprovalRequired(
                f"Order {order.order_number} needs approval of wholesaler "
                f"sourcing for: {', '.join(names)}"
            )

        blocking = [po for po in proxy_orders if not po.is_settled]
        if blocking:
            names = sorted({self._product_name(order, po.product_id) for po in blocking})
            raise FulfillmentPending(
                f"Order {order.order_number} is waiting for wholesaler delivery of: "
                f"{', '.join(names)}",
                blocking_products=names,
            )

    @staticmethod
    def _product_name(order: Order, product_id: int) -> str:
        for line in order.lines:
            if line.product_id == product_id:
                return line.snapshot.name
        return f"product #{product_id}"
