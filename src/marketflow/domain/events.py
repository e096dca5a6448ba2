"""Domain events raised by the Order and ProxyOrder aggregates.

Aggregates append events to their ``events`` list while transitioning;
the application layer hands them to the FulfillmentCoordinator inside the
same unit of work, which applies every cross-aggregate cascade.
"""

from __future__ import annotations

from dataclasses import dataclass


class DomainEvent:
    """Marker base class."""


@dataclass(frozen=True)
class ProxyOrderCancelled(DomainEvent):
    proxy_order_id: int
    customer_order_id: int
    wholesaler_order_id: int | None
    reason: str


@dataclass(frozen=True)
class ProxyOrderDelivered(DomainEvent):
    proxy_order_id: int
    wholesaler_order_id: int | None


@dataclass(frozen=True)
class CustomerOrderDelivered(DomainEvent):
    order_id: int


@dataclass(frozen=True)
class OrderCancelled(DomainEvent):
    order_id: int
    previous_status: str


@dataclass(frozen=True)
class OrderRefunded(DomainEvent):
    order_id: int
