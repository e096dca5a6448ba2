"""Data Transfer Objects: plain containers that cross layer boundaries.

DTOs carry data between the CLI and application layers without
exposing domain internals to the outside world.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from marketflow.domain.model.order import FulfillmentRequirement, Order, OrderLine
from marketflow.domain.model.proxy_order import ProxyOrder


@dataclass(frozen=True)
class CartItemSpec:
    """Input: a retailer inventory record the customer picked + quantity."""

    inventory_id: int
    quantity: int


@dataclass(frozen=True)
class OrderLineDTO:
    product_name: str
    quantity: int
    unit_price: str  # formatted, e.g. "₹15.00"
    line_total: str
    sourced_via_proxy: bool


@dataclass(frozen=True)
class RequirementDTO:
    product_name: str
    quantity: int
    wholesaler_store_id: int
    wholesaler_inventory_id: int
    unit_price: str
    total: str
    wholesaler_delivery_days: int
    retailer_delivery_days: int


@dataclass(frozen=True)
class ProxyOrderDTO:
    id: int
    customer_order_id: int
    retailer_store_id: int
    wholesaler_store_id: int
    wholesaler_order_id: int | None
    product_id: int
    quantity: int
    unit_price: str
    total: str
    status: str
    payment_status: str
    creation_path: str
    wholesaler_notes: str | None
    cancellation_reason: str | None


@dataclass(frozen=True)
class OrderDTO:
    """Output: a complete order as displayed to the user."""

    id: int
    order_number: str
    kind: str
    buyer_id: str
    seller_store_id: int
    status: str
    payment_status: str
    needs_proxy_approval: bool
    proxy_approved_at: str | None
    items: list[OrderLineDTO]
    requirements: list[RequirementDTO]
    subtotal: str
    total: str
    created_at: str
    proxy_orders: list[ProxyOrderDTO] = field(default_factory=list)


@dataclass(frozen=True)
class PlacementDTO:
    """Output of checkout: one order per retailer store in the cart."""

    orders: list[OrderDTO]
    omitted: dict[str, int]


# --- Mapping ---------------------------------------------------------------


def _line_to_dto(line: OrderLine) -> OrderLineDTO:
    return OrderLineDTO(
        product_name=line.snapshot.name,
        quantity=line.quantity.value,
        unit_price=str(line.unit_price),
        line_total=str(line.line_total),
        sourced_via_proxy=line.sourced_via_proxy,
    )


def _requirement_to_dto(req: FulfillmentRequirement) -> RequirementDTO:
    return RequirementDTO(
        product_name=req.product_name,
        quantity=req.quantity.value,
        wholesaler_store_id=req.wholesaler_store_id,
        wholesaler_inventory_id=req.wholesaler_inventory_id,
        unit_price=str(req.unit_price),
        total=str(req.total),
        wholesaler_delivery_days=req.wholesaler_delivery_days,
        retailer_delivery_days=req.retailer_delivery_days,
    )


def proxy_order_to_dto(proxy: ProxyOrder) -> ProxyOrderDTO:
    return ProxyOrderDTO(
        id=proxy.id,  # type: ignore[arg-type]
        customer_order_id=proxy.customer_order_id,
        retailer_store_id=proxy.retailer_store_id,
        wholesaler_store_id=proxy.wholesaler_store_id,
        wholesaler_order_id=proxy.wholesaler_order_id,
        product_id=proxy.product_id,
        quantity=proxy.quantity.value,
        unit_price=str(proxy.unit_price),
        total=str(proxy.total),
        status=proxy.status.value,
        payment_status=proxy.payment_status.value,
        creation_path=proxy.creation_path.value,
        wholesaler_notes=proxy.wholesaler_notes,
        cancellation_reason=proxy.cancellation_reason,
    )


def order_to_dto(order: Order, proxy_orders: list[ProxyOrder] | None = None) -> OrderDTO:
    return OrderDTO(
        id=order.id,  # type: ignore[arg-type]
        order_number=order.order_number,
        kind=order.kind.value,
        buyer_id=order.buyer_id,
        seller_store_id=order.seller_store_id,
        status=order.status.value,
        payment_status=order.payment_status.value,
        needs_proxy_approval=order.needs_proxy_approval,
        proxy_approved_at=(
            order.proxy_approved_at.strftime("%Y-%m-%d %H:%M UTC")
            if order.proxy_approved_at
            else None
        ),
        items=[_line_to_dto(line) for line in order.lines],
        requirements=[_requirement_to_dto(req) for req in order.requirements],
        subtotal=str(order.subtotal),
        total=str(order.total),
        created_at=order.created_at.strftime("%Y-%m-%d %H:%M UTC"),
        proxy_orders=[proxy_order_to_dto(p) for p in proxy_orders or []],
    )
