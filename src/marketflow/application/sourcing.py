"""Helpers shared by the two ways a retailer resolves fulfillment requirements."""

from __future__ import annotations

import logging

from marketflow.domain.exceptions import (
    EntityNotFoundError,
    InsufficientStock,
    InvalidTransition,
    ValidationError,
)
from marketflow.domain.model.order import (
    FulfillmentRequirement,
    Order,
    OrderLine,
    ProductSnapshot,
)
from marketflow.domain.model.store import Actor, Store
from marketflow.domain.repository.unit_of_work import UnitOfWork
from marketflow.domain.service.sourcing_matcher import SourcingMatcher

logger = logging.getLogger(__name__)


def load_order_for_retailer(uow: UnitOfWork, actor: Actor, order_id: int) -> tuple[Order, Store]:
    """Load a customer order awaiting approval and check the actor owns its store."""
    order = uow.orders.get_by_id(order_id)
    if order is None:
        raise EntityNotFoundError(f"Order #{order_id} not found")
    if not order.is_customer_order:
        raise ValidationError(f"Order {order.order_number} is not a customer order")

    store = uow.stores.get_by_id(order.seller_store_id)
    if store is None:
        raise EntityNotFoundError(f"Store #{order.seller_store_id} not found")
    actor.require_owner(store)

    if not order.is_awaiting_approval or not order.requirements:
        raise InvalidTransition(
            f"Order {order.order_number} has no requirements awaiting approval"
        )
    return order, store


def revalidate_requirements(uow: UnitOfWork, order: Order) -> list[FulfillmentRequirement]:
    """Re-check each requirement's wholesaler stock, re-sourcing where it fell short.

    Stock may have moved since checkout.  A requirement whose candidate can
    no longer cover it is pointed at a fresh match; if there is none,
    InsufficientStock is raised and the caller's unit of work rolls back.
    """
    matcher = SourcingMatcher(uow.inventory, uow.proxy_orders, uow.orders)
    committed: dict[int, int] = {}

    for req in list(order.requirements):
        needed = req.quantity.value
        record = uow.inventory.get_by_id(req.wholesaler_inventory_id)
        already = committed.get(req.wholesaler_inventory_id, 0)
        if record is not None and record.can_supply(already + needed):
            committed[record.id] = already + needed
            continue

        logger.warning(
            "Wholesaler inventory #%s can no longer cover %d x %r; re-sourcing",
            req.wholesaler_inventory_id, needed, req.product_name,
        )
        product = uow.products.get_by_id(req.product_id)
        retailer_record = uow.inventory.get_by_id(req.retailer_inventory_id)
        if product is None or retailer_record is None:
            raise EntityNotFoundError(
                f"Cannot re-source '{req.product_name}': catalog entry is gone"
            )
        # Records already promised to earlier requirements must cover both.
        exhausted = {req.wholesaler_inventory_id}
        for inv_id, qty in committed.items():
            promised = uow.inventory.get_by_id(inv_id)
            if promised is None or not promised.can_supply(qty + needed):
                exhausted.add(inv_id)
        replacement = matcher.match(product, retailer_record, needed, frozenset(exhausted))
        if replacement is None:
            raise InsufficientStock(
                f"No wholesaler can supply {needed} x '{req.product_name}' any more"
            )
        order.repoint_requirement(
            req.id,
            wholesaler_store_id=replacement.store_id,
            wholesaler_inventory_id=replacement.id,
            unit_price=replacement.unit_price,
            wholesaler_delivery_days=replacement.delivery_days,
        )
        committed[replacement.id] = committed.get(replacement.id, 0) + needed

    return list(order.requirements)


def proxy_sourced_lines(
    uow: UnitOfWork, requirements: list[FulfillmentRequirement]
) -> list[OrderLine]:
    """Customer-facing lines for the units a wholesaler will supply."""
    lines = []
    for req in requirements:
        product = uow.products.get_by_id(req.product_id)
        lines.append(
            OrderLine(
                id=None,
                inventory_id=req.retailer_inventory_id,
                product_id=req.product_id,
                quantity=req.quantity,
                unit_price=req.retail_unit_price,
                snapshot=ProductSnapshot(
                    name=req.product_name,
                    price=req.retail_unit_price,
                    image_url=product.image_url if product else None,
                ),
                sourced_via_proxy=True,
            )
        )
    return lines


def wholesale_lines(
    uow: UnitOfWork, requirements: list[FulfillmentRequirement]
) -> list[OrderLine]:
    """Lines of the retailer's order to a wholesaler, at wholesale prices."""
    lines = []
    for req in requirements:
        record = uow.inventory.get_by_id(req.wholesaler_inventory_id)
        if record is None:
            raise EntityNotFoundError(
                f"Wholesaler inventory #{req.wholesaler_inventory_id} not found"
            )
        product = uow.products.get_by_id(record.product_id)
        lines.append(
            OrderLine(
                id=None,
                inventory_id=record.id,
                product_id=record.product_id,
                quantity=req.quantity,
                unit_price=req.unit_price,
                snapshot=ProductSnapshot(
                    name=product.name if product else req.product_name,
                    price=req.unit_price,
                    image_url=product.image_url if product else None,
                ),
            )
        )
    return lines
