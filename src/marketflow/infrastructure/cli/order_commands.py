"""CLI commands for customer and wholesale orders."""

from __future__ import annotations

import click

from marketflow.application.dto import CartItemSpec, OrderDTO
from marketflow.application.list_proxy_orders import ListPendingApprovalsHandler
from marketflow.application.place_order import PlaceOrderHandler
from marketflow.application.show_order import ShowOrderHandler
from marketflow.application.update_order_status import UpdateOrderStatusHandler
from marketflow.domain.exceptions import DomainException
from marketflow.infrastructure import bootstrap
from marketflow.infrastructure.cli.actors import customer_actor, store_actor


def _parse_items(raw: str) -> list[CartItemSpec]:
    """Parse '12:3,15:1' (inventory ID:quantity) into CartItemSpec list."""
    specs: list[CartItemSpec] = []
    for pair in raw.split(","):
        pair = pair.strip()
        if ":" not in pair:
            raise click.BadParameter(
                f"Invalid item format '{pair}'. Expected 'InventoryId:Quantity'."
            )
        inv_str, qty_str = pair.split(":", 1)
        try:
            inventory_id = int(inv_str)
            qty = int(qty_str)
        except ValueError:
            raise click.BadParameter(f"Invalid item '{pair}'; both parts must be integers.")
        specs.append(CartItemSpec(inventory_id=inventory_id, quantity=qty))
    return specs


def _display_order(dto: OrderDTO) -> None:
    """Shared formatting for displaying an order."""
    click.echo(f"Order {dto.order_number} (#{dto.id}, {dto.kind}, status={dto.status})")
    click.echo(f"Buyer:   {dto.buyer_id}    Seller store: #{dto.seller_store_id}")
    click.echo(f"Payment: {dto.payment_status}    Created: {dto.created_at}")
    click.echo()

    click.echo(f"  {'Product':<20} {'Qty':>5} {'Price':>10} {'Total':>10}  Source")
    click.echo(f"  {'-'*60}")
    for item in dto.items:
        source = "wholesaler" if item.sourced_via_proxy else "store"
        click.echo(
            f"  {item.product_name:<20} {item.quantity:>5} {item.unit_price:>10} "
            f"{item.line_total:>10}  {source}"
        )
    click.echo(f"  {'-'*60}")
    click.echo(f"  {'Order Total':<27} {dto.total:>20}")

    if dto.requirements:
        click.echo()
        click.echo("  Awaiting retailer approval of wholesaler sourcing:")
        for req in dto.requirements:
            click.echo(
                f"    {req.quantity} x {req.product_name} from store "
                f"#{req.wholesaler_store_id} @ {req.unit_price} = {req.total} "
                f"(+{req.wholesaler_delivery_days} day(s))"
            )
    elif dto.proxy_approved_at:
        click.echo(f"  Wholesaler sourcing approved {dto.proxy_approved_at}")

    if dto.proxy_orders:
        click.echo()
        click.echo("  Proxy orders:")
        for proxy in dto.proxy_orders:
            click.echo(
                f"    #{proxy.id} store #{proxy.wholesaler_store_id} "
                f"{proxy.quantity} unit(s) {proxy.status} / {proxy.payment_status}"
            )


@click.command("place")
@click.option("--customer", required=True, help="Customer user ID.")
@click.option("--items", required=True, help="Items as 'InventoryId:Qty,InventoryId:Qty'.")
@click.option(
    "--payment-method",
    type=click.Choice(["pending", "paid", "cod"], case_sensitive=False),
    default="pending",
    show_default=True,
    help="Payment status recorded on the order.",
)
def order_place(customer: str, items: str, payment_method: str) -> None:
    """Check out a cart (one order per retailer store)."""
    specs = _parse_items(items)
    cfg = bootstrap.settings()

    handler = PlaceOrderHandler(
        uow=bootstrap.unit_of_work(),
        allow_partial_orders=cfg.allow_partial_orders,
        retry_attempts=cfg.max_conflict_retries,
        retry_backoff=cfg.retry_backoff_seconds,
    )

    try:
        placement = handler.handle(
            customer_actor(customer), specs, payment_status=payment_method.lower()
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    for dto in placement.orders:
        _display_order(dto)
        click.echo()
    for name, qty in placement.omitted.items():
        click.echo(f"Omitted: {qty} x {name} (no supplier available)")


@click.command("show")
@click.option("--id", "order_id", required=True, type=int, help="Order ID to display.")
def order_show(order_id: int) -> None:
    """Show details of an existing order."""
    handler = ShowOrderHandler(uow=bootstrap.unit_of_work())

    try:
        dto = handler.handle(order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_order(dto)


@click.command("status")
@click.option("--id", "order_id", required=True, type=int, help="Order ID.")
@click.option(
    "--to",
    "status",
    required=True,
    type=click.Choice(
        ["confirmed", "packed", "shipped", "delivered", "cancelled", "refunded"],
        case_sensitive=False,
    ),
    help="Target status.",
)
@click.option("--user", required=True, help="Acting user ID (store owner).")
@click.option("--store", "store_id", required=True, type=int, help="Seller store ID.")
@click.option("--reason", default=None, help="Cancellation reason.")
def order_status(
    order_id: int, status: str, user: str, store_id: int, reason: str | None
) -> None:
    """Move an order along its status progression."""
    cfg = bootstrap.settings()
    handler = UpdateOrderStatusHandler(
        uow=bootstrap.unit_of_work(),
        retry_attempts=cfg.max_conflict_retries,
        retry_backoff=cfg.retry_backoff_seconds,
    )

    try:
        dto = handler.handle(store_actor(user, store_id), order_id, status, reason=reason)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order {dto.order_number} is now {dto.status}.")


@click.command("pending")
@click.option("--store", "store_id", required=True, type=int, help="Retailer store ID.")
@click.option("--user", required=True, help="Acting user ID (store owner).")
def order_pending(store_id: int, user: str) -> None:
    """List orders waiting for the retailer to approve wholesaler sourcing."""
    handler = ListPendingApprovalsHandler(uow=bootstrap.unit_of_work())

    try:
        orders = handler.handle(store_actor(user, store_id), store_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not orders:
        click.echo("No orders awaiting approval.")
        return
    for dto in orders:
        _display_order(dto)
        click.echo()
