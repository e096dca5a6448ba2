"""CLI commands for inventory management."""

from __future__ import annotations

import click

from marketflow.application.set_inventory import SetInventoryHandler
from marketflow.application.show_inventory import ShowInventoryHandler
from marketflow.domain.exceptions import DomainException
from marketflow.infrastructure import bootstrap


@click.command("set")
@click.option("--store", "store_id", required=True, type=int, help="Store ID.")
@click.option("--product", required=True, help="Product name.")
@click.option("--quantity", required=True, type=int, help="Units in stock.")
@click.option("--price", required=True, help="Unit price, e.g. 15.00.")
@click.option("--days", "delivery_days", default=None, type=int, help="Delivery lead time in days.")
def inventory_set(
    store_id: int, product: str, quantity: int, price: str, delivery_days: int | None
) -> None:
    """Create or update a store's stock of a product."""
    cfg = bootstrap.settings()
    handler = SetInventoryHandler(
        uow=bootstrap.unit_of_work(),
        currency=cfg.currency,
        default_delivery_days=cfg.default_delivery_days,
    )

    try:
        record = handler.handle(
            store_id=store_id,
            product_name=product,
            quantity=quantity,
            price=price,
            delivery_days=delivery_days,
        )
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"Inventory #{record.id}: '{product}' at store #{store_id} set to "
        f"{record.stock_qty} @ {record.unit_price} ({record.delivery_days} day(s))"
    )


@click.command("show")
@click.option("--store", "store_id", default=None, type=int, help="Only this store.")
def inventory_show(store_id: int | None) -> None:
    """Show current inventory levels."""
    handler = ShowInventoryHandler(uow=bootstrap.unit_of_work())
    lines = handler.handle(store_id=store_id)

    if not lines:
        click.echo("No inventory records found.")
        return

    click.echo(
        f"{'ID':>4}  {'Store':<18} {'Role':<11} {'Product':<20} {'Stock':>6} {'Price':>10} {'Days':>5}"
    )
    click.echo("-" * 80)
    for line in lines:
        click.echo(
            f"{line.inventory_id:>4}  {line.store_name:<18} {line.store_role:<11} "
            f"{line.product_name:<20} {line.stock:>6} {line.unit_price:>10} {line.delivery_days:>5}"
        )
