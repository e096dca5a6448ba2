"""CLI commands for product references."""

from __future__ import annotations

import click

from marketflow.application.add_product import AddProductHandler
from marketflow.domain.exceptions import DomainException
from marketflow.infrastructure import bootstrap


@click.command("add")
@click.option("--name", required=True, help="Product name.")
@click.option("--image", "image_url", default=None, help="Image URL shown on orders.")
def product_add(name: str, image_url: str | None) -> None:
    """Add a product reference."""
    handler = AddProductHandler(uow=bootstrap.unit_of_work())

    try:
        product = handler.handle(name=name, image_url=image_url)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Product #{product.id} '{product.name}' added")


@click.command("list")
def product_list() -> None:
    """List all products."""
    with bootstrap.unit_of_work() as uow:
        products = uow.products.list_all()

    if not products:
        click.echo("No products found.")
        return

    click.echo(f"{'ID':>4}  {'Name':<30}")
    click.echo("-" * 36)
    for product in products:
        click.echo(f"{product.id:>4}  {product.name:<30}")
