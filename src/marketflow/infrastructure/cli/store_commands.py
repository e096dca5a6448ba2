"""CLI commands for stores."""

from __future__ import annotations

import click

from marketflow.application.add_store import AddStoreHandler
from marketflow.domain.exceptions import DomainException
from marketflow.infrastructure import bootstrap


@click.command("add")
@click.option("--name", required=True, help="Store name.")
@click.option(
    "--role",
    required=True,
    type=click.Choice(["retailer", "wholesaler"], case_sensitive=False),
    help="Store role (fixed once created).",
)
@click.option("--owner", required=True, help="User ID of the store owner.")
def store_add(name: str, role: str, owner: str) -> None:
    """Register a retailer or wholesaler store."""
    handler = AddStoreHandler(uow=bootstrap.unit_of_work())

    try:
        store = handler.handle(name=name, role=role, owner_id=owner)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Store #{store.id} '{store.name}' added ({store.role.value}, owner={store.owner_id})")


@click.command("list")
def store_list() -> None:
    """List all stores."""
    with bootstrap.unit_of_work() as uow:
        stores = uow.stores.list_all()

    if not stores:
        click.echo("No stores found.")
        return

    click.echo(f"{'ID':>4}  {'Name':<24} {'Role':<11} {'Owner':<16}")
    click.echo("-" * 58)
    for store in stores:
        click.echo(f"{store.id:>4}  {store.name:<24} {store.role.value:<11} {store.owner_id:<16}")
