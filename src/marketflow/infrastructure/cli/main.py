import click

from marketflow.infrastructure import bootstrap
from marketflow.infrastructure.cli.inventory_commands import inventory_set, inventory_show
from marketflow.infrastructure.cli.order_commands import (
    order_pending,
    order_place,
    order_show,
    order_status,
)
from marketflow.infrastructure.cli.product_commands import product_add, product_list
from marketflow.infrastructure.cli.proxy_commands import (
    proxy_approve,
    proxy_approve_and_pay,
    proxy_cancel,
    proxy_decline,
    proxy_deliver,
    proxy_list,
    proxy_pay,
    proxy_reject,
    proxy_request,
)
from marketflow.infrastructure.cli.store_commands import store_add, store_list
from marketflow.infrastructure.logging import configure_logging


@click.group()
def cli() -> None:
    """Marketflow: retailer/wholesaler order fulfillment"""
    configure_logging(bootstrap.settings().log_level)


@cli.group()
def store() -> None:
    """Manage stores."""


@cli.group()
def product() -> None:
    """Manage products."""


@cli.group()
def inventory() -> None:
    """Manage inventory."""


@cli.group()
def order() -> None:
    """Place and manage orders."""


@cli.group()
def proxy() -> None:
    """Source shortfalls from wholesalers."""


# Register subcommands
store.add_command(store_add)
store.add_command(store_list)
product.add_command(product_add)
product.add_command(product_list)
inventory.add_command(inventory_set)
inventory.add_command(inventory_show)
order.add_command(order_place)
order.add_command(order_show)
order.add_command(order_status)
order.add_command(order_pending)
proxy.add_command(proxy_approve_and_pay)
proxy.add_command(proxy_decline)
proxy.add_command(proxy_request)
proxy.add_command(proxy_approve)
proxy.add_command(proxy_reject)
proxy.add_command(proxy_pay)
proxy.add_command(proxy_deliver)
proxy.add_command(proxy_cancel)
proxy.add_command(proxy_list)
