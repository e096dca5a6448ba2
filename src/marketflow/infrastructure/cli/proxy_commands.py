"""CLI commands for wholesaler sourcing (proxy orders)."""

from __future__ import annotations

import click

from marketflow.application.approve_and_pay import ApproveAndPayHandler
from marketflow.application.cancel_proxy_order import CancelProxyOrderHandler
from marketflow.application.decline_requirements import DeclineRequirementsHandler
from marketflow.application.dto import ProxyOrderDTO
from marketflow.application.list_proxy_orders import ListProxyOrdersHandler
from marketflow.application.mark_delivered import MarkDeliveredHandler
from marketflow.application.pay_proxy_order import PayProxyOrderHandler
from marketflow.application.request_wholesaler_approval import (
    RequestWholesalerApprovalHandler,
)
from marketflow.application.review_proxy_order import (
    ApproveProxyOrderHandler,
    RejectProxyOrderHandler,
)
from marketflow.domain.exceptions import DomainException
from marketflow.infrastructure import bootstrap
from marketflow.infrastructure.cli.actors import store_actor

user_option = click.option("--user", required=True, help="Acting user ID (store owner).")
store_option = click.option(
    "--store", "store_id", required=True, type=int, help="Store the user acts for."
)
proxy_id_option = click.option(
    "--id", "proxy_order_id", required=True, type=int, help="Proxy order ID."
)


def _display_proxy(dto: ProxyOrderDTO) -> None:
    click.echo(
        f"Proxy order #{dto.id}  (status={dto.status}, payment={dto.payment_status}, "
        f"path={dto.creation_path})"
    )
    click.echo(
        f"  {dto.quantity} unit(s) @ {dto.unit_price} = {dto.total}  "
        f"wholesaler #{dto.wholesaler_store_id} -> retailer #{dto.retailer_store_id}  "
        f"customer order #{dto.customer_order_id}"
    )
    if dto.wholesaler_order_id is not None:
        click.echo(f"  Wholesale order #{dto.wholesaler_order_id}")
    if dto.wholesaler_notes:
        click.echo(f"  Wholesaler notes: {dto.wholesaler_notes}")
    if dto.cancellation_reason:
        click.echo(f"  Cancelled: {dto.cancellation_reason}")


@click.command("approve-and-pay")
@click.option("--order", "order_id", required=True, type=int, help="Customer order ID.")
@user_option
@store_option
@click.option("--method", default="wallet", show_default=True, help="Payment method.")
def proxy_approve_and_pay(order_id: int, user: str, store_id: int, method: str) -> None:
    """Approve the proposed wholesaler sourcing and pay for it."""
    handler = ApproveAndPayHandler(
        uow=bootstrap.unit_of_work(), payment_gateway=bootstrap.payment_gateway()
    )

    try:
        result = handler.handle(store_actor(user, store_id), order_id, payment_method=method)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(
        f"Order #{result.customer_order_id} approved; charged {result.amount_charged}."
    )
    click.echo(
        f"Wholesale orders: {', '.join(f'#{i}' for i in result.wholesaler_order_ids)}  "
        f"Proxy orders: {', '.join(f'#{i}' for i in result.proxy_order_ids)}"
    )


@click.command("decline")
@click.option("--order", "order_id", required=True, type=int, help="Customer order ID.")
@click.option("--reason", required=True, help="Why the order cannot be fulfilled.")
@user_option
@store_option
def proxy_decline(order_id: int, reason: str, user: str, store_id: int) -> None:
    """Decline wholesaler sourcing and cancel the customer order."""
    handler = DeclineRequirementsHandler(uow=bootstrap.unit_of_work())

    try:
        handler.handle(store_actor(user, store_id), order_id, reason)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Order #{order_id} declined and cancelled.")


@click.command("request")
@click.option("--order", "order_id", required=True, type=int, help="Customer order ID.")
@user_option
@store_option
def proxy_request(order_id: int, user: str, store_id: int) -> None:
    """Send the order's requirements to wholesalers for approval."""
    handler = RequestWholesalerApprovalHandler(uow=bootstrap.unit_of_work())

    try:
        proxies = handler.handle(store_actor(user, store_id), order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    click.echo(f"{len(proxies)} proxy order(s) sent for wholesaler approval.")
    for dto in proxies:
        _display_proxy(dto)


@click.command("approve")
@proxy_id_option
@user_option
@store_option
@click.option("--notes", default=None, help="Notes for the retailer.")
def proxy_approve(proxy_order_id: int, user: str, store_id: int, notes: str | None) -> None:
    """Wholesaler approves a pending proxy order."""
    handler = ApproveProxyOrderHandler(uow=bootstrap.unit_of_work())

    try:
        dto = handler.handle(store_actor(user, store_id), proxy_order_id, notes=notes)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_proxy(dto)


@click.command("reject")
@proxy_id_option
@user_option
@store_option
@click.option("--notes", required=True, help="Why the order is rejected.")
def proxy_reject(proxy_order_id: int, user: str, store_id: int, notes: str) -> None:
    """Wholesaler rejects a pending proxy order."""
    handler = RejectProxyOrderHandler(uow=bootstrap.unit_of_work())

    try:
        dto = handler.handle(store_actor(user, store_id), proxy_order_id, notes)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_proxy(dto)


@click.command("pay")
@proxy_id_option
@user_option
@store_option
@click.option("--method", default="wallet", show_default=True, help="Payment method.")
def proxy_pay(proxy_order_id: int, user: str, store_id: int, method: str) -> None:
    """Retailer pays for an approved proxy order."""
    handler = PayProxyOrderHandler(
        uow=bootstrap.unit_of_work(), payment_gateway=bootstrap.payment_gateway()
    )

    try:
        dto = handler.handle(store_actor(user, store_id), proxy_order_id, payment_method=method)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_proxy(dto)


@click.command("deliver")
@proxy_id_option
@user_option
@store_option
def proxy_deliver(proxy_order_id: int, user: str, store_id: int) -> None:
    """Wholesaler marks a paid proxy order delivered to the retailer."""
    cfg = bootstrap.settings()
    handler = MarkDeliveredHandler(
        uow=bootstrap.unit_of_work(),
        retry_attempts=cfg.max_conflict_retries,
        retry_backoff=cfg.retry_backoff_seconds,
    )

    try:
        dto = handler.handle(store_actor(user, store_id), proxy_order_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_proxy(dto)


@click.command("cancel")
@proxy_id_option
@click.option("--reason", required=True, help="Cancellation reason.")
@user_option
@store_option
def proxy_cancel(proxy_order_id: int, reason: str, user: str, store_id: int) -> None:
    """Cancel a proxy order (retailer or wholesaler); cancels the customer order too."""
    handler = CancelProxyOrderHandler(uow=bootstrap.unit_of_work())

    try:
        dto = handler.handle(store_actor(user, store_id), proxy_order_id, reason)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    _display_proxy(dto)


@click.command("list")
@store_option
@user_option
def proxy_list(store_id: int, user: str) -> None:
    """List the proxy orders a store is party to."""
    handler = ListProxyOrdersHandler(uow=bootstrap.unit_of_work())

    try:
        proxies = handler.handle(store_actor(user, store_id), store_id)
    except DomainException as exc:
        raise click.ClickException(str(exc))

    if not proxies:
        click.echo("No proxy orders found.")
        return
    for dto in proxies:
        _display_proxy(dto)
