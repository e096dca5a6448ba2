"""Application service: Pay Proxy Order use case (wholesaler-approval lifecycle).

After the wholesaler approves a PENDING proxy order, the retailer pays for
it.  Payment creates the wholesale order the proxy order is delivered
against.

The proxy order is marked paid and saved before the gateway is charged,
so a second payment of the same proxy order fails its version check
first.  A declined charge discards those writes, marks the payment failed
and raises ExternalFailure; the retailer may try again.  A commit that
fails after a successful charge refunds it.
"""

from __future__ import annotations

import logging

from marketflow.application.dto import ProxyOrderDTO, proxy_order_to_dto
from marketflow.application.ports import PaymentGateway
from marketflow.domain.exceptions import (
    DomainException,
    EntityNotFoundError,
    ExternalFailure,
    InsufficientStock,
    InvalidTransition,
)
from marketflow.domain.model.order import (
    Order,
    OrderKind,
    OrderLine,
    ProductSnapshot,
    new_order_number,
)
from marketflow.domain.model.proxy_order import ProxyOrderStatus, ProxyPaymentStatus
from marketflow.domain.model.store import Actor
from marketflow.domain.repository.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


class PayProxyOrderHandler:

    def __init__(self, uow: UnitOfWork, payment_gateway: PaymentGateway) -> None:
        self._uow = uow
        self._payment_gateway = payment_gateway

    def handle(
        self, actor: Actor, proxy_order_id: int, payment_method: str = "wallet"
    ) -> ProxyOrderDTO:
        with self._uow as uow:
            proxy = uow.proxy_orders.get_by_id(proxy_order_id, for_update=True)
            if proxy is None:
                raise EntityNotFoundError(f"Proxy order #{proxy_order_id} not found")
            retailer = uow.stores.get_by_id(proxy.retailer_store_id)
            if retailer is None:
                raise EntityNotFoundError(f"Store #{proxy.retailer_store_id} not found")
            actor.require_owner(retailer)

            # Checked before any write; record_payment re-checks the same rules.
            if proxy.status != ProxyOrderStatus.APPROVED:
                raise InvalidTransition(
                    f"Cannot pay for proxy order #{proxy.id} in {proxy.status.value} status"
                )
            if proxy.payment_status == ProxyPaymentStatus.PAID:
                raise InvalidTransition(f"Proxy order #{proxy.id} is already paid")

            record = uow.inventory.get_by_id(proxy.inventory_id)
            if record is None:
                raise EntityNotFoundError(
                    f"Wholesaler inventory #{proxy.inventory_id} not found"
                )
            if not record.can_supply(proxy.quantity.value):
                raise InsufficientStock(
                    f"Wholesaler inventory #{record.id} has {record.stock_qty} in stock, "
                    f"proxy order #{proxy.id} needs {proxy.quantity.value}"
                )

            product = uow.products.get_by_id(record.product_id)
            wholesale_order = Order.wholesale(
                order_number=new_order_number(OrderKind.WHOLESALE),
                retailer_user_id=actor.user_id,
                retailer_store_id=retailer.id,
                wholesaler_store_id=proxy.wholesaler_store_id,
                lines=[
                    OrderLine(
                        id=None,
                        inventory_id=record.id,
                        product_id=record.product_id,
                        quantity=proxy.quantity,
                        unit_price=proxy.unit_price,
                        snapshot=ProductSnapshot(
                            name=product.name if product else f"product #{record.product_id}",
                            price=proxy.unit_price,
                            image_url=product.image_url if product else None,
                        ),
                    )
                ],
                currency=proxy.unit_price.currency,
            )
            uow.orders.save(wholesale_order)

            proxy.record_payment(wholesale_order.id)
            uow.proxy_orders.save(proxy)

            if not self._payment_gateway.charge(proxy.total, payment_method):
                uow.rollback()
                self._record_failure(uow, proxy_order_id)
                logger.warning(
                    "Payment of %s for proxy order #%s declined", proxy.total, proxy.id
                )
                raise ExternalFailure(
                    f"Payment of {proxy.total} via {payment_method} was declined"
                )
            try:
                uow.commit()
            except DomainException:
                logger.error(
                    "Payment of proxy order #%s not saved after charging %s; refunding",
                    proxy.id, proxy.total,
                )
                self._payment_gateway.refund(proxy.total, payment_method)
                raise

        logger.info(
            "Proxy order #%s paid (%s); wholesale order %s",
            proxy.id, proxy.total, wholesale_order.order_number,
        )
        return proxy_order_to_dto(proxy)

    @staticmethod
    def _record_failure(uow: UnitOfWork, proxy_order_id: int) -> None:
        proxy = uow.proxy_orders.get_by_id(proxy_order_id, for_update=True)
        proxy.record_payment_failure()
        uow.proxy_orders.save(proxy)
        uow.commit()
