"""Application service: Approve & Pay (approval-bundled proxy lifecycle).

The retailer accepts the wholesaler sourcing proposed at checkout and pays
for it in one step.  Inside a single unit of work:

1. re-check each requirement's wholesaler stock (re-source if needed);
2. replace the requirements on the customer order with proxy-sourced
   lines and stamp ``proxy_approved_at``;
3. create one wholesale order per wholesaler store;
4. create one proxy order per requirement, already approved and paid;
5. charge the retailer once for every requirement.

The customer order is saved first, so a second approval of the same
order fails its version check before it reaches the gateway.  The
charge is the last step before commit: a declined charge raises
ExternalFailure and the unit of work discards the writes, and a commit
that fails after a successful charge refunds it.  This use case is not
retried automatically.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from marketflow.application.ports import PaymentGateway
from marketflow.application.sourcing import (
    load_order_for_retailer,
    proxy_sourced_lines,
    revalidate_requirements,
    wholesale_lines,
)
from marketflow.domain.exceptions import DomainException, ExternalFailure
from marketflow.domain.model.order import (
    FulfillmentRequirement,
    Order,
    OrderKind,
    new_order_number,
)
from marketflow.domain.model.proxy_order import ProxyOrder
from marketflow.domain.model.store import Actor
from marketflow.domain.model.value_objects import Money
from marketflow.domain.repository.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApprovalResultDTO:
    customer_order_id: int
    wholesaler_order_ids: list[int]
    proxy_order_ids: list[int]
    amount_charged: str


class ApproveAndPayHandler:

    def __init__(self, uow: UnitOfWork, payment_gateway: PaymentGateway) -> None:
        self._uow = uow
        self._payment_gateway = payment_gateway

    def handle(
        self, actor: Actor, order_id: int, payment_method: str = "wallet"
    ) -> ApprovalResultDTO:
        with self._uow as uow:
            order, store = load_order_for_retailer(uow, actor, order_id)
            requirements = revalidate_requirements(uow, order)

            amount = Money.zero(order.currency)
            for req in requirements:
                amount = amount + req.total

            order.resolve_requirements(proxy_sourced_lines(uow, requirements))
            uow.orders.save(order)

            wholesaler_order_ids: list[int] = []
            proxy_order_ids: list[int] = []
            for wholesaler_id, group in self._group_by_wholesaler(requirements).items():
                wholesale_order = Order.wholesale(
                    order_number=new_order_number(OrderKind.WHOLESALE),
                    retailer_user_id=actor.user_id,
                    retailer_store_id=store.id,
                    wholesaler_store_id=wholesaler_id,
                    lines=wholesale_lines(uow, group),
                    currency=order.currency,
                )
                uow.orders.save(wholesale_order)
                wholesaler_order_ids.append(wholesale_order.id)

                for req in group:
                    proxy = ProxyOrder.approved_and_paid(
                        req,
                        retailer_store_id=store.id,
                        customer_order_id=order.id,
                        wholesaler_order_id=wholesale_order.id,
                    )
                    uow.proxy_orders.save(proxy)
                    proxy_order_ids.append(proxy.id)

            if not self._payment_gateway.charge(amount, payment_method):
                logger.warning(
                    "Payment of %s for order %s declined (%s)",
                    amount, order.order_number, payment_method,
                )
                raise ExternalFailure(
                    f"Payment of {amount} via {payment_method} was declined"
                )
            try:
                uow.commit()
            except DomainException:
                logger.error(
                    "Approval of order %s not saved after charging %s; refunding",
                    order.order_number, amount,
                )
                self._payment_gateway.refund(amount, payment_method)
                raise

        logger.info(
            "Order %s approved: %d wholesale order(s), %d proxy order(s), charged %s",
            order.order_number, len(wholesaler_order_ids), len(proxy_order_ids), amount,
        )
        return ApprovalResultDTO(
            customer_order_id=order.id,
            wholesaler_order_ids=wholesaler_order_ids,
            proxy_order_ids=proxy_order_ids,
            amount_charged=str(amount),
        )

    @staticmethod
    def _group_by_wholesaler(
        requirements: list[FulfillmentRequirement],
    ) -> dict[int, list[FulfillmentRequirement]]:
        groups: dict[int, list[FulfillmentRequirement]] = {}
        for req in requirements:
            groups.setdefault(req.wholesaler_store_id, []).append(req)
        return groups
