"""Application service: Decline Requirements use case.

The retailer refuses to source a customer order's shortfall from
wholesalers.  The requirements are dropped and the customer order is
cancelled; retailer stock reserved at checkout goes back on the shelf.
"""

from __future__ import annotations

from marketflow.application.sourcing import load_order_for_retailer
from marketflow.domain.model.store import Actor
from marketflow.domain.repository.unit_of_work import UnitOfWork
from marketflow.domain.service.fulfillment_coordinator import FulfillmentCoordinator


class DeclineRequirementsHandler:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, actor: Actor, order_id: int, reason: str) -> None:
        with self._uow as uow:
            order, _ = load_order_for_retailer(uow, actor, order_id)
            order.decline_requirements(reason)
            uow.orders.save(order)
            FulfillmentCoordinator(uow).dispatch(order.pull_events())
            uow.commit()
