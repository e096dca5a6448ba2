"""Stand-in payment gateway for local runs and tests.

Approves every charge except those made with a configured list of
declined methods, and keeps a record of what it charged and refunded.
"""

from __future__ import annotations

import logging

from marketflow.application.ports import PaymentGateway
from marketflow.domain.model.value_objects import Money

logger = logging.getLogger(__name__)


class SimulatedPaymentGateway(PaymentGateway):

    def __init__(self, declined_methods: list[str] | None = None) -> None:
        self._declined = {m.lower() for m in declined_methods or []}
        self.charges: list[tuple[Money, str]] = []
        self.refunds: list[tuple[Money, str]] = []

    def charge(self, amount: Money, method: str) -> bool:
        if method.lower() in self._declined:
            logger.info("Declining %s charge via %s", amount, method)
            return False
        self.charges.append((amount, method))
        logger.info("Charged %s via %s", amount, method)
        return True

    def refund(self, amount: Money, method: str) -> None:
        self.refunds.append((amount, method))
        logger.warning("Refunded %s via %s", amount, method)
