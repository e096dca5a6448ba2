"""Interfaces to collaborators outside this system."""

from __future__ import annotations

from abc import ABC, abstractmethod

from marketflow.domain.model.value_objects import Money


class PaymentGateway(ABC):

    @abstractmethod
    def charge(self, amount: Money, method: str) -> bool:
        """Charge *amount* using *method*; True if the payment went through.

        Raising is reserved for the gateway being unreachable.
        """

    @abstractmethod
    def refund(self, amount: Money, method: str) -> None:
        """Return a charge whose writes could not be committed."""
