"""ProxyOrder aggregate: a retailer's dependent purchase from a wholesaler.

A proxy order covers one fulfillment requirement of a customer order.  It
enters its lifecycle through one of two named paths that share every
state after approval::

    approval-bundled:      (created) ──────────────► APPROVED + paid
    wholesaler-approval:   PENDING ─approve─► APPROVED ─pay─► APPROVED + paid
                           PENDING ─reject──► REJECTED

    APPROVED + paid ─mark_delivered─► DELIVERED_TO_RETAILER ─complete─► COMPLETED
    PENDING | APPROVED ─cancel─► CANCELLED

Stock only moves at ``mark_delivered``; see DeliverySettlement.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

from marketflow.domain.events import (
    DomainEvent,
    ProxyOrderCancelled,
    ProxyOrderDelivered,
)
from marketflow.domain.exceptions import InvalidTransition, ValidationError
from marketflow.domain.model.order import FulfillmentRequirement
from marketflow.domain.model.value_objects import Money, Quantity


class ProxyOrderStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELIVERED_TO_RETAILER = "delivered_to_retailer"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ProxyPaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class CancelledBy(Enum):
    RETAILER = "retailer"
    WHOLESALER = "wholesaler"


class CreationPath(Enum):
    APPROVAL_BUNDLED = "approval_bundled"
    WHOLESALER_APPROVAL = "wholesaler_approval"


SETTLED_STATUSES = frozenset(
    {ProxyOrderStatus.DELIVERED_TO_RETAILER, ProxyOrderStatus.COMPLETED}
)
CANCELLABLE_STATUSES = frozenset({ProxyOrderStatus.PENDING, ProxyOrderStatus.APPROVED})


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ProxyOrder:
    """Aggregate root for proxy orders.

    Build new instances with ``approved_and_paid()`` or
    ``awaiting_wholesaler()``; ``__init__`` is for reconstitution.
    """

    id: int | None
    retailer_store_id: int
    wholesaler_store_id: int
    product_id: int
    inventory_id: int
    quantity: Quantity
    unit_price: Money
    customer_order_id: int
    creation_path: CreationPath
    status: ProxyOrderStatus = ProxyOrderStatus.PENDING
    payment_status: ProxyPaymentStatus = ProxyPaymentStatus.PENDING
    wholesaler_order_id: int | None = None
    wholesaler_delivery_days: int = 3
    retailer_delivery_days: int = 3
    wholesaler_notes: str | None = None
    cancellation_reason: str | None = None
    cancelled_by: CancelledBy | None = None
    created_at: datetime = field(default_factory=_now)
    approved_at: datetime | None = None
    rejected_at: datetime | None = None
    paid_at: datetime | None = None
    delivered_to_retailer_at: datetime | None = None
    completed_at: datetime | None = None
    cancelled_at: datetime | None = None
    version: int = 0
    events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    # --- Factories --------------------------------------------------------------

    @staticmethod
    def approved_and_paid(
        requirement: FulfillmentRequirement,
        retailer_store_id: int,
        customer_order_id: int,
        wholesaler_order_id: int,
    ) -> ProxyOrder:
        """Approval-bundled path: the retailer approved and paid in one step."""
        now = _now()
        return ProxyOrder(
            id=None,
            retailer_store_id=retailer_store_id,
            wholesaler_store_id=requirement.wholesaler_store_id,
            product_id=requirement.product_id,
            inventory_id=requirement.wholesaler_inventory_id,
            quantity=requirement.quantity,
            unit_price=requirement.unit_price,
            customer_order_id=customer_order_id,
            creation_path=CreationPath.APPROVAL_BUNDLED,
            status=ProxyOrderStatus.APPROVED,
            payment_status=ProxyPaymentStatus.PAID,
            wholesaler_order_id=wholesaler_order_id,
            wholesaler_delivery_days=requirement.wholesaler_delivery_days,
            retailer_delivery_days=requirement.retailer_delivery_days,
            created_at=now,
            approved_at=now,
            paid_at=now,
        )

    @staticmethod
    def awaiting_wholesaler(
        requirement: FulfillmentRequirement,
        retailer_store_id: int,
        customer_order_id: int,
    ) -> ProxyOrder:
        """Wholesaler-approval path: nothing is paid until the wholesaler accepts."""
        return ProxyOrder(
            id=None,
            retailer_store_id=retailer_store_id,
            wholesaler_store_id=requirement.wholesaler_store_id,
            product_id=requirement.product_id,
            inventory_id=requirement.wholesaler_inventory_id,
            quantity=requirement.quantity,
            unit_price=requirement.unit_price,
            customer_order_id=customer_order_id,
            creation_path=CreationPath.WHOLESALER_APPROVAL,
            wholesaler_delivery_days=requirement.wholesaler_delivery_days,
            retailer_delivery_days=requirement.retailer_delivery_days,
        )

    # --- Wholesaler decisions ---------------------------------------------------

    def approve(self, notes: str | None = None) -> None:
        """PENDING -> APPROVED (payment still outstanding)."""
        self._require_status(ProxyOrderStatus.PENDING, "approve")
        self.status = ProxyOrderStatus.APPROVED
        self.approved_at = _now()
        if notes and notes.strip():
            self.wholesaler_notes = notes.strip()

    def reject(self, notes: str) -> None:
        """PENDING -> REJECTED.  The wholesaler must say why."""
        self._require_status(ProxyOrderStatus.PENDING, "reject")
        if not notes or not notes.strip():
            raise ValidationError("Notes are required to reject a proxy order")
        self.status = ProxyOrderStatus.REJECTED
        self.rejected_at = _now()
        self.wholesaler_notes = notes.strip()

    # --- Payment ----------------------------------------------------------------

    def record_payment(self, wholesaler_order_id: int) -> None:
        """APPROVED + unpaid -> APPROVED + paid, linked to its wholesale order."""
        self._require_status(ProxyOrderStatus.APPROVED, "pay for")
        if self.payment_status == ProxyPaymentStatus.PAID:
            raise InvalidTransition(f"Proxy order #{self.id} is already paid")
        self.payment_status = ProxyPaymentStatus.PAID
        self.paid_at = _now()
        self.wholesaler_order_id = wholesaler_order_id

    def record_payment_failure(self) -> None:
        self._require_status(ProxyOrderStatus.APPROVED, "pay for")
        self.payment_status = ProxyPaymentStatus.FAILED

    # --- Delivery ---------------------------------------------------------------

    def mark_delivered(self) -> None:
        """APPROVED + paid -> DELIVERED_TO_RETAILER.

        The stock decrement belongs to DeliverySettlement, which calls this
        inside the same unit of work.
        """
        self._require_status(ProxyOrderStatus.APPROVED, "mark delivered")
        if self.payment_status != ProxyPaymentStatus.PAID:
            raise InvalidTransition(
                f"Cannot mark proxy order #{self.id} delivered before it is paid"
            )
        self.status = ProxyOrderStatus.DELIVERED_TO_RETAILER
        self.delivered_to_retailer_at = _now()
        self.events.append(
            ProxyOrderDelivered(
                proxy_order_id=self.id,
                wholesaler_order_id=self.wholesaler_order_id,
            )
        )

    def complete(self) -> None:
        """DELIVERED_TO_RETAILER -> COMPLETED (customer received the goods)."""
        self._require_status(ProxyOrderStatus.DELIVERED_TO_RETAILER, "complete")
        self.status = ProxyOrderStatus.COMPLETED
        self.completed_at = _now()

    # --- Cancellation -----------------------------------------------------------

    def cancel(self, reason: str, cancelled_by: CancelledBy) -> None:
        """PENDING | APPROVED -> CANCELLED; cascades to the customer order."""
        if self.status not in CANCELLABLE_STATUSES:
            raise InvalidTransition(
                f"Cannot cancel proxy order #{self.id} in {self.status.value} status"
            )
        if not reason or not reason.strip():
            raise ValidationError("A cancellation reason is required")
        self.status = ProxyOrderStatus.CANCELLED
        self.cancelled_at = _now()
        self.cancellation_reason = reason.strip()
        self.cancelled_by = cancelled_by
        self.events.append(
            ProxyOrderCancelled(
                proxy_order_id=self.id,
                customer_order_id=self.customer_order_id,
                wholesaler_order_id=self.wholesaler_order_id,
                reason=self.cancellation_reason,
            )
        )

    # --- Computed properties ----------------------------------------------------

    @property
    def total(self) -> Money:
        return self.unit_price * self.quantity.value

    @property
    def is_settled(self) -> bool:
        return self.status in SETTLED_STATUSES

    def pull_events(self) -> list[DomainEvent]:
        events, self.events = self.events, []
        return events

    # --- Internal helpers -------------------------------------------------------

    def _require_status(self, expected: ProxyOrderStatus, action: str) -> None:
        if self.status != expected:
            raise InvalidTransition(
                f"Cannot {action} proxy order #{self.id} in {self.status.value} "
                f"status, expected {expected.value}"
            )
