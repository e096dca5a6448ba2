"""Order aggregate: what a buyer bought from one seller store.

Two kinds of order share this aggregate:

* customer orders, placed by a customer against a retailer store;
* wholesale orders, placed by a retailer (acting as buyer) against a
  wholesaler store to cover a customer order's shortfall.

A customer order may carry *fulfillment requirements*: the part of the
cart the retailer could not cover from its own stock, each paired with a
candidate wholesaler record.  Requirements live only until the retailer
resolves them (approve and pay, route for wholesaler approval, or
decline).
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from marketflow.domain.events import (
    CustomerOrderDelivered,
    DomainEvent,
    OrderCancelled,
    OrderRefunded,
)
from marketflow.domain.exceptions import (
    EmptyOrderError,
    InvalidTransition,
    ValidationError,
)
from marketflow.domain.model.value_objects import Money, Quantity


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PACKED = "packed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    COD = "cod"
    FAILED = "failed"
    REFUNDED = "refunded"


class OrderKind(Enum):
    CUSTOMER = "customer"
    WHOLESALE = "wholesale"


# Forward progression; cancelled/refunded sit outside it.
PROGRESSION = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PACKED,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
]
TERMINAL_STATUSES = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
)

MAX_LINE_ITEMS = 50


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_order_number(kind: OrderKind) -> str:
    """Human-facing order reference, e.g. 'ORD-20261019-3F2A9C1B'."""
    prefix = "ORD" if kind == OrderKind.CUSTOMER else "WS"
    return f"{prefix}-{_now():%Y%m%d}-{uuid4().hex[:8].upper()}"


@dataclass(frozen=True)
class ProductSnapshot:
    """How the product looked when it was ordered."""

    name: str
    price: Money
    image_url: str | None = None


@dataclass(frozen=True)
class OrderLine:
    """One priced line of an order.

    ``unit_price`` and ``snapshot`` are locked at order time; later catalog
    or inventory price changes never touch existing lines.
    """

    id: int | None
    inventory_id: int
    product_id: int
    quantity: Quantity
    unit_price: Money
    snapshot: ProductSnapshot
    sourced_via_proxy: bool = False

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.quantity.value


@dataclass(frozen=True)
class FulfillmentRequirement:
    """A shortfall of one cart line and the wholesaler record that can cover it.

    ``unit_price`` is the wholesaler's price (what the retailer pays);
    ``retail_unit_price`` is what the customer pays the retailer for the
    same units.
    """

    id: int | None
    product_id: int
    product_name: str
    quantity: Quantity
    wholesaler_store_id: int
    wholesaler_inventory_id: int
    unit_price: Money
    wholesaler_delivery_days: int
    retailer_delivery_days: int
    retailer_inventory_id: int
    retail_unit_price: Money

    @property
    def total(self) -> Money:
        return self.unit_price * self.quantity.value

    @property
    def retail_total(self) -> Money:
        return self.retail_unit_price * self.quantity.value


@dataclass
class Order:
    """Aggregate root for orders.

    Use the ``Order.place()`` / ``Order.wholesale()`` factories for new
    orders; they enforce the business rules.  The ``__init__`` is kept
    simple so the repository can reconstitute persisted orders without
    re-validating.
    """

    id: int | None
    order_number: str
    kind: OrderKind
    buyer_id: str
    seller_store_id: int
    lines: list[OrderLine]
    buyer_store_id: int | None = None
    status: OrderStatus = OrderStatus.PENDING
    payment_status: PaymentStatus = PaymentStatus.PENDING
    needs_proxy_approval: bool = False
    proxy_approved_at: datetime | None = None
    requirements: list[FulfillmentRequirement] = field(default_factory=list)
    currency: str = "INR"
    cancellation_reason: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None
    delivered_at: datetime | None = None
    version: int = 0
    events: list[DomainEvent] = field(default_factory=list, repr=False, compare=False)

    # --- Factories (used for NEW orders only) ---------------------------------

    @staticmethod
    def place(
        order_number: str,
        buyer_id: str,
        seller_store_id: int,
        lines: list[OrderLine],
        requirements: list[FulfillmentRequirement],
        payment_status: PaymentStatus = PaymentStatus.PENDING,
        currency: str = "INR",
    ) -> Order:
        """Create a customer order, enforcing all invariants."""
        if not buyer_id or not buyer_id.strip():
            raise ValidationError("Buyer is required")
        if not lines and not requirements:
            raise EmptyOrderError("Order must contain at least one item")
        if len(lines) + len(requirements) > MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per order")

        return Order(
            id=None,
            order_number=order_number,
            kind=OrderKind.CUSTOMER,
            buyer_id=buyer_id.strip(),
            seller_store_id=seller_store_id,
            lines=list(lines),
            payment_status=payment_status,
            needs_proxy_approval=bool(requirements),
            requirements=list(requirements),
            currency=currency,
        )

    @staticmethod
    def wholesale(
        order_number: str,
        retailer_user_id: str,
        retailer_store_id: int,
        wholesaler_store_id: int,
        lines: list[OrderLine],
        currency: str = "INR",
    ) -> Order:
        """Create a paid retailer-to-wholesaler order."""
        if not lines:
            raise EmptyOrderError("Wholesale order must contain at least one item")
        return Order(
            id=None,
            order_number=order_number,
            kind=OrderKind.WHOLESALE,
            buyer_id=retailer_user_id,
            buyer_store_id=retailer_store_id,
            seller_store_id=wholesaler_store_id,
            lines=list(lines),
            payment_status=PaymentStatus.PAID,
            currency=currency,
        )

    # --- State transitions ----------------------------------------------------

    def advance_to(self, target: OrderStatus) -> None:
        """Move forward along pending → confirmed → packed → shipped → delivered.

        Steps may be skipped but never reversed.  For customer orders the
        Order Status Guard must be consulted *before* calling this.
        """
        if target not in PROGRESSION or target == OrderStatus.PENDING:
            raise InvalidTransition(
                f"Cannot advance order {self.order_number} to {target.value}"
            )
        if self.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Order {self.order_number} is already {self.status.value}"
            )
        if PROGRESSION.index(target) <= PROGRESSION.index(self.status):
            raise InvalidTransition(
                f"Cannot move order {self.order_number} from "
                f"{self.status.value} back to {target.value}"
            )

        now = _now()
        self.status = target
        self.updated_at = now
        if target == OrderStatus.DELIVERED:
            self.delivered_at = now
            if self.kind == OrderKind.CUSTOMER:
                self.events.append(CustomerOrderDelivered(order_id=self.id))

    def cancel(self, reason: str | None = None) -> None:
        """Transition any non-terminal state -> CANCELLED."""
        if self.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Cannot cancel order {self.order_number} in "
                f"{self.status.value} status"
            )
        previous = self.status
        now = _now()
        self.status = OrderStatus.CANCELLED
        self.cancellation_reason = reason
        self.cancelled_at = now
        self.updated_at = now
        self.events.append(
            OrderCancelled(order_id=self.id, previous_status=previous.value)
        )

    def refund(self) -> None:
        """Transition any non-terminal state -> REFUNDED."""
        if self.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Cannot refund order {self.order_number} in "
                f"{self.status.value} status"
            )
        self.status = OrderStatus.REFUNDED
        self.payment_status = PaymentStatus.REFUNDED
        self.updated_at = _now()
        self.events.append(OrderRefunded(order_id=self.id))

    # --- Fulfillment requirements ---------------------------------------------

    def resolve_requirements(self, proxy_lines: list[OrderLine]) -> None:
        """Swap the pending requirements for proxy-sourced order lines.

        Called once the retailer has committed to sourcing the shortfall
        from wholesalers (either lifecycle).  Requirements are removed,
        not merely flagged.
        """
        self._assert_awaiting_approval()
        if any(not line.sourced_via_proxy for line in proxy_lines):
            raise ValidationError("Resolved lines must be marked as proxy-sourced")

        self.lines.extend(proxy_lines)
        self.requirements = []
        self.needs_proxy_approval = False
        self.proxy_approved_at = _now()
        self.updated_at = self.proxy_approved_at

    def decline_requirements(self, reason: str) -> None:
        """The retailer refuses to source the shortfall; the order is cancelled."""
        self._assert_awaiting_approval()
        if not reason or not reason.strip():
            raise ValidationError("A reason is required to decline an order")
        self.requirements = []
        self.needs_proxy_approval = False
        self.cancel(reason.strip())

    def repoint_requirement(
        self,
        requirement_id: int | None,
        wholesaler_store_id: int,
        wholesaler_inventory_id: int,
        unit_price: Money,
        wholesaler_delivery_days: int,
    ) -> FulfillmentRequirement:
        """Replace a requirement's candidate source after re-validation."""
        for i, req in enumerate(self.requirements):
            if req.id == requirement_id:
                updated = replace(
                    req,
                    wholesaler_store_id=wholesaler_store_id,
                    wholesaler_inventory_id=wholesaler_inventory_id,
                    unit_price=unit_price,
                    wholesaler_delivery_days=wholesaler_delivery_days,
                )
                self.requirements[i] = updated
                return updated
        raise ValidationError(
            f"Requirement #{requirement_id} not found on order {self.order_number}"
        )

    # --- Computed properties --------------------------------------------------

    @property
    def is_customer_order(self) -> bool:
        return self.kind == OrderKind.CUSTOMER

    @property
    def is_awaiting_approval(self) -> bool:
        return self.needs_proxy_approval and self.proxy_approved_at is None

    @property
    def subtotal(self) -> Money:
        result = Money.zero(self.currency)
        for line in self.lines:
            result = result + line.line_total
        for req in self.requirements:
            result = result + req.retail_total
        return result

    @property
    def shipping_fee(self) -> Money:
        return Money.zero(self.currency)

    @property
    def total(self) -> Money:
        return self.subtotal + self.shipping_fee

    def quantity_for_product(self, product_id: int) -> int:
        """Units of a product accounted for by lines plus open requirements."""
        return sum(
            line.quantity.value for line in self.lines if line.product_id == product_id
        ) + sum(
            req.quantity.value for req in self.requirements if req.product_id == product_id
        )

    def pull_events(self) -> list[DomainEvent]:
        events, self.events = self.events, []
        return events

    # --- Internal helpers -----------------------------------------------------

    def _assert_awaiting_approval(self) -> None:
        if self.status in TERMINAL_STATUSES:
            raise InvalidTransition(
                f"Order {self.order_number} is already {self.status.value}"
            )
        if not self.needs_proxy_approval or not self.requirements:
            raise InvalidTransition(
                f"Order {self.order_number} has no requirements awaiting approval"
            )
