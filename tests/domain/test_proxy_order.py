"""Unit tests for the ProxyOrder state machine (both creation paths)."""

import pytest

from marketflow.domain.events import ProxyOrderCancelled, ProxyOrderDelivered
from marketflow.domain.exceptions import InvalidTransition, ValidationError
from marketflow.domain.model.order import FulfillmentRequirement
from marketflow.domain.model.proxy_order import (
    CancelledBy,
    CreationPath,
    ProxyOrder,
    ProxyOrderStatus,
    ProxyPaymentStatus,
)
from marketflow.domain.model.value_objects import Money, Quantity


def _requirement(qty: int = 4) -> FulfillmentRequirement:
    return FulfillmentRequirement(
        id=1,
        product_id=3,
        product_name="Basmati Rice",
        quantity=Quantity(qty),
        wholesaler_store_id=9,
        wholesaler_inventory_id=90,
        unit_price=Money.of("60.00"),
        wholesaler_delivery_days=5,
        retailer_delivery_days=2,
        retailer_inventory_id=30,
        retail_unit_price=Money.of("80.00"),
    )


def _bundled() -> ProxyOrder:
    proxy = ProxyOrder.approved_and_paid(
        _requirement(), retailer_store_id=1, customer_order_id=11, wholesaler_order_id=21
    )
    proxy.id = 1
    return proxy


def _awaiting() -> ProxyOrder:
    proxy = ProxyOrder.awaiting_wholesaler(
        _requirement(), retailer_store_id=1, customer_order_id=11
    )
    proxy.id = 2
    return proxy


class TestCreationPaths:

    def test_approval_bundled_starts_approved_and_paid(self):
        proxy = _bundled()
        assert proxy.creation_path == CreationPath.APPROVAL_BUNDLED
        assert proxy.status == ProxyOrderStatus.APPROVED
        assert proxy.payment_status == ProxyPaymentStatus.PAID
        assert proxy.wholesaler_order_id == 21
        assert proxy.approved_at == proxy.paid_at == proxy.created_at

    def test_wholesaler_approval_starts_pending_unpaid(self):
        proxy = _awaiting()
        assert proxy.creation_path == CreationPath.WHOLESALER_APPROVAL
        assert proxy.status == ProxyOrderStatus.PENDING
        assert proxy.payment_status == ProxyPaymentStatus.PENDING
        assert proxy.wholesaler_order_id is None

    def test_requirement_terms_are_copied(self):
        proxy = _awaiting()
        assert proxy.quantity == Quantity(4)
        assert proxy.unit_price == Money.of("60.00")
        assert proxy.inventory_id == 90
        assert proxy.wholesaler_delivery_days == 5
        assert proxy.total == Money.of("240.00")


class TestWholesalerDecisions:

    def test_approve_with_notes(self):
        proxy = _awaiting()
        proxy.approve("  ships Monday ")
        assert proxy.status == ProxyOrderStatus.APPROVED
        assert proxy.approved_at is not None
        assert proxy.wholesaler_notes == "ships Monday"

    def test_approve_twice_rejected(self):
        proxy = _awaiting()
        proxy.approve()
        with pytest.raises(InvalidTransition, match="expected pending"):
            proxy.approve()

    def test_reject_requires_notes(self):
        with pytest.raises(ValidationError, match="Notes are required"):
            _awaiting().reject("")

    def test_reject(self):
        proxy = _awaiting()
        proxy.reject("out of stock")
        assert proxy.status == ProxyOrderStatus.REJECTED
        assert proxy.rejected_at is not None
        assert proxy.pull_events() == []

    def test_bundled_order_cannot_be_rejected(self):
        with pytest.raises(InvalidTransition):
            _bundled().reject("no")


class TestPayment:

    def test_record_payment_links_wholesale_order(self):
        proxy = _awaiting()
        proxy.approve()
        proxy.record_payment(wholesaler_order_id=33)
        assert proxy.payment_status == ProxyPaymentStatus.PAID
        assert proxy.wholesaler_order_id == 33
        assert proxy.paid_at is not None

    def test_cannot_pay_before_approval(self):
        with pytest.raises(InvalidTransition, match="pay for"):
            _awaiting().record_payment(33)

    def test_cannot_pay_twice(self):
        with pytest.raises(InvalidTransition, match="already paid"):
            _bundled().record_payment(34)

    def test_payment_failure_then_retry(self):
        proxy = _awaiting()
        proxy.approve()
        proxy.record_payment_failure()
        assert proxy.payment_status == ProxyPaymentStatus.FAILED
        proxy.record_payment(33)
        assert proxy.payment_status == ProxyPaymentStatus.PAID


class TestDelivery:

    def test_mark_delivered_raises_event(self):
        proxy = _bundled()
        proxy.mark_delivered()
        assert proxy.status == ProxyOrderStatus.DELIVERED_TO_RETAILER
        assert proxy.delivered_to_retailer_at is not None
        assert proxy.is_settled
        assert proxy.pull_events() == [
            ProxyOrderDelivered(proxy_order_id=1, wholesaler_order_id=21)
        ]

    def test_unpaid_cannot_be_delivered(self):
        proxy = _awaiting()
        proxy.approve()
        with pytest.raises(InvalidTransition, match="before it is paid"):
            proxy.mark_delivered()

    def test_pending_cannot_be_delivered(self):
        with pytest.raises(InvalidTransition):
            _awaiting().mark_delivered()

    def test_complete_after_delivery(self):
        proxy = _bundled()
        proxy.mark_delivered()
        proxy.complete()
        assert proxy.status == ProxyOrderStatus.COMPLETED
        assert proxy.is_settled

    def test_complete_before_delivery_rejected(self):
        with pytest.raises(InvalidTransition):
            _bundled().complete()


class TestCancellation:

    @pytest.mark.parametrize("approve", [False, True])
    def test_open_orders_cancel_with_event(self, approve):
        proxy = _awaiting()
        if approve:
            proxy.approve()
        proxy.cancel(" wholesaler closed ", CancelledBy.WHOLESALER)
        assert proxy.status == ProxyOrderStatus.CANCELLED
        assert proxy.cancelled_by == CancelledBy.WHOLESALER
        assert proxy.cancellation_reason == "wholesaler closed"
        assert proxy.pull_events() == [
            ProxyOrderCancelled(
                proxy_order_id=2,
                customer_order_id=11,
                wholesaler_order_id=None,
                reason="wholesaler closed",
            )
        ]

    def test_reason_required(self):
        with pytest.raises(ValidationError, match="reason is required"):
            _bundled().cancel("", CancelledBy.RETAILER)

    def test_delivered_cannot_be_cancelled(self):
        proxy = _bundled()
        proxy.mark_delivered()
        with pytest.raises(InvalidTransition, match="Cannot cancel"):
            proxy.cancel("too late", CancelledBy.RETAILER)

    def test_rejected_cannot_be_cancelled(self):
        proxy = _awaiting()
        proxy.reject("no")
        with pytest.raises(InvalidTransition):
            proxy.cancel("why not", CancelledBy.RETAILER)
