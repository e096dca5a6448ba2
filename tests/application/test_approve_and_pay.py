"""Integration tests for the approval-bundled proxy lifecycle."""

import pytest

from marketflow.application.approve_and_pay import ApproveAndPayHandler
from marketflow.application.decline_requirements import DeclineRequirementsHandler
from marketflow.application.dto import CartItemSpec
from marketflow.application.place_order import PlaceOrderHandler
from marketflow.domain.exceptions import (
    ConcurrencyConflict,
    ExternalFailure,
    InsufficientStock,
    InvalidTransition,
    PermissionDenied,
    ValidationError,
)
from marketflow.domain.model.order import OrderKind, OrderStatus, PaymentStatus
from marketflow.domain.model.proxy_order import (
    CreationPath,
    ProxyOrderStatus,
    ProxyPaymentStatus,
)
from marketflow.domain.model.store import StoreRole
from tests.fakes import FakePaymentGateway, FakeUnitOfWork, customer, owner_of


def _setup(ordered: int = 8, approve_payments: bool = True):
    """Retailer has 5 x rice, wholesaler has 10; the customer orders *ordered*."""
    uow = FakeUnitOfWork()
    db = uow.db
    retailer = db.add_store("Corner Shop", StoreRole.RETAILER, "ravi")
    wholesaler = db.add_store("Grain Depot", StoreRole.WHOLESALER, "wendy")
    rice = db.add_product("Basmati Rice")
    shelf = db.add_inventory(retailer, rice, 5, "80.00", delivery_days=2)
    wholesale = db.add_inventory(wholesaler, rice, 10, "60.00", delivery_days=4)

    placed = PlaceOrderHandler(uow, retry_backoff=0).handle(
        customer(), [CartItemSpec(shelf.id, ordered)]
    )
    gateway = FakePaymentGateway(approve=approve_payments)
    handler = ApproveAndPayHandler(uow, gateway)
    return uow, handler, gateway, retailer, wholesaler, shelf, wholesale, placed.orders[0]


class TestApproveAndPay:

    def test_creates_wholesale_and_proxy_orders(self):
        uow, handler, gateway, retailer, wholesaler, _, wholesale, placed = _setup()

        result = handler.handle(owner_of(retailer), placed.id)

        assert result.amount_charged == "₹180.00"
        assert gateway.total_charged == 180
        assert len(result.wholesaler_order_ids) == 1
        assert len(result.proxy_order_ids) == 1

        ws_order = uow.orders.get_by_id(result.wholesaler_order_ids[0])
        assert ws_order.kind == OrderKind.WHOLESALE
        assert ws_order.seller_store_id == wholesaler.id
        assert ws_order.buyer_store_id == retailer.id
        assert ws_order.payment_status == PaymentStatus.PAID
        assert ws_order.lines[0].quantity.value == 3
        assert ws_order.lines[0].unit_price.amount == 60

        proxy = uow.proxy_orders.get_by_id(result.proxy_order_ids[0])
        assert proxy.status == ProxyOrderStatus.APPROVED
        assert proxy.payment_status == ProxyPaymentStatus.PAID
        assert proxy.creation_path == CreationPath.APPROVAL_BUNDLED
        assert proxy.inventory_id == wholesale.id
        assert proxy.wholesaler_order_id == ws_order.id
        assert proxy.wholesaler_delivery_days == 4
        assert proxy.retailer_delivery_days == 2

    def test_requirements_become_proxy_sourced_lines(self):
        uow, handler, _, retailer, _, _, _, placed = _setup()
        handler.handle(owner_of(retailer), placed.id)

        order = uow.orders.get_by_id(placed.id)
        assert order.requirements == []
        assert not order.needs_proxy_approval
        assert order.proxy_approved_at is not None
        assert [(l.quantity.value, l.sourced_via_proxy) for l in order.lines] == [
            (5, False),
            (3, True),
        ]
        assert order.total.amount == 640

    def test_wholesaler_stock_untouched_until_delivery(self):
        uow, handler, _, retailer, _, _, wholesale, placed = _setup()
        handler.handle(owner_of(retailer), placed.id)
        assert uow.db.stock_of(wholesale.id) == 10

    def test_declined_payment_writes_nothing(self):
        uow, handler, gateway, retailer, _, _, _, placed = _setup(approve_payments=False)

        with pytest.raises(ExternalFailure, match="declined"):
            handler.handle(owner_of(retailer), placed.id)

        assert gateway.charges == []
        assert len(gateway.declined) == 1
        assert uow.db.proxy_orders == {}
        assert [o.kind for o in uow.db.orders.values()] == [OrderKind.CUSTOMER]
        assert uow.orders.get_by_id(placed.id).is_awaiting_approval

    def test_resources_from_another_wholesaler_when_stock_moved(self):
        uow, handler, gateway, retailer, _, _, wholesale, placed = _setup()
        other = uow.db.add_store("Rice Barn", StoreRole.WHOLESALER, "omar")
        rice = uow.products.get_by_name("basmati rice")
        replacement = uow.db.add_inventory(other, rice, 50, "65.00")
        uow.db.set_stock(wholesale.id, 1)

        result = handler.handle(owner_of(retailer), placed.id)

        proxy = uow.proxy_orders.get_by_id(result.proxy_order_ids[0])
        assert proxy.inventory_id == replacement.id
        assert proxy.wholesaler_store_id == other.id
        assert result.amount_charged == "₹195.00"

    def test_fails_when_no_wholesaler_can_cover_any_more(self):
        uow, handler, gateway, retailer, _, _, wholesale, placed = _setup()
        uow.db.set_stock(wholesale.id, 2)

        with pytest.raises(InsufficientStock):
            handler.handle(owner_of(retailer), placed.id)
        assert gateway.charges == []
        assert uow.orders.get_by_id(placed.id).is_awaiting_approval

    def test_only_the_owning_retailer_may_approve(self):
        uow, handler, _, _, wholesaler, _, _, placed = _setup()
        other = uow.db.add_store("Other Shop", StoreRole.RETAILER, "sita")

        with pytest.raises(PermissionDenied):
            handler.handle(owner_of(other), placed.id)
        with pytest.raises(PermissionDenied):
            handler.handle(owner_of(wholesaler), placed.id)

    def test_cannot_approve_twice(self):
        _, handler, gateway, retailer, _, _, _, placed = _setup()
        handler.handle(owner_of(retailer), placed.id)

        with pytest.raises(InvalidTransition):
            handler.handle(owner_of(retailer), placed.id)
        assert len(gateway.charges) == 1

    def test_second_approval_during_the_charge_is_never_charged(self):
        uow, handler, gateway, retailer, _, _, _, placed = _setup()
        rival_errors = []

        def rival_approval():
            rival = ApproveAndPayHandler(FakeUnitOfWork(uow.db), gateway)
            try:
                rival.handle(owner_of(retailer), placed.id)
            except InvalidTransition as exc:
                rival_errors.append(exc)

        gateway.during_next_charge = rival_approval
        result = handler.handle(owner_of(retailer), placed.id)

        assert len(rival_errors) == 1
        assert len(gateway.charges) == 1
        assert list(uow.db.proxy_orders) == result.proxy_order_ids

    def test_failed_commit_refunds_the_charge(self):
        uow, handler, gateway, retailer, _, _, _, placed = _setup()
        uow.commit_error = ConcurrencyConflict("Order was changed by another writer")

        with pytest.raises(ConcurrencyConflict):
            handler.handle(owner_of(retailer), placed.id)

        assert gateway.refunds == gateway.charges
        assert len(gateway.refunds) == 1
        assert uow.db.proxy_orders == {}
        assert uow.orders.get_by_id(placed.id).is_awaiting_approval

    def test_order_without_shortfall_has_nothing_to_approve(self):
        _, handler, _, retailer, _, _, _, placed = _setup(ordered=2)
        with pytest.raises(InvalidTransition, match="no requirements"):
            handler.handle(owner_of(retailer), placed.id)


class TestDeclineRequirements:

    def test_cancels_order_and_restocks_shelf(self):
        uow, _, _, retailer, _, shelf, wholesale, placed = _setup()
        assert uow.db.stock_of(shelf.id) == 0

        DeclineRequirementsHandler(uow).handle(owner_of(retailer), placed.id, "Supplier too slow")

        order = uow.orders.get_by_id(placed.id)
        assert order.status == OrderStatus.CANCELLED
        assert order.cancellation_reason == "Supplier too slow"
        assert order.requirements == []
        assert uow.db.stock_of(shelf.id) == 5
        assert uow.db.stock_of(wholesale.id) == 10

    def test_reason_is_required(self):
        uow, _, _, retailer, _, shelf, _, placed = _setup()
        with pytest.raises(ValidationError):
            DeclineRequirementsHandler(uow).handle(owner_of(retailer), placed.id, "  ")
        assert uow.orders.get_by_id(placed.id).is_awaiting_approval
        assert uow.db.stock_of(shelf.id) == 0
