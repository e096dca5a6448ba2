"""Unit tests for the Allocator domain service (checkout splitting)."""

import pytest

from marketflow.domain.exceptions import InsufficientStock, ValidationError
from marketflow.domain.model.store import StoreRole
from marketflow.domain.model.value_objects import Money, Quantity
from marketflow.domain.service.allocator import Allocator, CartLine
from marketflow.domain.service.sourcing_matcher import SourcingMatcher
from tests.fakes import FakeUnitOfWork


def _setup(retailer_stock: int = 5, wholesaler_stock: int | None = 10, allow_partial=False):
    uow = FakeUnitOfWork()
    db = uow.db
    retailer = db.add_store("Corner Shop", StoreRole.RETAILER, "ravi")
    product = db.add_product("Basmati Rice")
    retail_record = db.add_inventory(retailer, product, retailer_stock, "80.00", delivery_days=2)
    wholesale_record = None
    if wholesaler_stock is not None:
        wholesaler = db.add_store("Grain Depot", StoreRole.WHOLESALER, "wendy")
        wholesale_record = db.add_inventory(
            wholesaler, product, wholesaler_stock, "60.00", delivery_days=4
        )
    allocator = Allocator(
        SourcingMatcher(uow.inventory, uow.proxy_orders, uow.orders),
        allow_partial=allow_partial,
    )
    return allocator, retailer, product, retail_record, wholesale_record


class TestAllocation:

    def test_fully_stocked_line(self):
        allocator, retailer, product, record, _ = _setup(retailer_stock=10)
        allocation = allocator.allocate(retailer.id, [CartLine(record, product, Quantity(4))])

        assert len(allocation.lines) == 1
        assert allocation.lines[0].quantity == Quantity(4)
        assert not allocation.lines[0].sourced_via_proxy
        assert allocation.requirements == []
        assert allocation.reservations[0].new_stock == 6

    def test_shortfall_becomes_requirement(self):
        """Retailer has 5, customer wants 8, wholesaler has 10."""
        allocator, retailer, product, record, wholesale = _setup()
        allocation = allocator.allocate(retailer.id, [CartLine(record, product, Quantity(8))])

        assert [line.quantity.value for line in allocation.lines] == [5]
        assert not allocation.lines[0].sourced_via_proxy
        assert len(allocation.requirements) == 1
        req = allocation.requirements[0]
        assert req.quantity == Quantity(3)
        assert req.wholesaler_inventory_id == wholesale.id
        assert req.wholesaler_store_id == wholesale.store_id
        assert req.unit_price == Money.of("60.00")
        assert req.retail_unit_price == Money.of("80.00")
        assert req.wholesaler_delivery_days == 4
        assert req.retailer_delivery_days == 2

    def test_out_of_stock_retailer_needs_no_reservation(self):
        allocator, retailer, product, record, _ = _setup(retailer_stock=0)
        allocation = allocator.allocate(retailer.id, [CartLine(record, product, Quantity(3))])

        assert allocation.lines == []
        assert allocation.reservations == []
        assert allocation.requirements[0].quantity == Quantity(3)

    def test_quantities_are_conserved(self):
        allocator, retailer, product, record, _ = _setup(retailer_stock=5)
        for desired in (1, 5, 6, 15):
            allocation = allocator.allocate(
                retailer.id, [CartLine(record, product, Quantity(desired))]
            )
            allocated = sum(line.quantity.value for line in allocation.lines)
            required = sum(req.quantity.value for req in allocation.requirements)
            assert allocated + required == desired

    def test_unsourceable_shortfall_rejected(self):
        allocator, retailer, product, record, _ = _setup(wholesaler_stock=None)
        with pytest.raises(InsufficientStock, match="remaining 3"):
            allocator.allocate(retailer.id, [CartLine(record, product, Quantity(8))])

    def test_wholesaler_without_enough_stock_does_not_count(self):
        allocator, retailer, product, record, _ = _setup(wholesaler_stock=2)
        with pytest.raises(InsufficientStock):
            allocator.allocate(retailer.id, [CartLine(record, product, Quantity(8))])

    def test_partial_mode_omits_shortfall(self):
        allocator, retailer, product, record, _ = _setup(
            wholesaler_stock=None, allow_partial=True
        )
        allocation = allocator.allocate(retailer.id, [CartLine(record, product, Quantity(8))])

        assert [line.quantity.value for line in allocation.lines] == [5]
        assert allocation.requirements == []
        assert allocation.omitted == {"Basmati Rice": 3}

    def test_duplicate_cart_lines_are_merged(self):
        allocator, retailer, product, record, _ = _setup(retailer_stock=5)
        allocation = allocator.allocate(
            retailer.id,
            [
                CartLine(record, product, Quantity(3)),
                CartLine(record, product, Quantity(4)),
            ],
        )
        assert [line.quantity.value for line in allocation.lines] == [5]
        assert allocation.requirements[0].quantity == Quantity(2)
        assert len(allocation.reservations) == 1

    def test_foreign_inventory_rejected(self):
        allocator, retailer, product, record, _ = _setup()
        with pytest.raises(ValidationError, match="does not belong"):
            allocator.allocate(retailer.id + 100, [CartLine(record, product, Quantity(1))])
