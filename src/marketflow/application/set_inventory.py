"""Application service: Set Inventory (restock) use case."""

from __future__ import annotations

from marketflow.domain.exceptions import ConcurrencyConflict, EntityNotFoundError
from marketflow.domain.model.inventory import DEFAULT_DELIVERY_DAYS, InventoryRecord
from marketflow.domain.model.value_objects import Money
from marketflow.domain.repository.unit_of_work import UnitOfWork


class SetInventoryHandler:

    def __init__(
        self,
        uow: UnitOfWork,
        currency: str = "INR",
        default_delivery_days: int = DEFAULT_DELIVERY_DAYS,
    ) -> None:
        self._uow = uow
        self._currency = currency
        self._default_delivery_days = default_delivery_days

    def handle(
        self,
        store_id: int,
        product_name: str,
        quantity: int,
        price: str,
        delivery_days: int | None = None,
    ) -> InventoryRecord:
        """Create or update a store's stock record for a product."""
        unit_price = Money.of(price, self._currency)

        with self._uow as uow:
            store = uow.stores.get_by_id(store_id)
            if store is None:
                raise EntityNotFoundError(f"Store #{store_id} not found")
            product = uow.products.get_by_name(product_name)
            if product is None:
                raise EntityNotFoundError(f"Product not found: '{product_name}'")

            record = uow.inventory.get_for_store_product(store.id, product.id)
            if record is not None:
                previous = record.stock_qty
                record.restock(quantity, unit_price=unit_price, delivery_days=delivery_days)
                uow.inventory.save(record)
                if not uow.inventory.compare_and_set_stock(record.id, previous, quantity):
                    raise ConcurrencyConflict(
                        f"Stock of inventory #{record.id} changed during restock"
                    )
            else:
                record = InventoryRecord(
                    id=None,
                    store_id=store.id,
                    product_id=product.id,
                    unit_price=unit_price,
                    stock_qty=quantity,
                    delivery_days=(
                        self._default_delivery_days
                        if delivery_days is None
                        else delivery_days
                    ),
                )
                uow.inventory.save(record)
            uow.commit()
        return record
