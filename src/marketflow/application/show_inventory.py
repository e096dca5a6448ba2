"""Application service: Show Inventory use case (query)."""

from __future__ import annotations

from dataclasses import dataclass

from marketflow.domain.repository.unit_of_work import UnitOfWork


@dataclass(frozen=True)
class InventoryLineDTO:
    inventory_id: int
    store_name: str
    store_role: str
    product_name: str
    stock: int
    unit_price: str
    delivery_days: int
    source_type: str


class ShowInventoryHandler:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, store_id: int | None = None) -> list[InventoryLineDTO]:
        with self._uow as uow:
            records = (
                uow.inventory.list_by_store(store_id)
                if store_id is not None
                else uow.inventory.list_all()
            )
            lines = []
            for record in records:
                store = uow.stores.get_by_id(record.store_id)
                product = uow.products.get_by_id(record.product_id)
                lines.append(
                    InventoryLineDTO(
                        inventory_id=record.id,
                        store_name=store.name if store else f"#{record.store_id}",
                        store_role=store.role.value if store else "?",
                        product_name=product.name if product else f"#{record.product_id}",
                        stock=record.stock_qty,
                        unit_price=str(record.unit_price),
                        delivery_days=record.delivery_days,
                        source_type=record.source_type.value,
                    )
                )
            return lines
