"""Application service: Add Product use case."""

from __future__ import annotations

from marketflow.domain.exceptions import ValidationError
from marketflow.domain.model.product import Product
from marketflow.domain.repository.unit_of_work import UnitOfWork


class AddProductHandler:

    def __init__(self, uow: UnitOfWork) -> None:
        self._uow = uow

    def handle(self, name: str, image_url: str | None = None) -> Product:
        """Register a product reference that stores can stock."""
        product = Product.create(name=name, image_url=image_url)

        with self._uow as uow:
            if uow.products.get_by_name(product.name) is not None:
                raise ValidationError(f"Product '{product.name}' already exists")
            uow.products.save(product)
            uow.commit()
        return product
