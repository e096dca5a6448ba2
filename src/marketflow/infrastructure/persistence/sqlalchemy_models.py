"""SQLAlchemy table mappings.

Rows are persistence shapes only; repositories translate them to and
from domain aggregates.  Enum columns store the enum's ``value`` and
money columns store the amount, with the currency held once per row.

``orders`` and ``proxy_orders`` carry a version counter that the
repositories bump on every save; SQLAlchemy adds ``WHERE version = ?``
to the UPDATE and raises StaleDataError if another writer moved it.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

_MONEY = Numeric(12, 2)


class Base(DeclarativeBase):
    pass


class StoreRow(Base):
    __tablename__ = "stores"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, index=True)
    owner_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)


class ProductRow(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Trimmed, lower-cased name used to match listings across stores
    match_key: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    image_url: Mapped[str | None] = mapped_column(Text, nullable=True)


class InventoryRow(Base):
    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("store_id", "product_id", name="uq_inventory_store_product"),
        CheckConstraint("stock_qty >= 0", name="ck_inventory_stock_non_negative"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    store_id: Mapped[int] = mapped_column(ForeignKey("stores.id"), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False, index=True)
    stock_qty: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unit_price: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    list_price: Mapped[Decimal | None] = mapped_column(_MONEY, nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    delivery_days: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    source_type: Mapped[str] = mapped_column(String(16), nullable=False, default="listed")
    source_order_id: Mapped[int | None] = mapped_column(
        ForeignKey("orders.id"), nullable=True
    )


class OrderRow(Base):
    __tablename__ = "orders"
    __table_args__ = (
        Index("ix_orders_seller_status", "seller_store_id", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    buyer_id: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    buyer_store_id: Mapped[int | None] = mapped_column(ForeignKey("stores.id"), nullable=True)
    seller_store_id: Mapped[int] = mapped_column(ForeignKey("stores.id"), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False)
    needs_proxy_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    proxy_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    lines: Mapped[list[OrderLineRow]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderLineRow.id",
    )
    requirements: Mapped[list[RequirementRow]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="RequirementRow.id",
    )

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}


class OrderLineRow(Base):
    __tablename__ = "order_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_lines_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    inventory_id: Mapped[int] = mapped_column(ForeignKey("inventory.id"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    sourced_via_proxy: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    order: Mapped[OrderRow] = relationship(back_populates="lines")


class RequirementRow(Base):
    __tablename__ = "fulfillment_requirements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    wholesaler_store_id: Mapped[int] = mapped_column(ForeignKey("stores.id"), nullable=False)
    wholesaler_inventory_id: Mapped[int] = mapped_column(
        ForeignKey("inventory.id"), nullable=False
    )
    unit_price: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    wholesaler_delivery_days: Mapped[int] = mapped_column(Integer, nullable=False)
    retailer_delivery_days: Mapped[int] = mapped_column(Integer, nullable=False)
    retailer_inventory_id: Mapped[int] = mapped_column(
        ForeignKey("inventory.id"), nullable=False
    )
    retail_unit_price: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)

    order: Mapped[OrderRow] = relationship(back_populates="requirements")


class ProxyOrderRow(Base):
    __tablename__ = "proxy_orders"
    __table_args__ = (
        Index("ix_proxy_orders_retailer_product", "retailer_store_id", "product_id"),
        CheckConstraint("quantity > 0", name="ck_proxy_orders_quantity_positive"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    retailer_store_id: Mapped[int] = mapped_column(ForeignKey("stores.id"), nullable=False)
    wholesaler_store_id: Mapped[int] = mapped_column(
        ForeignKey("stores.id"), nullable=False, index=True
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    inventory_id: Mapped[int] = mapped_column(ForeignKey("inventory.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(_MONEY, nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="INR")
    customer_order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.id"), nullable=False, index=True
    )
    wholesaler_order_id: Mapped[int | None] = mapped_column(
        ForeignKey("orders.id"), nullable=True, index=True
    )
    creation_path: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    payment_status: Mapped[str] = mapped_column(String(16), nullable=False)
    wholesaler_delivery_days: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    retailer_delivery_days: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    wholesaler_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    delivered_to_retailer_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version, "version_id_generator": False}
