"""
models/order.py — Order and OrderItem table definitions.

No business logic. No imports from services or routes.

Key design points:
  - Money columns use Numeric(10, 2) — never Float.
  - Each OrderItem snapshots the product name and unit price at purchase
    time, so later catalog edits never rewrite historical orders.
  - order_items.product_id is ON DELETE SET NULL: deleting a product keeps
    the snapshot rows intact.
  - user_id is nullable; guest checkout creates orders without a user.
  - paypal_order_id / paypal_transaction_id are filled by the payment
    confirmation step, which lives outside this application.
"""

from __future__ import annotations

import enum
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopfront.app.extensions import db


class OrderStatus(str, enum.Enum):
    CREATED   = "CREATED"
    APPROVED  = "APPROVED"
    COMPLETED = "COMPLETED"
    FAILED    = "FAILED"


def _enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values, not names."""
    return [member.value for member in enum_cls]


class Order(db.Model):
    __tablename__ = "orders"

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="ck_orders_total_nonnegative"),
    )

    order_id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    total_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    currency_code: Mapped[str] = mapped_column(String(3), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        Enum(
            OrderStatus,
            name="order_status_enum",
            native_enum=False,
            length=16,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=OrderStatus.CREATED,
        server_default=OrderStatus.CREATED.value,
    )

    # HMAC-SHA256 hex digest binding the payment return to this order.
    order_digest: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    digest_salt: Mapped[str] = mapped_column(String(64), nullable=False)

    paypal_order_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    paypal_transaction_id: Mapped[str | None] = mapped_column(String(64), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="orders",
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.position",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Order order_id={self.order_id} "
            f"total={self.total_amount} "
            f"status={self.status}>"
        )


class OrderItem(db.Model):
    __tablename__ = "order_items"

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        CheckConstraint("price_at_purchase > 0", name="ck_order_items_price_positive"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    order_id: Mapped[int] = mapped_column(
        ForeignKey("orders.order_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    product_id: Mapped[int | None] = mapped_column(
        ForeignKey("products.pid", ondelete="SET NULL"),
        nullable=True,
    )

    # 1-based line position; drives item_name_N etc. in the payment form.
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    product_name: Mapped[str] = mapped_column(String(100), nullable=False)

    price_at_purchase: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    quantity: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[Order] = relationship(
        "Order",
        back_populates="items",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<OrderItem order_id={self.order_id} "
            f"product_id={self.product_id} "
            f"quantity={self.quantity}>"
        )
