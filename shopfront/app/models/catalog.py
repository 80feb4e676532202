"""
models/catalog.py — Category and Product table definitions.

No business logic. No imports from services or routes.

Key design points:
  - `price` uses Numeric(10, 2) — never Float.
  - products.catid is ON DELETE RESTRICT; catalog_service refuses to delete a
    category that still has products (CATEGORY_NOT_EMPTY, 409) before the DB
    constraint is reached.
  - `image` is an opaque filename owned by the image processing service.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from shopfront.app.extensions import db


class Category(db.Model):
    __tablename__ = "categories"

    catid: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    products: Mapped[list["Product"]] = relationship(
        "Product",
        back_populates="category",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Category catid={self.catid} name={self.name!r}>"


class Product(db.Model):
    __tablename__ = "products"

    __table_args__ = (
        CheckConstraint("price > 0", name="ck_products_price_positive"),
    )

    pid: Mapped[int] = mapped_column(primary_key=True)

    catid: Mapped[int] = mapped_column(
        ForeignKey("categories.catid", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    image: Mapped[str | None] = mapped_column(String(255), nullable=True)

    category: Mapped[Category] = relationship(
        "Category",
        back_populates="products",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Product pid={self.pid} name={self.name!r} price={self.price}>"
