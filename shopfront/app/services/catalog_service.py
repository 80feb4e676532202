"""
services/catalog_service.py — Category and product persistence.

A plain get/list/insert/update/delete-by-key service. The order service reads
authoritative names and prices through get_products_by_ids().

Rules enforced here (they need the DB):
  - CATEGORY_NOT_FOUND (404) / PRODUCT_NOT_FOUND (404)
  - CATEGORY_NOT_EMPTY (409): a category with products cannot be deleted
  - a product's catid must reference an existing category

Layer rules:
  - No Flask imports. Receives plain values; returns ORM objects or dicts.
  - Commits are the route's responsibility — only flush here.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from shopfront.app.errors import AppError, ErrorCode
from shopfront.app.models.catalog import Category, Product

logger = logging.getLogger(__name__)


# ── Categories ─────────────────────────────────────────────────────────────

def list_categories(session: Session) -> list[Category]:
    return list(session.execute(
        select(Category).order_by(Category.name)
    ).scalars().all())


def get_category_or_404(catid: int, session: Session) -> Category:
    category = session.get(Category, catid)
    if category is None:
        raise AppError(
            ErrorCode.CATEGORY_NOT_FOUND,
            f"Category {catid} not found.",
            404,
        )
    return category


def create_category(name: str, session: Session) -> Category:
    category = Category(name=name)
    session.add(category)
    session.flush()
    return category


def update_category(catid: int, name: str, session: Session) -> Category:
    category = get_category_or_404(catid, session)
    category.name = name
    session.flush()
    return category


def delete_category(catid: int, session: Session) -> None:
    """
    Raises:
      AppError(CATEGORY_NOT_FOUND, 404)
      AppError(CATEGORY_NOT_EMPTY, 409) — products still reference the category
    """
    category = get_category_or_404(catid, session)

    product_count = session.execute(
        select(func.count(Product.pid)).where(Product.catid == catid)
    ).scalar_one()
    if product_count > 0:
        raise AppError(
            ErrorCode.CATEGORY_NOT_EMPTY,
            "Cannot delete category with products. Move or delete the products first.",
            409,
        )

    session.delete(category)
    session.flush()


# ── Products ───────────────────────────────────────────────────────────────

def list_products(session: Session, catid: int | None = None) -> list[Product]:
    stmt = select(Product).order_by(Product.name)
    if catid is not None:
        stmt = stmt.where(Product.catid == catid)
    return list(session.execute(stmt).scalars().all())


def get_product_or_404(pid: int, session: Session) -> Product:
    product = session.get(Product, pid)
    if product is None:
        raise AppError(
            ErrorCode.PRODUCT_NOT_FOUND,
            f"Product {pid} not found.",
            404,
        )
    return product


def get_products_by_ids(pids: list[int], session: Session) -> dict[int, Product]:
    """Returns {pid: Product} for the pids that exist. Missing pids are absent."""
    if not pids:
        return {}
    rows = session.execute(
        select(Product).where(Product.pid.in_(pids))
    ).scalars().all()
    return {product.pid: product for product in rows}


def _require_category(catid: int, session: Session) -> None:
    if session.get(Category, catid) is None:
        raise AppError(
            ErrorCode.CATEGORY_NOT_FOUND,
            f"Category {catid} not found.",
            404,
            field="catid",
        )


def create_product(data: dict, session: Session) -> Product:
    """`data` is the output of ProductInputSchema().load()."""
    _require_category(data["catid"], session)
    product = Product(
        catid=data["catid"],
        name=data["name"],
        price=data["price"],
        description=data.get("description"),
        image=data.get("image"),
    )
    session.add(product)
    session.flush()
    logger.info("Created product pid=%s", product.pid)
    return product


def update_product(pid: int, data: dict, session: Session) -> Product:
    product = get_product_or_404(pid, session)
    _require_category(data["catid"], session)

    product.catid = data["catid"]
    product.name = data["name"]
    product.price = data["price"]
    product.description = data.get("description")
    # Keep the existing image unless a new one was supplied.
    if data.get("image"):
        product.image = data["image"]

    session.flush()
    return product


def delete_product(pid: int, session: Session) -> None:
    product = get_product_or_404(pid, session)
    session.delete(product)
    session.flush()
    logger.info("Deleted product pid=%s", pid)


def get_stats(session: Session) -> dict:
    return {
        "categoryCount": session.execute(select(func.count(Category.catid))).scalar_one(),
        "productCount": session.execute(select(func.count(Product.pid))).scalar_one(),
    }
