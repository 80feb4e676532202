"""
routes/catalog.py — Category and product routes.

Two blueprints:
  frontend_bp (url_prefix=/api/frontend) — public, read-only
    GET    /categories
    GET    /products[?catid=]
    GET    /products/<pid>

  catalog_bp (url_prefix=/api) — admin session required; mutations also
  require a CSRF token
    GET    /categories            POST /categories
    PUT    /categories/<catid>    DELETE /categories/<catid>
    GET    /products              POST /products
    PUT    /products/<pid>        DELETE /products/<pid>
    GET    /stats

Image files are processed by a separate service; these routes store the
resulting image path only.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from shopfront.app.extensions import db
from shopfront.app.middleware.auth_middleware import require_admin
from shopfront.app.middleware.csrf_middleware import require_csrf
from shopfront.app.schemas.catalog_schema import (
    CategoryInputSchema,
    ProductInputSchema,
    categories_schema,
    category_schema,
    product_schema,
    products_schema,
)
from shopfront.app.services import catalog_service

frontend_bp = Blueprint("frontend", __name__)
catalog_bp = Blueprint("catalog", __name__)


def _request_data() -> dict:
    body = request.get_json(silent=True)
    if isinstance(body, dict):
        return body
    return request.form.to_dict()


# ── Public storefront ──────────────────────────────────────────────────────

@frontend_bp.route("/categories", methods=["GET"])
def frontend_categories():
    categories = catalog_service.list_categories(db.session)
    return jsonify(categories_schema.dump(categories)), 200


@frontend_bp.route("/products", methods=["GET"])
def frontend_products():
    """An invalid catid is ignored and every product is listed."""
    catid = request.args.get("catid", type=int)
    products = catalog_service.list_products(db.session, catid=catid)
    return jsonify(products_schema.dump(products)), 200


@frontend_bp.route("/products/<int:pid>", methods=["GET"])
def frontend_product(pid: int):
    product = catalog_service.get_product_or_404(pid, db.session)
    result = product_schema.dump(product)
    result["category_name"] = product.category.name
    return jsonify(result), 200


# ── Admin: categories ──────────────────────────────────────────────────────

@catalog_bp.route("/categories", methods=["GET"])
@require_admin
def list_categories():
    categories = catalog_service.list_categories(db.session)
    return jsonify(categories_schema.dump(categories)), 200


@catalog_bp.route("/categories", methods=["POST"])
@require_admin
@require_csrf
def create_category():
    data = CategoryInputSchema().load(_request_data())
    category = catalog_service.create_category(data["name"], session=db.session)
    db.session.commit()
    return jsonify(category_schema.dump(category)), 201


@catalog_bp.route("/categories/<int:catid>", methods=["PUT"])
@require_admin
@require_csrf
def update_category(catid: int):
    data = CategoryInputSchema().load(_request_data())
    category = catalog_service.update_category(catid, data["name"], session=db.session)
    db.session.commit()
    return jsonify(category_schema.dump(category)), 200


@catalog_bp.route("/categories/<int:catid>", methods=["DELETE"])
@require_admin
@require_csrf
def delete_category(catid: int):
    catalog_service.delete_category(catid, session=db.session)
    db.session.commit()
    return jsonify({"message": "Category deleted successfully"}), 200


# ── Admin: products ────────────────────────────────────────────────────────

@catalog_bp.route("/products", methods=["GET"])
@require_admin
def list_products():
    products = catalog_service.list_products(db.session)
    return jsonify(products_schema.dump(products)), 200


@catalog_bp.route("/products", methods=["POST"])
@require_admin
@require_csrf
def create_product():
    data = ProductInputSchema().load(_request_data())
    product = catalog_service.create_product(data, session=db.session)
    db.session.commit()
    return jsonify(product_schema.dump(product)), 201


@catalog_bp.route("/products/<int:pid>", methods=["PUT"])
@require_admin
@require_csrf
def update_product(pid: int):
    data = ProductInputSchema().load(_request_data())
    product = catalog_service.update_product(pid, data, session=db.session)
    db.session.commit()
    return jsonify(product_schema.dump(product)), 200


@catalog_bp.route("/products/<int:pid>", methods=["DELETE"])
@require_admin
@require_csrf
def delete_product(pid: int):
    catalog_service.delete_product(pid, session=db.session)
    db.session.commit()
    return jsonify({"message": "Product deleted successfully"}), 200


@catalog_bp.route("/stats", methods=["GET"])
@require_admin
def stats():
    return jsonify(catalog_service.get_stats(db.session)), 200
