"""
routes/orders.py — Checkout and order history.

Layer rules:
  - Parse, validate, call the service, commit, return JSON.
  - Config values the order service needs (currency, merchant, secret) are
    read here and passed in as plain arguments.

Endpoints (url_prefix=/api/orders):
  POST   /create        → 201  checkout (CSRF; guests allowed)
  GET    /user          → 200  caller's orders (session)
  GET    /admin         → 200  every order with user_email (admin)
  GET    /<order_id>    → 200  one order (owner or admin)
"""

from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from shopfront.app.extensions import db
from shopfront.app.middleware.auth_middleware import require_admin, require_auth
from shopfront.app.middleware.csrf_middleware import require_csrf
from shopfront.app.schemas.order_schema import CreateOrderSchema
from shopfront.app.services import order_service, session_service

orders_bp = Blueprint("orders", __name__)


@orders_bp.route("/create", methods=["POST"])
@require_csrf
def create_order():
    """POST /api/orders/create — Re-price the cart and persist a CREATED order."""
    config = current_app.config
    data = CreateOrderSchema().load(request.get_json(silent=True) or {})

    login_session = session_service.find_active_session(
        request.cookies.get(config["AUTH_COOKIE_NAME"]),
        db.session,
    )
    order = order_service.create_order(
        items=data["items"],
        user_id=login_session.user_id if login_session is not None else None,
        currency_code=config["CURRENCY_CODE"],
        merchant_email=config["PAYPAL_BUSINESS_EMAIL"],
        secret_key=config["SECRET_KEY"],
        session=db.session,
    )
    db.session.commit()

    result = order_service.serialize_checkout(
        order,
        merchant_email=config["PAYPAL_BUSINESS_EMAIL"],
        checkout_url=config["PAYPAL_CHECKOUT_URL"],
    )
    return jsonify(result), 201


@orders_bp.route("/user", methods=["GET"])
@require_auth
def list_my_orders():
    orders = order_service.list_orders_for_user(g.user_id, session=db.session)
    return jsonify([order_service.serialize_order(order) for order in orders]), 200


@orders_bp.route("/admin", methods=["GET"])
@require_admin
def list_all_orders():
    orders = order_service.list_all_orders(session=db.session)
    return jsonify([
        order_service.serialize_order(order, include_email=True) for order in orders
    ]), 200


@orders_bp.route("/<int:order_id>", methods=["GET"])
@require_auth
def get_order(order_id: int):
    order = order_service.get_order(
        order_id=order_id,
        caller_id=g.user_id,
        is_admin=g.is_admin,
        session=db.session,
    )
    return jsonify(order_service.serialize_order(order, include_email=g.is_admin)), 200
