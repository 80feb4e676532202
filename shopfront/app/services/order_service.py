"""
services/order_service.py — Checkout orchestration and order queries.

Checkout (create_order):
  1. Merge duplicate product ids, keeping first-seen order.
  2. Pre-validate EVERY line before writing anything: quantity is a strictly
     positive int within MAX_LINE_QUANTITY, the product exists in the catalog
     and the total fits a Numeric(10,2) column. Any failure aborts with 400
     and no order row is created.
  3. Re-price from the catalog. Client-supplied names and prices never reach
     this function; only (pid, quantity) pairs do.
  4. Insert the order (status CREATED) with one snapshot row per line, in a
     single flush. The route commits.
  5. Compute the order digest: HMAC-SHA256 keyed with the app secret over
     currency, merchant, a random salt, every line (position, quantity,
     unit price) and the total. The payment-return step recomputes it to
     match the processor's callback to this order without trusting
     client-supplied identifiers.

Payment handoff (build_paypal_fields):
  Produces the hidden form fields for a PayPal "_cart" upload: 1-based
  item_name_N / item_number_N / amount_N / quantity_N, amounts as strings
  with two decimals.

Layer rules:
  - No Flask imports. Config values (currency, merchant, secret) are passed
    in by the route.
  - Monetary arithmetic uses Decimal only.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from shopfront.app.errors import AppError, ErrorCode
from shopfront.app.models.order import Order, OrderItem, OrderStatus
from shopfront.app.services import catalog_service

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")

# Largest value a 32-bit INTEGER column holds.
MAX_DB_INT = 2_147_483_647
MAX_LINE_QUANTITY = 10_000
# Upper bound of a Numeric(10,2) column.
MAX_ORDER_TOTAL = Decimal("99999999.99")


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    name: str
    unit_price: Decimal
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity


# ── Private helpers ────────────────────────────────────────────────────────

def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(value: Decimal) -> str:
    """Payment-processor shape: always two decimals, as a string."""
    return f"{_money(value):.2f}"


def _invalid_items(message: str) -> AppError:
    return AppError(ErrorCode.INVALID_ITEMS, message, 400, field="items")


def _merge_lines(items: list[dict]) -> list[tuple[int, int]]:
    """
    Validates quantities and merges repeated pids.

    Returns [(pid, quantity)] in first-seen order.
    """
    if not items:
        raise _invalid_items("Your cart is empty.")

    merged: dict[int, int] = {}
    for item in items:
        pid = item["pid"]
        quantity = item["quantity"]
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise _invalid_items(f"Quantity for product {pid} must be a positive integer.")
        merged[pid] = merged.get(pid, 0) + quantity
        if merged[pid] > MAX_LINE_QUANTITY:
            raise _invalid_items(
                f"Quantity for product {pid} may not exceed {MAX_LINE_QUANTITY}."
            )
    return list(merged.items())


def price_lines(items: list[dict], session: Session) -> list[PricedLine]:
    """
    Resolves every line against the catalog.

    Raises:
      AppError(INVALID_ITEMS, 400)     — empty cart or bad quantity
      AppError(PRODUCT_NOT_FOUND, 400) — any pid unknown; nothing is priced
    """
    merged = _merge_lines(items)
    products = catalog_service.get_products_by_ids([pid for pid, _ in merged], session)

    missing = [pid for pid, _ in merged if pid not in products]
    if missing:
        raise AppError(
            ErrorCode.PRODUCT_NOT_FOUND,
            f"Unknown product id(s): {', '.join(str(pid) for pid in missing)}.",
            400,
            field="items",
        )

    return [
        PricedLine(
            product_id=pid,
            name=products[pid].name,
            unit_price=_money(products[pid].price),
            quantity=quantity,
        )
        for pid, quantity in merged
    ]


def compute_order_digest(
        secret_key: str,
        currency_code: str,
        merchant_email: str,
        salt: str,
        lines: list[PricedLine],
        total: Decimal,
) -> str:
    """HMAC-SHA256 hex digest over the order's payment-relevant fields."""
    parts = [currency_code, merchant_email, salt]
    # Keyed by position: product_id becomes NULL if the product is deleted.
    parts.extend(
        f"{position}:{line.quantity}:{format_amount(line.unit_price)}"
        for position, line in enumerate(lines, start=1)
    )
    parts.append(format_amount(total))
    message = "|".join(parts).encode("utf-8")
    return hmac.new(secret_key.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _lines_from_order(order: Order) -> list[PricedLine]:
    return [
        PricedLine(
            product_id=item.product_id,
            name=item.product_name,
            unit_price=_money(item.price_at_purchase),
            quantity=item.quantity,
        )
        for item in sorted(order.items, key=lambda item: item.position)
    ]


# ── Checkout ───────────────────────────────────────────────────────────────

def create_order(
        items: list[dict],
        user_id: int | None,
        currency_code: str,
        merchant_email: str,
        secret_key: str,
        session: Session,
) -> Order:
    """
    Creates an order in CREATED state from validated (pid, quantity) pairs.

    `items` is the `items` list from CreateOrderSchema().load(); guests pass
    user_id=None. Nothing is written unless every line is valid.
    """
    lines = price_lines(items, session)
    total = _money(sum((line.subtotal for line in lines), Decimal("0")))
    if total > MAX_ORDER_TOTAL:
        raise _invalid_items(f"Order total may not exceed {MAX_ORDER_TOTAL}.")

    salt = secrets.token_hex(16)
    digest = compute_order_digest(secret_key, currency_code, merchant_email, salt, lines, total)

    order = Order(
        user_id=user_id,
        total_amount=total,
        currency_code=currency_code,
        status=OrderStatus.CREATED,
        order_digest=digest,
        digest_salt=salt,
    )
    order.items = [
        OrderItem(
            product_id=line.product_id,
            position=position,
            product_name=line.name,
            price_at_purchase=line.unit_price,
            quantity=line.quantity,
        )
        for position, line in enumerate(lines, start=1)
    ]
    session.add(order)
    session.flush()

    logger.info(
        "Created order id=%s user_id=%s total=%s %s lines=%d",
        order.order_id, user_id, total, currency_code, len(lines),
    )
    return order


def verify_order_digest(
        order: Order,
        digest: str,
        secret_key: str,
        merchant_email: str,
) -> bool:
    """
    Recomputes the digest from the stored snapshot and compares it with `digest`.

    Used by the payment-return handler to tie a callback to an order.
    """
    expected = compute_order_digest(
        secret_key,
        order.currency_code,
        merchant_email,
        order.digest_salt,
        _lines_from_order(order),
        order.total_amount,
    )
    return hmac.compare_digest(expected, digest or "")


def build_paypal_fields(order: Order, merchant_email: str) -> dict[str, str]:
    """Hidden form fields for the browser's auto-submitted PayPal cart form."""
    fields = {
        "cmd": "_cart",
        "upload": "1",
        "business": merchant_email,
        "currency_code": order.currency_code,
        "charset": "utf-8",
        "invoice": str(order.order_id),
        "custom": order.order_digest,
    }
    for index, item in enumerate(order.items, start=1):
        fields[f"item_name_{index}"] = item.product_name
        fields[f"item_number_{index}"] = str(item.product_id)
        fields[f"amount_{index}"] = format_amount(item.price_at_purchase)
        fields[f"quantity_{index}"] = str(item.quantity)
    return fields


def serialize_checkout(order: Order, merchant_email: str, checkout_url: str) -> dict:
    """Response body for POST /api/orders/create."""
    return {
        "orderId": order.order_id,
        "orderDigest": order.order_digest,
        "currency": order.currency_code,
        "total": format_amount(order.total_amount),
        "items": [
            {
                "pid": item.product_id,
                "name": item.product_name,
                "price": format_amount(item.price_at_purchase),
                "quantity": item.quantity,
            }
            for item in order.items
        ],
        "paypal": {
            "action": checkout_url,
            "fields": build_paypal_fields(order, merchant_email),
        },
    }


# ── Queries ────────────────────────────────────────────────────────────────

def serialize_order(order: Order, include_email: bool = False) -> dict:
    payload = {
        "order_id": order.order_id,
        "user_id": order.user_id,
        "status": order.status.value,
        "total_amount": format_amount(order.total_amount),
        "currency_code": order.currency_code,
        "paypal_order_id": order.paypal_order_id,
        "paypal_transaction_id": order.paypal_transaction_id,
        "created_at": order.created_at.isoformat() if order.created_at else None,
        "updated_at": order.updated_at.isoformat() if order.updated_at else None,
        "items": [
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "price_at_purchase": format_amount(item.price_at_purchase),
                "quantity": item.quantity,
            }
            for item in order.items
        ],
    }
    if include_email:
        payload["user_email"] = order.user.email if order.user is not None else None
    return payload


def list_orders_for_user(user_id: int, session: Session) -> list[Order]:
    return list(session.execute(
        select(Order)
        .where(Order.user_id == user_id)
        .options(selectinload(Order.items))
        .order_by(Order.created_at.desc(), Order.order_id.desc())
    ).scalars().all())


def list_all_orders(session: Session) -> list[Order]:
    return list(session.execute(
        select(Order)
        .options(selectinload(Order.items), selectinload(Order.user))
        .order_by(Order.created_at.desc(), Order.order_id.desc())
    ).scalars().all())


def get_order(order_id: int, caller_id: int, is_admin: bool, session: Session) -> Order:
    """
    Raises:
      AppError(ORDER_NOT_FOUND, 404)
      AppError(FORBIDDEN, 403) — a non-admin asking for someone else's order
    """
    order = session.get(Order, order_id)
    if order is None:
        raise AppError(
            ErrorCode.ORDER_NOT_FOUND,
            f"Order {order_id} not found.",
            404,
        )
    if not is_admin and order.user_id != caller_id:
        raise AppError(
            ErrorCode.FORBIDDEN,
            "You are not allowed to view this order.",
            403,
        )
    return order

