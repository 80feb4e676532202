"""
schemas/order_schema.py — Checkout request schema.

Only (pid, quantity) pairs cross the trust boundary. Any other per-item key
a client sends (price, name, ...) is dropped by EXCLUDE before the order
service sees the payload.

Existence of each pid and merging of repeated pids happen in
services/order_service.py.
"""

from __future__ import annotations

from marshmallow import EXCLUDE, Schema, fields, validate

from shopfront.app.services.order_service import MAX_DB_INT, MAX_LINE_QUANTITY


class CheckoutItemSchema(Schema):

    class Meta:
        unknown = EXCLUDE

    # Non-strict: the storefront stores pids as strings ("12").
    pid = fields.Int(
        required=True,
        validate=validate.Range(min=1, max=MAX_DB_INT, error="pid is not a valid product id."),
    )
    # Strict: 1.5 or "2" is not a quantity.
    quantity = fields.Int(
        required=True,
        strict=True,
        validate=validate.Range(
            min=1,
            max=MAX_LINE_QUANTITY,
            error=f"quantity must be an integer between 1 and {MAX_LINE_QUANTITY}.",
        ),
    )


class CreateOrderSchema(Schema):
    """POST /api/orders/create"""

    class Meta:
        unknown = EXCLUDE

    items = fields.List(
        fields.Nested(CheckoutItemSchema),
        required=True,
        validate=validate.Length(min=1, error="Your cart is empty."),
    )
