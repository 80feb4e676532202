"""
schemas/catalog_schema.py — Category and product schemas.

Input schemas (marshmallow.Schema) validate admin form bodies:
  name  : letters, digits and spaces only
  price : strictly positive, at most 2 decimal places (INVALID_PRICE)
  catid : positive integer; existence is checked in catalog_service.py

Output schemas (ma.Schema) shape the JSON returned by the catalog routes.
They are only dumped inside a request, so the app context is always present.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import EXCLUDE, Schema, ValidationError, fields, validate

from shopfront.app.errors import ErrorCode
from shopfront.app.extensions import ma

_NAME_RULES = [
    validate.Length(min=1, max=100, error="Name must be between 1 and 100 characters."),
    validate.Regexp(
        r"^[a-zA-Z0-9\s]+$",
        error="Name may only contain letters, numbers, and spaces.",
    ),
]


def _validate_price(value: Decimal) -> None:
    if value <= Decimal("0") or value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_PRICE)


class CategoryInputSchema(Schema):
    """POST /api/categories and PUT /api/categories/<catid>"""

    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=_NAME_RULES)


class ProductInputSchema(Schema):
    """POST /api/products and PUT /api/products/<pid>"""

    class Meta:
        unknown = EXCLUDE

    catid = fields.Int(
        required=True,
        validate=validate.Range(min=1, error="catid must be a positive integer."),
    )
    name = fields.Str(required=True, validate=_NAME_RULES)
    price = fields.Decimal(required=True, validate=_validate_price)
    description = fields.Str(
        load_default=None,
        allow_none=True,
        validate=validate.Length(max=2000),
    )
    # Path of an already processed image; resizing happens outside this service.
    image = fields.Str(load_default=None, allow_none=True, validate=validate.Length(max=255))


class CategorySchema(ma.Schema):
    catid = fields.Int()
    name = fields.Str()


class ProductSchema(ma.Schema):
    pid = fields.Int()
    catid = fields.Int()
    name = fields.Str()
    price = fields.Method("format_price")
    description = fields.Str(allow_none=True)
    image = fields.Str(allow_none=True)

    def format_price(self, product) -> str:
        return f"{Decimal(product.price):.2f}"


category_schema = CategorySchema()
categories_schema = CategorySchema(many=True)
product_schema = ProductSchema()
products_schema = ProductSchema(many=True)
