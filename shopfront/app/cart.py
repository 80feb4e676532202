"""
cart.py — Client-held shopping cart.

The cart lives in browser storage and is never trusted by the server. This
module is the server-side model of that state: the storefront pages and the
test-suite build carts with it, and `Cart.to_checkout_items()` produces the
only payload the checkout endpoint accepts ([{pid, quantity}]).

Storage formats (tagged union, migrated on read):
  V1 — legacy list keyed by product name: [{"name", "price", "qty"}]
  V2 — id keyed, wrapped:  {"version": 2, "items": [{"pid", "name", "price", "qty"}]}

An unwrapped list whose every entry carries a pid is also read as V2; it is
what older builds wrote before the version wrapper existed. V1 lines are
given the fallback pid `name_<name with whitespace as _>` and are dropped
from checkout payloads because the server cannot resolve them.

There is no module-level cart. Each browser context gets its own Cart via
CartStore.
"""

from __future__ import annotations

import enum
import json
import logging
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import MutableMapping

logger = logging.getLogger(__name__)

STORAGE_KEY = "cart"
FALLBACK_PID_PREFIX = "name_"
CURRENT_VERSION = 2

_WHITESPACE = re.compile(r"\s+")


class CartFormat(enum.Enum):
    V1 = 1
    V2 = 2


@dataclass
class CartLineItem:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def is_fallback(self) -> bool:
        return self.product_id.startswith(FALLBACK_PID_PREFIX)

    def to_storage(self) -> dict:
        return {
            "pid": self.product_id,
            "name": self.name,
            "price": f"{self.unit_price:.2f}",
            "qty": self.quantity,
        }


def fallback_pid(name: str) -> str:
    return FALLBACK_PID_PREFIX + _WHITESPACE.sub("_", name)


class Cart:
    """Ordered line items; a line never holds a quantity of zero."""

    def __init__(self, items: list[CartLineItem] | None = None):
        self.items: list[CartLineItem] = []
        for item in items or []:
            self.add_item(item.product_id, item.name, item.unit_price, item.quantity)

    def __len__(self) -> int:
        return len(self.items)

    def _find(self, product_id: str) -> CartLineItem | None:
        for item in self.items:
            if item.product_id == product_id:
                return item
        return None

    def add_item(self, product_id, name: str, unit_price, quantity: int = 1) -> None:
        product_id = str(product_id)
        if quantity <= 0:
            return
        existing = self._find(product_id)
        if existing is not None:
            existing.quantity += quantity
            return
        self.items.append(CartLineItem(
            product_id=product_id,
            name=name,
            unit_price=Decimal(str(unit_price)),
            quantity=quantity,
        ))

    def update_quantity(self, product_id, quantity: int) -> None:
        product_id = str(product_id)
        if quantity <= 0:
            self.remove_item(product_id)
            return
        existing = self._find(product_id)
        if existing is not None:
            existing.quantity = quantity

    def remove_item(self, product_id) -> None:
        product_id = str(product_id)
        self.items = [item for item in self.items if item.product_id != product_id]

    def clear(self) -> None:
        self.items = []

    def total(self) -> Decimal:
        """Display total only. The server recomputes the real one."""
        return sum((item.subtotal for item in self.items), Decimal("0")).quantize(Decimal("0.01"))

    def to_checkout_items(self) -> list[dict]:
        checkout = []
        for item in self.items:
            if item.is_fallback:
                logger.debug("Skipping unresolved legacy cart line %r", item.name)
                continue
            pid = int(item.product_id) if item.product_id.isdigit() else item.product_id
            checkout.append({"pid": pid, "quantity": item.quantity})
        return checkout


# ── Storage (de)serialisation ──────────────────────────────────────────────

def _all_carry(entries: list, key: str) -> bool:
    return all(isinstance(entry, dict) and entry.get(key) for entry in entries)


def detect_format(payload) -> CartFormat | None:
    """Returns the storage format of a decoded payload, or None if unrecognised."""
    if isinstance(payload, dict):
        items = payload.get("items")
        if (
            payload.get("version") == CURRENT_VERSION
            and isinstance(items, list)
            and _all_carry(items, "pid")
        ):
            return CartFormat.V2
        return None
    if isinstance(payload, list):
        if _all_carry(payload, "pid"):
            return CartFormat.V2
        if _all_carry(payload, "name"):
            return CartFormat.V1
    return None


def _line_from_entry(entry: dict, product_id: str) -> CartLineItem:
    return CartLineItem(
        product_id=product_id,
        name=str(entry.get("name", "")),
        unit_price=Decimal(str(entry.get("price", "0"))),
        quantity=int(entry.get("qty", entry.get("quantity", 0))),
    )


def _migrate_v1(entries: list[dict]) -> list[CartLineItem]:
    return [_line_from_entry(entry, fallback_pid(str(entry["name"]))) for entry in entries]


def _read_v2(entries: list[dict]) -> list[CartLineItem]:
    return [_line_from_entry(entry, str(entry["pid"])) for entry in entries]


def load_cart(raw: str | None) -> Cart:
    """Decodes stored cart JSON. Malformed or unrecognised storage yields an empty cart."""
    if not raw:
        return Cart()

    try:
        payload = json.loads(raw)
    except ValueError:
        logger.warning("Discarding unreadable cart storage")
        return Cart()

    fmt = detect_format(payload)
    if fmt is None:
        logger.warning("Discarding cart storage in an unknown format")
        return Cart()

    entries = payload["items"] if isinstance(payload, dict) else payload
    try:
        lines = _migrate_v1(entries) if fmt is CartFormat.V1 else _read_v2(entries)
    except (InvalidOperation, TypeError, ValueError):
        logger.warning("Discarding cart storage with malformed line items")
        return Cart()

    # Cart() drops zero or negative quantities and merges repeated pids.
    return Cart(lines)


def dump_cart(cart: Cart) -> str:
    return json.dumps({
        "version": CURRENT_VERSION,
        "items": [item.to_storage() for item in cart.items],
    })


class CartStore:
    """
    Owns the cart of one browser context.

    `storage` is any string mapping with localStorage semantics. The cart is
    loaded lazily and written back on save().
    """

    def __init__(self, storage: MutableMapping[str, str]):
        self._storage = storage
        self._cart: Cart | None = None

    @property
    def cart(self) -> Cart:
        if self._cart is None:
            self._cart = load_cart(self._storage.get(STORAGE_KEY))
        return self._cart

    def save(self) -> None:
        self._storage[STORAGE_KEY] = dump_cart(self.cart)

    def clear(self) -> None:
        self.cart.clear()
        self._storage.pop(STORAGE_KEY, None)
