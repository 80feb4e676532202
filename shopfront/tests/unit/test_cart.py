"""
tests/unit/test_cart.py — Client cart model and its versioned storage.
"""

from __future__ import annotations

import json
from decimal import Decimal

import pytest

from shopfront.app.cart import (
    Cart,
    CartFormat,
    CartStore,
    detect_format,
    dump_cart,
    fallback_pid,
    load_cart,
)


class TestCart:

    def test_add_merges_same_product(self):
        cart = Cart()
        cart.add_item("1", "Apple", "3.30", 1)
        cart.add_item(1, "Apple", "3.30", 2)
        assert len(cart) == 1
        assert cart.items[0].quantity == 3

    def test_update_to_zero_removes_line(self):
        cart = Cart()
        cart.add_item("1", "Apple", "3.30")
        cart.update_quantity("1", 0)
        assert len(cart) == 0

    def test_negative_update_removes_line(self):
        cart = Cart()
        cart.add_item("1", "Apple", "3.30")
        cart.update_quantity("1", -2)
        assert cart.items == []

    def test_adding_zero_quantity_stores_nothing(self):
        cart = Cart()
        cart.add_item("1", "Apple", "3.30", 0)
        assert cart.items == []

    def test_total(self):
        cart = Cart()
        cart.add_item("1", "Apple", "3.30", 2)
        cart.add_item("2", "Pear", 1.25, 1)
        assert cart.total() == Decimal("7.85")

    def test_checkout_items_carry_only_pid_and_quantity(self):
        cart = Cart()
        cart.add_item("12", "Apple", "3.30", 2)
        cart.add_item(fallback_pid("Old Pear"), "Old Pear", "1.00", 1)

        assert cart.to_checkout_items() == [{"pid": 12, "quantity": 2}]

    def test_clear(self):
        cart = Cart()
        cart.add_item("1", "Apple", "3.30")
        cart.clear()
        assert cart.total() == Decimal("0.00")


class TestStorageFormats:

    def test_fallback_pid_replaces_whitespace_runs(self):
        assert fallback_pid("Green  Tea Bag") == "name_Green_Tea_Bag"

    def test_detects_each_format(self):
        assert detect_format({"version": 2, "items": []}) is CartFormat.V2
        assert detect_format([{"pid": "1", "name": "Apple", "price": 1, "qty": 1}]) is CartFormat.V2
        assert detect_format([{"name": "Apple", "price": 1, "qty": 1}]) is CartFormat.V1
        assert detect_format({"version": 9, "items": []}) is None
        assert detect_format({"version": 2, "items": [{"name": "Apple", "qty": 1}]}) is None
        assert detect_format("cart") is None

    def test_v1_is_migrated_on_read(self):
        raw = json.dumps([{"name": "Apple Pie", "price": 4.5, "qty": 2}])
        cart = load_cart(raw)

        assert len(cart) == 1
        line = cart.items[0]
        assert line.product_id == "name_Apple_Pie"
        assert line.unit_price == Decimal("4.5")
        assert line.quantity == 2

    def test_dump_always_writes_v2(self):
        cart = load_cart(json.dumps([{"name": "Apple", "price": 3.3, "qty": 1}]))
        stored = json.loads(dump_cart(cart))

        assert stored == {
            "version": 2,
            "items": [{"pid": "name_Apple", "name": "Apple", "price": "3.30", "qty": 1}],
        }
        assert detect_format(stored) is CartFormat.V2

    def test_v2_survives_a_save_and_load(self):
        cart = Cart()
        cart.add_item("5", "Leek", "0.80", 3)
        reloaded = load_cart(dump_cart(cart))
        assert reloaded.to_checkout_items() == [{"pid": 5, "quantity": 3}]

    def test_stored_zero_quantities_are_dropped(self):
        raw = json.dumps({"version": 2, "items": [
            {"pid": "1", "name": "Apple", "price": "3.30", "qty": 0},
            {"pid": "2", "name": "Pear", "price": "1.25", "qty": 1},
        ]})
        assert [line.product_id for line in load_cart(raw).items] == ["2"]

    @pytest.mark.parametrize("raw", [
        None,
        "",
        "{not json",
        '"a string"',
        '{"version": 2, "items": [{"pid": "1", "name": "A", "price": "abc", "qty": 1}]}',
        '[{"price": 1}]',
        '{"version": 2, "items": [{"name": "Apple", "price": "1.00", "qty": 1}]}',
        '{"version": 2, "items": ["Apple"]}',
    ])
    def test_malformed_storage_yields_empty_cart(self, raw):
        assert load_cart(raw).items == []


class TestCartStore:

    def test_each_storage_has_its_own_cart(self):
        first_tab, second_tab = {}, {}
        first = CartStore(first_tab)
        second = CartStore(second_tab)

        first.cart.add_item("1", "Apple", "3.30")
        first.save()

        assert "cart" in first_tab
        assert second.cart.items == []
        assert CartStore(first_tab).cart.to_checkout_items() == [{"pid": 1, "quantity": 1}]

    def test_clear_removes_storage_entry(self):
        storage = {}
        store = CartStore(storage)
        store.cart.add_item("1", "Apple", "3.30")
        store.save()
        store.clear()
        assert storage == {}
        assert store.cart.items == []
