"""Tests for the ShoppingCart aggregate."""

import pytest
from canteen.cart.cart import CartStatus, ShoppingCart
from canteen.cart.events import CartCheckedOut
from protean.exceptions import ValidationError


def _cart_with_tapsilog(quantity=1):
    cart = ShoppingCart.create(customer_id="cust-001")
    line_id = cart.add_item("item-001", "vendor-001", "Tapsilog", 85.0, quantity)
    return cart, line_id


class TestAddItem:
    def test_identical_lines_are_merged(self):
        cart, line_id = _cart_with_tapsilog()
        again = cart.add_item("item-001", "vendor-001", "Tapsilog", 85.0, 2)

        assert again == line_id
        assert len(cart.lines) == 1
        assert cart.lines[0].quantity == 3

    def test_different_add_ons_make_a_separate_line(self):
        cart, _ = _cart_with_tapsilog()
        cart.add_item(
            "item-001", "vendor-001", "Tapsilog", 85.0, 1, add_ons=[{"name": "Extra rice", "price": 15.0}]
        )

        assert len(cart.lines) == 2

    def test_snapshot_carries_vendor_and_add_ons(self):
        cart = ShoppingCart.create(customer_id="cust-001")
        cart.add_item("item-001", "vendor-001", "Tapsilog", 85.0, 1, add_ons=[{"name": "Egg", "price": 12.0}])

        snapshot = cart.snapshot()[0]
        assert snapshot["vendor_id"] == "vendor-001"
        assert snapshot["add_ons"] == [{"name": "Egg", "price": 12.0}]


class TestChangeQuantity:
    def test_update_quantity(self):
        cart, line_id = _cart_with_tapsilog()
        cart.update_quantity(line_id, 4)
        assert cart.lines[0].quantity == 4

    def test_unknown_line(self):
        cart, _ = _cart_with_tapsilog()
        with pytest.raises(ValidationError):
            cart.update_quantity("missing", 2)

    def test_remove_item(self):
        cart, line_id = _cart_with_tapsilog()
        cart.remove_item(line_id)
        assert len(cart.lines) == 0


class TestCheckOut:
    def test_check_out_empties_and_converts_the_cart(self):
        cart, _ = _cart_with_tapsilog(2)
        cart.check_out("UBF-2026-1234567A")

        assert cart.status == CartStatus.CONVERTED.value
        assert len(cart.lines) == 0
        assert any(isinstance(e, CartCheckedOut) for e in cart._events)

    def test_converted_cart_is_closed(self):
        cart, _ = _cart_with_tapsilog()
        cart.check_out("UBF-2026-1234567A")

        with pytest.raises(ValidationError):
            cart.add_item("item-002", "vendor-001", "Longsilog", 75.0, 1)
