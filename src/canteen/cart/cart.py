"""Shopping Cart aggregate: the customer's selection before checkout.

A cart may hold dishes from several stalls. Prices are copied from the
menu when a dish is added. On checkout the lines are snapshotted into an
event and removed, and the cart is marked converted.
"""

import json
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from canteen.cart.events import CartCheckedOut, CartItemAdded, CartItemRemoved, CartQuantityUpdated
from canteen.domain import canteen
from canteen.pricing import line_subtotal
from canteen.utils.clock import utc_now


class CartStatus(Enum):
    ACTIVE = "Active"
    CONVERTED = "Converted"


@canteen.entity(part_of="ShoppingCart")
class CartLine:
    menu_item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=120)
    unit_price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    add_ons = Text()  # JSON: list of {"name", "price"}
    note = String(max_length=255)
    added_at = DateTime()

    def add_on_list(self):
        return json.loads(self.add_ons) if self.add_ons else []

    def line_total(self):
        return line_subtotal(self.unit_price, self.quantity, self.add_on_list())

    def snapshot(self):
        return {
            "menu_item_id": str(self.menu_item_id),
            "vendor_id": str(self.vendor_id),
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "add_ons": self.add_on_list(),
            "note": self.note,
        }


@canteen.aggregate
class ShoppingCart:
    customer_id = Identifier(required=True)
    lines = HasMany(CartLine)
    status = String(choices=CartStatus, default=CartStatus.ACTIVE.value)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def create(cls, customer_id):
        now = utc_now()
        return cls(
            customer_id=customer_id,
            status=CartStatus.ACTIVE.value,
            created_at=now,
            updated_at=now,
        )

    def _assert_active(self, action):
        if CartStatus(self.status) != CartStatus.ACTIVE:
            raise ValidationError({"status": [f"Cannot {action} a cart that is no longer active"]})

    def _find_line(self, line_id):
        line = next((line for line in self.lines if str(line.id) == str(line_id)), None)
        if line is None:
            raise ValidationError({"line_id": ["Item not found in cart"]})
        return line

    # -------------------------------------------------------------------
    # Line management
    # -------------------------------------------------------------------
    def add_item(self, menu_item_id, vendor_id, name, unit_price, quantity, add_ons=None, note=None):
        """Add a dish (or increase the quantity of an identical line)."""
        self._assert_active("add items to")
        add_ons_json = json.dumps(list(add_ons or []))

        existing = next(
            (
                line
                for line in self.lines
                if str(line.menu_item_id) == str(menu_item_id)
                and (line.add_ons or "[]") == add_ons_json
                and (line.note or None) == (note or None)
            ),
            None,
        )

        now = utc_now()
        if existing:
            existing.quantity += quantity
            line_id = str(existing.id)
        else:
            line = CartLine(
                menu_item_id=menu_item_id,
                vendor_id=vendor_id,
                name=name,
                unit_price=unit_price,
                quantity=quantity,
                add_ons=add_ons_json,
                note=note,
                added_at=now,
            )
            self.add_lines(line)
            line_id = str(line.id)

        self.updated_at = now
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                line_id=line_id,
                menu_item_id=str(menu_item_id),
                vendor_id=str(vendor_id),
                quantity=quantity,
            )
        )
        return line_id

    def update_quantity(self, line_id, new_quantity):
        self._assert_active("update")
        if new_quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        line = self._find_line(line_id)
        previous_quantity = line.quantity
        line.quantity = new_quantity
        self.updated_at = utc_now()

        self.raise_(
            CartQuantityUpdated(
                cart_id=str(self.id),
                line_id=str(line_id),
                previous_quantity=previous_quantity,
                new_quantity=new_quantity,
            )
        )

    def remove_item(self, line_id):
        self._assert_active("remove items from")
        self.remove_lines(self._find_line(line_id))
        self.updated_at = utc_now()
        self.raise_(CartItemRemoved(cart_id=str(self.id), line_id=str(line_id)))

    def snapshot(self):
        return [line.snapshot() for line in self.lines]

    # -------------------------------------------------------------------
    # Checkout
    # -------------------------------------------------------------------
    def check_out(self, parent_order_id):
        """Empty the cart once its orders have been created."""
        self._assert_active("check out")
        snapshot = self.snapshot()

        for line in list(self.lines):
            self.remove_lines(line)

        now = utc_now()
        self.status = CartStatus.CONVERTED.value
        self.updated_at = now
        self.raise_(
            CartCheckedOut(
                cart_id=str(self.id),
                customer_id=str(self.customer_id),
                parent_order_id=parent_order_id,
                lines=json.dumps(snapshot),
                checked_out_at=now,
            )
        )
