"""MenuItem aggregate: a dish on a stall's menu with its stock counter."""

from datetime import UTC, datetime

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Identifier, Integer, String

from canteen.domain import canteen
from canteen.errors import InsufficientStock
from canteen.menu.events import MenuItemAdded, StockDeducted, StockRestocked


@canteen.aggregate
class MenuItem:
    vendor_id = Identifier(required=True)
    name = String(required=True, max_length=120)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0)
    is_available = Boolean(default=True)

    @invariant.post
    def stock_cannot_be_negative(self):
        if self.stock is not None and self.stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

    @classmethod
    def create(cls, vendor_id, name, price, stock=0):
        item = cls(vendor_id=vendor_id, name=name, price=price, stock=stock)
        item.raise_(
            MenuItemAdded(
                menu_item_id=str(item.id),
                vendor_id=str(vendor_id),
                name=name,
                price=price,
                stock=stock,
            )
        )
        return item

    def can_supply(self, quantity):
        return (self.stock or 0) >= quantity

    def deduct(self, quantity, order_id):
        """Take ``quantity`` units off the counter for a picked-up order."""
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.can_supply(quantity):
            raise InsufficientStock(
                f"Insufficient stock for {self.name}: {self.stock} available, {quantity} requested",
                menu_item_id=str(self.id),
            )

        self.stock -= quantity
        self.raise_(
            StockDeducted(
                menu_item_id=str(self.id),
                order_id=str(order_id),
                quantity=quantity,
                new_stock=self.stock,
                deducted_at=datetime.now(UTC),
            )
        )

    def restock(self, quantity):
        if quantity < 1:
            raise ValidationError({"quantity": ["Restock quantity must be positive"]})

        self.stock = (self.stock or 0) + quantity
        self.raise_(
            StockRestocked(
                menu_item_id=str(self.id),
                quantity=quantity,
                new_stock=self.stock,
            )
        )
