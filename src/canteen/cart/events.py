"""Domain events for the ShoppingCart aggregate."""

from protean.fields import DateTime, Identifier, Integer, Text

from canteen.domain import canteen


@canteen.event(part_of="ShoppingCart")
class CartItemAdded:
    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    menu_item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    quantity = Integer(required=True)


@canteen.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)


@canteen.event(part_of="ShoppingCart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)


@canteen.event(part_of="ShoppingCart")
class CartCheckedOut:
    """The cart's lines became orders and the cart was emptied."""

    __version__ = 1

    cart_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    parent_order_id = Identifier(required=True)
    lines = Text(required=True)  # JSON snapshot of the lines
    checked_out_at = DateTime(required=True)
