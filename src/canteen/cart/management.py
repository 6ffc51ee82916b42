"""Cart commands: create a cart and manage its lines."""

import json

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from canteen.cart.cart import ShoppingCart
from canteen.domain import canteen
from canteen.menu.menu_item import MenuItem


@canteen.command(part_of="ShoppingCart")
class CreateCart:
    customer_id = Identifier(required=True)


@canteen.command(part_of="ShoppingCart")
class AddToCart:
    cart_id = Identifier(required=True)
    menu_item_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    add_ons = Text()  # JSON list of {"name", "price"}
    note = String(max_length=255)


@canteen.command(part_of="ShoppingCart")
class UpdateCartQuantity:
    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)
    new_quantity = Integer(required=True, min_value=1)


@canteen.command(part_of="ShoppingCart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    line_id = Identifier(required=True)


@canteen.command(part_of="ShoppingCart")
class CheckOutCart:
    cart_id = Identifier(required=True)
    parent_order_id = Identifier(required=True)


@canteen.command_handler(part_of=ShoppingCart)
class CartCommandHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = ShoppingCart.create(customer_id=command.customer_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(AddToCart)
    def add_to_cart(self, command):
        item = current_domain.repository_for(MenuItem).get(command.menu_item_id)
        if not item.is_available:
            raise ValidationError({"menu_item_id": [f"{item.name} is not available"]})

        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        line_id = cart.add_item(
            menu_item_id=str(item.id),
            vendor_id=str(item.vendor_id),
            name=item.name,
            unit_price=item.price,
            quantity=command.quantity,
            add_ons=json.loads(command.add_ons) if command.add_ons else None,
            note=command.note,
        )
        repo.add(cart)
        return line_id

    @handle(UpdateCartQuantity)
    def update_quantity(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.update_quantity(command.line_id, command.new_quantity)
        repo.add(cart)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.remove_item(command.line_id)
        repo.add(cart)

    @handle(CheckOutCart)
    def check_out(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.check_out(command.parent_order_id)
        repo.add(cart)
