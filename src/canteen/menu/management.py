"""Vendor and menu management commands."""

from protean import handle
from protean.fields import Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.menu.menu_item import MenuItem
from canteen.menu.vendor import Vendor


@canteen.command(part_of="Vendor")
class RegisterVendor:
    name = String(required=True, max_length=120)
    owner_id = Identifier(required=True)
    wallet_handle = String(max_length=20)
    wallet_name = String(max_length=120)


@canteen.command(part_of="Vendor")
class UpdateWalletSettings:
    vendor_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    wallet_handle = String(max_length=20)  # empty disables wallet payments
    wallet_name = String(max_length=120)


@canteen.command(part_of="MenuItem")
class AddMenuItem:
    vendor_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    name = String(required=True, max_length=120)
    price = Float(required=True, min_value=0.0)
    stock = Integer(default=0, min_value=0)


@canteen.command(part_of="MenuItem")
class RestockMenuItem:
    menu_item_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@canteen.command_handler(part_of=Vendor)
class VendorCommandHandler:
    @handle(RegisterVendor)
    def register_vendor(self, command):
        vendor = Vendor.register(
            name=command.name,
            owner_id=command.owner_id,
            wallet_handle=command.wallet_handle,
            wallet_name=command.wallet_name,
        )
        current_domain.repository_for(Vendor).add(vendor)
        return str(vendor.id)

    @handle(UpdateWalletSettings)
    def update_wallet_settings(self, command):
        repo = current_domain.repository_for(Vendor)
        vendor = repo.get(command.vendor_id)
        vendor.assert_owned_by(command.actor_id)
        if command.wallet_handle:
            vendor.enable_wallet(command.wallet_handle, command.wallet_name)
        else:
            vendor.disable_wallet()
        repo.add(vendor)


@canteen.command_handler(part_of=MenuItem)
class MenuItemCommandHandler:
    @handle(AddMenuItem)
    def add_menu_item(self, command):
        vendor = current_domain.repository_for(Vendor).get(command.vendor_id)
        vendor.assert_owned_by(command.actor_id)

        item = MenuItem.create(
            vendor_id=command.vendor_id,
            name=command.name,
            price=command.price,
            stock=command.stock or 0,
        )
        current_domain.repository_for(MenuItem).add(item)
        return str(item.id)

    @handle(RestockMenuItem)
    def restock_menu_item(self, command):
        repo = current_domain.repository_for(MenuItem)
        item = repo.get(command.menu_item_id)
        vendor = current_domain.repository_for(Vendor).get(item.vendor_id)
        vendor.assert_owned_by(command.actor_id)

        item.restock(command.quantity)
        repo.add(item)
