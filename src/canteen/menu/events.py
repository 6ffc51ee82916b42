"""Domain events for vendor stalls and their menu items."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from canteen.domain import canteen


@canteen.event(part_of="Vendor")
class VendorRegistered:
    __version__ = 1

    vendor_id = Identifier(required=True)
    name = String(required=True)
    owner_id = Identifier(required=True)
    accepts_wallet = Boolean(default=False)


@canteen.event(part_of="Vendor")
class WalletSettingsUpdated:
    """The stall enabled, changed or disabled wallet payments."""

    __version__ = 1

    vendor_id = Identifier(required=True)
    accepts_wallet = Boolean(required=True)
    wallet_handle = String()


@canteen.event(part_of="MenuItem")
class MenuItemAdded:
    __version__ = 1

    menu_item_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    name = String(required=True)
    price = Float(required=True)
    stock = Integer(required=True)


@canteen.event(part_of="MenuItem")
class StockRestocked:
    __version__ = 1

    menu_item_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock = Integer(required=True)


@canteen.event(part_of="MenuItem")
class StockDeducted:
    """Stock left the counter because an order was picked up."""

    __version__ = 1

    menu_item_id = Identifier(required=True)
    order_id = Identifier(required=True)
    quantity = Integer(required=True)
    new_stock = Integer(required=True)
    deducted_at = DateTime(required=True)
