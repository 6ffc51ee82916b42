"""Canteen HTTP API package."""

from canteen.api.errors import register_exception_handlers
from canteen.api.routes import (
    cart_router,
    loyalty_router,
    maintenance_router,
    menu_item_router,
    order_router,
    vendor_router,
    voucher_router,
)

__all__ = [
    "vendor_router",
    "menu_item_router",
    "cart_router",
    "order_router",
    "loyalty_router",
    "voucher_router",
    "maintenance_router",
    "register_exception_handlers",
]
