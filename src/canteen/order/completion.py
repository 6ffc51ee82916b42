"""Pickup confirmation: completes an order and takes its dishes off stock.

Completion and the stock decrements happen in a single unit of work: the
order is re-read, every menu item is checked for enough stock, and only
then are the counters decremented and the order moved to ``completed``.
If any item falls short nothing is written and the order stays ``ready``
for the vendor to sort out. Completing an already completed order is a
no-op, so a double scan never deducts stock twice.
"""

from collections import defaultdict

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.errors import InsufficientStock, OrderIntegrityError
from canteen.menu.menu_item import MenuItem
from canteen.order.order import Order, OrderStatus
from canteen.order.ownership import assert_vendor_owns

logger = structlog.get_logger(__name__)


@canteen.command(part_of="Order")
class CompleteOrder:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    token = String(max_length=64)  # From the pickup QR code; absent for manual completion


@canteen.command_handler(part_of=Order)
class CompleteOrderHandler:
    @handle(CompleteOrder)
    def complete_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        assert_vendor_owns(order, command.actor_id)

        if order.status == OrderStatus.COMPLETED.value:
            logger.info("Order already completed", order_id=str(order.order_id))
            return False

        if command.token and command.token != order.token:
            logger.warning("Pickup token mismatch", order_id=str(order.order_id))
            raise OrderIntegrityError(f"Pickup token does not match order {order.order_id}")

        order.verify_integrity()

        required = defaultdict(int)
        for line in order.lines:
            required[str(line.menu_item_id)] += line.quantity

        item_repo = current_domain.repository_for(MenuItem)
        menu_items = {menu_item_id: item_repo.get(menu_item_id) for menu_item_id in required}

        shortfalls = [
            f"{menu_items[menu_item_id].name}: {menu_items[menu_item_id].stock} available, {quantity} requested"
            for menu_item_id, quantity in required.items()
            if not menu_items[menu_item_id].can_supply(quantity)
        ]
        if shortfalls:
            logger.warning(
                "Cannot complete order, stock short",
                order_id=str(order.order_id),
                shortfalls=shortfalls,
            )
            raise InsufficientStock(
                "Insufficient stock to complete order: " + "; ".join(shortfalls),
                order_id=str(order.order_id),
            )

        order.complete()
        for menu_item_id, quantity in required.items():
            menu_items[menu_item_id].deduct(quantity, order.order_id)
            item_repo.add(menu_items[menu_item_id])
        repo.add(order)

        logger.info("Order completed", order_id=str(order.order_id), items=dict(required))
        return True
