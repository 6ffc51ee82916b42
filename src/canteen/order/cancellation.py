"""Order cancellation by customers, vendors, admins and the system."""

import structlog
from protean import handle
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.order.order import Actor, Order
from canteen.order.ownership import assert_customer_owns, assert_vendor_owns
from canteen.settings import get_settings

logger = structlog.get_logger(__name__)


@canteen.command(part_of="Order")
class CancelOrder:
    order_id = Identifier(required=True)
    actor = String(required=True, choices=Actor)
    actor_id = Identifier()  # Not needed for system cancellations
    reason = String(max_length=500)
    as_of = DateTime()  # Optional: defaults to now


@canteen.command_handler(part_of=Order)
class CancelOrderHandler:
    @handle(CancelOrder)
    def cancel_order(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        actor = Actor(command.actor)
        if actor == Actor.CUSTOMER:
            assert_customer_owns(order, command.actor_id)
        elif actor == Actor.VENDOR:
            assert_vendor_owns(order, command.actor_id)

        order.cancel(
            actor.value,
            reason=command.reason,
            now=command.as_of,
            window_minutes=get_settings().cancellation_window_minutes,
        )
        repo.add(order)

        logger.info(
            "Order cancelled",
            order_id=str(order.order_id),
            actor=actor.value,
            reason=command.reason,
        )
