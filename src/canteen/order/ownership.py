"""Who may act on an order.

Ownership failures are security events: they are logged with the actor
and the order before the error propagates.
"""

import structlog
from protean.utils.globals import current_domain

from canteen.errors import OwnershipError
from canteen.menu.vendor import Vendor

logger = structlog.get_logger(__name__)


def assert_customer_owns(order, actor_id):
    if actor_id is None or str(order.customer_id) != str(actor_id):
        logger.warning(
            "Ownership check failed",
            order_id=str(order.order_id),
            actor_id=str(actor_id),
            required="customer",
        )
        raise OwnershipError("Not your order", order_id=str(order.order_id))


def assert_vendor_owns(order, actor_id):
    vendor = current_domain.repository_for(Vendor).get(order.vendor_id)
    if not vendor.is_owned_by(actor_id):
        logger.warning(
            "Ownership check failed",
            order_id=str(order.order_id),
            vendor_id=str(order.vendor_id),
            actor_id=str(actor_id),
            required="vendor",
        )
        raise OwnershipError("Only the stall that received this order can do that", order_id=str(order.order_id))
    return vendor
