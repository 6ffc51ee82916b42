"""Order notifications: tells vendors and customers what happened to an order.

Dispatch is advisory. A failed delivery is logged and never affects the
order itself.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from canteen.domain import canteen
from canteen.menu.vendor import Vendor
from canteen.notification import get_dispatcher
from canteen.order.events import OrderPlaced, OrderStatusChanged, WalletPaymentRejected, WalletPaymentSubmitted
from canteen.order.order import Order, OrderStatus

logger = structlog.get_logger(__name__)

_CUSTOMER_MESSAGES = {
    OrderStatus.PENDING.value: ("Payment received", "Your payment for order {order_id} was submitted to the stall."),
    OrderStatus.PREPARING.value: ("Order accepted", "The stall is now preparing order {order_id}."),
    OrderStatus.READY.value: ("Order ready", "Order {order_id} is ready for pickup."),
    OrderStatus.COMPLETED.value: ("Order picked up", "Enjoy your meal! Order {order_id} is complete."),
    OrderStatus.CANCELLED.value: ("Order cancelled", "Order {order_id} was cancelled."),
}


def _send(user_id, title, message, order_id):
    result = get_dispatcher().notify(str(user_id), title, message, {"orderId": order_id})
    if result.get("status") != "sent":
        logger.warning(
            "Notification not delivered",
            user_id=str(user_id),
            order_id=order_id,
            error=result.get("error"),
        )
    return result


def _vendor_owner(vendor_id):
    try:
        return current_domain.repository_for(Vendor).get(vendor_id).owner_id
    except ObjectNotFoundError:
        logger.warning("Vendor not found for notification", vendor_id=str(vendor_id))
        return None


@canteen.event_handler(part_of=Order)
class OrderNotificationHandler:
    @handle(OrderPlaced)
    def notify_vendor_of_new_order(self, event):
        owner_id = _vendor_owner(event.vendor_id)
        if owner_id is None:
            return

        if event.status == OrderStatus.AWAITING_PAYMENT.value:
            message = f"Order {event.order_id} is waiting for the customer's wallet payment."
        else:
            message = f"New order {event.order_id} for {event.total_amount:.2f}."
        _send(owner_id, "New order", message, event.order_id)

    @handle(OrderStatusChanged)
    def notify_customer_of_status(self, event):
        title, template = _CUSTOMER_MESSAGES[event.new_status]
        message = template.format(order_id=event.order_id)
        if event.reason:
            message = f"{message} Reason: {event.reason}"
        _send(event.customer_id, title, message, event.order_id)

    @handle(WalletPaymentSubmitted)
    def ask_vendor_to_verify(self, event):
        owner_id = _vendor_owner(event.vendor_id)
        if owner_id is None:
            return
        _send(
            owner_id,
            "Verify wallet payment",
            f"Check your wallet for {event.amount:.2f} with reference {event.wallet_reference_number} (order {event.order_id}).",
            event.order_id,
        )

    @handle(WalletPaymentRejected)
    def tell_customer_payment_not_found(self, event):
        _send(
            event.customer_id,
            "Payment not found",
            f"The stall could not find your payment for order {event.order_id}. Please contact the stall.",
            event.order_id,
        )
