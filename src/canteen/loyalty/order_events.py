"""Loyalty reactions to order events."""

import structlog
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from canteen.domain import canteen
from canteen.loyalty.account import LoyaltyAccount
from canteen.loyalty.awards import award_points, is_first_order_at_vendor
from canteen.order.events import WalletPaymentSubmitted
from canteen.order.order import Order

logger = structlog.get_logger(__name__)


@canteen.event_handler(part_of=LoyaltyAccount, stream_category="canteen::order")
class OrderEventsHandler:
    @handle(WalletPaymentSubmitted)
    def reward_wallet_payment(self, event):
        """Wallet orders earn points once the customer has paid."""
        order = current_domain.repository_for(Order).get(event.order_id)
        earned = award_points(
            event.customer_id,
            event.amount,
            is_first_order_at_vendor=is_first_order_at_vendor(
                event.customer_id, event.vendor_id, order.parent_order_id
            ),
            order_id=event.order_id,
        )
        logger.info("Points awarded for wallet payment", order_id=event.order_id, points=earned)
