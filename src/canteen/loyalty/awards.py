"""Awarding loyalty points for paid orders.

Awards are plain increments, so when two awards race on the same account
the loser simply re-reads the account and applies its increment again.
Cash orders earn at checkout; wallet orders earn when the customer submits
their payment.
"""

import structlog
from protean import handle
from protean.exceptions import ExpectedVersionError, ObjectNotFoundError
from protean.fields import Boolean, Float, Identifier
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.loyalty.account import LoyaltyAccount
from canteen.order.order import Order
from canteen.settings import get_settings

logger = structlog.get_logger(__name__)


@canteen.command(part_of="LoyaltyAccount")
class AwardPoints:
    customer_id = Identifier(required=True)
    amount_paid = Float(required=True, min_value=0.0)
    is_first_order_at_vendor = Boolean(default=False)
    order_id = Identifier()


@canteen.command_handler(part_of=LoyaltyAccount)
class AwardPointsHandler:
    @handle(AwardPoints)
    def award_points(self, command):
        repo = current_domain.repository_for(LoyaltyAccount)
        try:
            account = repo.get(command.customer_id)
        except ObjectNotFoundError:
            account = LoyaltyAccount.open(command.customer_id)

        earned = account.earn(
            command.amount_paid,
            is_first_order_at_vendor=command.is_first_order_at_vendor,
            order_id=command.order_id,
        )
        if earned:
            repo.add(account)
        return earned


def award_points(customer_id, amount_paid, is_first_order_at_vendor=False, order_id=None, max_retries=None):
    """Award points, retrying when another award updated the account first."""
    attempts = max_retries or get_settings().loyalty_max_retries
    for attempt in range(1, attempts + 1):
        try:
            return current_domain.process(
                AwardPoints(
                    customer_id=customer_id,
                    amount_paid=float(amount_paid),
                    is_first_order_at_vendor=is_first_order_at_vendor,
                    order_id=order_id,
                ),
                asynchronous=False,
            )
        except ExpectedVersionError:
            if attempt == attempts:
                raise
            logger.info("Loyalty account changed concurrently, retrying", customer_id=str(customer_id), attempt=attempt)


def is_first_order_at_vendor(customer_id, vendor_id, parent_order_id):
    return not current_domain.repository_for(Order).has_prior_order(
        customer_id, vendor_id, exclude_parent_order_id=parent_order_id
    )
