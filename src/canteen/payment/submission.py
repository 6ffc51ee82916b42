"""Customer-side wallet payment submission.

The customer pays the stall through their wallet app and then reports the
transaction reference here. The order moves to ``pending`` and the stall is
asked to verify. Submitting twice is harmless.
"""

from dataclasses import dataclass

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.errors import InvalidTransition, InvalidWalletDetails
from canteen.order.order import Order
from canteen.order.ownership import assert_customer_owns

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class PaymentSubmission:
    success: bool
    message: str

    def as_dict(self):
        return {"success": self.success, "message": self.message}


@canteen.command(part_of="Order")
class SubmitWalletPayment:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    wallet_reference_number = String(required=True, max_length=40)
    sender_number = String(max_length=20)
    as_of = DateTime()  # Optional: defaults to now


@canteen.command_handler(part_of=Order)
class SubmitWalletPaymentHandler:
    @handle(SubmitWalletPayment)
    def submit_payment(self, command):
        repo = current_domain.repository_for(Order)
        try:
            order = repo.get(command.order_id)
        except ObjectNotFoundError:
            return PaymentSubmission(False, "Order not found")

        assert_customer_owns(order, command.actor_id)

        try:
            changed = order.submit_wallet_payment(
                command.wallet_reference_number,
                sender_number=command.sender_number,
                now=command.as_of,
            )
        except (InvalidWalletDetails, InvalidTransition) as exc:
            logger.info("Wallet payment submission refused", order_id=command.order_id, reason=exc.message)
            return PaymentSubmission(False, exc.message)

        if not changed:
            return PaymentSubmission(True, "Payment already submitted and awaiting verification")

        repo.add(order)
        logger.info("Wallet payment submitted", order_id=command.order_id)
        return PaymentSubmission(True, "Payment submitted. The stall will verify it shortly.")
