"""Vendor-side wallet payment verification.

The stall checks its own wallet history for the transfer. A payment that
cannot be found is marked ``failed`` but the order is left as it is: the
stall and customer resolve it in person, and the stall may then decline
the order.
"""

import structlog
from protean import handle
from protean.fields import Boolean, Identifier
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.order.order import Order
from canteen.order.ownership import assert_vendor_owns

logger = structlog.get_logger(__name__)


@canteen.command(part_of="Order")
class VerifyWalletPayment:
    order_id = Identifier(required=True)
    actor_id = Identifier(required=True)
    accepted = Boolean(required=True)


@canteen.command_handler(part_of=Order)
class VerifyWalletPaymentHandler:
    @handle(VerifyWalletPayment)
    def verify_payment(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        assert_vendor_owns(order, command.actor_id)

        order.verify_wallet_payment(command.accepted, verified_by=command.actor_id)
        repo.add(order)

        logger.info(
            "Wallet payment reviewed",
            order_id=command.order_id,
            accepted=command.accepted,
        )
