"""Payment window expiry: cancels wallet orders nobody paid for.

Triggered periodically by ``ExpirySweeper`` (or the maintenance API). Each
expired order is cancelled through its own ``ExpireOrderPayment`` command,
which re-reads the order and does nothing unless it is still unpaid, so
overlapping or repeated sweeps are harmless.
"""

import structlog
from protean import handle
from protean.exceptions import InvalidOperationError, ValidationError
from protean.fields import DateTime, Identifier
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.order.order import Order, OrderStatus
from canteen.utils.clock import as_utc, utc_now

logger = structlog.get_logger(__name__)


@canteen.command(part_of="Order")
class ExpireOrderPayment:
    order_id = Identifier(required=True)
    as_of = DateTime()


@canteen.command(part_of="Order")
class ExpireUnpaidOrders:
    """Cancel every unpaid wallet order whose payment window closed by ``as_of``."""

    as_of = DateTime()  # Optional: defaults to now


@canteen.command_handler(part_of=Order)
class PaymentExpiryHandler:
    @handle(ExpireOrderPayment)
    def expire_order_payment(self, command):
        as_of = as_utc(command.as_of) or utc_now()
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)

        if order.status != OrderStatus.AWAITING_PAYMENT.value or order.payment_window_open(as_of):
            return False

        order.expire_payment(as_of)
        repo.add(order)
        return True

    @handle(ExpireUnpaidOrders)
    def expire_unpaid_orders(self, command):
        as_of = as_utc(command.as_of) or utc_now()

        unpaid = current_domain.repository_for(Order).awaiting_payment()
        due = [order for order in unpaid if not order.payment_window_open(as_of)]
        if not due:
            logger.debug("No expired wallet payments", as_of=as_of.isoformat())
            return 0

        expired_count = 0
        for order in due:
            try:
                expired = current_domain.process(
                    ExpireOrderPayment(order_id=str(order.order_id), as_of=as_of),
                    asynchronous=False,
                )
            except (ValidationError, InvalidOperationError) as exc:
                logger.warning(
                    "Failed to expire wallet payment",
                    order_id=str(order.order_id),
                    error=str(exc),
                )
                continue

            if expired:
                expired_count += 1
                logger.info("Wallet payment expired", order_id=str(order.order_id))

        logger.info("Expiry sweep finished", expired=expired_count, as_of=as_of.isoformat())
        return expired_count
