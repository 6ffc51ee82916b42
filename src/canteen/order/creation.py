"""Order creation: the ledger write behind each vendor group of a checkout."""

import json

import structlog
from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.order.order import Order

logger = structlog.get_logger(__name__)


@canteen.command(part_of="Order")
class CreateOrder:
    order_id = Identifier(required=True)
    parent_order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    lines = Text(required=True)  # JSON: list of line dicts
    subtotal = Float(required=True)
    voucher_discount = Float(default=0.0)
    total_amount = Float(required=True)
    payment_method = String(required=True, max_length=20)
    wallet_handle = String(max_length=20)
    payment_window_minutes = Integer(default=15)
    voucher_id = Identifier()
    cash_amount = Float()
    change_due = Float()
    is_multi_stall_order = Boolean(default=False)
    special_instructions = String(max_length=500)
    scheduled_time = String(max_length=32)
    group_order_emails = Text()  # JSON list
    review_reasons = Text()  # JSON list
    placed_at = DateTime()


@canteen.command_handler(part_of=Order)
class CreateOrderHandler:
    @handle(CreateOrder)
    def create_order(self, command):
        order = Order.place(
            order_id=command.order_id,
            parent_order_id=command.parent_order_id,
            customer_id=command.customer_id,
            vendor_id=command.vendor_id,
            lines=json.loads(command.lines),
            subtotal=command.subtotal,
            voucher_discount=command.voucher_discount or 0.0,
            total_amount=command.total_amount,
            payment_method=command.payment_method,
            wallet_handle=command.wallet_handle,
            payment_window_minutes=command.payment_window_minutes or 15,
            voucher_id=command.voucher_id,
            cash_amount=command.cash_amount,
            change_due=command.change_due,
            is_multi_stall_order=command.is_multi_stall_order,
            special_instructions=command.special_instructions,
            scheduled_time=command.scheduled_time,
            group_order_emails=json.loads(command.group_order_emails) if command.group_order_emails else None,
            review_reasons=json.loads(command.review_reasons) if command.review_reasons else None,
            now=command.placed_at,
        )
        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.order_id),
            vendor_id=str(order.vendor_id),
            status=order.status,
            total_amount=order.total_amount,
            flagged=order.flagged_for_review,
        )
        return str(order.order_id)
