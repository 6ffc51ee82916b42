"""Voucher issuing, reservation and commitment."""

import json
from dataclasses import dataclass
from decimal import Decimal

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Float, Identifier, Integer, String, Text
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.errors import VoucherUnavailable
from canteen.loyalty.voucher import Voucher

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class VoucherReservation:
    """Outcome of validating a voucher for a checkout. Nothing is consumed."""

    ok: bool
    voucher_id: str | None = None
    code: str | None = None
    discount: Decimal = Decimal("0.00")
    reason: str | None = None


def reserve_voucher(voucher_id, customer_id, order_amount, now=None) -> VoucherReservation:
    try:
        voucher = current_domain.repository_for(Voucher).get(voucher_id)
    except ObjectNotFoundError:
        return VoucherReservation(ok=False, voucher_id=voucher_id, reason="Voucher not found")

    try:
        voucher.check_redeemable(customer_id, order_amount, now=now)
    except VoucherUnavailable as exc:
        return VoucherReservation(ok=False, voucher_id=voucher_id, code=voucher.code, reason=exc.message)

    return VoucherReservation(
        ok=True,
        voucher_id=str(voucher.id),
        code=voucher.code,
        discount=voucher.discount_for(order_amount),
    )


@canteen.command(part_of="Voucher")
class IssueVoucher:
    code = String(required=True, max_length=40)
    discount_value = Float(required=True, min_value=0.0)
    discount_type = String(default="fixed", max_length=20)
    description = String(max_length=255)
    target_customer_ids = Text()  # JSON list; empty means every customer
    max_discount = Float()
    min_order_amount = Float(default=0.0)
    max_usage = Integer(default=1, min_value=1)
    valid_until = DateTime()


@canteen.command(part_of="Voucher")
class CommitVoucher:
    voucher_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_id = Identifier(required=True)  # Parent order of the checkout
    discount_amount = Float(required=True, min_value=0.0)
    redeemed_at = DateTime()


@canteen.command_handler(part_of=Voucher)
class VoucherCommandHandler:
    @handle(IssueVoucher)
    def issue_voucher(self, command):
        voucher = Voucher.issue(
            code=command.code,
            discount_value=command.discount_value,
            discount_type=command.discount_type or "fixed",
            description=command.description,
            target_customer_ids=json.loads(command.target_customer_ids) if command.target_customer_ids else None,
            max_discount=command.max_discount,
            min_order_amount=command.min_order_amount,
            max_usage=command.max_usage,
            valid_until=command.valid_until,
        )
        current_domain.repository_for(Voucher).add(voucher)
        return str(voucher.id)

    @handle(CommitVoucher)
    def commit_voucher(self, command):
        repo = current_domain.repository_for(Voucher)
        voucher = repo.get(command.voucher_id)
        voucher.redeem(
            command.customer_id,
            command.order_id,
            command.discount_amount,
            now=command.redeemed_at,
        )
        repo.add(voucher)
        logger.info(
            "Voucher committed",
            voucher_id=command.voucher_id,
            order_id=command.order_id,
            usage_count=voucher.usage_count,
        )
