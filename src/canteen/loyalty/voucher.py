"""Voucher aggregate: a discount a customer can apply at checkout.

Vouchers are issued by admins (for everyone or for a list of customers)
or bought with loyalty points (owned by one customer). Checkout reserves a
voucher first, which only validates it, and commits it once every order
of the checkout has been stored.
"""

import json
import secrets
import string
from datetime import timedelta
from decimal import Decimal
from enum import Enum

from protean.fields import Boolean, DateTime, Float, HasMany, Identifier, Integer, String, Text

from canteen.domain import canteen
from canteen.errors import VoucherUnavailable
from canteen.loyalty.events import VoucherIssued, VoucherRedeemed
from canteen.pricing import to_money
from canteen.utils.clock import as_utc, utc_now

LOYALTY_VOUCHER_VALIDITY = timedelta(days=30)
_CODE_ALPHABET = string.ascii_uppercase + string.digits


class DiscountType(Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class VoucherTargeting(Enum):
    ALL = "all"
    SPECIFIC = "specific"


def generate_voucher_code(prefix="LOYALTY"):
    return prefix + "".join(secrets.choice(_CODE_ALPHABET) for _ in range(6))


@canteen.entity(part_of="Voucher")
class VoucherRedemption:
    customer_id = Identifier(required=True)
    order_id = Identifier(required=True)
    discount_amount = Float(required=True, min_value=0.0)
    redeemed_at = DateTime(required=True)


@canteen.aggregate
class Voucher:
    code = String(required=True, max_length=40)
    description = String(max_length=255)
    owner_id = Identifier()  # Set for vouchers bought with loyalty points
    targeting = String(choices=VoucherTargeting, default=VoucherTargeting.ALL.value)
    target_customer_ids = Text()  # JSON list, used when targeting is "specific"
    discount_type = String(choices=DiscountType, default=DiscountType.FIXED.value)
    discount_value = Float(required=True, min_value=0.0)
    max_discount = Float(min_value=0.0)
    min_order_amount = Float(default=0.0, min_value=0.0)
    max_usage = Integer(default=1, min_value=1)
    usage_count = Integer(default=0, min_value=0)
    is_used = Boolean(default=False)
    is_active = Boolean(default=True)
    valid_until = DateTime()
    redemptions = HasMany(VoucherRedemption)
    created_at = DateTime()

    # -------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------
    @classmethod
    def issue(
        cls,
        code,
        discount_value,
        discount_type=DiscountType.FIXED.value,
        description=None,
        target_customer_ids=None,
        max_discount=None,
        min_order_amount=0.0,
        max_usage=1,
        valid_until=None,
        owner_id=None,
        now=None,
    ):
        targets = list(target_customer_ids or [])
        voucher = cls(
            code=code.upper(),
            description=description,
            owner_id=owner_id,
            targeting=(VoucherTargeting.SPECIFIC if targets else VoucherTargeting.ALL).value,
            target_customer_ids=json.dumps(targets),
            discount_type=DiscountType(discount_type).value,
            discount_value=discount_value,
            max_discount=max_discount,
            min_order_amount=min_order_amount or 0.0,
            max_usage=max_usage or 1,
            valid_until=valid_until,
            created_at=now or utc_now(),
        )
        voucher.raise_(
            VoucherIssued(
                voucher_id=str(voucher.id),
                code=voucher.code,
                discount_type=voucher.discount_type,
                discount_value=discount_value,
                owner_id=owner_id,
            )
        )
        return voucher

    @classmethod
    def for_loyalty_points(cls, customer_id, value, now=None):
        """Single-use fixed voucher bought with points, valid for 30 days."""
        now = now or utc_now()
        return cls.issue(
            code=generate_voucher_code(),
            discount_value=value,
            description=f"Loyalty reward worth {value:.2f}",
            owner_id=customer_id,
            max_usage=1,
            valid_until=now + LOYALTY_VOUCHER_VALIDITY,
            now=now,
        )

    # -------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------
    def target_list(self):
        return json.loads(self.target_customer_ids) if self.target_customer_ids else []

    def is_available_to(self, customer_id):
        if self.owner_id:
            return str(self.owner_id) == str(customer_id)
        if self.targeting == VoucherTargeting.SPECIFIC.value:
            return str(customer_id) in self.target_list()
        return True

    def has_been_used_by(self, customer_id):
        return any(str(r.customer_id) == str(customer_id) for r in self.redemptions)

    def check_redeemable(self, customer_id, order_amount, now=None):
        """Raise ``VoucherUnavailable`` unless the customer may use this voucher now."""
        now = now or utc_now()
        if not self.is_active:
            raise VoucherUnavailable("Voucher is no longer active", voucher_id=str(self.id))
        if not self.is_available_to(customer_id):
            raise VoucherUnavailable("This voucher is not available for your account", voucher_id=str(self.id))
        if self.is_used or self.usage_count >= self.max_usage:
            raise VoucherUnavailable("Voucher has already been used", voucher_id=str(self.id))
        if self.has_been_used_by(customer_id):
            raise VoucherUnavailable("You have already used this voucher", voucher_id=str(self.id))
        if self.valid_until and as_utc(self.valid_until) < now:
            raise VoucherUnavailable("Voucher has expired", voucher_id=str(self.id))
        if to_money(order_amount) < to_money(self.min_order_amount):
            raise VoucherUnavailable(
                f"Minimum order amount for this voucher is {self.min_order_amount:.2f}",
                voucher_id=str(self.id),
            )

    def discount_for(self, order_amount) -> Decimal:
        """Discount this voucher gives on ``order_amount``, never more than the amount itself."""
        amount = to_money(order_amount)
        if self.discount_type == DiscountType.PERCENTAGE.value:
            discount = to_money(amount * to_money(self.discount_value) / 100)
            if self.max_discount:
                discount = min(discount, to_money(self.max_discount))
        else:
            discount = to_money(self.discount_value)
        return min(discount, amount)

    # -------------------------------------------------------------------
    # Redemption
    # -------------------------------------------------------------------
    def redeem(self, customer_id, order_id, discount_amount, now=None):
        now = now or utc_now()
        self.check_redeemable(customer_id, order_amount=self.min_order_amount or 0, now=now)

        self.usage_count += 1
        if self.usage_count >= self.max_usage:
            self.is_used = True
        self.add_redemptions(
            VoucherRedemption(
                customer_id=customer_id,
                order_id=order_id,
                discount_amount=float(discount_amount),
                redeemed_at=now,
            )
        )
        self.raise_(
            VoucherRedeemed(
                voucher_id=str(self.id),
                customer_id=str(customer_id),
                order_id=str(order_id),
                discount_amount=float(discount_amount),
                usage_count=self.usage_count,
                redeemed_at=now,
            )
        )

    def deactivate(self):
        self.is_active = False
