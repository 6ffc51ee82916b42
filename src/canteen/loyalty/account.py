"""LoyaltyAccount aggregate: points earned on orders and their tier.

Customers earn one point per 10 spent (after discounts), doubled on their
first order at a stall. The tier follows lifetime points and never goes
down, even when points are redeemed.
"""

from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from canteen.domain import canteen
from canteen.loyalty.events import PointsAwarded, PointsRedeemed, TierUpgraded
from canteen.pricing import to_money
from canteen.utils.clock import utc_now

SPEND_PER_POINT = 10
FIRST_ORDER_MULTIPLIER = 2


class LoyaltyTier(Enum):
    BRONZE = "Bronze"
    SILVER = "Silver"
    GOLD = "Gold"


# Lifetime points needed per tier, highest first
_TIER_THRESHOLDS = [
    (1000, LoyaltyTier.GOLD),
    (500, LoyaltyTier.SILVER),
    (0, LoyaltyTier.BRONZE),
]


class TransactionKind(Enum):
    EARNED = "earned"
    REDEEMED = "redeemed"


def tier_for(lifetime_points):
    for threshold, tier in _TIER_THRESHOLDS:
        if lifetime_points >= threshold:
            return tier
    return LoyaltyTier.BRONZE


def points_for(amount_paid, is_first_order_at_vendor=False):
    points = int(to_money(amount_paid) // SPEND_PER_POINT)
    return points * FIRST_ORDER_MULTIPLIER if is_first_order_at_vendor else points


@canteen.entity(part_of="LoyaltyAccount")
class PointsTransaction:
    kind = String(choices=TransactionKind, required=True)
    points = Integer(required=True)
    order_id = Identifier()
    voucher_id = Identifier()
    description = String(max_length=255)
    occurred_at = DateTime()


@canteen.aggregate
class LoyaltyAccount:
    customer_id = Identifier(identifier=True)
    points = Integer(default=0, min_value=0)
    lifetime_points = Integer(default=0, min_value=0)
    tier = String(choices=LoyaltyTier, default=LoyaltyTier.BRONZE.value)
    transactions = HasMany(PointsTransaction)
    updated_at = DateTime()

    @classmethod
    def open(cls, customer_id):
        return cls(customer_id=customer_id, points=0, lifetime_points=0, tier=LoyaltyTier.BRONZE.value)

    def earn(self, amount_paid, is_first_order_at_vendor=False, order_id=None, now=None):
        """Credit points for a paid order and return how many were added."""
        earned = points_for(amount_paid, is_first_order_at_vendor)
        if earned <= 0:
            return 0

        now = now or utc_now()
        self.points += earned
        self.lifetime_points += earned
        self.updated_at = now
        self.add_transactions(
            PointsTransaction(
                kind=TransactionKind.EARNED.value,
                points=earned,
                order_id=order_id,
                description="First order at this stall" if is_first_order_at_vendor else "Order reward",
                occurred_at=now,
            )
        )
        self.raise_(
            PointsAwarded(
                customer_id=str(self.customer_id),
                points=earned,
                balance=self.points,
                order_id=order_id,
                first_order_bonus=bool(is_first_order_at_vendor),
                awarded_at=now,
            )
        )
        self._refresh_tier()
        return earned

    def redeem(self, points, voucher_id, now=None):
        if points <= 0:
            raise ValidationError({"points": ["Points to redeem must be positive"]})
        if points > self.points:
            raise ValidationError({"points": [f"Insufficient points: {self.points} available, {points} requested"]})

        now = now or utc_now()
        self.points -= points
        self.updated_at = now
        self.add_transactions(
            PointsTransaction(
                kind=TransactionKind.REDEEMED.value,
                points=-points,
                voucher_id=voucher_id,
                description="Redeemed for voucher",
                occurred_at=now,
            )
        )
        self.raise_(
            PointsRedeemed(
                customer_id=str(self.customer_id),
                points=points,
                balance=self.points,
                voucher_id=str(voucher_id),
                redeemed_at=now,
            )
        )

    def _refresh_tier(self):
        new_tier = tier_for(self.lifetime_points)
        current = LoyaltyTier(self.tier)
        if new_tier == current:
            return

        self.tier = new_tier.value
        self.raise_(
            TierUpgraded(
                customer_id=str(self.customer_id),
                previous_tier=current.value,
                new_tier=new_tier.value,
                lifetime_points=self.lifetime_points,
            )
        )
