"""Domain events for loyalty accounts and vouchers."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from canteen.domain import canteen


@canteen.event(part_of="LoyaltyAccount")
class PointsAwarded:
    __version__ = 1

    customer_id = Identifier(required=True)
    points = Integer(required=True)
    balance = Integer(required=True)
    order_id = Identifier()
    first_order_bonus = Boolean(default=False)
    awarded_at = DateTime(required=True)


@canteen.event(part_of="LoyaltyAccount")
class PointsRedeemed:
    __version__ = 1

    customer_id = Identifier(required=True)
    points = Integer(required=True)
    balance = Integer(required=True)
    voucher_id = Identifier(required=True)
    redeemed_at = DateTime(required=True)


@canteen.event(part_of="LoyaltyAccount")
class TierUpgraded:
    __version__ = 1

    customer_id = Identifier(required=True)
    previous_tier = String(required=True)
    new_tier = String(required=True)
    lifetime_points = Integer(required=True)


@canteen.event(part_of="Voucher")
class VoucherIssued:
    __version__ = 1

    voucher_id = Identifier(required=True)
    code = String(required=True)
    discount_type = String(required=True)
    discount_value = Float(required=True)
    owner_id = Identifier()


@canteen.event(part_of="Voucher")
class VoucherRedeemed:
    """A checkout consumed the voucher after its orders were stored."""

    __version__ = 1

    voucher_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    order_id = Identifier(required=True)
    discount_amount = Float(required=True)
    usage_count = Integer(required=True)
    redeemed_at = DateTime(required=True)
