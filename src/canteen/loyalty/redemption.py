"""Redeeming loyalty points for a discount voucher.

Every 100 points buy 10 off a future order. Points are taken and the
voucher is created in the same unit of work.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.loyalty.account import LoyaltyAccount
from canteen.loyalty.voucher import Voucher

POINTS_PER_BLOCK = 100
VALUE_PER_BLOCK = 10


@canteen.command(part_of="LoyaltyAccount")
class RedeemPoints:
    customer_id = Identifier(required=True)
    points = Integer(required=True, min_value=1)


@canteen.command_handler(part_of=LoyaltyAccount)
class RedeemPointsHandler:
    @handle(RedeemPoints)
    def redeem_points(self, command):
        if command.points < POINTS_PER_BLOCK or command.points % POINTS_PER_BLOCK:
            raise ValidationError({"points": [f"Points must be redeemed in multiples of {POINTS_PER_BLOCK}"]})

        account = current_domain.repository_for(LoyaltyAccount).get(command.customer_id)
        value = command.points // POINTS_PER_BLOCK * VALUE_PER_BLOCK
        voucher = Voucher.for_loyalty_points(command.customer_id, float(value))

        account.redeem(command.points, voucher_id=str(voucher.id))
        current_domain.repository_for(LoyaltyAccount).add(account)
        current_domain.repository_for(Voucher).add(voucher)

        return {"voucher_id": str(voucher.id), "code": voucher.code, "discount": float(value)}
