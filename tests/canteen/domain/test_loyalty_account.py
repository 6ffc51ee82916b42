"""Tests for the LoyaltyAccount aggregate: earning, redeeming and tiers."""

import pytest
from canteen.loyalty.account import LoyaltyAccount, LoyaltyTier, points_for, tier_for
from canteen.loyalty.events import PointsAwarded, TierUpgraded
from protean.exceptions import ValidationError


class TestPointsFor:
    def test_one_point_per_ten_spent(self):
        assert points_for(259.0) == 25

    def test_first_order_at_a_stall_earns_double(self):
        assert points_for(259.0, is_first_order_at_vendor=True) == 50

    def test_small_amounts_earn_nothing(self):
        assert points_for(9.99) == 0


class TestTiers:
    @pytest.mark.parametrize(
        "lifetime, tier",
        [(0, LoyaltyTier.BRONZE), (499, LoyaltyTier.BRONZE), (500, LoyaltyTier.SILVER), (1000, LoyaltyTier.GOLD)],
    )
    def test_thresholds(self, lifetime, tier):
        assert tier_for(lifetime) == tier


class TestEarn:
    def test_earning_updates_balance_and_lifetime(self):
        account = LoyaltyAccount.open("cust-001")
        earned = account.earn(150.0, order_id="UBF-2026-1")

        assert earned == 15
        assert account.points == 15
        assert account.lifetime_points == 15
        assert len(account.transactions) == 1
        assert any(isinstance(e, PointsAwarded) for e in account._events)

    def test_crossing_a_threshold_upgrades_the_tier(self):
        account = LoyaltyAccount.open("cust-001")
        account.earn(4990.0)
        account._events.clear()

        account.earn(20.0)

        assert account.tier == LoyaltyTier.SILVER.value
        upgrades = [e for e in account._events if isinstance(e, TierUpgraded)]
        assert upgrades[0].previous_tier == "Bronze"
        assert upgrades[0].new_tier == "Silver"

    def test_zero_point_orders_leave_no_transaction(self):
        account = LoyaltyAccount.open("cust-001")
        assert account.earn(5.0) == 0
        assert account.transactions == []


class TestRedeem:
    def test_redeeming_keeps_lifetime_points_and_tier(self):
        account = LoyaltyAccount.open("cust-001")
        account.earn(6000.0)
        account.redeem(500, voucher_id="voucher-001")

        assert account.points == 100
        assert account.lifetime_points == 600
        assert account.tier == LoyaltyTier.SILVER.value

    def test_cannot_redeem_more_than_balance(self):
        account = LoyaltyAccount.open("cust-001")
        account.earn(500.0)

        with pytest.raises(ValidationError):
            account.redeem(100, voucher_id="voucher-001")
