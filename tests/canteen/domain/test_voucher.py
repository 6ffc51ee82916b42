"""Tests for the Voucher aggregate: eligibility, discounts and redemption."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
from canteen.errors import VoucherUnavailable
from canteen.loyalty.voucher import Voucher

NOW = datetime(2026, 3, 2, 11, 30, tzinfo=UTC)


class TestDiscount:
    def test_fixed_discount(self):
        voucher = Voucher.issue(code="welcome50", discount_value=50.0, now=NOW)
        assert voucher.code == "WELCOME50"
        assert voucher.discount_for(200) == Decimal("50.00")

    def test_fixed_discount_never_exceeds_the_amount(self):
        voucher = Voucher.issue(code="BIG", discount_value=500.0, now=NOW)
        assert voucher.discount_for(120) == Decimal("120.00")

    def test_percentage_discount_with_cap(self):
        voucher = Voucher.issue(
            code="TENPCT", discount_value=10.0, discount_type="percentage", max_discount=30.0, now=NOW
        )
        assert voucher.discount_for(200) == Decimal("20.00")
        assert voucher.discount_for(500) == Decimal("30.00")


class TestEligibility:
    def test_targeted_voucher_is_only_for_listed_customers(self):
        voucher = Voucher.issue(code="VIP", discount_value=20.0, target_customer_ids=["cust-001"], now=NOW)

        voucher.check_redeemable("cust-001", 100, now=NOW)
        with pytest.raises(VoucherUnavailable):
            voucher.check_redeemable("cust-002", 100, now=NOW)

    def test_loyalty_voucher_belongs_to_its_owner(self):
        voucher = Voucher.for_loyalty_points("cust-001", 10.0, now=NOW)

        assert voucher.code.startswith("LOYALTY")
        assert voucher.valid_until == NOW + timedelta(days=30)
        assert voucher.is_available_to("cust-001")
        assert not voucher.is_available_to("cust-002")

    def test_expired_voucher(self):
        voucher = Voucher.issue(code="OLD", discount_value=20.0, valid_until=NOW - timedelta(days=1), now=NOW)
        with pytest.raises(VoucherUnavailable, match="expired"):
            voucher.check_redeemable("cust-001", 100, now=NOW)

    def test_minimum_order_amount(self):
        voucher = Voucher.issue(code="MIN", discount_value=20.0, min_order_amount=150.0, now=NOW)
        with pytest.raises(VoucherUnavailable, match="Minimum"):
            voucher.check_redeemable("cust-001", 100, now=NOW)

    def test_inactive_voucher(self):
        voucher = Voucher.issue(code="OFF", discount_value=20.0, now=NOW)
        voucher.deactivate()
        with pytest.raises(VoucherUnavailable):
            voucher.check_redeemable("cust-001", 100, now=NOW)


class TestRedemption:
    def test_single_use_voucher_is_used_up(self):
        voucher = Voucher.issue(code="ONCE", discount_value=20.0, now=NOW)
        voucher.redeem("cust-001", "UBF-2026-1", 20.0, now=NOW)

        assert voucher.is_used
        assert voucher.usage_count == 1
        with pytest.raises(VoucherUnavailable, match="already been used"):
            voucher.check_redeemable("cust-002", 100, now=NOW)

    def test_multi_use_voucher_cannot_be_reused_by_the_same_customer(self):
        voucher = Voucher.issue(code="TEAM", discount_value=20.0, max_usage=5, now=NOW)
        voucher.redeem("cust-001", "UBF-2026-1", 20.0, now=NOW)

        with pytest.raises(VoucherUnavailable, match="already used"):
            voucher.check_redeemable("cust-001", 100, now=NOW)
        voucher.check_redeemable("cust-002", 100, now=NOW)
