"""Application tests for checkout: fan-out, money conservation and payment rules."""

from decimal import Decimal

import pytest
from canteen.cart.cart import CartStatus, ShoppingCart
from canteen.checkout.composer import CheckoutRequest, OrderComposer
from canteen.loyalty.voucher import Voucher
from canteen.loyalty.vouchers import IssueVoucher
from canteen.order.order import Order, OrderStatus
from canteen.payment.wallet import WalletStatus
from canteen.pricing import to_money
from protean import current_domain


def _checkout(cart_id, customer_id="cust-001", **overrides):
    values = {"payment_method": "cash", "cash_tendered": 1000.0}
    values.update(overrides)
    return OrderComposer().checkout(CheckoutRequest(customer_id=customer_id, cart_id=cart_id, **values))


def _issue_voucher(code="LUNCH300", discount_value=300.0, **kwargs):
    return current_domain.process(
        IssueVoucher(code=code, discount_value=discount_value, **kwargs),
        asynchronous=False,
    )


class TestSingleStallCheckout:
    @pytest.fixture
    def cart_id(self, food_court, make_cart):
        return make_cart("cust-001", [(food_court["tapsilog"], 2)])

    def test_cash_checkout_creates_one_pending_order(self, cart_id, food_court):
        result = _checkout(cart_id, cash_tendered=500.0)

        assert result.ok
        assert result.order_ids == (result.parent_order_id,)
        assert result.total_due == 200.0
        assert result.change_due == 300.0

        order = current_domain.repository_for(Order).get(result.parent_order_id)
        assert order.status == OrderStatus.PENDING.value
        assert str(order.vendor_id) == food_court["wallet_stall"]
        assert order.cash_amount == 500.0
        assert order.change_due == 300.0
        assert not order.is_multi_stall_order
        order.verify_integrity()

    def test_cart_is_converted(self, cart_id):
        _checkout(cart_id)

        cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        assert cart.status == CartStatus.CONVERTED.value
        assert len(cart.lines) == 0

    def test_exact_cash_gives_no_change(self, cart_id):
        result = _checkout(cart_id, cash_tendered=200.0)

        assert result.ok
        assert result.change_due == 0.0

    def test_insufficient_cash_is_rejected_without_orders(self, cart_id):
        result = _checkout(cart_id, cash_tendered=150.0)

        assert not result.ok
        assert result.kind == "ValidationError"
        assert current_domain.repository_for(Order).for_customer("cust-001") == []
        cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        assert cart.status == CartStatus.ACTIVE.value

    def test_missing_cash_amount_is_rejected(self, cart_id):
        result = _checkout(cart_id, cash_tendered=None)
        assert result.kind == "ValidationError"

    def test_unverified_email_is_rejected(self, cart_id):
        result = _checkout(cart_id, email_verified=False)

        assert not result.ok
        assert "verify your email" in result.detail

    def test_someone_elses_cart(self, cart_id):
        result = _checkout(cart_id, customer_id="cust-002")

        assert not result.ok
        assert result.kind == "OwnershipError"

    def test_empty_cart(self, make_cart):
        cart_id = make_cart("cust-001", [])
        result = _checkout(cart_id)

        assert result.kind == "ValidationError"
        assert result.detail == "Your cart is empty"

    def test_wallet_checkout_waits_for_payment(self, cart_id):
        result = _checkout(cart_id, payment_method="wallet", cash_tendered=None)

        assert result.ok
        assert result.change_due is None
        order = current_domain.repository_for(Order).get(result.parent_order_id)
        assert order.status == OrderStatus.AWAITING_PAYMENT.value
        assert order.wallet_payment.status == WalletStatus.PENDING.value
        assert order.wallet_payment.vendor_wallet_handle == "09171234567"
        assert order.wallet_payment.amount_expected == 200.0


class TestMultiStallCheckout:
    @pytest.fixture
    def cart_id(self, food_court, make_cart):
        return make_cart("cust-001", [(food_court["tapsilog"], 4), (food_court["gulaman"], 4)])

    def test_one_order_per_stall(self, cart_id, food_court):
        result = _checkout(cart_id)

        assert result.ok
        parent = result.parent_order_id
        assert result.order_ids == (f"{parent}-1", f"{parent}-2")

        orders = current_domain.repository_for(Order).for_parent(parent)
        assert {str(o.vendor_id) for o in orders} == {food_court["wallet_stall"], food_court["cash_stall"]}
        assert all(o.is_multi_stall_order for o in orders)

    def test_voucher_discount_is_split_in_proportion(self, cart_id):
        voucher_id = _issue_voucher()
        result = _checkout(cart_id, voucher_id=voucher_id, cash_tendered=400.0)

        assert result.ok
        assert result.voucher_committed is True
        assert result.total_due == 400.0

        repo = current_domain.repository_for(Order)
        first, second = (repo.get(order_id) for order_id in result.order_ids)
        assert (first.subtotal, first.voucher_discount, first.total_amount) == (400.0, 171.43, 228.57)
        assert (second.subtotal, second.voucher_discount, second.total_amount) == (300.0, 128.57, 171.43)

        discounts = to_money(first.voucher_discount) + to_money(second.voucher_discount)
        assert discounts == Decimal("300.00")

        voucher = current_domain.repository_for(Voucher).get(voucher_id)
        assert voucher.usage_count == 1
        assert voucher.is_used

    def test_cash_and_change_are_recorded_on_the_primary_order(self, cart_id):
        result = _checkout(cart_id, cash_tendered=1000.0)

        repo = current_domain.repository_for(Order)
        first, second = (repo.get(order_id) for order_id in result.order_ids)
        assert (first.cash_amount, first.change_due) == (1000.0, 300.0)
        assert (second.cash_amount, second.change_due) == (None, None)

    def test_wallet_falls_back_to_cash_for_stalls_without_a_wallet(self, cart_id):
        result = _checkout(cart_id, payment_method="wallet", cash_tendered=None)

        repo = current_domain.repository_for(Order)
        wallet_order, cash_order = (repo.get(order_id) for order_id in result.order_ids)
        assert wallet_order.payment_method == "wallet"
        assert wallet_order.status == OrderStatus.AWAITING_PAYMENT.value
        assert cash_order.payment_method == "cash"
        assert cash_order.status == OrderStatus.PENDING.value

    def test_unavailable_voucher_rejects_the_checkout(self, cart_id):
        voucher_id = _issue_voucher(code="VIP", target_customer_ids='["cust-999"]')
        result = _checkout(cart_id, voucher_id=voucher_id)

        assert not result.ok
        assert result.kind == "ValidationError"
        assert current_domain.repository_for(Order).for_customer("cust-001") == []


class TestNearlyFullVoucherSplit:
    @pytest.fixture
    def cart_id(self, make_vendor, make_menu_item, make_cart):
        items = []
        for index, price in enumerate([240.0, 100.0, 180.0, 105.0, 10.0]):
            owner_id = f"owner-{index}"
            vendor_id = make_vendor(owner_id=owner_id, name=f"Stall {index}")
            items.append((make_menu_item(vendor_id, owner_id=owner_id, name=f"Dish {index}", price=price), 1))
        return make_cart("cust-001", items)

    def test_every_stall_order_is_placed(self, cart_id):
        voucher_id = _issue_voucher(code="ALMOSTFREE", discount_value=634.96)
        result = _checkout(cart_id, voucher_id=voucher_id, cash_tendered=1.0)

        assert result.ok
        assert len(result.order_ids) == 5
        assert result.total_due == 0.04

        repo = current_domain.repository_for(Order)
        orders = [repo.get(order_id) for order_id in result.order_ids]
        assert [o.voucher_discount for o in orders] == [239.98, 99.99, 179.99, 105.0, 10.0]
        for order in orders:
            assert 0 <= order.voucher_discount <= order.subtotal
            assert order.status == OrderStatus.PENDING.value


class TestWalletOnlyAtCashStalls:
    def test_no_stall_accepts_wallet(self, food_court, make_cart):
        cart_id = make_cart("cust-001", [(food_court["gulaman"], 1)])
        result = _checkout(cart_id, payment_method="wallet", cash_tendered=None)

        assert not result.ok
        assert "wallet" in result.detail


class TestSuspiciousOrders:
    def test_large_order_is_flagged_but_placed(self, make_vendor, make_menu_item, make_cart):
        vendor_id = make_vendor(owner_id="owner-c", name="Lechon Corner")
        lechon = make_menu_item(vendor_id, owner_id="owner-c", name="Lechon tray", price=900.0, stock=10)
        cart_id = make_cart("cust-001", [(lechon, 3)])

        result = _checkout(cart_id, cash_tendered=3000.0)

        assert result.ok
        assert result.flagged_order_ids == result.order_ids
        order = current_domain.repository_for(Order).get(result.parent_order_id)
        assert order.flagged_for_review
        assert "Unusually high order amount" in order.review_reason_list()
        assert [o.order_id for o in current_domain.repository_for(Order).flagged_for_review()] == [order.order_id]
