"""Application tests for checkout compensation when an order cannot be stored."""

import pytest
from canteen.cart.cart import CartStatus, ShoppingCart
from canteen.checkout.composer import CHECKOUT_FAILED_REASON, CheckoutRequest, OrderComposer
from canteen.fraud.velocity import VelocityRecord, recent_key
from canteen.loyalty.account import LoyaltyAccount
from canteen.loyalty.voucher import Voucher
from canteen.loyalty.vouchers import IssueVoucher
from canteen.order.order import Order, OrderStatus
from protean import current_domain
from protean.exceptions import ObjectNotFoundError


@pytest.fixture
def failing_second_order(monkeypatch):
    """Make the second order of a checkout fail to persist."""
    original = OrderComposer._persist
    attempts = []

    def flaky(self, draft, plan, request, now):
        attempts.append(draft.order_id)
        if len(attempts) == 2:
            raise RuntimeError("database unavailable")
        return original(self, draft, plan, request, now)

    monkeypatch.setattr(OrderComposer, "_persist", flaky)
    return attempts


@pytest.fixture
def cart_id(food_court, make_cart):
    return make_cart("cust-001", [(food_court["tapsilog"], 2), (food_court["gulaman"], 1)])


def _checkout(cart_id, **overrides):
    values = {"payment_method": "cash", "cash_tendered": 500.0}
    values.update(overrides)
    return OrderComposer().checkout(CheckoutRequest(customer_id="cust-001", cart_id=cart_id, **values))


class TestCompensation:
    def test_checkout_reports_persistence_failure(self, cart_id, failing_second_order):
        result = _checkout(cart_id)

        assert not result.ok
        assert result.kind == "PersistenceFailure"
        assert len(failing_second_order) == 2

    def test_already_created_order_is_cancelled(self, cart_id, failing_second_order):
        _checkout(cart_id)

        first_order_id = failing_second_order[0]
        order = current_domain.repository_for(Order).get(first_order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancel_reason == CHECKOUT_FAILED_REASON
        assert order.cancelled_by == "system"

        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(Order).get(failing_second_order[1])

    def test_nothing_after_persistence_runs(self, cart_id, failing_second_order):
        voucher_id = current_domain.process(IssueVoucher(code="SAVE20", discount_value=20.0), asynchronous=False)

        _checkout(cart_id, voucher_id=voucher_id)

        voucher = current_domain.repository_for(Voucher).get(voucher_id)
        assert voucher.usage_count == 0

        cart = current_domain.repository_for(ShoppingCart).get(cart_id)
        assert cart.status == CartStatus.ACTIVE.value

        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(VelocityRecord).get(recent_key("cust-001"))
        with pytest.raises(ObjectNotFoundError):
            current_domain.repository_for(LoyaltyAccount).get("cust-001")

    def test_wallet_orders_are_compensated_too(self, cart_id, failing_second_order):
        _checkout(cart_id, payment_method="wallet", cash_tendered=None)

        order = current_domain.repository_for(Order).get(failing_second_order[0])
        assert order.payment_method == "wallet"
        assert order.status == OrderStatus.CANCELLED.value
