"""Application tests for cancelling orders through the CancelOrder command."""

from datetime import timedelta

import pytest
from canteen.checkout.composer import CheckoutRequest, OrderComposer
from canteen.errors import CancellationNotAllowed, OwnershipError
from canteen.order.cancellation import CancelOrder
from canteen.order.order import Order, OrderStatus
from canteen.order.preparation import AcceptOrder
from canteen.utils.clock import utc_now
from protean import current_domain


@pytest.fixture
def order_id(food_court, make_cart):
    cart_id = make_cart("cust-001", [(food_court["tapsilog"], 1)])
    result = OrderComposer().checkout(
        CheckoutRequest(customer_id="cust-001", cart_id=cart_id, payment_method="cash", cash_tendered=100.0)
    )
    return result.parent_order_id


def _cancel(order_id, actor, actor_id=None, **kwargs):
    current_domain.process(
        CancelOrder(order_id=order_id, actor=actor, actor_id=actor_id, **kwargs),
        asynchronous=False,
    )
    return current_domain.repository_for(Order).get(order_id)


class TestCustomerCancellation:
    def test_within_window(self, order_id):
        order = _cancel(order_id, "customer", "cust-001", reason="Wrong stall")

        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancel_reason == "Wrong stall"

    def test_after_window(self, order_id):
        with pytest.raises(CancellationNotAllowed):
            _cancel(order_id, "customer", "cust-001", as_of=utc_now() + timedelta(minutes=11))

    def test_another_customer(self, order_id):
        with pytest.raises(OwnershipError):
            _cancel(order_id, "customer", "cust-002")


class TestVendorCancellation:
    def test_vendor_declines_while_preparing(self, order_id):
        current_domain.process(AcceptOrder(order_id=order_id, actor_id="owner-a"), asynchronous=False)
        order = _cancel(order_id, "vendor", "owner-a", reason="Out of eggs")

        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancelled_by == "vendor"

    def test_other_stall_cannot_cancel(self, order_id):
        with pytest.raises(OwnershipError):
            _cancel(order_id, "vendor", "owner-b")


def test_admin_cancels_outside_window(order_id):
    order = _cancel(order_id, "admin", "admin-001", as_of=utc_now() + timedelta(hours=3))
    assert order.status == OrderStatus.CANCELLED.value
