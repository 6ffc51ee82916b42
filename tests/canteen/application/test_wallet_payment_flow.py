"""Application tests for wallet payment submission and vendor verification."""

from datetime import timedelta

import pytest
from canteen.checkout.composer import CheckoutRequest, OrderComposer
from canteen.errors import InvalidTransition, OwnershipError
from canteen.loyalty.account import LoyaltyAccount
from canteen.order.order import Order, OrderStatus
from canteen.order.preparation import AcceptOrder
from canteen.payment.submission import SubmitWalletPayment
from canteen.payment.verification import VerifyWalletPayment
from canteen.payment.wallet import WalletStatus, payment_instructions
from canteen.utils.clock import utc_now
from protean import current_domain

REFERENCE = "1012345678901"


@pytest.fixture
def order_id(food_court, make_cart):
    cart_id = make_cart("cust-001", [(food_court["tapsilog"], 2)])
    result = OrderComposer().checkout(
        CheckoutRequest(customer_id="cust-001", cart_id=cart_id, payment_method="wallet")
    )
    return result.parent_order_id


def _submit(order_id, actor_id="cust-001", reference=REFERENCE, **kwargs):
    return current_domain.process(
        SubmitWalletPayment(order_id=order_id, actor_id=actor_id, wallet_reference_number=reference, **kwargs),
        asynchronous=False,
    )


def _verify(order_id, accepted=True, actor_id="owner-a"):
    current_domain.process(
        VerifyWalletPayment(order_id=order_id, actor_id=actor_id, accepted=accepted),
        asynchronous=False,
    )


class TestSubmission:
    def test_submission_moves_order_to_pending(self, order_id):
        result = _submit(order_id, sender_number="+63 917 765 4321")

        assert result.success
        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.wallet_payment.status == WalletStatus.AWAITING_VERIFICATION.value
        assert order.wallet_payment.wallet_reference_number == REFERENCE
        assert order.wallet_payment.sender_number == "09177654321"

    def test_resubmission_is_harmless(self, order_id):
        _submit(order_id)
        result = _submit(order_id, reference="9999999999")

        assert result.success
        assert result.message == "Payment already submitted and awaiting verification"
        order = current_domain.repository_for(Order).get(order_id)
        assert order.wallet_payment.wallet_reference_number == REFERENCE

    def test_invalid_reference_number(self, order_id):
        result = _submit(order_id, reference="12AB")

        assert not result.success
        assert "10 to 20 digits" in result.message

    def test_submission_after_window_is_refused(self, order_id):
        result = _submit(order_id, as_of=utc_now() + timedelta(minutes=16))

        assert not result.success
        assert result.message == "Payment window expired"

    def test_unknown_order(self):
        result = _submit("UBF-2026-000000XX")

        assert not result.success
        assert result.message == "Order not found"

    def test_only_the_customer_can_submit(self, order_id):
        with pytest.raises(OwnershipError):
            _submit(order_id, actor_id="cust-002")

    def test_submission_earns_loyalty_points(self, order_id):
        _submit(order_id)

        account = current_domain.repository_for(LoyaltyAccount).get("cust-001")
        # 200 spent, doubled for the first order at this stall
        assert account.points == 40


class TestVerification:
    def test_verified_payment_lets_the_vendor_accept(self, order_id):
        _submit(order_id)
        _verify(order_id, accepted=True)
        current_domain.process(AcceptOrder(order_id=order_id, actor_id="owner-a"), asynchronous=False)

        order = current_domain.repository_for(Order).get(order_id)
        assert order.wallet_payment.status == WalletStatus.VERIFIED.value
        assert order.wallet_payment.verified_by == "owner-a"
        assert order.status == OrderStatus.PREPARING.value

    def test_rejected_payment_leaves_order_pending(self, order_id):
        _submit(order_id)
        _verify(order_id, accepted=False)

        order = current_domain.repository_for(Order).get(order_id)
        assert order.status == OrderStatus.PENDING.value
        assert order.wallet_payment.status == WalletStatus.FAILED.value

        with pytest.raises(InvalidTransition):
            current_domain.process(AcceptOrder(order_id=order_id, actor_id="owner-a"), asynchronous=False)

    def test_cannot_verify_before_submission(self, order_id):
        with pytest.raises(InvalidTransition):
            _verify(order_id)

    def test_only_the_stall_owner_verifies(self, order_id):
        _submit(order_id)
        with pytest.raises(OwnershipError):
            _verify(order_id, actor_id="owner-b")


def test_payment_instructions(order_id):
    order = current_domain.repository_for(Order).get(order_id)
    instructions = payment_instructions(order)

    assert instructions["reference_code"] == order_id
    assert instructions["amount"] == 200.0
    assert any("09171234567" in step for step in instructions["steps"])
