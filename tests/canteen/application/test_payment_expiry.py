"""Application tests for the unpaid wallet order sweep."""

import asyncio
import threading
from datetime import timedelta

import pytest
from canteen.checkout.composer import CheckoutRequest, OrderComposer
from canteen.order.order import PAYMENT_EXPIRED_REASON, Order, OrderStatus
from canteen.payment.expiry import ExpireOrderPayment, ExpireUnpaidOrders
from canteen.payment.scheduler import ExpirySweeper
from canteen.payment.submission import SubmitWalletPayment
from canteen.payment.wallet import WalletStatus
from canteen.utils.clock import utc_now
from protean import current_domain


@pytest.fixture
def wallet_order_id(food_court, make_cart):
    cart_id = make_cart("cust-001", [(food_court["tapsilog"], 1)])
    result = OrderComposer().checkout(
        CheckoutRequest(customer_id="cust-001", cart_id=cart_id, payment_method="wallet")
    )
    return result.parent_order_id


def _sweep(as_of):
    return current_domain.process(ExpireUnpaidOrders(as_of=as_of), asynchronous=False)


class TestExpirySweep:
    def test_open_window_is_left_alone(self, wallet_order_id):
        assert _sweep(utc_now() + timedelta(minutes=5)) == 0

        order = current_domain.repository_for(Order).get(wallet_order_id)
        assert order.status == OrderStatus.AWAITING_PAYMENT.value

    def test_expired_order_is_cancelled(self, wallet_order_id):
        assert _sweep(utc_now() + timedelta(minutes=16)) == 1

        order = current_domain.repository_for(Order).get(wallet_order_id)
        assert order.status == OrderStatus.CANCELLED.value
        assert order.cancel_reason == PAYMENT_EXPIRED_REASON
        assert order.wallet_payment.status == WalletStatus.EXPIRED.value

    def test_sweeping_twice_is_harmless(self, wallet_order_id):
        later = utc_now() + timedelta(minutes=16)

        assert _sweep(later) == 1
        assert _sweep(later) == 0

    def test_paid_orders_are_not_expired(self, wallet_order_id):
        current_domain.process(
            SubmitWalletPayment(order_id=wallet_order_id, actor_id="cust-001", wallet_reference_number="1234567890"),
            asynchronous=False,
        )

        assert _sweep(utc_now() + timedelta(minutes=16)) == 0
        order = current_domain.repository_for(Order).get(wallet_order_id)
        assert order.status == OrderStatus.PENDING.value

    def test_single_order_expiry_rechecks_state(self, wallet_order_id):
        expired = current_domain.process(
            ExpireOrderPayment(order_id=wallet_order_id, as_of=utc_now()),
            asynchronous=False,
        )
        assert expired is False


class TestExpirySweeper:
    def test_tick_uses_the_injected_clock(self, canteen_bed, wallet_order_id):
        from canteen.domain import canteen

        later = utc_now() + timedelta(minutes=20)
        sweeper = ExpirySweeper(canteen, interval_seconds=60, clock=lambda: later)

        assert sweeper.tick() == 1

    def test_run_stops_when_asked(self, canteen_bed):
        from canteen.domain import canteen

        sweeper = ExpirySweeper(canteen, interval_seconds=0.01)

        async def run_briefly():
            task = asyncio.create_task(sweeper.run())
            await asyncio.sleep(0.05)
            sweeper.stop()
            await asyncio.wait_for(task, timeout=1)

        asyncio.run(run_briefly())
        assert sweeper.stop_event.is_set()

    def test_run_sweeps_off_the_event_loop_thread(self, canteen_bed, monkeypatch):
        from canteen.domain import canteen

        sweeper = ExpirySweeper(canteen, interval_seconds=0.01)
        sweep_threads = []

        def record_thread(as_of=None):
            sweep_threads.append(threading.get_ident())
            sweeper.stop()
            return 0

        monkeypatch.setattr(sweeper, "tick", record_thread)

        async def run_once():
            await asyncio.wait_for(sweeper.run(), timeout=1)
            return threading.get_ident()

        loop_thread = asyncio.run(run_once())

        assert len(sweep_threads) == 1
        assert sweep_threads[0] != loop_thread
