"""Vendor order board: the live queue a stall watches.

Advisory only: dashboards poll it (see ``BOARD_REFRESH_SECONDS``) and no
command reads it to make a decision.
"""

from protean.core.projector import on
from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String
from protean.utils.globals import current_domain

from canteen.domain import canteen
from canteen.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    WalletPaymentRejected,
    WalletPaymentSubmitted,
    WalletPaymentVerified,
)
from canteen.order.order import PAYMENT_EXPIRED_REASON, Order, OrderStatus
from canteen.payment.wallet import WalletStatus

_OPEN_STATUSES = {
    OrderStatus.AWAITING_PAYMENT.value,
    OrderStatus.PENDING.value,
    OrderStatus.PREPARING.value,
    OrderStatus.READY.value,
}


@canteen.projection
class VendorOrderBoard:
    order_id = Identifier(identifier=True, required=True)
    vendor_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    status = String(required=True)
    payment_method = String()
    wallet_status = String()
    total_amount = Float()
    item_count = Integer(default=0)
    flagged_for_review = Boolean(default=False)
    placed_at = DateTime()
    updated_at = DateTime()


@canteen.projector(projector_for=VendorOrderBoard, aggregates=[Order])
class VendorOrderBoardProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        current_domain.repository_for(VendorOrderBoard).add(
            VendorOrderBoard(
                order_id=event.order_id,
                vendor_id=event.vendor_id,
                customer_id=event.customer_id,
                status=event.status,
                payment_method=event.payment_method,
                wallet_status=WalletStatus.PENDING.value if event.status == OrderStatus.AWAITING_PAYMENT.value else None,
                total_amount=event.total_amount,
                item_count=event.item_count or 0,
                flagged_for_review=event.flagged_for_review,
                placed_at=event.placed_at,
                updated_at=event.placed_at,
            )
        )

    @on(OrderStatusChanged)
    def on_status_changed(self, event):
        repo = current_domain.repository_for(VendorOrderBoard)
        entry = repo.get(event.order_id)
        entry.status = event.new_status
        if event.reason == PAYMENT_EXPIRED_REASON:
            entry.wallet_status = WalletStatus.EXPIRED.value
        entry.updated_at = event.changed_at
        repo.add(entry)

    @on(WalletPaymentSubmitted)
    def on_wallet_payment_submitted(self, event):
        self._set_wallet_status(event.order_id, WalletStatus.AWAITING_VERIFICATION, event.submitted_at)

    @on(WalletPaymentVerified)
    def on_wallet_payment_verified(self, event):
        self._set_wallet_status(event.order_id, WalletStatus.VERIFIED, event.verified_at)

    @on(WalletPaymentRejected)
    def on_wallet_payment_rejected(self, event):
        self._set_wallet_status(event.order_id, WalletStatus.FAILED, event.rejected_at)

    def _set_wallet_status(self, order_id, wallet_status, at):
        repo = current_domain.repository_for(VendorOrderBoard)
        entry = repo.get(order_id)
        entry.wallet_status = wallet_status.value
        entry.updated_at = at
        repo.add(entry)


def vendor_board(vendor_id, include_closed=False):
    """Orders on a stall's board, oldest first."""
    entries = current_domain.repository_for(VendorOrderBoard)._dao.query.filter(vendor_id=vendor_id).all().items
    if not include_closed:
        entries = [e for e in entries if e.status in _OPEN_STATUSES]
    return sorted(entries, key=lambda e: (e.placed_at is None, e.placed_at))
