"""Order aggregate: one vendor's share of a checkout.

Orders are plain CQRS aggregates whose document is the ledger of record.
Each one carries its own status, an optional wallet payment snapshot and
an integrity seal over its immutable fields.

State Machine:
    awaiting_payment → pending → preparing → ready → completed
    awaiting_payment → cancelled   (payment window expired)
    pending → cancelled            (vendor decline, customer/admin within window)
    preparing → cancelled          (vendor)

Cash orders start at ``pending``; wallet orders at ``awaiting_payment``.
"""

import json
from datetime import timedelta
from enum import Enum

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import (
    Boolean,
    DateTime,
    Float,
    HasMany,
    Identifier,
    Integer,
    String,
    Text,
    ValueObject,
)
from protean.utils.reflection import declared_fields

from canteen.domain import canteen
from canteen.errors import (
    CancellationNotAllowed,
    InvalidTransition,
    InvalidWalletDetails,
    OrderIntegrityError,
)
from canteen.order.events import (
    OrderPlaced,
    OrderStatusChanged,
    WalletPaymentRejected,
    WalletPaymentSubmitted,
    WalletPaymentVerified,
)
from canteen.order.integrity import OrderIntegrityCodec, SecureOrderEnvelope, generate_order_token
from canteen.payment.wallet import WalletPayment, WalletStatus, clean_reference_number, normalize_wallet_number
from canteen.pricing import line_subtotal, to_money
from canteen.settings import get_secret_key
from canteen.utils.clock import as_utc, utc_now


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    AWAITING_PAYMENT = "awaiting_payment"
    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(Enum):
    CASH = "cash"
    WALLET = "wallet"


class Actor(Enum):
    CUSTOMER = "customer"
    VENDOR = "vendor"
    ADMIN = "admin"
    SYSTEM = "system"


_VALID_TRANSITIONS = {
    OrderStatus.AWAITING_PAYMENT: {OrderStatus.PENDING, OrderStatus.CANCELLED},
    OrderStatus.PENDING: {OrderStatus.PREPARING, OrderStatus.CANCELLED},
    OrderStatus.PREPARING: {OrderStatus.READY, OrderStatus.CANCELLED},
    OrderStatus.READY: {OrderStatus.COMPLETED},
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.CANCELLED: set(),  # Terminal
}

# Which states each actor may cancel from
_CANCELLABLE_BY = {
    Actor.CUSTOMER: {OrderStatus.PENDING},
    Actor.ADMIN: {OrderStatus.PENDING},
    Actor.VENDOR: {OrderStatus.PENDING, OrderStatus.PREPARING},
    Actor.SYSTEM: {OrderStatus.AWAITING_PAYMENT, OrderStatus.PENDING},
}

_CANCEL_REFUSALS = {
    OrderStatus.AWAITING_PAYMENT: "Unpaid orders are cancelled automatically when the payment window closes",
    OrderStatus.PREPARING: "Order is already being prepared and can only be cancelled by the stall",
}

PAYMENT_EXPIRED_REASON = "payment window expired"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
@canteen.entity(part_of="Order")
class OrderLine:
    """A dish in an order with the price captured at checkout."""

    menu_item_id = Identifier(required=True)
    name = String(required=True, max_length=120)
    quantity = Integer(required=True, min_value=1)
    unit_price = Float(required=True, min_value=0.0)
    add_ons = Text()  # JSON: list of {"name", "price"}
    note = String(max_length=255)

    def add_on_list(self):
        return json.loads(self.add_ons) if self.add_ons else []

    def line_total(self):
        return line_subtotal(self.unit_price, self.quantity, self.add_on_list())


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@canteen.aggregate
class Order:
    order_id = Identifier(identifier=True)
    parent_order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    lines = HasMany(OrderLine)
    subtotal = Float(required=True, min_value=0.0)
    voucher_discount = Float(default=0.0, min_value=0.0)
    total_amount = Float(required=True, min_value=0.0)
    payment_method = String(choices=PaymentMethod, required=True)
    wallet_payment = ValueObject(WalletPayment)
    cash_amount = Float()
    change_due = Float()
    voucher_id = Identifier()
    special_instructions = String(max_length=500)
    scheduled_time = String(max_length=32)  # ISO datetime requested by the customer
    group_order_emails = Text()  # JSON list
    is_multi_stall_order = Boolean(default=False)
    token = String(max_length=64)
    checksum = String(max_length=64)
    flagged_for_review = Boolean(default=False)
    review_reasons = Text()  # JSON list
    cancel_reason = String(max_length=500)
    cancelled_by = String(choices=Actor)
    created_at = DateTime()
    updated_at = DateTime()
    accepted_at = DateTime()
    ready_at = DateTime()
    completed_at = DateTime()

    @invariant.post
    def totals_must_balance(self):
        subtotal = to_money(self.subtotal)
        discount = to_money(self.voucher_discount)
        if discount > subtotal:
            raise ValidationError({"voucher_discount": ["Voucher discount cannot exceed the subtotal"]})
        if to_money(self.total_amount) != subtotal - discount:
            raise ValidationError({"total_amount": ["Total must equal subtotal less voucher discount"]})

    @invariant.post
    def subtotal_must_match_lines(self):
        if self.lines:
            computed = sum((line.line_total() for line in self.lines), to_money(0))
            if computed != to_money(self.subtotal):
                raise ValidationError({"subtotal": ["Subtotal does not match the order lines"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def place(
        cls,
        order_id,
        parent_order_id,
        customer_id,
        vendor_id,
        lines,
        subtotal,
        total_amount,
        payment_method,
        voucher_discount=0.0,
        wallet_handle=None,
        payment_window_minutes=15,
        voucher_id=None,
        cash_amount=None,
        change_due=None,
        is_multi_stall_order=False,
        special_instructions=None,
        scheduled_time=None,
        group_order_emails=None,
        review_reasons=None,
        now=None,
    ):
        """Create and seal a new order.

        Args:
            lines: List of dicts with menu_item_id, name, quantity,
                   unit_price and optionally add_ons (list of name/price
                   dicts) and note.
            payment_method: ``cash`` orders start ``pending``; ``wallet``
                   orders start ``awaiting_payment`` with a payment window.
            review_reasons: Suspicion reasons; a non-empty list flags the
                   order for review.
        """
        now = now or utc_now()
        method = PaymentMethod(payment_method)

        status = OrderStatus.PENDING
        wallet_payment = None
        if method == PaymentMethod.WALLET:
            status = OrderStatus.AWAITING_PAYMENT
            wallet_payment = WalletPayment(
                status=WalletStatus.PENDING.value,
                reference_code=order_id,
                amount_expected=total_amount,
                vendor_wallet_handle=wallet_handle,
                created_at=now,
                expires_at=now + timedelta(minutes=payment_window_minutes),
            )

        reasons = list(review_reasons or [])
        order = cls(
            order_id=order_id,
            parent_order_id=parent_order_id,
            customer_id=customer_id,
            vendor_id=vendor_id,
            status=status.value,
            lines=[
                OrderLine(
                    menu_item_id=line["menu_item_id"],
                    name=line["name"],
                    quantity=line["quantity"],
                    unit_price=line["unit_price"],
                    add_ons=json.dumps(line.get("add_ons") or []),
                    note=line.get("note"),
                )
                for line in lines
            ],
            subtotal=subtotal,
            voucher_discount=voucher_discount,
            total_amount=total_amount,
            payment_method=method.value,
            wallet_payment=wallet_payment,
            cash_amount=cash_amount,
            change_due=change_due,
            voucher_id=voucher_id,
            special_instructions=special_instructions,
            scheduled_time=scheduled_time,
            group_order_emails=json.dumps(list(group_order_emails or [])),
            is_multi_stall_order=is_multi_stall_order,
            token=generate_order_token(now),
            flagged_for_review=bool(reasons),
            review_reasons=json.dumps(reasons),
            created_at=now,
            updated_at=now,
        )
        order.seal()

        order.raise_(
            OrderPlaced(
                order_id=order_id,
                parent_order_id=parent_order_id,
                customer_id=str(customer_id),
                vendor_id=str(vendor_id),
                status=status.value,
                payment_method=method.value,
                total_amount=total_amount,
                item_count=sum(line["quantity"] for line in lines),
                is_multi_stall_order=is_multi_stall_order,
                flagged_for_review=bool(reasons),
                review_reasons=json.dumps(reasons),
                placed_at=now,
            )
        )
        return order

    # -------------------------------------------------------------------
    # Integrity
    # -------------------------------------------------------------------
    def envelope(self):
        return SecureOrderEnvelope.from_order(self)

    def seal(self):
        self.checksum = OrderIntegrityCodec(get_secret_key()).seal(self.envelope())

    def verify_integrity(self):
        """Refuse to go on with an order whose seal does not match its contents."""
        if not OrderIntegrityCodec(get_secret_key()).verify(self.envelope()):
            raise OrderIntegrityError(
                f"Order {self.order_id} failed integrity verification",
                order_id=str(self.order_id),
            )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_wallet_order(self):
        return self.payment_method == PaymentMethod.WALLET.value

    @property
    def is_terminal(self):
        return not _VALID_TRANSITIONS[OrderStatus(self.status)]

    def review_reason_list(self):
        return json.loads(self.review_reasons) if self.review_reasons else []

    def group_order_email_list(self):
        return json.loads(self.group_order_emails) if self.group_order_emails else []

    def payment_window_open(self, now=None):
        if self.wallet_payment is None:
            return False
        return (now or utc_now()) < as_utc(self.wallet_payment.expires_at)

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidTransition(
                f"Cannot transition from {current.value} to {target_status.value}",
                order_id=str(self.order_id),
            )

    def _transition(self, target_status, changed_by, reason=None, now=None):
        self._assert_can_transition(target_status)

        previous = self.status
        now = now or utc_now()
        self.status = target_status.value
        self.updated_at = now
        self.seal()

        self.raise_(
            OrderStatusChanged(
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                vendor_id=str(self.vendor_id),
                previous_status=previous,
                new_status=target_status.value,
                reason=reason,
                changed_by=changed_by,
                changed_at=now,
            )
        )

    def _replace_wallet(self, **changes):
        values = {name: getattr(self.wallet_payment, name) for name in declared_fields(WalletPayment)}
        values.update(changes)
        self.wallet_payment = WalletPayment(**values)

    # -------------------------------------------------------------------
    # Vendor workflow
    # -------------------------------------------------------------------
    def accept(self, now=None):
        """Vendor starts preparing the order."""
        self.verify_integrity()
        if self.is_wallet_order and self.wallet_payment.status != WalletStatus.VERIFIED.value:
            self._assert_can_transition(OrderStatus.PREPARING)
            raise InvalidTransition(
                "Wallet payment must be verified before the order is accepted",
                order_id=str(self.order_id),
            )

        now = now or utc_now()
        self._transition(OrderStatus.PREPARING, changed_by=Actor.VENDOR.value, now=now)
        self.accepted_at = now

    def mark_ready(self, now=None):
        self.verify_integrity()
        now = now or utc_now()
        self._transition(OrderStatus.READY, changed_by=Actor.VENDOR.value, now=now)
        self.ready_at = now

    def complete(self, now=None):
        """Pickup confirmed. Stock is deducted by the caller in the same unit of work."""
        self.verify_integrity()
        now = now or utc_now()
        self._transition(OrderStatus.COMPLETED, changed_by=Actor.VENDOR.value, now=now)
        self.completed_at = now

    def cancel(self, actor, reason=None, now=None, window_minutes=10):
        """Cancel the order on behalf of ``actor`` if the cancellation policy allows it.

        Customers may cancel a pending order within ``window_minutes`` of
        placing it. Admins may cancel pending orders at any time. Vendors
        may decline pending orders and cancel orders they are preparing.
        The system cancels unpaid and pending orders (expiry, failed
        checkout compensation).
        """
        self.verify_integrity()
        actor = Actor(actor)
        current = OrderStatus(self.status)
        now = now or utc_now()

        self._assert_can_transition(OrderStatus.CANCELLED)
        if current not in _CANCELLABLE_BY[actor]:
            raise CancellationNotAllowed(
                _CANCEL_REFUSALS.get(current, f"Order cannot be cancelled while {current.value}"),
                order_id=str(self.order_id),
            )
        if actor == Actor.CUSTOMER and now - as_utc(self.created_at) > timedelta(minutes=window_minutes):
            raise CancellationNotAllowed(
                f"Orders can only be cancelled within {window_minutes} minutes of placing them",
                order_id=str(self.order_id),
            )

        self.cancel_reason = reason
        self.cancelled_by = actor.value
        self._transition(OrderStatus.CANCELLED, changed_by=actor.value, reason=reason, now=now)

    # -------------------------------------------------------------------
    # Wallet payment workflow
    # -------------------------------------------------------------------
    def submit_wallet_payment(self, reference_number, sender_number=None, now=None):
        """Record the customer's transfer confirmation.

        Returns False when the payment was already submitted, so repeated
        submissions are harmless.
        """
        self.verify_integrity()
        if not self.is_wallet_order or self.wallet_payment is None:
            raise InvalidWalletDetails("Order is not paid by wallet", order_id=str(self.order_id))

        if self.wallet_payment.status in (WalletStatus.AWAITING_VERIFICATION.value, WalletStatus.VERIFIED.value):
            return False

        self._assert_can_transition(OrderStatus.PENDING)
        now = now or utc_now()
        if not self.payment_window_open(now):
            raise InvalidWalletDetails("Payment window expired", order_id=str(self.order_id))

        reference_number = clean_reference_number(reference_number)
        self._replace_wallet(
            status=WalletStatus.AWAITING_VERIFICATION.value,
            submitted_at=now,
            wallet_reference_number=reference_number,
            sender_number=normalize_wallet_number(sender_number) if sender_number else None,
        )
        self._transition(OrderStatus.PENDING, changed_by=Actor.CUSTOMER.value, now=now)

        self.raise_(
            WalletPaymentSubmitted(
                order_id=str(self.order_id),
                customer_id=str(self.customer_id),
                vendor_id=str(self.vendor_id),
                amount=self.total_amount,
                wallet_reference_number=reference_number,
                submitted_at=now,
            )
        )
        return True

    def verify_wallet_payment(self, accepted, verified_by, now=None):
        """Vendor confirms (or rejects) the transfer after checking their wallet.

        A rejected payment leaves the order ``pending`` for manual resolution.
        """
        self.verify_integrity()
        if self.wallet_payment is None or self.wallet_payment.status != WalletStatus.AWAITING_VERIFICATION.value:
            raise InvalidTransition("Payment is not awaiting verification", order_id=str(self.order_id))

        now = now or utc_now()
        if accepted:
            self._replace_wallet(status=WalletStatus.VERIFIED.value, verified_at=now, verified_by=verified_by)
            self.raise_(
                WalletPaymentVerified(
                    order_id=str(self.order_id),
                    vendor_id=str(self.vendor_id),
                    verified_by=str(verified_by),
                    verified_at=now,
                )
            )
        else:
            self._replace_wallet(status=WalletStatus.FAILED.value, verified_at=now, verified_by=verified_by)
            self.raise_(
                WalletPaymentRejected(
                    order_id=str(self.order_id),
                    customer_id=str(self.customer_id),
                    vendor_id=str(self.vendor_id),
                    rejected_by=str(verified_by),
                    rejected_at=now,
                )
            )
        self.updated_at = now

    def expire_payment(self, now=None):
        """Cancel an unpaid wallet order whose payment window has closed."""
        self.verify_integrity()
        now = now or utc_now()
        if OrderStatus(self.status) != OrderStatus.AWAITING_PAYMENT or self.wallet_payment is None:
            raise InvalidTransition("Only unpaid wallet orders can expire", order_id=str(self.order_id))
        if self.payment_window_open(now):
            raise InvalidTransition("Payment window is still open", order_id=str(self.order_id))

        self._replace_wallet(status=WalletStatus.EXPIRED.value)
        self.cancel_reason = PAYMENT_EXPIRED_REASON
        self.cancelled_by = Actor.SYSTEM.value
        self._transition(
            OrderStatus.CANCELLED,
            changed_by=Actor.SYSTEM.value,
            reason=PAYMENT_EXPIRED_REASON,
            now=now,
        )
