"""Checkout: turns a multi-stall cart into one order per stall.

``OrderComposer.checkout`` runs the whole flow:

1. validate the cart and group its lines by stall
2. reserve the voucher and split its discount across the stalls in
   proportion to their subtotals (the last stall absorbs the rounding)
3. settle the payment method (cash must cover the combined total; wallet
   needs at least one stall that accepts it, the rest fall back to cash)
4. apply the velocity gate and tag suspicious orders for review
5. create every order in its own unit of work, cancelling the ones already
   created if a later one fails
6. only then commit the voucher, record velocity activity, award loyalty
   points for cash orders and empty the cart

Expected failures come back as a ``CheckoutResult`` with ``ok=False``.
"""

import json
from dataclasses import dataclass, field, replace
from decimal import Decimal

import structlog
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.utils.globals import current_domain

from canteen.cart.cart import CartStatus, ShoppingCart
from canteen.cart.management import CheckOutCart
from canteen.errors import (
    CanteenError,
    EmptyCart,
    InsufficientPayment,
    OwnershipError,
    PaymentMethodUnavailable,
    VoucherUnavailable,
)
from canteen.fraud.guard import FraudGuard, VelocityLimits
from canteen.loyalty.awards import award_points, is_first_order_at_vendor
from canteen.loyalty.vouchers import CommitVoucher, VoucherReservation, reserve_voucher
from canteen.menu.vendor import Vendor
from canteen.order.cancellation import CancelOrder
from canteen.order.creation import CreateOrder
from canteen.order.integrity import generate_order_id
from canteen.order.order import Actor, PaymentMethod
from canteen.pricing import allocate_discount, line_subtotal, to_money
from canteen.settings import get_settings
from canteen.utils.clock import utc_now

logger = structlog.get_logger(__name__)

CHECKOUT_FAILED_REASON = "checkout failed"


@dataclass(frozen=True)
class CheckoutRequest:
    customer_id: str
    cart_id: str
    payment_method: str
    voucher_id: str | None = None
    cash_tendered: float | None = None
    email_verified: bool = True
    special_instructions: str | None = None
    scheduled_time: str | None = None
    group_order_emails: tuple[str, ...] = ()


@dataclass(frozen=True)
class OrderDraft:
    """One stall's share of a checkout, fully priced but not yet stored."""

    order_id: str
    customer_id: str
    vendor_id: str
    lines: tuple
    subtotal: Decimal
    voucher_discount: Decimal
    total_amount: Decimal
    payment_method: str
    wallet_handle: str | None = None
    cash_amount: Decimal | None = None
    change_due: Decimal | None = None
    review_reasons: tuple[str, ...] = ()


@dataclass(frozen=True)
class CheckoutPlan:
    parent_order_id: str
    drafts: tuple[OrderDraft, ...]
    total_due: Decimal
    reservation: VoucherReservation | None = None
    change_due: Decimal | None = None

    @property
    def is_multi_stall(self):
        return len(self.drafts) > 1


@dataclass(frozen=True)
class CheckoutResult:
    ok: bool
    parent_order_id: str | None = None
    order_ids: tuple[str, ...] = ()
    total_due: float = 0.0
    change_due: float | None = None
    flagged_order_ids: tuple[str, ...] = field(default_factory=tuple)
    voucher_committed: bool | None = None
    kind: str | None = None
    detail: str | None = None

    @classmethod
    def failure(cls, kind, detail):
        return cls(ok=False, kind=kind, detail=detail)


def group_lines_by_vendor(lines):
    """Group cart line snapshots by stall, keeping the order stalls first appear in."""
    groups = {}
    for line in lines:
        groups.setdefault(line["vendor_id"], []).append(line)
    return groups


class OrderComposer:
    def __init__(self, guard: FraudGuard | None = None, settings=None, clock=utc_now):
        self.settings = settings or get_settings()
        self.clock = clock
        self.guard = guard or FraudGuard(VelocityLimits.from_settings(self.settings), clock=clock)

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    def checkout(self, request: CheckoutRequest) -> CheckoutResult:
        now = self.clock()
        try:
            plan = self.compose(request, now)
        except CanteenError as exc:
            logger.info("Checkout rejected", customer_id=request.customer_id, kind=exc.kind, reason=exc.message)
            return CheckoutResult.failure(exc.kind, exc.public_message)

        decision = self.guard.check_velocity(request.customer_id, plan.total_due, now=now)
        if not decision.allowed:
            logger.warning("Checkout blocked by velocity limits", customer_id=request.customer_id, reason=decision.reason)
            return CheckoutResult.failure("VelocityLimitExceeded", decision.reason)

        created = self._persist_all(plan, request, now)
        if created is None:
            return CheckoutResult.failure("PersistenceFailure", "Your order could not be placed. Please try again.")

        voucher_committed = self._finalize(plan, request, now)

        logger.info(
            "Checkout completed",
            customer_id=request.customer_id,
            parent_order_id=plan.parent_order_id,
            orders=len(created),
            total_due=float(plan.total_due),
        )
        return CheckoutResult(
            ok=True,
            parent_order_id=plan.parent_order_id,
            order_ids=tuple(created),
            total_due=float(plan.total_due),
            change_due=float(plan.change_due) if plan.change_due is not None else None,
            flagged_order_ids=tuple(d.order_id for d in plan.drafts if d.review_reasons),
            voucher_committed=voucher_committed,
        )

    # -------------------------------------------------------------------
    # Composition (no writes)
    # -------------------------------------------------------------------
    def compose(self, request: CheckoutRequest, now) -> CheckoutPlan:
        if not request.email_verified:
            raise CanteenError("Please verify your email address before placing an order")

        try:
            cart = current_domain.repository_for(ShoppingCart).get(request.cart_id)
        except ObjectNotFoundError as exc:
            raise EmptyCart("Your cart is empty") from exc
        if str(cart.customer_id) != str(request.customer_id):
            raise OwnershipError("Not your cart")
        if cart.status != CartStatus.ACTIVE.value or not cart.lines:
            raise EmptyCart("Your cart is empty")

        groups = group_lines_by_vendor(cart.snapshot())
        vendors = {vendor_id: self._vendor(vendor_id) for vendor_id in groups}
        subtotals = [
            sum((line_subtotal(l["unit_price"], l["quantity"], l["add_ons"]) for l in lines), Decimal("0.00"))
            for lines in groups.values()
        ]
        base_subtotal = sum(subtotals, Decimal("0.00"))

        reservation = None
        discount = Decimal("0.00")
        if request.voucher_id:
            reservation = reserve_voucher(request.voucher_id, request.customer_id, base_subtotal, now=now)
            if not reservation.ok:
                raise VoucherUnavailable(reservation.reason)
            discount = reservation.discount

        shares = allocate_discount(subtotals, discount)
        totals = [subtotal - share for subtotal, share in zip(subtotals, shares)]
        total_due = sum(totals, Decimal("0.00"))

        method = PaymentMethod(request.payment_method)
        methods = self._payment_methods(method, vendors)
        cash_amount, change_due = self._settle_cash(method, request.cash_tendered, total_due)

        parent_order_id = generate_order_id(self.settings.order_prefix, now)
        multi = len(groups) > 1
        drafts = []
        for index, (vendor_id, lines) in enumerate(groups.items()):
            draft = OrderDraft(
                order_id=f"{parent_order_id}-{index + 1}" if multi else parent_order_id,
                customer_id=request.customer_id,
                vendor_id=vendor_id,
                lines=tuple(lines),
                subtotal=subtotals[index],
                voucher_discount=shares[index],
                total_amount=totals[index],
                payment_method=methods[vendor_id].value,
                wallet_handle=vendors[vendor_id].wallet_handle if methods[vendor_id] == PaymentMethod.WALLET else None,
                # Cash and change are recorded once, on the primary order
                cash_amount=cash_amount if index == 0 else None,
                change_due=change_due if index == 0 else None,
            )
            report = self.guard.detect_suspicious(draft, now=now)
            if report.suspicious:
                draft = replace(draft, review_reasons=report.reasons)
            drafts.append(draft)

        return CheckoutPlan(
            parent_order_id=parent_order_id,
            drafts=tuple(drafts),
            total_due=total_due,
            reservation=reservation,
            change_due=change_due,
        )

    def _vendor(self, vendor_id):
        try:
            return current_domain.repository_for(Vendor).get(vendor_id)
        except ObjectNotFoundError as exc:
            raise CanteenError("A stall in your cart is no longer available") from exc

    @staticmethod
    def _payment_methods(method, vendors):
        if method == PaymentMethod.CASH:
            return {vendor_id: PaymentMethod.CASH for vendor_id in vendors}

        if not any(vendor.accepts_wallet for vendor in vendors.values()):
            raise PaymentMethodUnavailable("None of the stalls in your cart accept wallet payments")
        # Stalls without a wallet are paid in cash on pickup
        return {
            vendor_id: PaymentMethod.WALLET if vendor.accepts_wallet else PaymentMethod.CASH
            for vendor_id, vendor in vendors.items()
        }

    @staticmethod
    def _settle_cash(method, cash_tendered, total_due):
        if method != PaymentMethod.CASH:
            return None, None
        if cash_tendered is None:
            raise InsufficientPayment("Please enter the cash amount you will pay with")

        cash = to_money(cash_tendered)
        if cash < total_due:
            raise InsufficientPayment(f"Cash amount {cash} is less than the total due {total_due}")
        return cash, cash - total_due

    # -------------------------------------------------------------------
    # Persistence with compensation
    # -------------------------------------------------------------------
    def _persist(self, draft: OrderDraft, plan: CheckoutPlan, request: CheckoutRequest, now):
        return current_domain.process(
            CreateOrder(
                order_id=draft.order_id,
                parent_order_id=plan.parent_order_id,
                customer_id=draft.customer_id,
                vendor_id=draft.vendor_id,
                lines=json.dumps(
                    [
                        {
                            "menu_item_id": line["menu_item_id"],
                            "name": line["name"],
                            "quantity": line["quantity"],
                            "unit_price": line["unit_price"],
                            "add_ons": line["add_ons"],
                            "note": line["note"],
                        }
                        for line in draft.lines
                    ]
                ),
                subtotal=float(draft.subtotal),
                voucher_discount=float(draft.voucher_discount),
                total_amount=float(draft.total_amount),
                payment_method=draft.payment_method,
                wallet_handle=draft.wallet_handle,
                payment_window_minutes=self.settings.payment_window_minutes,
                voucher_id=plan.reservation.voucher_id if plan.reservation else None,
                cash_amount=float(draft.cash_amount) if draft.cash_amount is not None else None,
                change_due=float(draft.change_due) if draft.change_due is not None else None,
                is_multi_stall_order=plan.is_multi_stall,
                special_instructions=request.special_instructions,
                scheduled_time=request.scheduled_time,
                group_order_emails=json.dumps(list(request.group_order_emails)) if request.group_order_emails else None,
                review_reasons=json.dumps(list(draft.review_reasons)) if draft.review_reasons else None,
                placed_at=now,
            ),
            asynchronous=False,
        )

    def _persist_all(self, plan: CheckoutPlan, request: CheckoutRequest, now):
        """Create every order, or cancel the ones already created and return None."""
        created = []
        for draft in plan.drafts:
            try:
                self._persist(draft, plan, request, now)
            except Exception:
                logger.exception(
                    "Order creation failed, compensating",
                    parent_order_id=plan.parent_order_id,
                    order_id=draft.order_id,
                    created=created,
                )
                self._compensate(created)
                return None
            created.append(draft.order_id)
        return created

    def _compensate(self, order_ids):
        for order_id in order_ids:
            try:
                current_domain.process(
                    CancelOrder(order_id=order_id, actor=Actor.SYSTEM.value, reason=CHECKOUT_FAILED_REASON),
                    asynchronous=False,
                )
            except Exception:
                # Left for reconciliation; the order id is in the log
                logger.exception("Compensating cancellation failed", order_id=order_id)

    # -------------------------------------------------------------------
    # After every order is stored
    # -------------------------------------------------------------------
    def _finalize(self, plan: CheckoutPlan, request: CheckoutRequest, now):
        voucher_committed = None
        if plan.reservation is not None:
            voucher_committed = self._commit_voucher(plan, request, now)

        self.guard.record_order(request.customer_id, plan.total_due, now=now)

        for draft in plan.drafts:
            if draft.payment_method == PaymentMethod.CASH.value:
                self._award(draft, plan)

        try:
            current_domain.process(
                CheckOutCart(cart_id=request.cart_id, parent_order_id=plan.parent_order_id),
                asynchronous=False,
            )
        except ValidationError as exc:
            logger.warning("Cart could not be cleared after checkout", cart_id=request.cart_id, error=str(exc))

        return voucher_committed

    def _commit_voucher(self, plan, request, now):
        try:
            current_domain.process(
                CommitVoucher(
                    voucher_id=plan.reservation.voucher_id,
                    customer_id=request.customer_id,
                    order_id=plan.parent_order_id,
                    discount_amount=float(plan.reservation.discount),
                    redeemed_at=now,
                ),
                asynchronous=False,
            )
        except (ValidationError, ObjectNotFoundError) as exc:
            logger.error(
                "Voucher could not be committed after checkout",
                voucher_id=plan.reservation.voucher_id,
                parent_order_id=plan.parent_order_id,
                error=str(exc),
            )
            return False
        return True

    def _award(self, draft, plan):
        try:
            award_points(
                draft.customer_id,
                draft.total_amount,
                is_first_order_at_vendor=is_first_order_at_vendor(
                    draft.customer_id, draft.vendor_id, plan.parent_order_id
                ),
                order_id=draft.order_id,
            )
        except Exception:
            logger.exception("Loyalty award failed", order_id=draft.order_id)
