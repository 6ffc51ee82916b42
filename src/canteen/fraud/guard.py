"""Fraud and velocity checks applied at checkout.

``FraudGuard`` is constructed with its limits and clock and handed to the
checkout service. Velocity checks fail open: if the activity records
cannot be read the order is allowed and the failure is logged. Suspicion
checks never block; they only tag orders for review.
"""

from dataclasses import dataclass
from datetime import timedelta

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from canteen.fraud.velocity import (
    RECENT_WINDOW,
    RecordOrderActivity,
    VelocityRecord,
    daily_key,
    epoch_ms,
    recent_key,
)
from canteen.order.integrity import OrderIntegrityCodec
from canteen.pricing import to_money
from canteen.settings import get_secret_key
from canteen.utils.clock import utc_now

logger = structlog.get_logger(__name__)

MAX_ORDER_AMOUNT = 2000
MIN_ORDER_AMOUNT = 1
MAX_TOTAL_QUANTITY = 50
MAX_ITEM_PRICE = 1000
MAX_RECENT_ORDERS = 5


@dataclass(frozen=True)
class VelocityLimits:
    max_orders_per_hour: int = 10
    max_orders_per_day: int = 50
    max_spend_per_day: float = 5000.0

    @classmethod
    def from_settings(cls, settings):
        return cls(
            max_orders_per_hour=settings.max_orders_per_hour,
            max_orders_per_day=settings.max_orders_per_day,
            max_spend_per_day=settings.max_spend_per_day,
        )


@dataclass(frozen=True)
class VelocityDecision:
    allowed: bool
    reason: str | None = None


@dataclass(frozen=True)
class SuspicionReport:
    suspicious: bool
    reasons: tuple[str, ...] = ()


def _line_value(line, name):
    return line[name] if isinstance(line, dict) else getattr(line, name)


class FraudGuard:
    def __init__(self, limits: VelocityLimits | None = None, clock=utc_now):
        self.limits = limits or VelocityLimits()
        self.clock = clock

    def _load(self, key):
        try:
            return current_domain.repository_for(VelocityRecord).get(key)
        except ObjectNotFoundError:
            return None

    # -------------------------------------------------------------------
    # Velocity
    # -------------------------------------------------------------------
    def check_velocity(self, customer_id, new_order_amount, now=None) -> VelocityDecision:
        now = now or self.clock()
        try:
            return self._check_velocity(customer_id, new_order_amount, now)
        except Exception:
            logger.exception("Velocity check failed, allowing order", customer_id=str(customer_id))
            return VelocityDecision(allowed=True)

    def _check_velocity(self, customer_id, new_order_amount, now):
        today = self._load(daily_key(customer_id, now))
        # The hourly window can reach back into yesterday's record
        yesterday = self._load(daily_key(customer_id, now - timedelta(days=1)))

        hour_ago = epoch_ms(now - timedelta(hours=1))
        hourly_count = sum(record.count_since(hour_ago) for record in (today, yesterday) if record is not None)
        if hourly_count >= self.limits.max_orders_per_hour:
            return VelocityDecision(False, "Too many orders in the past hour")

        daily_count = len(today.entry_list()) if today else 0
        if daily_count >= self.limits.max_orders_per_day:
            return VelocityDecision(False, "Daily order limit exceeded")

        daily_spent = to_money(today.amount_total() if today else 0)
        if daily_spent + to_money(new_order_amount) > to_money(self.limits.max_spend_per_day):
            return VelocityDecision(False, "Daily spending limit exceeded")

        return VelocityDecision(allowed=True)

    def record_order(self, customer_id, amount, now=None):
        """Append a completed checkout to the customer's activity records."""
        try:
            current_domain.process(
                RecordOrderActivity(customer_id=customer_id, amount=float(amount), occurred_at=now or self.clock()),
                asynchronous=False,
            )
        except Exception:
            logger.exception("Failed to record order activity", customer_id=str(customer_id))

    # -------------------------------------------------------------------
    # Suspicion
    # -------------------------------------------------------------------
    def detect_suspicious(self, order, now=None) -> SuspicionReport:
        """Inspect an order (or order draft) for patterns worth a human look."""
        reasons = []
        total = to_money(order.total_amount)
        if total > MAX_ORDER_AMOUNT:
            reasons.append("Unusually high order amount")
        if total < MIN_ORDER_AMOUNT:
            reasons.append("Invalid order amount")

        lines = list(order.lines)
        if sum(int(_line_value(line, "quantity")) for line in lines) > MAX_TOTAL_QUANTITY:
            reasons.append("Unusually high item quantity")
        if any(not 0 < float(_line_value(line, "unit_price")) <= MAX_ITEM_PRICE for line in lines):
            reasons.append("Invalid item prices detected")

        now = now or self.clock()
        try:
            recent = self._load(recent_key(order.customer_id))
            if recent is not None and recent.count_since(epoch_ms(now - RECENT_WINDOW)) > MAX_RECENT_ORDERS:
                reasons.append("Multiple recent orders")
        except Exception:
            logger.exception("Recent order lookup failed", customer_id=str(order.customer_id))

        if reasons:
            logger.warning("Suspicious order detected", customer_id=str(order.customer_id), reasons=reasons)
        return SuspicionReport(suspicious=bool(reasons), reasons=tuple(reasons))

    # -------------------------------------------------------------------
    # Integrity
    # -------------------------------------------------------------------
    def verify_integrity(self, envelope) -> bool:
        return OrderIntegrityCodec(get_secret_key()).verify(envelope)
