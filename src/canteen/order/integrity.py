"""Tamper detection for persisted orders.

An order's identity, owner, lines and money fields never change after
checkout. They are serialised as canonical JSON (sorted keys, compact
separators, money as two-decimal strings) and sealed with an HMAC-SHA256
keyed by the domain's ``secret_key``. Any write that alters one of those
fields without the key is caught the next time the order is read or
mutated.
"""

import hashlib
import hmac
import json
import re
import secrets
import string
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

logger = structlog.get_logger(__name__)

_TOKEN_PATTERN = re.compile(r"^UBF-[A-Z0-9]+-[A-Z0-9]+$")
_BASE36 = string.digits + string.ascii_uppercase


def _base36(number):
    if number == 0:
        return "0"
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits))


def _money(value):
    return f"{float(value or 0):.2f}"


def _epoch_ms(moment):
    return int(moment.timestamp() * 1000)


def generate_order_token(now=None):
    """Opaque pickup token, e.g. ``UBF-MB3K9Z1Q-4F9A2C7E``."""
    now = now or datetime.now(UTC)
    return f"UBF-{_base36(_epoch_ms(now))}-{secrets.token_hex(4).upper()}"


def is_valid_token(token):
    return bool(token) and bool(_TOKEN_PATTERN.match(token))


def generate_order_id(prefix="UBF", now=None):
    """Parent order id: ``{prefix}-{year}-{6 digits of the clock}{2 random hex}``."""
    now = now or datetime.now(UTC)
    clock = str(_epoch_ms(now))[-6:]
    return f"{prefix}-{now.year}-{clock}{secrets.token_hex(1).upper()}"


@dataclass(frozen=True)
class SecureOrderEnvelope:
    """The immutable portion of an order plus its seal."""

    order_id: str
    parent_order_id: str
    customer_id: str
    vendor_id: str
    token: str
    created_at: str
    lines: tuple
    subtotal: str
    voucher_discount: str
    total_amount: str
    checksum: str | None = None

    @classmethod
    def from_order(cls, order):
        lines = tuple(
            (
                str(line.menu_item_id),
                line.name,
                int(line.quantity),
                _money(line.unit_price),
                tuple((add_on["name"], _money(add_on["price"])) for add_on in line.add_on_list()),
            )
            for line in order.lines
        )
        created_at = order.created_at
        if created_at is not None and created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=UTC)

        return cls(
            order_id=str(order.order_id),
            parent_order_id=str(order.parent_order_id),
            customer_id=str(order.customer_id),
            vendor_id=str(order.vendor_id),
            token=order.token or "",
            created_at=created_at.isoformat() if created_at else "",
            lines=lines,
            subtotal=_money(order.subtotal),
            voucher_discount=_money(order.voucher_discount),
            total_amount=_money(order.total_amount),
            checksum=order.checksum,
        )

    def payload(self):
        return {
            "orderId": self.order_id,
            "parentOrderId": self.parent_order_id,
            "customerId": self.customer_id,
            "vendorId": self.vendor_id,
            "token": self.token,
            "createdAt": self.created_at,
            "items": [
                {
                    "menuItemId": menu_item_id,
                    "name": name,
                    "quantity": quantity,
                    "price": price,
                    "customizations": [{"name": n, "price": p} for n, p in add_ons],
                }
                for menu_item_id, name, quantity, price, add_ons in self.lines
            ],
            "subtotal": self.subtotal,
            "voucherDiscount": self.voucher_discount,
            "totalAmount": self.total_amount,
        }


class OrderIntegrityCodec:
    def __init__(self, secret_key: bytes):
        self._secret_key = secret_key

    @staticmethod
    def canonical(payload) -> bytes:
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def seal(self, envelope: SecureOrderEnvelope) -> str:
        return hmac.new(self._secret_key, self.canonical(envelope.payload()), hashlib.sha256).hexdigest()

    def verify(self, envelope: SecureOrderEnvelope) -> bool:
        """True when the envelope's token is well formed and its checksum matches."""
        if not is_valid_token(envelope.token):
            logger.warning("Order token is malformed", order_id=envelope.order_id)
            return False
        if not envelope.checksum:
            logger.warning("Order carries no checksum", order_id=envelope.order_id)
            return False

        expected = self.seal(envelope)
        if not hmac.compare_digest(expected, envelope.checksum):
            logger.error("Order checksum mismatch", order_id=envelope.order_id)
            return False
        return True
