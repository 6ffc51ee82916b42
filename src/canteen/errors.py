"""Error taxonomy of the canteen domain.

Every error derives from Protean's ``ValidationError`` so that a command
handler raising one rolls back its unit of work and the generic API
exception handlers still understand it. ``kind`` names the category the
HTTP layer maps to a status code, and ``public_message`` is what a caller
is allowed to see.
"""

from protean.exceptions import ValidationError


class CanteenError(ValidationError):
    kind = "ValidationError"
    field = "order"
    status_code = 400

    def __init__(self, message, **context):
        self.message = message
        self.context = context
        super().__init__({self.field: [self.public_message]})

    @property
    def public_message(self):
        return self.message


# ---------------------------------------------------------------------------
# Validation failures (user-correctable)
# ---------------------------------------------------------------------------
class EmptyCart(CanteenError):
    field = "cart"


class InsufficientPayment(CanteenError):
    field = "cash_amount"


class PaymentMethodUnavailable(CanteenError):
    field = "payment_method"


class VoucherUnavailable(CanteenError):
    field = "voucher"


class CancellationNotAllowed(CanteenError):
    field = "status"


class InvalidWalletDetails(CanteenError):
    field = "wallet_payment"


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------
class InvalidTransition(CanteenError):
    kind = "InvalidTransition"
    field = "status"
    status_code = 409


# ---------------------------------------------------------------------------
# Security
# ---------------------------------------------------------------------------
class OwnershipError(CanteenError):
    kind = "OwnershipError"
    field = "actor"
    status_code = 403


class OrderIntegrityError(CanteenError):
    """Checksum or token mismatch. The detail is for logs only."""

    kind = "IntegrityError"
    field = "integrity"
    status_code = 422

    @property
    def public_message(self):
        return "order cannot be processed"


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------
class InsufficientStock(CanteenError):
    kind = "ConcurrencyConflict"
    field = "stock"
    status_code = 409
