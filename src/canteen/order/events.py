"""Domain events for the Order aggregate.

Events feed the vendor order board projection and the notification
handler. Neither is allowed to make correctness decisions: the order
document in the store is the source of truth.
"""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String, Text

from canteen.domain import canteen


@canteen.event(part_of="Order")
class OrderPlaced:
    """An order for one vendor was created at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    parent_order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    status = String(required=True)
    payment_method = String(required=True)
    total_amount = Float(required=True)
    item_count = Integer()
    is_multi_stall_order = Boolean(default=False)
    flagged_for_review = Boolean(default=False)
    review_reasons = Text()  # JSON list
    placed_at = DateTime(required=True)


@canteen.event(part_of="Order")
class OrderStatusChanged:
    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    previous_status = String(required=True)
    new_status = String(required=True)
    reason = String()
    changed_by = String()
    changed_at = DateTime(required=True)


@canteen.event(part_of="Order")
class WalletPaymentSubmitted:
    """The customer reported a completed wallet transfer."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    amount = Float(required=True)
    wallet_reference_number = String(required=True)
    submitted_at = DateTime(required=True)


@canteen.event(part_of="Order")
class WalletPaymentVerified:
    __version__ = 1

    order_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    verified_by = Identifier(required=True)
    verified_at = DateTime(required=True)


@canteen.event(part_of="Order")
class WalletPaymentRejected:
    """The vendor could not find the transfer. The order awaits manual resolution."""

    __version__ = 1

    order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    vendor_id = Identifier(required=True)
    rejected_by = Identifier(required=True)
    rejected_at = DateTime(required=True)
