"""Campus canteen domain: order lifecycle and payment reconciliation.

Customers order from independent vendor stalls and pay either cash on
pickup or by mobile-wallet transfer. A single multi-vendor cart fans out
into one Order per stall; each Order then moves through its own payment
and fulfilment state machine while stock, vouchers, loyalty points and
velocity limits are kept consistent.
"""

import structlog
from protean.domain import Domain

from canteen.utils.logging import configure_logging

configure_logging()

canteen = Domain(name="canteen")

logger = structlog.get_logger(__name__)
