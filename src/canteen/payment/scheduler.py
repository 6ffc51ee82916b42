"""Background loop that runs the payment expiry sweep on an interval.

The loop stops when its ``stop_event`` is set. Time comes from an
injectable ``clock`` so tests can drive ``tick`` with fixed instants.
"""

import asyncio

import structlog
from protean.utils.globals import current_domain

from canteen.payment.expiry import ExpireUnpaidOrders
from canteen.utils.clock import utc_now

logger = structlog.get_logger(__name__)


class ExpirySweeper:
    def __init__(self, domain, interval_seconds=60, clock=utc_now):
        self.domain = domain
        self.interval_seconds = interval_seconds
        self.clock = clock
        self.stop_event = asyncio.Event()

    def tick(self, as_of=None):
        """Run one sweep and return how many orders were expired."""
        with self.domain.domain_context():
            return current_domain.process(
                ExpireUnpaidOrders(as_of=as_of or self.clock()),
                asynchronous=False,
            )

    async def run(self):
        logger.info("Expiry sweeper started", interval_seconds=self.interval_seconds)
        while not self.stop_event.is_set():
            try:
                await asyncio.to_thread(self.tick)
            except Exception:
                # One failed sweep must not stop the loop; the next tick retries
                logger.exception("Expiry sweep failed")

            try:
                await asyncio.wait_for(self.stop_event.wait(), timeout=self.interval_seconds)
            except TimeoutError:
                continue
        logger.info("Expiry sweeper stopped")

    def stop(self):
        self.stop_event.set()
