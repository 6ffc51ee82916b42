"""Background runner for the canteen domain.

Starts the long-running workers that sit beside the web server:
- ExpirySweeper: cancels wallet orders whose payment window has closed
- Protean Engine: processes events asynchronously when the active
  environment sets ``event_processing = "async"``

Usage:
    python src/server.py                  # Run the sweeper and the engine
    python src/server.py --only sweeper   # Run only the payment expiry sweeper
    python src/server.py --only engine    # Run only the event engine
"""

import argparse
import asyncio
import signal

import structlog
from protean.server.engine import Engine

from canteen.domain import canteen
from canteen.payment.scheduler import ExpirySweeper
from canteen.settings import get_settings

logger = structlog.get_logger(__name__)


def _build_sweeper(domain):
    with domain.domain_context():
        interval = get_settings().expiry_sweep_interval_seconds
    return ExpirySweeper(domain, interval_seconds=interval)


async def run(workers):
    canteen.init()
    tasks = []

    sweeper = None
    if "sweeper" in workers:
        sweeper = _build_sweeper(canteen)
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, sweeper.stop)
        tasks.append(sweeper.run())

    if "engine" in workers:
        if canteen.config.get("event_processing") == "async":
            tasks.append(Engine(canteen).run())
        else:
            logger.info("Event processing is synchronous, engine not started")

    if not tasks:
        return
    await asyncio.gather(*tasks)


def main():
    parser = argparse.ArgumentParser(description="Canteen background workers")
    parser.add_argument(
        "--only",
        choices=["sweeper", "engine"],
        help="Run a single worker (default: run all)",
    )
    args = parser.parse_args()

    workers = [args.only] if args.only else ["sweeper", "engine"]

    asyncio.run(run(workers))


if __name__ == "__main__":
    main()
