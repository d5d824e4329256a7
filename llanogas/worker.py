"""
Background worker for mailbox polling and due-date reminders.

Usage:
    python -m llanogas.worker

Runs the Gmail sync loop and, once a day, warns about cases close to their
due date. For production, run this as a separate process from the API
(e.g., systemd service, Docker container) and leave GMAIL_SYNC_ENABLED off
on the API so only one poller exists.
"""

import asyncio
import logging
import signal

from llanogas.core.config import settings
from llanogas.db.session import SessionLocal
from llanogas.services import case_service
from llanogas.services.gmail_sync_service import get_gmail_sync_service

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

DUE_CHECK_INTERVAL_SECONDS = 24 * 60 * 60


def run_due_check() -> int:
    with SessionLocal() as db:
        count = case_service.notify_due_cases(db, settings.DUE_SOON_DAYS)
    logger.info("Due-date check finished: %d cases notified", count)
    return count


async def worker_loop() -> None:
    """Start the sync loop and run the due check until a stop signal arrives."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except NotImplementedError:
            # Windows event loops have no signal handlers
            pass

    service = get_gmail_sync_service()
    if settings.gmail_configured:
        service.start()
    else:
        logger.warning("Gmail credentials not set - mailbox polling disabled")

    logger.info("Worker starting (due check every %ds)", DUE_CHECK_INTERVAL_SECONDS)
    try:
        while not stop.is_set():
            try:
                run_due_check()
            except Exception:
                logger.exception("Due-date check failed")
            try:
                await asyncio.wait_for(stop.wait(), timeout=DUE_CHECK_INTERVAL_SECONDS)
            except asyncio.TimeoutError:
                pass
    finally:
        service.stop()
        logger.info("Worker stopped")


def main() -> None:
    """Entry point for the worker."""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
