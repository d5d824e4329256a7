"""
Gmail polling loop.

One tick lists unread messages in the watched label, ingests them one at a
time (throttled), and marks the successfully handled ones read in a single
batch call. A message whose processing fails stays unread and is retried
on the next tick; dedup by message id makes reprocessing harmless.

Only one tick runs at a time per process: ``sync_emails`` is guarded by an
``asyncio.Lock`` and a call that finds it held returns a skipped report
without waiting.
"""

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy.orm import Session

from llanogas.core.config import settings
from llanogas.core.exceptions import TransientExternalError
from llanogas.core.structured_logging import build_log_context
from llanogas.db.session import SessionLocal
from llanogas.services import email_ingestion_service
from llanogas.services.gmail_client import GmailClient, MailboxClient

logger = logging.getLogger(__name__)


@dataclass
class GmailSyncConfig:
    interval_minutes: float = 5
    max_emails_per_sync: int = 50
    label_to_watch: str = "INBOX"
    throttle_seconds: float = 0.1

    @classmethod
    def from_settings(cls) -> "GmailSyncConfig":
        return cls(
            interval_minutes=settings.GMAIL_SYNC_INTERVAL_MINUTES,
            max_emails_per_sync=settings.GMAIL_SYNC_MAX_EMAILS,
            label_to_watch=settings.GMAIL_SYNC_LABEL,
            throttle_seconds=settings.GMAIL_SYNC_THROTTLE_SECONDS,
        )


@dataclass
class SyncReport:
    """Outcome of one tick."""

    started_at: datetime
    finished_at: datetime | None = None
    skipped: bool = False
    fetched: int = 0
    created: int = 0
    duplicates: int = 0
    linked: int = 0
    marked_read: int = 0
    failed: list[str] = field(default_factory=list)
    error: str | None = None

    @property
    def success(self) -> bool:
        return not self.skipped and self.error is None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["success"] = self.success
        return data


ClientFactory = Callable[[], Awaitable[MailboxClient]]


class GmailSyncService:
    """Timer-driven ingestion loop with a single-flight guard."""

    def __init__(
        self,
        config: GmailSyncConfig | None = None,
        client_factory: ClientFactory | None = None,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.config = config or GmailSyncConfig()
        self._client_factory: ClientFactory = client_factory or GmailClient.from_settings
        self._session_factory = session_factory
        self._lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self.last_report: SyncReport | None = None

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        """A tick is in progress."""
        return self._lock.locked()

    @property
    def is_scheduled(self) -> bool:
        """The background loop is active."""
        return self._task is not None and not self._task.done()

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self.is_running,
            "is_scheduled": self.is_scheduled,
            "config": asdict(self.config),
            "last_sync": self.last_report.to_dict() if self.last_report else None,
        }

    # -------------------------------------------------------------------------
    # One tick
    # -------------------------------------------------------------------------

    async def sync_emails(self) -> SyncReport:
        """
        Run one tick, or return a skipped report if one is already running.

        Never raises for mailbox or per-message failures; they are logged
        and reflected in the report.
        """
        if self._lock.locked():
            logger.info("Gmail sync already in progress, skipping trigger")
            return SyncReport(
                started_at=datetime.now(timezone.utc),
                finished_at=datetime.now(timezone.utc),
                skipped=True,
            )

        async with self._lock:
            report = SyncReport(started_at=datetime.now(timezone.utc))
            try:
                await self._run_tick(report)
            except TransientExternalError as e:
                report.error = e.message
                logger.error("Gmail sync failed: %s", e.message)
            finally:
                report.finished_at = datetime.now(timezone.utc)
                self.last_report = report

            logger.info(
                "Gmail sync finished: fetched=%d created=%d duplicates=%d linked=%d failed=%d",
                report.fetched,
                report.created,
                report.duplicates,
                report.linked,
                len(report.failed),
            )
            return report

    async def _run_tick(self, report: SyncReport) -> None:
        client = await self._client_factory()
        try:
            message_ids = await client.list_unread_message_ids(
                self.config.label_to_watch, self.config.max_emails_per_sync
            )
            report.fetched = len(message_ids)
            if not message_ids:
                return

            handled: list[str] = []
            for index, message_id in enumerate(message_ids):
                if index:
                    await asyncio.sleep(self.config.throttle_seconds)
                if await self._process_one(client, message_id, report):
                    handled.append(message_id)

            if handled:
                await client.mark_as_read(handled)
                report.marked_read = len(handled)
        finally:
            await client.aclose()

    async def _process_one(
        self, client: MailboxClient, message_id: str, report: SyncReport
    ) -> bool:
        """Fetch and ingest one message. Returns False if it must stay unread."""
        try:
            message = await client.get_message(message_id)
            with self._session_factory() as db:
                result = email_ingestion_service.ingest_message(db, message)
        except Exception:
            logger.exception(
                "Failed to process Gmail message",
                extra=build_log_context(message_id=message_id),
            )
            report.failed.append(message_id)
            return False

        if result.created:
            report.created += 1
        else:
            report.duplicates += 1
        if result.linked_case_id:
            report.linked += 1
        return True

    async def sync_now(self) -> SyncReport:
        """Manual trigger (same guard as the timer)."""
        return await self.sync_emails()

    # -------------------------------------------------------------------------
    # Background loop
    # -------------------------------------------------------------------------

    def start(self) -> bool:
        """
        Start the periodic loop on the running event loop.

        Returns False if it is already scheduled. The first tick runs
        immediately.
        """
        if self.is_scheduled:
            logger.info("Gmail sync loop already started")
            return False
        self._stop_event = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self._run_forever(self._stop_event))
        logger.info(
            "Gmail sync loop started (interval=%s min, max=%d, label=%s)",
            self.config.interval_minutes,
            self.config.max_emails_per_sync,
            self.config.label_to_watch,
        )
        return True

    def stop(self) -> bool:
        """
        Stop scheduling ticks. An in-flight tick is not interrupted.

        Returns False if the loop was not scheduled.
        """
        if not self.is_scheduled or self._stop_event is None:
            return False
        self._stop_event.set()
        self._task = None
        logger.info("Gmail sync loop stopped")
        return True

    async def _run_forever(self, stop_event: asyncio.Event) -> None:
        interval = self.config.interval_minutes * 60
        while not stop_event.is_set():
            try:
                await self.sync_emails()
            except Exception:
                logger.exception("Unexpected error in Gmail sync tick")
            try:
                await asyncio.wait_for(stop_event.wait(), timeout=interval)
            except asyncio.TimeoutError:
                pass


_service: GmailSyncService | None = None


def get_gmail_sync_service() -> GmailSyncService:
    """Process-wide instance configured from settings."""
    global _service
    if _service is None:
        _service = GmailSyncService(GmailSyncConfig.from_settings())
    return _service
