"""
Fire-and-forget email delivery.

The dispatcher enqueues messages only after the order transition and the
in-app notifications have committed; a background worker drains the queue.
A failed send is logged and counted, never retried inline and never
reported back to the transition that caused it.
"""
import asyncio
from dataclasses import dataclass, field
from typing import Optional

import structlog

from shared.config import settings
from shared.observability import marketplace_emails_total

from .email_sender import EmailSender, build_email_sender

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    email_type: str
    user_id: Optional[str] = None
    metadata: dict = field(default_factory=dict)


class EmailOutbox:
    def __init__(self, sender: EmailSender, maxsize: int = settings.EMAIL_QUEUE_MAXSIZE):
        self.sender = sender
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._worker: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def enqueue(self, message: EmailMessage) -> bool:
        """Never blocks. A full queue drops the message (logged)."""
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.error("email_dropped_queue_full", to=message.to, email_type=message.email_type)
            marketplace_emails_total.labels(status="dropped").inc()
            return False
        return True

    async def deliver(self, message: EmailMessage) -> bool:
        try:
            result = await self.sender.send(message.to, message.subject, message.html)
        except Exception:
            # A misbehaving sender must not take the worker down
            logger.exception("email_send_crashed", to=message.to, email_type=message.email_type)
            marketplace_emails_total.labels(status="failed").inc()
            return False

        if not result.ok:
            logger.error(
                "email_send_failed",
                to=message.to,
                email_type=message.email_type,
                user_id=message.user_id,
                error=result.error,
                **message.metadata,
            )
            marketplace_emails_total.labels(status="failed").inc()
            return False

        logger.info("email_sent", to=message.to, email_type=message.email_type, provider_id=result.provider_id)
        marketplace_emails_total.labels(status="sent").inc()
        return True

    async def drain(self) -> int:
        """Delivers everything currently queued. Returns the number of messages processed."""
        processed = 0
        while True:
            try:
                message = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return processed
            try:
                await self.deliver(message)
            finally:
                self._queue.task_done()
            processed += 1

    async def _run(self):
        while True:
            message = await self._queue.get()
            try:
                await self.deliver(message)
            finally:
                self._queue.task_done()

    def start(self):
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run(), name="email-outbox-worker")

    async def stop(self):
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None


email_outbox = EmailOutbox(build_email_sender())
