"""Background email dispatch with retry and exponential backoff.

Callers submit messages without waiting; a single worker task owned by the
application lifespan delivers them through the configured Mailer.
"""

import asyncio
import logging
from dataclasses import dataclass

from approvals.core.config import EmailConfig
from approvals.notifications.mailer import Mailer, MailMessage, MailResult

logger = logging.getLogger(__name__)


class EmailQueueError(Exception):
    """Base for submit() failures."""


class EmailQueueFullError(EmailQueueError):
    """Raised by submit() when the queue cannot take another message."""


class EmailQueueNotRunningError(EmailQueueError):
    """Raised by submit() when no worker would ever deliver the message."""


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay_seconds: float = 2.0
    max_delay_seconds: float = 60.0

    @classmethod
    def from_config(cls, config: EmailConfig) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, config.max_attempts),
            base_delay_seconds=config.base_delay_seconds,
            max_delay_seconds=config.max_delay_seconds,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows failed ``attempt`` (1-based)."""
        return min(self.base_delay_seconds * (2 ** (attempt - 1)), self.max_delay_seconds)


class EmailDispatchQueue:
    """Fire-and-forget email delivery."""

    def __init__(self, mailer: Mailer, policy: RetryPolicy | None = None, max_size: int = 1000):
        self.mailer = mailer
        self.policy = policy or RetryPolicy()
        self._queue: asyncio.Queue[MailMessage] = asyncio.Queue(maxsize=max_size)
        self._worker: asyncio.Task | None = None

    @classmethod
    def from_config(cls, mailer: Mailer, config: EmailConfig) -> "EmailDispatchQueue":
        return cls(mailer, RetryPolicy.from_config(config), max_size=config.queue_max_size)

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self.running:
            logger.warning("Email dispatch worker already running")
            return
        self._worker = asyncio.create_task(self._run(), name="email-dispatch")
        logger.info("Email dispatch worker started")

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Give queued messages a chance to go out, then cancel the worker."""
        if self._worker is None:
            return
        try:
            await asyncio.wait_for(self._queue.join(), timeout=drain_timeout)
        except TimeoutError:
            logger.warning("Email queue not drained before shutdown", extra={"pending": self.pending()})
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Email dispatch worker stopped")

    def submit(self, message: MailMessage) -> None:
        """Enqueue ``message`` without waiting for delivery."""
        if not self.running:
            raise EmailQueueNotRunningError("Email dispatch worker is not running")
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull as e:
            raise EmailQueueFullError(f"Email queue full ({self._queue.maxsize} pending)") from e

    async def deliver(self, message: MailMessage) -> MailResult:
        """Send one message, retrying non-ok results per the policy."""
        result = MailResult(ok=False, error="not attempted")
        for attempt in range(1, self.policy.max_attempts + 1):
            try:
                result = await self.mailer.send(message)
            except Exception as e:
                # Mailers are not supposed to raise; treat it as a failed attempt.
                result = MailResult(ok=False, error=str(e))
            if result.ok:
                logger.info(
                    "Email delivered",
                    extra={"to": message.to, "subject": message.subject, "attempt": attempt},
                )
                return result
            if attempt < self.policy.max_attempts:
                delay = self.policy.delay_for(attempt)
                logger.warning(
                    "Email delivery failed, retrying",
                    extra={"to": message.to, "attempt": attempt, "delay": delay, "error": result.error},
                )
                await asyncio.sleep(delay)

        logger.warning(
            "Email not sent",
            extra={
                "to": message.to,
                "subject": message.subject,
                "attempts": self.policy.max_attempts,
                "error": result.error,
            },
        )
        return result

    async def _run(self) -> None:
        while True:
            message = await self._queue.get()
            try:
                await self.deliver(message)
            except Exception:
                logger.exception("Email dispatch worker error", extra={"to": message.to})
            finally:
                self._queue.task_done()
