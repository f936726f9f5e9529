"""Outbound email transports.

Every transport returns a MailResult and never raises into the caller.
"""

import asyncio
import json
import logging
import smtplib
import uuid
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from email.message import EmailMessage
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlsplit

from approvals.core.config import EmailBackend, EmailConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MailMessage:
    to: str
    subject: str
    html: str | None = None
    text: str | None = None


@dataclass(frozen=True)
class MailResult:
    ok: bool
    error: str | None = None
    info: dict[str, Any] = field(default_factory=dict)


class Mailer(Protocol):
    async def send(self, message: MailMessage) -> MailResult: ...


def sanitize_smtp_host(raw: str) -> str:
    """Reduce a pasted URL such as ``http://mail.example.com:25/x`` to its host."""
    raw = raw.strip()
    if raw.lower().startswith(("http://", "https://")):
        return urlsplit(raw).hostname or ""
    return raw.split("/")[0]


class UnconfiguredMailer:
    """Used when no SMTP host is configured."""

    async def send(self, message: MailMessage) -> MailResult:
        logger.warning("Email not configured (SMTP host missing), skipping send")
        return MailResult(ok=False, error="Email not configured")


class FileMailer:
    """Development transport that writes each message to a JSON file."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    async def send(self, message: MailMessage) -> MailResult:
        try:
            path = await asyncio.to_thread(self._write, message)
        except OSError as e:
            logger.error("Email file write failed", extra={"error": str(e)})
            return MailResult(ok=False, error=str(e))
        logger.info("Email written to file", extra={"path": str(path)})
        return MailResult(ok=True, info={"file": str(path)})

    def _write(self, message: MailMessage) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        now = datetime.now(UTC)
        path = self.directory / f"{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:8]}.json"
        payload = {**asdict(message), "created_at": now.isoformat()}
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return path


class SmtpMailer:
    """SMTP transport; the blocking smtplib session runs in a worker thread."""

    def __init__(self, config: EmailConfig):
        self.host = sanitize_smtp_host(config.smtp_host)
        self.port = config.smtp_port
        self.secure = config.smtp_secure
        self.user = config.smtp_user
        self.password = config.smtp_password.get_secret_value()
        self.timeout = config.smtp_timeout
        self.from_address = config.from_address
        logger.debug(
            "Email transport configured",
            extra={"host": self.host, "port": self.port, "secure": self.secure, "user": self.user},
        )

    async def send(self, message: MailMessage) -> MailResult:
        try:
            email = self._build(message)
        except ValueError as e:
            logger.error("Invalid email message", extra={"to": message.to, "error": str(e)})
            return MailResult(ok=False, error=str(e))
        try:
            message_id = await asyncio.to_thread(self._send_sync, email)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP send failed", extra={"to": message.to, "error": str(e)})
            return MailResult(ok=False, error=str(e))
        return MailResult(ok=True, info={"message_id": message_id})

    def _build(self, message: MailMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self.from_address
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.text or "")
        if message.html:
            email.add_alternative(message.html, subtype="html")
        return email

    def _send_sync(self, email: EmailMessage) -> str:
        smtp_class = smtplib.SMTP_SSL if self.secure else smtplib.SMTP
        with smtp_class(self.host, self.port, timeout=self.timeout) as smtp:
            if not self.secure:
                smtp.ehlo()
                if smtp.has_extn("starttls"):
                    smtp.starttls()
                    smtp.ehlo()
            if self.user:
                smtp.login(self.user, self.password)
            smtp.send_message(email)
        return str(email.get("Message-ID", ""))


def build_mailer(config: EmailConfig) -> Mailer:
    """Pick the transport for the configured backend."""
    if config.backend == EmailBackend.FILE:
        return FileMailer(config.file_dir)
    if not sanitize_smtp_host(config.smtp_host):
        return UnconfiguredMailer()
    return SmtpMailer(config)
