"""Mail delivery — build the digest email and hand it to SMTP or an outbox."""

from __future__ import annotations

import logging
import smtplib
from collections.abc import Sequence
from email.message import EmailMessage
from pathlib import Path
from typing import Protocol

from kpi_digest.config import DigestConfig
from kpi_digest.report import DigestReport
from kpi_digest.utils import slugify

logger = logging.getLogger(__name__)


class MailDeliveryError(RuntimeError):
    """The SMTP relay could not be reached or refused the message."""


class Mailer(Protocol):
    def send(self, message: EmailMessage) -> None: ...


def build_message(
    report: DigestReport,
    *,
    sender: str,
    recipients: Sequence[str],
    subject: str,
) -> EmailMessage:
    """Plain-text fallback, HTML alternative and the detailed text attachment."""
    recipients = [r.strip() for r in recipients if r.strip()]

    msg = EmailMessage()
    if sender:
        msg["From"] = sender
    if recipients:
        msg["To"] = ", ".join(recipients)
    msg["Subject"] = subject

    msg.set_content(report.executive_summary)
    msg.add_alternative(report.html, subtype="html")
    msg.add_attachment(
        report.detailed_text,
        subtype="plain",
        filename=report.attachment_name,
    )
    return msg


class SmtpMailer:
    """Send through an SMTP relay, upgrading with STARTTLS when asked to."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        *,
        use_tls: bool = True,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    @classmethod
    def from_config(cls, config: DigestConfig) -> SmtpMailer:
        return cls(
            config.smtp_host,
            config.smtp_port,
            config.smtp_username,
            config.smtp_password,
            use_tls=config.smtp_use_tls,
        )

    def send(self, message: EmailMessage) -> None:
        if not message["To"]:
            raise ValueError("At least one recipient is required")
        logger.info("Connecting to %s:%s", self.host, self.port)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(message)
        except OSError as exc:
            # SMTPException is an OSError too.
            raise MailDeliveryError(
                f"SMTP delivery via {self.host}:{self.port} failed: {exc}"
            ) from exc
        logger.info("Email sent to %s", message["To"])


class OutboxMailer:
    """Dry-run mailer: writes the message to ``<directory>/<subject>.eml``."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)
        self.sent: list[Path] = []

    def send(self, message: EmailMessage) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"{slugify(str(message['Subject'] or ''))}.eml"
        path.write_bytes(message.as_bytes())
        self.sent.append(path)
        logger.info("Email not sent (dry run); written to %s", path)
