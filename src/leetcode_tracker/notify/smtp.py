"""SMTP delivery of batch notifications."""

from __future__ import annotations

import asyncio
import logging
import smtplib
from email.message import EmailMessage

from leetcode_tracker.errors import NotificationError
from leetcode_tracker.notify.base import CategorizedBatch, render_body, render_subject

logger = logging.getLogger(__name__)


class SmtpNotifier:
    """Sends one plain-text message per batch; the blocking SMTP session runs in a thread."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        host: str,
        port: int,
        sender: str,
        recipient: str,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
        timeout_seconds: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.recipient = recipient
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout_seconds = timeout_seconds

    def build_message(self, batch: CategorizedBatch) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = render_subject(batch)
        message["From"] = self.sender
        message["To"] = self.recipient
        message.set_content(render_body(batch))
        return message

    async def send_batch(self, batch: CategorizedBatch) -> None:
        message = self.build_message(batch)
        try:
            await asyncio.to_thread(self._send, message)
        except (smtplib.SMTPException, OSError) as error:
            raise NotificationError(f"Failed to send notification: {error}") from error
        logger.info("Sent notification %r to %s", message["Subject"], self.recipient)

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as client:
            if self.use_tls:
                client.starttls()
            if self.username:
                client.login(self.username, self.password)
            client.send_message(message)
