"""SMTP email connector for sending escalation notices."""

import asyncio
import re
import smtplib
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Optional

from tenant_escalation.config import settings
from tenant_escalation.exceptions import NotificationError
from tenant_escalation.utils.logging import get_logger, log_external_api_call

logger = get_logger(__name__)


class SMTPEmailConnector:
    """SMTP connector that delivers one message to one recipient.

    Delivery is attempted exactly once; the escalation cycle itself is the
    retry mechanism.
    """

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_email: Optional[str] = None,
        use_tls: Optional[bool] = None,
        timeout: Optional[float] = None,
    ):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASS
        self.from_email = from_email or settings.SMTP_FROM
        self.use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls
        self.timeout = timeout or settings.SMTP_TIMEOUT_SECONDS

    def build_message(
        self,
        from_label: str,
        to_address: str,
        subject: str,
        body: str
    ) -> MIMEMultipart:
        """Build a multipart message with plain-text and HTML parts."""
        msg = MIMEMultipart("alternative")
        msg.attach(MIMEText(self._html_to_text(body), "plain", "utf-8"))
        msg.attach(MIMEText(body, "html", "utf-8"))

        msg["Subject"] = subject
        msg["From"] = formataddr((from_label, self.from_email))
        msg["To"] = to_address
        msg["Message-ID"] = make_msgid()
        msg["X-Mailer"] = "Tenant Work Order Escalation"
        return msg

    async def send(self, from_label: str, to_address: str, subject: str, body: str) -> None:
        """Send a notice to a single recipient.

        Raises ``NotificationError`` if the message could not be handed to
        the SMTP server.
        """
        if not self.host:
            raise NotificationError("SMTP host is not configured", recipient=to_address)

        msg = self.build_message(from_label, to_address, subject, body)
        started = time.monotonic()

        try:
            await asyncio.to_thread(self._deliver, to_address, msg)
        except (smtplib.SMTPException, OSError) as e:
            log_external_api_call(
                logger,
                "smtp",
                "send",
                success=False,
                duration_ms=(time.monotonic() - started) * 1000,
                recipient=to_address,
                error=str(e)
            )
            raise NotificationError(f"SMTP delivery failed: {e}", recipient=to_address) from e

        log_external_api_call(
            logger,
            "smtp",
            "send",
            success=True,
            duration_ms=(time.monotonic() - started) * 1000,
            recipient=to_address,
            subject=subject[:50]
        )

    def _deliver(self, to_address: str, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(self.from_email, [to_address], msg.as_string())

    def _html_to_text(self, html: str) -> str:
        """Convert HTML to plain text (basic implementation)."""
        # Line breaks for block-level tags before stripping
        text = re.sub(r'<br\s*/?>|</(p|h\d|li)>', '\n', html)
        text = re.sub(r'<li>', '- ', text)

        # Remove HTML tags
        text = re.sub(r'<[^>]+>', '', text)

        # Replace common HTML entities
        text = text.replace('&nbsp;', ' ')
        text = text.replace('&lt;', '<')
        text = text.replace('&gt;', '>')
        text = text.replace('&quot;', '"')
        text = text.replace('&#x27;', "'")
        text = text.replace('&amp;', '&')

        # Clean up whitespace
        text = re.sub(r'[ \t]+\n', '\n', text)
        text = re.sub(r'\n\s*\n', '\n\n', text)
        return text.strip()

    async def check_connection(self) -> bool:
        """Check SMTP connection."""
        if not self.host:
            return False
        try:
            await asyncio.to_thread(self._probe)
            logger.info("SMTP connection test successful")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP connection test failed", error=str(e))
            return False

    def _probe(self) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
