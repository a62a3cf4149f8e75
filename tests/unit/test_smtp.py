"""Unit tests for the SMTP connector."""

import smtplib

import pytest

from tenant_escalation.connectors import email_smtp
from tenant_escalation.connectors.email_smtp import SMTPEmailConnector
from tenant_escalation.exceptions import NotificationError


class FakeSMTP:
    """Stand-in for ``smtplib.SMTP`` that records what it was asked to do."""

    instances = []
    fail_with = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.started_tls = False
        self.logged_in = None
        self.sent = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, username, password):
        self.logged_in = (username, password)

    def sendmail(self, from_addr, to_addrs, msg):
        if FakeSMTP.fail_with is not None:
            raise FakeSMTP.fail_with
        self.sent.append((from_addr, to_addrs, msg))


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_with = None
    monkeypatch.setattr(email_smtp.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def make_connector(**overrides):
    values = dict(
        host="smtp.example.com",
        port=587,
        username="mailer",
        password="secret",
        from_email="noreply@example.com",
        use_tls=True,
        timeout=5,
    )
    values.update(overrides)
    return SMTPEmailConnector(**values)


class TestBuildMessage:
    """Test MIME message construction."""

    def test_headers(self):
        """Sender label, recipient and subject end up in the headers."""
        msg = make_connector().build_message(
            "Harbour View", "agent@example.com", "REMINDER 1/3: Test", "<p>Hello</p>"
        )

        assert msg["From"] == "Harbour View <noreply@example.com>"
        assert msg["To"] == "agent@example.com"
        assert msg["Subject"] == "REMINDER 1/3: Test"
        assert msg["Message-ID"]

    def test_plain_text_alternative(self):
        """HTML bodies get a readable plain-text part."""
        connector = make_connector()

        text = connector._html_to_text("<p>Dear Agent,</p><ul><li>Leak</li></ul><p>A &amp; B</p>")

        assert "Dear Agent," in text
        assert "- Leak" in text
        assert "A & B" in text
        assert "<" not in text


class TestSend:
    """Test delivery through the SMTP server."""

    @pytest.mark.asyncio
    async def test_send_uses_tls_and_login(self, fake_smtp):
        """A successful send goes to exactly one recipient."""
        await make_connector().send("Harbour View", "agent@example.com", "Subject", "<p>Body</p>")

        [server] = fake_smtp.instances
        assert server.host == "smtp.example.com"
        assert server.port == 587
        assert server.started_tls is True
        assert server.logged_in == ("mailer", "secret")
        [(from_addr, to_addrs, _)] = server.sent
        assert from_addr == "noreply@example.com"
        assert to_addrs == ["agent@example.com"]

    @pytest.mark.asyncio
    async def test_send_without_credentials_skips_login(self, fake_smtp):
        """No username means an unauthenticated relay."""
        await make_connector(username="", use_tls=False).send(
            "Harbour View", "agent@example.com", "Subject", "<p>Body</p>"
        )

        [server] = fake_smtp.instances
        assert server.started_tls is False
        assert server.logged_in is None

    @pytest.mark.asyncio
    async def test_smtp_failure_raises_notification_error(self, fake_smtp):
        """SMTP errors surface as NotificationError carrying the recipient."""
        fake_smtp.fail_with = smtplib.SMTPRecipientsRefused({"agent@example.com": (550, b"no")})

        with pytest.raises(NotificationError) as exc_info:
            await make_connector().send("Harbour View", "agent@example.com", "Subject", "<p>x</p>")

        assert exc_info.value.recipient == "agent@example.com"

    @pytest.mark.asyncio
    async def test_connection_error_raises_notification_error(self, fake_smtp):
        """Socket level errors are treated as delivery failures."""
        fake_smtp.fail_with = ConnectionRefusedError("refused")

        with pytest.raises(NotificationError):
            await make_connector().send("Harbour View", "agent@example.com", "Subject", "<p>x</p>")

    @pytest.mark.asyncio
    async def test_missing_host_fails_without_connecting(self, fake_smtp):
        """An unconfigured connector never opens a connection."""
        with pytest.raises(NotificationError, match="not configured"):
            await make_connector(host="").send("Label", "agent@example.com", "Subject", "<p>x</p>")

        assert fake_smtp.instances == []

    @pytest.mark.asyncio
    async def test_check_connection(self, fake_smtp):
        """Connection probe reports reachability."""
        assert await make_connector().check_connection() is True
        assert await make_connector(host="").check_connection() is False
