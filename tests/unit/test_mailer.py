"""Tests for the email template and SMTP transport."""
import smtplib

import pytest

from review_requests.infrastructure.config import MailSettings
from review_requests.infrastructure.mailer import (
    OutgoingEmail,
    SmtpMailTransport,
    render_review_request,
    review_request_subject,
    strip_html,
)
from review_requests.infrastructure.mailer import mail_transport


class FakeSMTP:
    """Records what the transport does with an SMTP connection."""

    instances = []
    fail_with = None
    login_error = None

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.messages = []
        self.logged_in = None
        self.started_tls = False
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.started_tls = True

    def login(self, username, password):
        if FakeSMTP.login_error:
            raise FakeSMTP.login_error
        self.logged_in = (username, password)

    def send_message(self, msg):
        if FakeSMTP.fail_with:
            raise FakeSMTP.fail_with
        self.messages.append(msg)


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    FakeSMTP.fail_with = None
    FakeSMTP.login_error = None
    monkeypatch.setattr(mail_transport.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


@pytest.fixture
def smtp_transport():
    return SmtpMailTransport(
        host="smtp.example.test",
        port=587,
        username="noreply@example.test",
        password="app-password",
        from_name="Review Requests",
    )


def sample_email(**overrides):
    fields = dict(to="jane@example.com", subject="Hi", html="<p>Hello <b>Jane</b></p>", sender_name="Bella Pizza")
    fields.update(overrides)
    return OutgoingEmail(**fields)


class TestTemplate:
    """Tests for the review request email body."""

    def test_subject(self):
        assert review_request_subject("Bella Pizza") == "How was your experience at Bella Pizza?"

    def test_body_with_tracking(self):
        html = render_review_request(
            customer_name="Jane",
            business_name="Bella Pizza",
            review_link="https://api.example.test/track/click/c1",
            tracking_pixel_url="https://api.example.test/track/open/c1",
        )

        assert 'href="https://api.example.test/track/click/c1"' in html
        assert '<img src="https://api.example.test/track/open/c1"' in html
        assert "Jane" in html

    def test_body_without_tracking(self):
        html = render_review_request("Jane", "Bella Pizza", "https://reviews.example/bella")

        assert 'href="https://reviews.example/bella"' in html
        assert "<img" not in html

    def test_names_are_escaped(self):
        html = render_review_request("<script>x</script>", "Tom & Jerry's", "https://reviews.example")

        assert "<script>x</script>" not in html
        assert "Tom &amp; Jerry" in html

    def test_strip_html(self):
        assert strip_html("<style>p {}</style><p>Hello   <b>Jane</b></p>") == "Hello Jane"


class TestSmtpMailTransport:
    """Tests for the SMTP transport."""

    def test_send_success(self, fake_smtp, smtp_transport):
        result = smtp_transport.send(sample_email())

        assert result.success is True
        assert result.sent_from == "noreply@example.test"
        assert result.message_id.endswith("@smtp.example.test")

        connection = fake_smtp.instances[0]
        assert connection.started_tls
        assert connection.logged_in == ("noreply@example.test", "app-password")
        msg = connection.messages[0]
        assert msg["To"] == "jane@example.com"
        assert "Bella Pizza" in msg["From"]

    def test_send_failure_is_reported(self, fake_smtp, smtp_transport):
        fake_smtp.fail_with = smtplib.SMTPRecipientsRefused({"jane@example.com": (550, b"no such user")})

        result = smtp_transport.send(sample_email())

        assert result.success is False
        assert result.error

    def test_unconfigured_transport_never_connects(self, fake_smtp):
        transport = SmtpMailTransport(host="smtp.example.test", port=587, username="", password="")

        result = transport.send(sample_email())

        assert result.success is False
        assert result.error == "SMTP not configured"
        assert fake_smtp.instances == []
        assert transport.status()["accounts"][0]["status"] == "disabled"

    def test_from_settings(self):
        settings = MailSettings(host="smtp.example.test", port=2525, username="u@example.test", password="p")

        transport = SmtpMailTransport.from_settings(settings)

        assert (transport.host, transport.port, transport.username) == ("smtp.example.test", 2525, "u@example.test")
        assert transport.status()["accounts"][0]["isAvailable"] is True

    def test_connection_check_logs_in_without_sending(self, fake_smtp, smtp_transport):
        assert smtp_transport.test_connection() is True

        connection = fake_smtp.instances[0]
        assert connection.logged_in == ("noreply@example.test", "app-password")
        assert connection.messages == []

    def test_connection_check_reports_bad_login(self, fake_smtp, smtp_transport):
        fake_smtp.login_error = smtplib.SMTPAuthenticationError(535, b"bad credentials")

        assert smtp_transport.test_connection() is False

    def test_unconfigured_connection_check(self, fake_smtp):
        transport = SmtpMailTransport(host="smtp.example.test", port=587, username="", password="")

        assert transport.test_connection() is False
        assert fake_smtp.instances == []
