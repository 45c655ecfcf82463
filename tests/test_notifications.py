from __future__ import annotations

import smtplib

import pytest
from tenacity import wait_none

from app.api.errors import AppError
from app.core.config import settings
from app.integrations import mailer as mailer_module
from app.integrations.mailer import OrderEmail, SmtpMailer
from app.services import notification_service
from app.worker import notification_worker

EVENT = {
    "kind": "customer",
    "order_number": "ORD-1718000000000-7QX2K",
    "customer_name": "Test Buyer",
    "customer_email": "buyer@example.com",
    "new_status": "CANCELLED",
    "total": "300.00",
    "reason": "changed my mind",
}


class _FakeSMTP:
    sent: list = []

    def __init__(self, host, port, timeout=None) -> None:
        self.host = host
        self.port = port

    def __enter__(self):
        return self

    def __exit__(self, *exc) -> None:
        return None

    def starttls(self) -> None:
        pass

    def login(self, user, password) -> None:
        pass

    def send_message(self, msg) -> None:
        _FakeSMTP.sent.append(msg)


@pytest.fixture
def smtp_enabled(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", "smtp.example.com")
    monkeypatch.setattr(settings, "EMAILS_FROM_EMAIL", "orders@example.com")
    _FakeSMTP.sent = []
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", _FakeSMTP)
    return _FakeSMTP


def test_order_email_from_fields():
    email = OrderEmail.from_fields(EVENT)

    assert email.recipient == "buyer@example.com"
    assert email.subject == "Order Cancelled - ORD-1718000000000-7QX2K"
    body = email.body()
    assert "Hi Test Buyer" in body
    assert "Reason: changed my mind" in body
    assert "300.00" in body


def test_order_email_without_reason_and_unknown_status():
    email = OrderEmail.from_fields({**EVENT, "reason": "", "new_status": "ON_HOLD"})

    assert email.reason is None
    assert email.subject == "Order Update - ORD-1718000000000-7QX2K"
    assert "Reason" not in email.body()


def test_admin_email_goes_to_configured_address(monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_NOTIFY_EMAIL", "ops@example.com")
    email = OrderEmail.from_fields({**EVENT, "kind": "admin", "new_status": "PENDING"})

    assert email.recipient == "ops@example.com"
    assert email.subject.startswith("New Order #ORD-1718000000000-7QX2K")


def test_mailer_skips_when_smtp_not_configured(monkeypatch):
    monkeypatch.setattr(settings, "SMTP_HOST", None)
    assert SmtpMailer().send(OrderEmail.from_fields(EVENT)) is False


def test_mailer_sends_message(smtp_enabled):
    assert SmtpMailer().send(OrderEmail.from_fields(EVENT)) is True

    assert len(smtp_enabled.sent) == 1
    msg = smtp_enabled.sent[0]
    assert msg["To"] == "buyer@example.com"
    assert "orders@example.com" in msg["From"]


def test_mailer_wraps_smtp_errors(smtp_enabled, monkeypatch):
    def _refuse(self, msg):
        raise smtplib.SMTPRecipientsRefused({"buyer@example.com": (550, b"no such user")})

    monkeypatch.setattr(_FakeSMTP, "send_message", _refuse)
    with pytest.raises(AppError) as exc_info:
        SmtpMailer().send(OrderEmail.from_fields(EVENT))
    assert exc_info.value.code == 502401
    assert exc_info.value.retryable


def test_worker_acks_after_successful_send(fake_redis, monkeypatch):
    sent: list[OrderEmail] = []
    monkeypatch.setattr(notification_worker.mailer, "send", lambda email: sent.append(email) or True)

    notification_worker.handle_message("1-0", EVENT)

    assert [e.order_number for e in sent] == [EVENT["order_number"]]
    assert fake_redis.acked == [(settings.NOTIFICATION_STREAM, settings.NOTIFICATION_GROUP, "1-0")]


def test_worker_retries_then_gives_up(fake_redis, monkeypatch):
    attempts: list[int] = []

    def _always_fail(email):
        attempts.append(1)
        raise AppError(code=502401, message="SMTP send error", status_code=502)

    monkeypatch.setattr(notification_worker.mailer, "send", _always_fail)
    monkeypatch.setattr(notification_worker, "wait_exponential", lambda **_: wait_none())
    monkeypatch.setattr(settings, "NOTIFICATION_MAX_RETRIES", 3)

    notification_worker.handle_message("2-0", EVENT)

    assert len(attempts) == 3
    assert fake_redis.acked[-1][2] == "2-0"


def test_worker_acks_on_unexpected_send_error(fake_redis, monkeypatch):
    attempts: list[int] = []

    def _bad_encoding(email):
        attempts.append(1)
        raise UnicodeEncodeError("ascii", "Zoë", 2, 3, "ordinal not in range(128)")

    monkeypatch.setattr(notification_worker.mailer, "send", _bad_encoding)

    notification_worker.handle_message("4-0", EVENT)

    assert len(attempts) == 1
    assert fake_redis.acked[-1][2] == "4-0"


def test_worker_acks_malformed_message(fake_redis):
    notification_worker.handle_message("3-0", {"customer_email": "buyer@example.com"})
    assert fake_redis.acked[-1][2] == "3-0"


def test_enqueue_email_reports_failure(fake_redis):
    fake_redis.fail = True
    assert notification_service.enqueue_email(EVENT) is False

    fake_redis.fail = False
    assert notification_service.enqueue_email(EVENT) is True
    assert fake_redis.messages[-1] == (settings.NOTIFICATION_STREAM, EVENT)
