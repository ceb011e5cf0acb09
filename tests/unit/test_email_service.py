from unittest.mock import patch

import pytest

from batchops.schemas import Recipient
from batchops.services.email_service import EmailService, EmailServiceConfig, html_to_text


@pytest.fixture
def smtp_env(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "587")
    monkeypatch.setenv("FROM_EMAIL", "noreply@example.com")
    monkeypatch.delenv("SMTP_USE_SSL", raising=False)
    monkeypatch.delenv("SMTP_USE_TLS", raising=False)


def _smtp_mock(sent, fail_on=None):
    class _SMTPMock:
        def __init__(self2, **kwargs):
            self2.kwargs = kwargs

        async def __aenter__(self2):
            return self2

        async def __aexit__(self2, exc_type, exc, tb):
            return False

        async def login(self2, username, password):
            return None

        async def send_message(self2, message):
            if fail_on and message["To"] == fail_on:
                raise ConnectionError("550 mailbox unavailable")
            sent.append(message)
            return {"status": "250 OK"}

    return _SMTPMock


def test_config_validate_and_is_configured(smtp_env, monkeypatch):
    cfg = EmailServiceConfig()
    assert cfg.is_configured() is True
    assert cfg.validate() == []

    monkeypatch.setenv("SMTP_HOST", "")
    monkeypatch.setenv("SMTP_PORT", "-1")
    monkeypatch.setenv("FROM_EMAIL", "")
    errs = EmailServiceConfig().validate()
    assert any("SMTP_HOST" in e for e in errs)
    assert any("SMTP_PORT" in e for e in errs)
    assert any("FROM_EMAIL" in e for e in errs)


def test_config_rejects_ssl_and_tls_together(smtp_env, monkeypatch):
    monkeypatch.setenv("SMTP_USE_SSL", "true")
    monkeypatch.setenv("SMTP_USE_TLS", "true")
    assert any("both SSL and TLS" in e for e in EmailServiceConfig().validate())


def test_smtp_kwargs_use_starttls_by_default(smtp_env):
    kwargs = EmailService()._smtp_kwargs()
    assert kwargs["start_tls"] is True
    assert kwargs["use_tls"] is False


@pytest.mark.asyncio
async def test_send_email_not_configured(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "")
    monkeypatch.setenv("FROM_EMAIL", "")
    out = await EmailService().send_email("user@example.com", "Subject", "<b>Hi</b>")
    assert out["success"] is False
    assert "not configured" in out["error"]


@pytest.mark.asyncio
async def test_send_email_success_with_mocked_smtp(smtp_env):
    sent = []
    with patch("aiosmtplib.SMTP", _smtp_mock(sent)):
        out = await EmailService().send_email("user@example.com", "Subject", "<b>Hi</b>", reply_to="desk@example.com")

    assert out["success"] is True
    assert sent[0]["To"] == "user@example.com"
    assert sent[0]["Reply-To"] == "desk@example.com"
    assert [part.get_content_type() for part in sent[0].get_payload()] == ["text/plain", "text/html"]


@pytest.mark.asyncio
async def test_send_batch_sends_each_recipient_over_one_connection(smtp_env):
    sent = []
    recipients = [Recipient(id="u1", email="a@example.com"), Recipient(id="u2", email="b@example.com")]
    with patch("aiosmtplib.SMTP", _smtp_mock(sent)):
        ok = await EmailService().send_batch(recipients, "Hello", html_content="<p>Hi</p>")

    assert ok is True
    assert [m["To"] for m in sent] == ["a@example.com", "b@example.com"]


@pytest.mark.asyncio
async def test_send_batch_reports_failure(smtp_env):
    sent = []
    recipients = [Recipient(id="u1", email="a@example.com"), Recipient(id="u2", email="b@example.com")]
    with patch("aiosmtplib.SMTP", _smtp_mock(sent, fail_on="b@example.com")):
        ok = await EmailService().send_batch(recipients, "Hello", text_content="Hi")

    assert ok is False


@pytest.mark.asyncio
async def test_send_batch_empty_and_unconfigured(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "")
    svc = EmailService()
    assert await svc.send_batch([], "Hello", text_content="Hi") is True
    assert await svc.send_batch([Recipient(id="u1", email="a@example.com")], "Hello", text_content="Hi") is False


@pytest.mark.asyncio
async def test_test_connection_success_and_failure(smtp_env):
    with patch("aiosmtplib.SMTP", _smtp_mock([])):
        ok = await EmailService().test_connection()
        assert ok["success"] is True

    with patch("aiosmtplib.SMTP", side_effect=Exception("boom")):
        res = await EmailService().test_connection()
        assert res["success"] is False
        assert "failed" in res["error"].lower()


def test_html_to_text_conversion():
    html = "<html><body>Hello &amp; world &lt;3&gt; &#39;quote&#39;</body></html>"
    assert html_to_text(html) == "Hello & world <3> 'quote'"
