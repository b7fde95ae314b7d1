"""
One-time code providers and senders (no network: webhook posts are faked).
"""
from __future__ import annotations

import types

import pytest
import requests

from identity_access import codes
from identity_access.codes import (
    LogCodeSender,
    OneTimeCodeProvider,
    StaticCodeProvider,
    WebhookCodeSender,
    mask_contact,
)
from identity_access.domain import ContactMethod

pytestmark = pytest.mark.anyio("asyncio")


class _RecordingSender:
    def __init__(self, accept: bool = True):
        self.accept = accept
        self.sent: list[tuple[ContactMethod, str, str]] = []

    def deliver(self, method, contact, code):
        self.sent.append((method, contact, code))
        return self.accept


async def test_static_provider_requires_issue_first():
    provider = StaticCodeProvider("654321")
    assert await provider.check("a1", "654321") is False
    assert await provider.issue("a1", ContactMethod.EMAIL, "a@example.com") is True
    assert await provider.check("a1", "654321") is True
    assert await provider.check("a1", "123456") is False
    provider.discard("a1")
    assert await provider.check("a1", "654321") is False


async def test_one_time_code_last_issued_wins():
    sender = _RecordingSender()
    provider = OneTimeCodeProvider(sender)
    await provider.issue("a1", ContactMethod.PHONE, "+15550100")
    await provider.issue("a1", ContactMethod.PHONE, "+15550100")
    first, second = sender.sent[0][2], sender.sent[1][2]
    assert len(second) == 6 and second.isdigit()
    assert await provider.check("a1", second) is True
    if first != second:
        assert await provider.check("a1", first) is False


async def test_one_time_code_refused_delivery():
    provider = OneTimeCodeProvider(_RecordingSender(accept=False))
    assert await provider.issue("a1", ContactMethod.EMAIL, "a@example.com") is False
    assert await provider.check("a1", "000000") is False


async def test_one_time_code_expiry(monkeypatch: pytest.MonkeyPatch):
    sender = _RecordingSender()
    provider = OneTimeCodeProvider(sender, ttl_seconds=30)
    now = [1000.0]
    monkeypatch.setattr(codes, "time", types.SimpleNamespace(time=lambda: now[0]))
    await provider.issue("a1", ContactMethod.EMAIL, "a@example.com")
    code = sender.sent[-1][2]
    now[0] += 31
    assert await provider.check("a1", code) is False


def test_webhook_sender_posts_json_with_bearer(monkeypatch: pytest.MonkeyPatch):
    calls = []

    def fake_post(url, json, headers, timeout):
        calls.append((url, json, headers, timeout))
        return types.SimpleNamespace(status_code=202)

    monkeypatch.setattr(codes, "http_post", fake_post)
    sender = WebhookCodeSender("https://sms.example.com/send", token="tok", timeout=3.0)
    assert sender.deliver(ContactMethod.PHONE, "+15550100", "123456") is True
    url, payload, headers, timeout = calls[0]
    assert url == "https://sms.example.com/send"
    assert payload == {"method": "phone", "contact": "+15550100", "code": "123456"}
    assert headers["Authorization"] == "Bearer tok"
    assert timeout == 3.0


def test_webhook_sender_failures_are_refusals(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(codes, "http_post", lambda *a, **k: types.SimpleNamespace(status_code=500))
    sender = WebhookCodeSender("https://sms.example.com/send")
    assert sender.deliver(ContactMethod.EMAIL, "a@example.com", "123456") is False

    def boom(*_a, **_k):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(codes, "http_post", boom)
    assert sender.deliver(ContactMethod.EMAIL, "a@example.com", "123456") is False


def test_log_sender_masks_contact(caplog: pytest.LogCaptureFixture):
    caplog.set_level("INFO", logger="daysi.identity_access.codes")
    assert LogCodeSender().deliver(ContactMethod.EMAIL, "alice@example.com", "111222") is True
    assert "a***@example.com" in caplog.text
    assert "alice@" not in caplog.text


def test_mask_contact():
    assert mask_contact("+15550100") == "***00"
    assert mask_contact("x") == "***"
