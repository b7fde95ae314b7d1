"""
Security config guard tests.

Validates that production/staging environments fail fast when the demo code
or the log sender is configured, while development stays permissive.
"""
from __future__ import annotations

import pytest

from web import config as cfg  # type: ignore


def test_dev_allows_static_code(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DAYSI_ENV", "dev")
    monkeypatch.setenv("OTP_BACKEND", "static")
    cfg.ensure_secure_config_on_startup()


@pytest.mark.parametrize("backend", ["static", "log", ""])
def test_prod_refuses_demo_backends(monkeypatch: pytest.MonkeyPatch, backend: str):
    monkeypatch.setenv("DAYSI_ENV", "prod")
    monkeypatch.setenv("OTP_BACKEND", backend)
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_prod_requires_https_webhook(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DAYSI_ENV", "staging")
    monkeypatch.setenv("OTP_BACKEND", "http")
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()
    monkeypatch.setenv("OTP_WEBHOOK_URL", "http://sms.internal/send")
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()


def test_prod_refuses_sslmode_disable(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DAYSI_ENV", "production")
    monkeypatch.setenv("OTP_BACKEND", "http")
    monkeypatch.setenv("OTP_WEBHOOK_URL", "https://sms.example.com/send")
    monkeypatch.setenv("DATABASE_URL", "postgresql://app@db/daysi?sslmode=disable")
    with pytest.raises(SystemExit):
        cfg.ensure_secure_config_on_startup()
    monkeypatch.setenv("DATABASE_URL", "postgresql://app@db/daysi?sslmode=require")
    cfg.ensure_secure_config_on_startup()


def test_settings_read_env_with_fallbacks(monkeypatch: pytest.MonkeyPatch):
    settings = cfg.Settings()
    assert settings.environment == "dev"
    assert settings.session_ttl_seconds == 3600
    monkeypatch.setenv("SESSION_TTL_SECONDS", "120")
    monkeypatch.setenv("RESOLVE_TIMEOUT_SECONDS", "not-a-number")
    assert settings.session_ttl_seconds == 120
    assert settings.resolve_timeout_seconds == 2.0
    settings.override_environment("prod")
    assert settings.environment == "prod"
