"""
Configuration and startup security checks for DAYSI.

Why: Sign-in relies on one-time codes. A demo code or codes written to the
log are fine locally but must never reach production. This module provides
the runtime settings object and a single guard that enforces minimal
production safety constraints without burdening local development.

Permissions: The caller needs no special privileges. The functions simply read
environment variables; the guard raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

import logging
import os

logger = logging.getLogger("daysi.web.config")


def _is_prod_like(env: str) -> bool:
    env_l = (env or "").lower()
    return env_l in {"prod", "production", "stage", "staging"}


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Ignoring non-integer %s", name)
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s", name)
        return default


class Settings:
    """Environment-driven settings, read on access so tests can monkeypatch env."""

    def __init__(self) -> None:
        self._env_override: str | None = None

    @property
    def environment(self) -> str:
        if self._env_override is not None:
            return self._env_override
        return os.getenv("DAYSI_ENV", "dev").lower()

    def override_environment(self, env: str | None) -> None:
        """Override environment for tests (e.g., "prod"), or reset with None."""
        self._env_override = env

    @property
    def session_ttl_seconds(self) -> int:
        return _env_int("SESSION_TTL_SECONDS", 3600)

    @property
    def resolve_timeout_seconds(self) -> float:
        return _env_float("RESOLVE_TIMEOUT_SECONDS", 2.0)

    @property
    def max_clients(self) -> int:
        return _env_int("MAX_CLIENTS", 10000)


def ensure_secure_config_on_startup() -> None:
    """Fail fast on insecure production configuration.

    Checks (prod/stage only):
    - OTP_BACKEND must be a real delivery channel ("http"); the static demo
      code and the log sender are refused.
    - OTP_WEBHOOK_URL must be set and use https.
    - DATABASE_URL must not explicitly disable TLS.
    """
    env = os.getenv("DAYSI_ENV", "dev")
    if not _is_prod_like(env):
        return  # dev/test remain permissive

    backend = (os.getenv("OTP_BACKEND") or "static").strip().lower()
    if backend in {"static", "log"}:
        raise SystemExit(
            f"Refusing to start: OTP_BACKEND={backend} is not allowed in production/staging. Configure OTP_BACKEND=http."
        )

    webhook = (os.getenv("OTP_WEBHOOK_URL") or "").strip()
    if not webhook:
        raise SystemExit("Refusing to start: OTP_WEBHOOK_URL is unset in production.")
    if not webhook.lower().startswith("https://"):
        raise SystemExit("Refusing to start: OTP_WEBHOOK_URL must use https in production.")

    dsn = os.getenv("DATABASE_URL", "")
    if "sslmode=disable" in dsn:
        raise SystemExit(
            "Refusing to start: DATABASE_URL contains sslmode=disable in production. Use sslmode=require or verify TLS."
        )
