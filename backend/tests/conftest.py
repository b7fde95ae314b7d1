"""
Pytest configuration for backend tests.

Why: Force AnyIO to use the asyncio backend to avoid sandbox restrictions
that can affect the Trio backend (e.g., socketpair permission errors).
Every test starts from a clean environment and a fresh client registry so
sessions never leak between tests.
"""
import sys
from pathlib import Path

import pytest

# Ensure modules in backend/ are importable across tests
REPO_ROOT = Path(__file__).resolve().parents[2]
BACKEND_DIR = REPO_ROOT / "backend"
TESTS_DIR = BACKEND_DIR / "tests"
for p in (str(BACKEND_DIR), str(TESTS_DIR)):
    if p not in sys.path:
        sys.path.insert(0, p)

_APP_ENV_VARS = (
    "DAYSI_ENV",
    "DAYSI_TRUST_PROXY",
    "SESSIONS_BACKEND",
    "DATABASE_URL",
    "SESSION_TTL_SECONDS",
    "RESOLVE_TIMEOUT_SECONDS",
    "MAX_CLIENTS",
    "OTP_BACKEND",
    "OTP_STATIC_CODE",
    "OTP_WEBHOOK_URL",
    "OTP_WEBHOOK_TOKEN",
    "OTP_TTL_SECONDS",
    "ADMIN_CONTACTS",
    "PROVIDER_CONTACTS",
)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(autouse=True)
def _clean_app_env(monkeypatch: pytest.MonkeyPatch):
    """Drop app configuration from the environment and rebuild the registry."""
    for name in _APP_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    from web import main  # type: ignore

    main.SETTINGS.override_environment(None)
    main.build_registry()
    yield
    main.SETTINGS.override_environment(None)
