"DAYSI web application"
from __future__ import annotations

import logging
import os
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from dotenv import load_dotenv

from identity_access.codes import (
    LogCodeSender,
    OneTimeCodeProvider,
    StaticCodeProvider,
    VerificationProvider,
    WebhookCodeSender,
)
from identity_access.directory import IdentityDirectory, RolePolicy
from identity_access.stores import IdentityRecordStore

from . import config
from .auth_utils import cookie_opts
from .clients import ClientRegistry
from .config import Settings


def _should_load_dotenv() -> bool:
    """Decide if we should load a local .env file.

    - Never load under pytest to avoid contaminating test env.
    - Allow explicit opt-out/opt-in via DAYSI_ENABLE_DOTENV (default true
      outside pytest).
    """
    if "pytest" in sys.modules or os.getenv("PYTEST_CURRENT_TEST"):
        return False
    flag = (os.getenv("DAYSI_ENABLE_DOTENV", "true") or "").strip().lower()
    return flag in ("1", "true", "yes")


if _should_load_dotenv():
    load_dotenv()

# Minimal production safety checks (fail-fast on insecure config)
config.ensure_secure_config_on_startup()

# --- App & Settings Setup -------------------------------------------------------

logger = logging.getLogger("daysi.web")
SETTINGS = Settings()
SESSION_COOKIE_NAME = "daysi_session"

app = FastAPI(title="DAYSI", description="Find providers and resources by chat or voice", version="0.1.0")


def _under_pytest() -> bool:
    return "pytest" in sys.modules or bool(os.getenv("PYTEST_CURRENT_TEST"))


def load_verification_provider() -> VerificationProvider:
    """Select the code provider from OTP_BACKEND (static|log|http)."""
    backend = (os.getenv("OTP_BACKEND", "static") or "static").strip().lower()
    ttl_raw = (os.getenv("OTP_TTL_SECONDS") or "").strip()
    ttl = float(ttl_raw) if ttl_raw else None
    if backend == "log":
        logger.warning("OTP_BACKEND=log writes one-time codes to the log (dev only)")
        return OneTimeCodeProvider(LogCodeSender(), ttl_seconds=ttl)
    if backend == "http":
        url = (os.getenv("OTP_WEBHOOK_URL") or "").strip()
        if not url:
            raise RuntimeError("OTP_WEBHOOK_URL is required for OTP_BACKEND=http")
        sender = WebhookCodeSender(url, token=(os.getenv("OTP_WEBHOOK_TOKEN") or None))
        return OneTimeCodeProvider(sender, ttl_seconds=ttl)
    if backend != "static":
        logger.warning("Unknown OTP_BACKEND %r, using static code", backend)
    return StaticCodeProvider(os.getenv("OTP_STATIC_CODE", "123456") or "123456")


def load_record_store():
    """Select the identity record store (SESSIONS_BACKEND=memory|db)."""
    backend = (os.getenv("SESSIONS_BACKEND", "memory") or "memory").strip().lower()
    ttl = SETTINGS.session_ttl_seconds
    if backend == "db" and not _under_pytest():
        from identity_access.stores_db import DBIdentityRecordStore

        logger.info("Using database identity record store")
        return DBIdentityRecordStore(ttl_seconds=ttl)
    return IdentityRecordStore(ttl_seconds=ttl)


def build_registry() -> ClientRegistry:
    registry = ClientRegistry(
        IdentityDirectory(RolePolicy.from_env()),
        load_record_store(),
        load_verification_provider(),
        ttl_seconds=SETTINGS.session_ttl_seconds,
        max_clients=SETTINGS.max_clients,
    )
    app.state.clients = registry
    return registry


app.state.settings = SETTINGS
app.state.cookie_name = SESSION_COOKIE_NAME
build_registry()

# --- Middleware ------------------------------------------------------------------


def _is_stateless_path(path: str) -> bool:
    return path.startswith("/static/") or path in ("/health", "/favicon.ico", "/auth/logout/success")


@app.middleware("http")
async def client_context(request: Request, call_next):
    """Attach the browser's ClientContext and issue its cookie on first contact."""
    path = request.url.path
    if _is_stateless_path(path):
        return await call_next(request)

    registry: ClientRegistry = app.state.clients
    ctx, issued = registry.get_or_create(request.cookies.get(SESSION_COOKIE_NAME))
    request.state.client = ctx
    request.state.issue_cookie = issued
    response = await call_next(request)
    if getattr(request.state, "issue_cookie", False):
        opts = cookie_opts(SETTINGS.environment)
        response.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=ctx.client_id,
            httponly=True,
            secure=opts["secure"],
            samesite=opts["samesite"],
            path="/",
            max_age=SETTINGS.session_ttl_seconds,
        )
    return response


@app.middleware("http")
async def security_headers(request: Request, call_next):
    response = await call_next(request)
    if SETTINGS.environment == "prod":
        csp = "default-src 'self'; script-src 'self'; style-src 'self'; img-src 'self' data:;"
    else:
        # Developer experience: allow inline for local SSR components.
        csp = "default-src 'self'; script-src 'self' 'unsafe-inline'; style-src 'self' 'unsafe-inline'; img-src 'self' data:;"
    response.headers.setdefault("Content-Security-Policy", csp)
    response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
    if SETTINGS.environment == "prod":
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
    return response


# --- Routers ---------------------------------------------------------------------

from .routes.auth import auth_router
from .routes.pages import pages_router
from .routes.users import users_router

app.include_router(auth_router)
app.include_router(pages_router)
app.include_router(users_router)


@app.get("/health")
async def health_check():
    # Security: include no-store to avoid caching any runtime status.
    return JSONResponse({"status": "healthy"}, headers={"Cache-Control": "private, no-store"})
