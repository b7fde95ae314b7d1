"""
Server-rendered pages behind the access gate.

Every guarded handler follows the same order: read the (settled) session,
evaluate the route guard, and only on ALLOW build the protected content.
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse

from identity_access.access import RouteGuard, landing
from identity_access.domain import AuthenticationError, Identity, Role

from ..components import Component, Layout, TextInputField
from ..guards import PRIVATE_HEADERS, current_session, decision_response
from .security import _is_same_origin

pages_router = APIRouter(tags=["Pages"])
logger = logging.getLogger("daysi.web.pages")

USER_GUARD = RouteGuard.of(Role.USER)
PROVIDER_GUARD = RouteGuard.of(Role.PROVIDER)
ADMIN_GUARD = RouteGuard.of(Role.ADMIN)
PROFILE_GUARD = RouteGuard.of(Role.USER, Role.PROVIDER, Role.ADMIN)

LANGUAGE_PATTERN = re.compile(r"^[a-z]{2}$")
MAX_NAME_LEN = 100

esc = Component.escape


def _page(request: Request, title: str, content: str, identity: Identity | None, status_code: int = 200) -> HTMLResponse:
    html = Layout(title=title, content=content, identity=identity, current_path=request.url.path).render()
    return HTMLResponse(html, status_code=status_code, headers=PRIVATE_HEADERS)


def _greeting(identity: Identity) -> str:
    return esc(identity.name or identity.contact)


@pages_router.get("/", response_class=HTMLResponse)
async def home(request: Request):
    """Public landing page; shows a dashboard link once signed in."""
    session = await current_session(request)
    identity = session.identity if not session.loading else None
    if identity is not None:
        cta = '<a class="button button--primary" href="/dashboard">Open dashboard</a>'
    else:
        cta = '<a class="button button--primary" href="/login">Sign in</a>'
    content = f"""
<section class="hero">
    <h1>DAYSI</h1>
    <p>Find providers and resources, by chat or by voice.</p>
    {cta}
</section>"""
    return _page(request, "Home", content, identity)


@pages_router.get("/dashboard")
async def dashboard_landing(request: Request):
    """Generic dashboard entry point: always forwards to the role home."""
    session = await current_session(request)
    return decision_response(request, landing(session))


@pages_router.get("/dashboard/user", response_class=HTMLResponse)
async def user_dashboard(request: Request):
    session = await current_session(request)
    denied = decision_response(request, USER_GUARD.evaluate(session))
    if denied is not None:
        return denied
    identity = session.identity
    content = f"""
<section class="dashboard" data-dashboard="user">
    <h1>Welcome, {_greeting(identity)}</h1>
    <ul class="quick-actions">
        <li><a href="/profile">Edit profile</a></li>
    </ul>
</section>"""
    return _page(request, "My Dashboard", content, identity)


@pages_router.get("/dashboard/provider", response_class=HTMLResponse)
async def provider_dashboard(request: Request):
    session = await current_session(request)
    denied = decision_response(request, PROVIDER_GUARD.evaluate(session))
    if denied is not None:
        return denied
    identity = session.identity
    content = f"""
<section class="dashboard" data-dashboard="provider">
    <h1>Provider dashboard</h1>
    <p>Signed in as {_greeting(identity)}.</p>
</section>"""
    return _page(request, "Provider Dashboard", content, identity)


@pages_router.get("/admin", response_class=HTMLResponse)
async def admin_home(request: Request):
    session = await current_session(request)
    denied = decision_response(request, ADMIN_GUARD.evaluate(session))
    if denied is not None:
        return denied
    identity = session.identity
    active_clients = len(request.app.state.clients)
    content = f"""
<section class="dashboard" data-dashboard="admin">
    <h1>Administration</h1>
    <dl class="status-cards">
        <dt>Environment</dt><dd>{esc(request.app.state.settings.environment)}</dd>
        <dt>Active clients</dt><dd>{active_clients}</dd>
    </dl>
</section>"""
    return _page(request, "Administration", content, identity)


def _profile_content(identity: Identity, error: str | None = None) -> str:
    name_field = TextInputField("name", "Name").render(value=identity.name, maxlength=str(MAX_NAME_LEN))
    language_field = TextInputField(
        "language", "Language", help_text="Two-letter code, e.g. en or es."
    ).render(value=identity.language, maxlength="2")
    error_html = f'<p class="form-error" role="alert">{esc(error)}</p>' if error else ""
    return f"""
<section class="profile">
    <h1>Profile</h1>
    <p>Contact: {esc(identity.contact)}</p>
    <form method="post" action="/profile" class="profile-form">
        {name_field}
        {language_field}
        {error_html}
        <button type="submit" class="button button--primary">Save</button>
    </form>
</section>"""


def validate_profile_changes(name: object = None, language: object = None) -> dict:
    """Return cleaned profile changes; raises ValueError with a user-facing message."""
    changes: dict = {}
    if name is not None:
        name = str(name).strip()
        if len(name) > MAX_NAME_LEN:
            raise ValueError(f"Name must be at most {MAX_NAME_LEN} characters.")
        changes["name"] = name
    if language is not None:
        language = str(language).strip().lower()
        if not LANGUAGE_PATTERN.match(language):
            raise ValueError("Language must be a two-letter code.")
        changes["language"] = language
    return changes


@pages_router.get("/profile", response_class=HTMLResponse)
async def profile_page(request: Request):
    session = await current_session(request)
    denied = decision_response(request, PROFILE_GUARD.evaluate(session))
    if denied is not None:
        return denied
    return _page(request, "Profile", _profile_content(session.identity), session.identity)


@pages_router.post("/profile")
async def profile_update(request: Request):
    """Update display name and language (form post, PRG)."""
    if not _is_same_origin(request):
        return HTMLResponse("", status_code=403, headers={**PRIVATE_HEADERS, "Vary": "Origin"})
    session = await current_session(request)
    denied = decision_response(request, PROFILE_GUARD.evaluate(session))
    if denied is not None:
        return denied
    form = await request.form()
    try:
        changes = validate_profile_changes(form.get("name"), form.get("language"))
        updated = request.state.client.store.update_identity(**changes)
    except ValueError as exc:
        return _page(request, "Profile", _profile_content(session.identity, str(exc)), session.identity, status_code=400)
    except AuthenticationError:
        return RedirectResponse(url="/login", status_code=303, headers=PRIVATE_HEADERS)
    logger.info("Profile updated for identity %s", updated.id)
    return RedirectResponse(url="/profile", status_code=303, headers=PRIVATE_HEADERS)
