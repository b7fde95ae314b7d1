"""
Authentication-related FastAPI routes (router-only module).

Why:
    Keep the sign-in flow (request code -> verify code) and logout in a
    dedicated router. The per-client SessionStore and VerificationFlow come
    from the client middleware via ``request.state.client``.

Notes:
    - Successful form posts use POST-redirect-GET (303).
    - Failures re-render the current step with an inline message and a 4xx/5xx
      status; no state beyond the failing step is touched.
    - Every state-changing POST passes the same-origin (CSRF) check first.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse, Response

from identity_access.access import landing
from identity_access.domain import (
    AttemptCompletedError,
    AuthError,
    CodeDeliveryError,
    ContactMethod,
    InvalidCodeError,
    RequestInFlightError,
    ValidationError,
)
from identity_access.routing import DASHBOARD_PATH, LOGIN_PATH
from identity_access.verification import VerificationStep

from ..auth_utils import cookie_opts
from ..components import CodeForm, ContactForm, Layout
from ..guards import PRIVATE_HEADERS, current_session, decision_response, pending_page
from .security import _is_same_origin

auth_router = APIRouter(tags=["Auth"])  # explicit paths, no prefix
logger = logging.getLogger("daysi.web.auth")

ERROR_STATUS = {
    ValidationError: 400,
    InvalidCodeError: 400,
    RequestInFlightError: 409,
    AttemptCompletedError: 409,
    CodeDeliveryError: 502,
}


def _status_for(exc: AuthError) -> int:
    return ERROR_STATUS.get(type(exc), 400)


def _forbidden() -> HTMLResponse:
    return HTMLResponse("", status_code=403, headers={**PRIVATE_HEADERS, "Vary": "Origin"})


def _login_page(request: Request, *, error: AuthError | None = None, status_code: int = 200) -> HTMLResponse:
    """Render the login page for the current step of the client's flow."""
    flow = request.state.client.flow
    if flow.step is VerificationStep.AWAITING_CODE:
        body = CodeForm(
            method=flow.pending_method.value,
            contact=flow.pending_contact,
            code=flow.code,
            error_text=(error.message if error else None),
        ).render()
    else:
        body = ContactForm(
            method=flow.contact_method.value,
            email=flow.email,
            phone=flow.phone,
            error_field=getattr(error, "field", None),
            error_text=(error.message if error else None),
        ).render()
    content = f"""
<section class="auth-card" data-step="{flow.step.value}">
    <h1>Sign in</h1>
    {body}
</section>"""
    html = Layout(title="Sign in", content=content, current_path=LOGIN_PATH).render()
    return HTMLResponse(html, status_code=status_code, headers=PRIVATE_HEADERS)


async def _signed_in_redirect(request: Request) -> Response | None:
    """Settled sessions with identity leave the login flow for their role home."""
    session = await current_session(request)
    if session.loading:
        return pending_page(request)
    if session.identity is not None:
        return decision_response(request, landing(session))
    return None


@auth_router.get("/login", response_class=HTMLResponse)
async def login_page(request: Request):
    """
    Render the sign-in page (contact step or code step).

    Permissions:
        Public. Signed-in visitors are sent to their role home.
    """
    early = await _signed_in_redirect(request)
    if early is not None:
        return early
    ctx = request.state.client
    if ctx.flow.completed:
        request.app.state.clients.restart_flow(ctx)
    return _login_page(request)


@auth_router.post("/auth/code")
async def auth_request_code(request: Request):
    """
    Request a one-time code for the selected contact method.

    Form fields: `method` (email|phone), `email`, `phone`.
    Success: 303 to /login (code step). Blank contact: 400 with inline error.
    """
    if not _is_same_origin(request):
        return _forbidden()
    early = await _signed_in_redirect(request)
    if early is not None:
        return early
    ctx = request.state.client
    if ctx.flow.completed:
        request.app.state.clients.restart_flow(ctx)
    form = await request.form()
    method = str(form.get("method") or ContactMethod.EMAIL.value).strip().lower()
    value = str(form.get(method) or "") if method in ("email", "phone") else ""
    try:
        await ctx.flow.request_code(method, value)
    except AuthError as exc:
        logger.info("Code request rejected: %s", exc.code)
        return _login_page(request, error=exc, status_code=_status_for(exc))
    return RedirectResponse(url=LOGIN_PATH, status_code=303, headers=PRIVATE_HEADERS)


@auth_router.post("/auth/verify")
async def auth_verify_code(request: Request):
    """
    Verify the submitted code and sign in.

    Success: 303 to /dashboard (role home) with a freshly issued session cookie.
    Mismatch: 400, the attempt stays in the code step.
    """
    if not _is_same_origin(request):
        return _forbidden()
    early = await _signed_in_redirect(request)
    if early is not None:
        return early
    ctx = request.state.client
    form = await request.form()
    code = str(form.get("code") or "")
    try:
        identity = await ctx.flow.verify_code(code)
    except AuthError as exc:
        logger.info("Code verification rejected: %s", exc.code)
        return _login_page(request, error=exc, status_code=_status_for(exc))
    if identity is None:
        return RedirectResponse(url=LOGIN_PATH, status_code=303, headers=PRIVATE_HEADERS)
    # A pre-login cookie value must not become the signed-in session.
    request.app.state.clients.rotate(ctx)
    request.state.issue_cookie = True
    return RedirectResponse(url=DASHBOARD_PATH, status_code=303, headers=PRIVATE_HEADERS)


@auth_router.post("/auth/back")
async def auth_back(request: Request):
    """Return to the contact step; entered email/phone stay filled in."""
    if not _is_same_origin(request):
        return _forbidden()
    request.state.client.flow.reset()
    return RedirectResponse(url=LOGIN_PATH, status_code=303, headers=PRIVATE_HEADERS)


@auth_router.get("/auth/logout")
async def auth_logout(request: Request):
    """
    Sign out and tear down the client context.

    Behavior:
        - Clears the identity (and its persisted record).
        - Discards the client's store and flow; the cookie is expired.
        - Redirects (302) to /auth/logout/success.
    Permissions:
        Public; signing out without a session is a no-op.
    """
    ctx = request.state.client
    ctx.store.sign_out()
    request.app.state.clients.discard(ctx.client_id)
    request.state.issue_cookie = False

    resp = RedirectResponse(url="/auth/logout/success", status_code=302, headers=PRIVATE_HEADERS)
    opts = cookie_opts(request.app.state.settings.environment)
    resp.set_cookie(
        key=request.app.state.cookie_name,
        value="",
        httponly=True,
        secure=opts["secure"],
        samesite=opts["samesite"],
        path="/",
        expires=0,
        max_age=0,
    )
    return resp


@auth_router.get("/auth/logout/success", response_class=HTMLResponse)
async def auth_logout_success():
    """Minimal success page after logout with a link back to /login."""
    content = """
<section class="auth-card">
    <h1>Signed out</h1>
    <p>You have been signed out.</p>
    <p><a class="button button--primary" href="/login">Sign in again</a></p>
</section>"""
    html = Layout(title="Signed out", content=content, show_nav=False).render()
    return HTMLResponse(content=html, headers=PRIVATE_HEADERS)
