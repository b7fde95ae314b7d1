"""
Route guard helpers: turn access decisions into HTTP responses.

Behavior:
- PENDING renders only a loading indicator (200, refresh hint). Protected
  content is never built for PENDING or REDIRECT.
- REDIRECT answers 302 for page loads and 401 + HX-Redirect for HTMX.
- JSON endpoints get 503 + Retry-After while pending and 401 without identity.
"""
from __future__ import annotations

from typing import Optional

from fastapi import Request
from fastapi.responses import HTMLResponse, JSONResponse, RedirectResponse, Response

from identity_access.access import Decision, Outcome
from identity_access.domain import SessionState

from .components import Layout, LoadingIndicator

PRIVATE_HEADERS = {"Cache-Control": "private, no-store"}


async def current_session(request: Request) -> SessionState:
    """Return the client's session state, waiting briefly for identity resolution."""
    ctx = request.state.client
    timeout = request.app.state.settings.resolve_timeout_seconds
    return await ctx.store.wait_settled(timeout)


def pending_page(request: Request) -> HTMLResponse:
    html = Layout(
        title="Loading",
        content=LoadingIndicator().render(),
        show_nav=False,
        current_path=request.url.path,
        refresh_seconds=1,
    ).render()
    return HTMLResponse(html, headers={**PRIVATE_HEADERS, "Retry-After": "1"})


def decision_response(request: Request, decision: Decision) -> Optional[Response]:
    """Return the response for a non-ALLOW decision, or None when access is allowed."""
    if decision.outcome is Outcome.PENDING:
        return pending_page(request)
    if decision.outcome is Outcome.REDIRECT:
        target = decision.target or "/"
        if request.headers.get("HX-Request"):
            return Response(status_code=401, headers={**PRIVATE_HEADERS, "HX-Redirect": target, "Vary": "HX-Request"})
        return RedirectResponse(url=target, status_code=302, headers=PRIVATE_HEADERS)
    return None


def api_session_error(session: SessionState) -> Optional[JSONResponse]:
    """JSON counterpart of the gate for endpoints that need an identity."""
    if session.loading:
        return JSONResponse(
            {"error": "session_pending"},
            status_code=503,
            headers={**PRIVATE_HEADERS, "Retry-After": "1"},
        )
    if session.identity is None:
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=PRIVATE_HEADERS)
    return None
