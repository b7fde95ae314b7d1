"""
Session and profile JSON API.

Why:
    Chat and voice front ends read the current session without scraping HTML.
    The same access rules apply as for pages: nothing identity-specific is
    returned while the session is still resolving.
"""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from identity_access.domain import AuthenticationError
from identity_access.routing import role_home

from ..guards import PRIVATE_HEADERS, api_session_error, current_session
from .pages import MAX_NAME_LEN, validate_profile_changes
from .security import _is_same_origin

users_router = APIRouter(tags=["Users"])  # explicit paths below


class ProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=MAX_NAME_LEN)
    language: Optional[str] = Field(default=None, pattern=r"^[a-z]{2}$")


@users_router.get("/api/session")
async def api_session(request: Request):
    """Return the session phase: loading, or settled with/without identity.

    Response: { loading, signed_in, role, home } with role/home null when signed out.
    """
    session = await current_session(request)
    body = session.to_dict()
    identity = session.identity if not session.loading else None
    if identity is None:
        body["identity"] = None
    body["signed_in"] = session.signed_in
    body["role"] = identity.role.value if identity is not None else None
    body["home"] = role_home(identity.role) if identity is not None else None
    headers = dict(PRIVATE_HEADERS)
    if session.loading:
        headers["Retry-After"] = "1"
    return JSONResponse(body, headers=headers)


@users_router.get("/api/me")
async def api_me(request: Request):
    """Return the signed-in identity (401 without, 503 while resolving)."""
    session = await current_session(request)
    error = api_session_error(session)
    if error is not None:
        return error
    return JSONResponse(session.identity.to_dict(), headers=PRIVATE_HEADERS)


@users_router.patch("/api/me")
async def api_me_update(request: Request, payload: ProfileUpdate):
    """Update display name and/or language of the signed-in identity.

    Security:
        Same-origin check first (403 with Vary: Origin on failure).
    """
    if not _is_same_origin(request):
        return JSONResponse({"error": "csrf_violation"}, status_code=403, headers={**PRIVATE_HEADERS, "Vary": "Origin"})
    session = await current_session(request)
    error = api_session_error(session)
    if error is not None:
        return error
    try:
        changes = validate_profile_changes(payload.name, payload.language)
        identity = request.state.client.store.update_identity(**changes)
    except AuthenticationError:
        return JSONResponse({"error": "unauthenticated"}, status_code=401, headers=PRIVATE_HEADERS)
    except ValueError as exc:
        return JSONResponse({"error": "invalid_input", "detail": str(exc)}, status_code=400, headers=PRIVATE_HEADERS)
    return JSONResponse(identity.to_dict(), headers=PRIVATE_HEADERS)
