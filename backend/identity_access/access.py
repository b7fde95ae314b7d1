"""
Access gate: decide ALLOW / REDIRECT / PENDING for a route.

Why: Keep the decision a pure function of the session state and the route's
allow-list so it can be re-run on every request (never cached) and unit
tested without a web framework.

Behavior:
- While the session is still loading the answer is PENDING. Callers must
  render a loading indicator only; PENDING is never a permission.
- Without identity the visitor goes to the route's fallback (login).
- A signed-in visitor whose role is not allowed bounces to their role home.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional

from .domain import Role, SessionState, normalize_role
from .routing import LOGIN_PATH, role_home


class Outcome(str, Enum):
    ALLOW = "allow"
    REDIRECT = "redirect"
    PENDING = "pending"


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    target: Optional[str] = None

    @classmethod
    def allow(cls) -> "Decision":
        return cls(Outcome.ALLOW)

    @classmethod
    def pending(cls) -> "Decision":
        return cls(Outcome.PENDING)

    @classmethod
    def redirect(cls, target: str) -> "Decision":
        return cls(Outcome.REDIRECT, target)

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOW


def evaluate(session: SessionState, allowed_roles: Iterable[Role], fallback: str = LOGIN_PATH) -> Decision:
    """Evaluate a session against a route allow-list."""
    if session.loading:
        return Decision.pending()
    identity = session.identity
    if identity is None:
        return Decision.redirect(fallback)
    if identity.role not in frozenset(allowed_roles):
        return Decision.redirect(role_home(identity.role))
    return Decision.allow()


def landing(session: SessionState, fallback: str = LOGIN_PATH) -> Decision:
    """Decision for the generic dashboard entry point: always redirect once settled."""
    if session.loading:
        return Decision.pending()
    if session.identity is None:
        return Decision.redirect(fallback)
    return Decision.redirect(role_home(session.identity.role))


@dataclass(frozen=True)
class RouteGuard:
    """Per-route declaration: which roles may enter and where anonymous visitors go."""

    allowed_roles: frozenset
    fallback: str = LOGIN_PATH

    def __post_init__(self) -> None:
        roles = frozenset(normalize_role(r) for r in (self.allowed_roles or ()))
        if not roles:
            raise ValueError("route guard requires at least one allowed role")
        object.__setattr__(self, "allowed_roles", roles)

    @classmethod
    def of(cls, *roles: Role, fallback: str = LOGIN_PATH) -> "RouteGuard":
        return cls(frozenset(roles), fallback)

    def evaluate(self, session: SessionState) -> Decision:
        return evaluate(session, self.allowed_roles, self.fallback)
