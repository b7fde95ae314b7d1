"""
Access gate and role router.

The gate must be a pure function of (session, allow-list): PENDING while
loading, login without identity, role home for a disallowed role.
"""
from __future__ import annotations

import itertools

import pytest

from identity_access.access import Decision, Outcome, RouteGuard, evaluate, landing
from identity_access.domain import Identity, Role, SessionState
from identity_access.routing import LOGIN_PATH, ROLE_HOMES, role_home


def _session(role: Role | None, loading: bool = False) -> SessionState:
    identity = Identity(id="1", email="a@example.com", role=role) if role is not None else None
    return SessionState(loading=loading, identity=identity)


def _allow_lists():
    roles = list(Role)
    for size in range(1, len(roles) + 1):
        yield from itertools.combinations(roles, size)


def test_role_home_is_total_and_stable():
    assert role_home(Role.ADMIN) == "/admin"
    assert role_home(Role.PROVIDER) == "/dashboard/provider"
    assert role_home(Role.USER) == "/dashboard/user"
    assert set(ROLE_HOMES) == set(Role)
    assert role_home(Role.USER) == role_home(Role.USER)


@pytest.mark.parametrize("allowed", list(_allow_lists()))
def test_loading_is_always_pending(allowed):
    for role in [None, *Role]:
        assert evaluate(_session(role, loading=True), allowed).outcome is Outcome.PENDING


@pytest.mark.parametrize("allowed", list(_allow_lists()))
def test_gate_decision_table(allowed):
    assert evaluate(_session(None), allowed) == Decision.redirect(LOGIN_PATH)
    for role in Role:
        decision = evaluate(_session(role), allowed)
        if role in allowed:
            assert decision == Decision.allow()
        else:
            assert decision == Decision.redirect(role_home(role))


def test_provider_on_admin_route_bounces_to_provider_home():
    decision = RouteGuard.of(Role.ADMIN).evaluate(_session(Role.PROVIDER))
    assert decision.outcome is Outcome.REDIRECT
    assert decision.target == "/dashboard/provider"


def test_custom_fallback_for_anonymous_visitors():
    guard = RouteGuard.of(Role.USER, fallback="/welcome")
    assert guard.evaluate(_session(None)).target == "/welcome"


def test_evaluate_is_repeatable():
    session = _session(Role.USER)
    first = evaluate(session, [Role.USER])
    assert evaluate(session, [Role.USER]) == first
    assert first.allowed


def test_route_guard_requires_roles_and_normalizes():
    with pytest.raises(ValueError):
        RouteGuard(frozenset())
    guard = RouteGuard(frozenset({"admin"}))
    assert guard.allowed_roles == frozenset({Role.ADMIN})


def test_landing_redirects_to_role_home_once_settled():
    assert landing(_session(Role.ADMIN, loading=True)).outcome is Outcome.PENDING
    assert landing(_session(None)) == Decision.redirect(LOGIN_PATH)
    assert landing(_session(Role.ADMIN)) == Decision.redirect("/admin")
