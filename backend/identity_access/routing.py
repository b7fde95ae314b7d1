"""
Role router: maps a role to its home destination.

Used as the bounce-back target when a route guard rejects a signed-in visitor
and as the default landing for the generic dashboard entry point.
"""

from __future__ import annotations

from types import MappingProxyType

from .domain import Role

LOGIN_PATH = "/login"
DASHBOARD_PATH = "/dashboard"

ROLE_HOMES = MappingProxyType(
    {
        Role.ADMIN: "/admin",
        Role.PROVIDER: "/dashboard/provider",
        Role.USER: "/dashboard/user",
    }
)


def role_home(role: Role) -> str:
    """Return the home path for ``role``. Pure; same role always yields the same path."""
    return ROLE_HOMES.get(role, ROLE_HOMES[Role.USER])
