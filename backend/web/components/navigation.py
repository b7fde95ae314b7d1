"""
Navigation Component for DAYSI

Role-based sidebar that adapts to the signed-in identity (user/provider/admin).
Visibility of a link never grants access; every target route runs its own
access gate.
"""

from typing import Dict, List, Optional, Tuple

from identity_access.domain import Identity, Role

from .base import Component

NavItem = Tuple[str, str]

NAV_CONFIG: Dict[Role, List[NavItem]] = {
    Role.USER: [
        ("/", "Home"),
        ("/dashboard/user", "My Dashboard"),
        ("/profile", "Profile"),
    ],
    Role.PROVIDER: [
        ("/", "Home"),
        ("/dashboard/provider", "Provider Dashboard"),
        ("/profile", "Profile"),
    ],
    Role.ADMIN: [
        ("/", "Home"),
        ("/admin", "Administration"),
        ("/profile", "Profile"),
    ],
}

PUBLIC_NAV: List[NavItem] = [
    ("/", "Home"),
    ("/login", "Sign in"),
]

ROLE_LABELS = {
    Role.USER: "User",
    Role.PROVIDER: "Provider",
    Role.ADMIN: "Administrator",
}


class Navigation(Component):
    """Sidebar navigation with role-based menu items"""

    def __init__(self, identity: Optional[Identity] = None, current_path: str = "/"):
        self.identity = identity
        self.current_path = current_path or "/"

    def items(self) -> List[NavItem]:
        if self.identity is None:
            return PUBLIC_NAV
        return NAV_CONFIG.get(self.identity.role, NAV_CONFIG[Role.USER])

    def _active_href(self, items: List[NavItem]) -> str:
        """Pick the single active href using best prefix match."""
        path = self.current_path
        best = "/"
        best_len = 0
        for href, _text in items:
            if href == path:
                return href
            if href != "/" and path.startswith(href) and len(href) > best_len:
                best = href
                best_len = len(href)
        return best

    def render(self) -> str:
        items = self.items()
        active = self._active_href(items)
        links = [self._link(href, text, href == active) for href, text in items]
        footer = ""
        if self.identity is not None:
            links.append(self._logout())
            footer = f"""
            <div class="sidebar-footer">
                <div class="user-name">{self.escape(self.identity.name or self.identity.contact)}</div>
                <div class="user-role">{self.escape(ROLE_LABELS.get(self.identity.role, "User"))}</div>
            </div>"""
        return f"""
    <aside class="sidebar" id="sidebar" aria-label="Sidebar">
        <nav class="sidebar-nav" role="navigation" aria-label="Main navigation">
            <div class="sidebar-header"><span class="sidebar-title">DAYSI</span></div>
            <div class="sidebar-items">
                {''.join(links)}
            </div>{footer}
        </nav>
    </aside>"""

    def _link(self, href: str, text: str, is_active: bool) -> str:
        cls = self.classes("sidebar-link", active=is_active)
        aria_attr = ' aria-current="page"' if is_active else ""
        return f"""
                <a href="{href}" class="{cls}"{aria_attr}><span class="nav-text">{self.escape(text)}</span></a>"""

    @staticmethod
    def _logout() -> str:
        return """
                <a href="/auth/logout" class="sidebar-link sidebar-logout"><span class="nav-text">Sign out</span></a>"""
