"""
Layout Component for DAYSI

Main layout wrapper that combines navigation and page content into a full
HTML document.
"""

from typing import Optional

from identity_access.domain import Identity

from .base import Component
from .navigation import Navigation


class Layout(Component):
    """Assembles the complete page"""

    def __init__(
        self,
        title: str,
        content: str,
        identity: Optional[Identity] = None,
        show_nav: bool = True,
        current_path: str = "/",
        refresh_seconds: Optional[int] = None,
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            identity: Signed-in identity, if any
            show_nav: Whether to render the sidebar
            current_path: Current URL path for active navigation highlighting
            refresh_seconds: Emit a meta refresh (used while the session is loading)
        """
        self.title = title
        self.content = content
        self.identity = identity
        self.show_nav = show_nav
        self.current_path = current_path
        self.refresh_seconds = refresh_seconds

    def render(self) -> str:
        nav_html = Navigation(self.identity, self.current_path).render() if self.show_nav else ""
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    {self._render_head()}
</head>
<body>
    {nav_html}
    <main id="main-content" class="main-content" role="main">
        {self.content}
    </main>
</body>
</html>"""

    def _render_head(self) -> str:
        refresh = (
            f'<meta http-equiv="refresh" content="{int(self.refresh_seconds)}">'
            if self.refresh_seconds is not None
            else ""
        )
        return f"""
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    {refresh}
    <title>{self.escape(self.title)} - DAYSI</title>"""
