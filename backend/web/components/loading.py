"""Loading indicator shown while the session is still being resolved."""

from .base import Component


class LoadingIndicator(Component):
    def __init__(self, label: str = "Loading..."):
        self.label = label

    def render(self) -> str:
        return (
            '<div class="loading" data-state="pending" role="status" aria-live="polite">'
            '<span class="loading-spinner" aria-hidden="true"></span>'
            f'<span class="sr-only">{self.escape(self.label)}</span>'
            "</div>"
        )
