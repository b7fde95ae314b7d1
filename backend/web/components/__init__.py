# DAYSI Component System
# Pure Python Components for type-safe HTML generation

from .base import Component
from .layout import Layout
from .loading import LoadingIndicator
from .navigation import Navigation
from .forms import FormField, TextInputField, ContactForm, CodeForm

__all__ = [
    "Component",
    "Layout",
    "LoadingIndicator",
    "Navigation",
    "FormField",
    "TextInputField",
    "ContactForm",
    "CodeForm",
]
