"""
Form components for DAYSI.

Basic building blocks (FormField, TextInputField) and the sign-in forms.
"""

from .fields import FormField, TextInputField
from .login_form import CodeForm, ContactForm

__all__ = [
    "FormField",
    "TextInputField",
    "ContactForm",
    "CodeForm",
]
