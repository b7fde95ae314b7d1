"""
Sign-in forms for the two verification steps.

ContactForm: choose email or phone and request a code.
CodeForm: enter the 6-digit code, resend it, or go back to the contact step.
Both post regular forms (POST-redirect-GET on success).
"""

from typing import Optional

from ..base import Component
from .fields import TextInputField


class ContactForm(Component):
    def __init__(
        self,
        *,
        method: str = "email",
        email: str = "",
        phone: str = "",
        error_field: Optional[str] = None,
        error_text: Optional[str] = None,
    ) -> None:
        self.method = method
        self.email = email
        self.phone = phone
        self.error_field = error_field
        self.error_text = error_text

    def _error_for(self, field: str) -> Optional[str]:
        return self.error_text if self.error_field == field else None

    def _method_option(self, value: str, label: str) -> str:
        attrs = self.attributes(
            type="radio",
            name="method",
            value=value,
            id=f"method-{value}",
            checked=self.method == value,
        )
        return (
            f'<label class="method-option" for="method-{value}">'
            f"<input {attrs}> {self.escape(label)}</label>"
        )

    def render(self) -> str:
        email_field = TextInputField(
            "email", "Email address", error_text=self._error_for("email")
        ).render(value=self.email, input_type="email", autocomplete="email", placeholder="you@example.com")
        phone_field = TextInputField(
            "phone", "Phone number", error_text=self._error_for("phone")
        ).render(value=self.phone, input_type="tel", autocomplete="tel", placeholder="+1 555 0100")
        general_error = ""
        if self.error_text and self.error_field not in ("email", "phone"):
            general_error = f'<p class="form-error" role="alert">{self.escape(self.error_text)}</p>'

        return f"""
<form class="auth-form" method="post" action="/auth/code" data-step="awaiting_contact">
    <fieldset class="method-choice">
        <legend>Sign in with</legend>
        {self._method_option("email", "Email")}
        {self._method_option("phone", "Phone")}
    </fieldset>
    {email_field}
    {phone_field}
    {general_error}
    <button type="submit" class="button button--primary">Send code</button>
</form>"""


class CodeForm(Component):
    def __init__(
        self,
        *,
        method: str,
        contact: str,
        code: str = "",
        error_text: Optional[str] = None,
    ) -> None:
        self.method = method
        self.contact = contact
        self.code = code
        self.error_text = error_text

    def render(self) -> str:
        code_field = TextInputField(
            "code",
            "Verification code",
            help_text="Enter the 6-digit code we sent you.",
            error_text=self.error_text,
        ).render(
            value=self.code,
            autocomplete="one-time-code",
            inputmode="numeric",
            maxlength="6",
            pattern="[0-9]{6}",
        )
        resend_attrs = self.attributes(type="hidden", name=self.method, value=self.contact)
        return f"""
<p class="auth-sent">Code sent to <strong>{self.escape(self.contact)}</strong></p>
<form class="auth-form" method="post" action="/auth/verify" data-step="awaiting_code">
    {code_field}
    <button type="submit" class="button button--primary">Verify</button>
</form>
<form class="auth-form auth-form--inline" method="post" action="/auth/code">
    <input type="hidden" name="method" value="{self.escape(self.method)}">
    <input {resend_attrs}>
    <button type="submit" class="button button--link">Resend code</button>
</form>
<form class="auth-form auth-form--inline" method="post" action="/auth/back">
    <button type="submit" class="button button--secondary">Back</button>
</form>"""
