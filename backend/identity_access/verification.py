"""
Credential verification flow: request a one-time code, then verify it.

State machine:
    awaiting_contact --request_code--> awaiting_code
    awaiting_code    --request_code--> awaiting_code   (reissue; a failed one keeps the issued contact)
    awaiting_code    --verify_code---> completed       (signs in, flow terminates)
    awaiting_code    --reset--------> awaiting_contact (email/phone kept)

Concurrency:
    Only one request may be outstanding. A request whose result arrives after
    ``reset()`` or after the session store was closed is discarded.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional
import logging
import secrets

from .codes import CODE_LENGTH, VerificationProvider, mask_contact
from .domain import (
    AttemptCompletedError,
    CodeDeliveryError,
    ContactMethod,
    Identity,
    InvalidCodeError,
    RequestInFlightError,
    ValidationError,
    VerifiedContact,
    parse_contact_method,
)
from .stores import SessionStore

logger = logging.getLogger("daysi.identity_access.verification")


class VerificationStep(str, Enum):
    AWAITING_CONTACT = "awaiting_contact"
    AWAITING_CODE = "awaiting_code"


class VerificationFlow:
    def __init__(self, store: SessionStore, provider: VerificationProvider, *, attempt_id: str | None = None):
        self._store = store
        self._provider = provider
        self.attempt_id = attempt_id or secrets.token_urlsafe(16)
        self.step = VerificationStep.AWAITING_CONTACT
        # Form inputs, kept for re-display; never decide who signs in.
        self.contact_method = ContactMethod.EMAIL
        self.email = ""
        self.phone = ""
        # Contact the current code was issued to.
        self.pending_method: Optional[ContactMethod] = None
        self._pending_value = ""
        self.code = ""
        self.code_sent = False
        self.completed = False
        self._busy = False
        self._ticket = 0

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def pending_contact(self) -> str:
        return self._pending_value

    def _ensure_open(self) -> None:
        if self.completed:
            raise AttemptCompletedError("This sign-in attempt has already completed.")
        if self._busy:
            raise RequestInFlightError("A request is already in progress.")

    async def request_code(self, method: ContactMethod | str, value: str) -> None:
        """Issue a code to the given contact and move to ``awaiting_code``."""
        self._ensure_open()
        method = parse_contact_method(method)
        value = (value or "").strip()
        self.contact_method = method
        if method is ContactMethod.EMAIL:
            self.email = value
        else:
            self.phone = value
        if not value:
            label = "email address" if method is ContactMethod.EMAIL else "phone number"
            raise ValidationError(method.value, "blank_contact", f"Please enter a valid {label}.")

        self._busy = True
        self._ticket += 1
        ticket = self._ticket
        try:
            accepted = await self._provider.issue(self.attempt_id, method, value)
        finally:
            self._busy = False
        if ticket != self._ticket or self._store.closed:
            logger.debug("Discarding superseded code request for attempt %s", self.attempt_id)
            return
        if not accepted:
            raise CodeDeliveryError("Failed to send verification code.")
        self.pending_method = method
        self._pending_value = value
        self.code = ""
        self.code_sent = True
        self.step = VerificationStep.AWAITING_CODE
        logger.info("Code requested via %s for %s", method.value, mask_contact(value))

    async def verify_code(self, code: str) -> Optional[Identity]:
        """Check ``code`` and sign in on match.

        Returns the signed-in identity, or None when the result was discarded
        because the attempt was reset or the session store torn down meanwhile.
        """
        self._ensure_open()
        if self.step is not VerificationStep.AWAITING_CODE:
            raise ValidationError("code", "code_not_requested", "Request a verification code first.")
        code = (code or "").strip()
        self.code = code[:CODE_LENGTH]
        if not code or len(code) > CODE_LENGTH or not code.isdigit():
            raise InvalidCodeError("Invalid verification code.")

        self._busy = True
        self._ticket += 1
        ticket = self._ticket
        try:
            matched = await self._provider.check(self.attempt_id, code)
        finally:
            self._busy = False
        if ticket != self._ticket or self._store.closed:
            logger.debug("Discarding superseded verification for attempt %s", self.attempt_id)
            return None
        if not matched:
            raise InvalidCodeError("Invalid verification code.")

        contact = VerifiedContact(method=self.pending_method, value=self._pending_value, verified=True)
        identity = self._store.sign_in(contact)
        self.completed = True
        self._provider.discard(self.attempt_id)
        return identity

    def reset(self) -> None:
        """Return to ``awaiting_contact``; contact inputs are preserved."""
        self._ticket += 1
        self.step = VerificationStep.AWAITING_CONTACT
        self.code = ""
        self.code_sent = False
        self.pending_method = None
        self._pending_value = ""
        self._provider.discard(self.attempt_id)
