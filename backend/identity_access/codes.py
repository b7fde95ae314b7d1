"""
One-time code providers and senders for the verification flow.

Why: The verification flow must not hardcode how codes are issued or
checked. Providers implement a small interface so stricter policy (expiry,
rate limiting, an external verification service) can be swapped in without
changing the flow's state machine.

Policy of the built-in providers: exact match against the code most recently
issued for an attempt ("last issued wins"). ``OneTimeCodeProvider`` can
optionally enforce an expiry.

Security: Codes are compared in constant time. Only the dev ``LogCodeSender``
writes a code to the log.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Protocol
import logging
import secrets
import time

# Small indirection to ease monkeypatching in tests
import requests as http
from anyio import to_thread

from .domain import ContactMethod

logger = logging.getLogger("daysi.identity_access.codes")

CODE_LENGTH = 6


def http_post(url: str, json: Dict[str, str], headers: Dict[str, str], timeout: float):
    return http.post(url, json=json, headers=headers, timeout=timeout)


def mask_contact(value: str) -> str:
    """Mask a contact for logs: keep the first character and the domain/last digits."""
    value = value or ""
    if "@" in value:
        local, domain = value.rsplit("@", 1)
        return f"{local[:1]}***@{domain}"
    return f"***{value[-2:]}" if len(value) > 2 else "***"


class VerificationProvider(Protocol):
    async def issue(self, attempt_id: str, method: ContactMethod, contact: str) -> bool:
        """Issue a code for the attempt. Returns True when the request was accepted."""

    async def check(self, attempt_id: str, code: str) -> bool:
        """Return True when ``code`` matches the last code issued for the attempt."""

    def discard(self, attempt_id: str) -> None:
        """Forget any code issued for the attempt."""


class CodeSender(Protocol):
    def deliver(self, method: ContactMethod, contact: str, code: str) -> bool:
        """Hand the code to the out-of-band channel. True when accepted."""


class StaticCodeProvider:
    """Demo provider: every attempt accepts the same configured code."""

    def __init__(self, code: str = "123456"):
        self.code = code
        self._issued: set[str] = set()

    async def issue(self, attempt_id: str, method: ContactMethod, contact: str) -> bool:
        self._issued.add(attempt_id)
        logger.info("Demo code issued for %s %s", method.value, mask_contact(contact))
        return True

    async def check(self, attempt_id: str, code: str) -> bool:
        if attempt_id not in self._issued:
            return False
        return secrets.compare_digest(code.encode("ascii", "ignore"), self.code.encode("ascii"))

    def discard(self, attempt_id: str) -> None:
        self._issued.discard(attempt_id)


@dataclass
class _IssuedCode:
    code: str
    expires_at: Optional[float]


class OneTimeCodeProvider:
    """Generates random numeric codes and hands them to a sender.

    Parameters
    ----------
    sender:
        Delivery channel (log, webhook, ...).
    ttl_seconds:
        Optional lifetime of an issued code. ``None`` disables expiry.
    """

    def __init__(self, sender: CodeSender, *, ttl_seconds: float | None = None, length: int = CODE_LENGTH):
        self.sender = sender
        self.ttl_seconds = ttl_seconds
        self.length = length
        self._issued: Dict[str, _IssuedCode] = {}

    def _generate(self) -> str:
        return "".join(secrets.choice("0123456789") for _ in range(self.length))

    async def issue(self, attempt_id: str, method: ContactMethod, contact: str) -> bool:
        code = self._generate()
        accepted = await to_thread.run_sync(self.sender.deliver, method, contact, code)
        if not accepted:
            logger.warning("Code delivery refused for %s %s", method.value, mask_contact(contact))
            return False
        expires_at = time.time() + self.ttl_seconds if self.ttl_seconds is not None else None
        # Reissue overwrites: only the latest code is valid.
        self._issued[attempt_id] = _IssuedCode(code=code, expires_at=expires_at)
        return True

    async def check(self, attempt_id: str, code: str) -> bool:
        issued = self._issued.get(attempt_id)
        if issued is None:
            return False
        if issued.expires_at is not None and issued.expires_at < time.time():
            return False
        return secrets.compare_digest(code.encode("ascii", "ignore"), issued.code.encode("ascii"))

    def discard(self, attempt_id: str) -> None:
        self._issued.pop(attempt_id, None)


class LogCodeSender:
    """Development sender: writes the code to the application log."""

    def deliver(self, method: ContactMethod, contact: str, code: str) -> bool:
        logger.info("Verification code for %s %s: %s", method.value, mask_contact(contact), code)
        return True


class WebhookCodeSender:
    """Posts codes to an HTTP endpoint (SMS/email gateway).

    The gateway receives ``{"method", "contact", "code"}`` as JSON. Any 2xx
    response counts as accepted; network errors count as refused.
    """

    def __init__(self, url: str, token: str | None = None, timeout: float = 5.0):
        self.url = url
        self.token = token
        self.timeout = timeout

    def deliver(self, method: ContactMethod, contact: str, code: str) -> bool:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        payload = {"method": method.value, "contact": contact, "code": code}
        try:
            resp = http_post(self.url, json=payload, headers=headers, timeout=self.timeout)
        except http.RequestException as exc:
            logger.warning("Code webhook failed: %s", exc.__class__.__name__)
            return False
        if not 200 <= resp.status_code < 300:
            logger.warning("Code webhook rejected request: status=%s", resp.status_code)
            return False
        return True
