"""
Identity domain types, role normalization and the auth error taxonomy.

Why:
- Centralize allowed roles to avoid drift between the web layer and the
  access gate.
- Normalize the optional role at the boundary (``Identity`` construction) so
  routing and gate code never deal with a missing or unknown role.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional


class Role(str, Enum):
    USER = "user"
    PROVIDER = "provider"
    ADMIN = "admin"


DEFAULT_ROLE = Role.USER

# Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(role.value for role in Role)


def normalize_role(value: object) -> Role:
    """Map a raw role value to a ``Role``; unknown or missing values become ``user``."""
    if isinstance(value, Role):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ALLOWED_ROLES:
            return Role(lowered)
    return DEFAULT_ROLE


class ContactMethod(str, Enum):
    EMAIL = "email"
    PHONE = "phone"


def parse_contact_method(value: object) -> ContactMethod:
    if isinstance(value, ContactMethod):
        return value
    try:
        return ContactMethod(str(value or "").strip().lower())
    except ValueError as exc:
        raise ValidationError("method", "invalid_method", "Unknown contact method.") from exc


@dataclass(frozen=True)
class Identity:
    """The authenticated principal. Exactly one of ``email``/``phone`` is set."""

    id: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Role = DEFAULT_ROLE
    name: str = ""
    language: str = "en"

    def __post_init__(self) -> None:
        if bool(self.email) == bool(self.phone):
            raise ValueError("identity requires exactly one of email or phone")
        object.__setattr__(self, "role", normalize_role(self.role))

    @property
    def contact(self) -> str:
        return self.email or self.phone or ""

    @property
    def contact_method(self) -> ContactMethod:
        return ContactMethod.EMAIL if self.email else ContactMethod.PHONE

    def with_changes(self, **changes: object) -> "Identity":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "phone": self.phone,
            "role": self.role.value,
            "name": self.name,
            "language": self.language,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Identity":
        return cls(
            id=str(data["id"]),
            email=data.get("email") or None,
            phone=data.get("phone") or None,
            role=normalize_role(data.get("role")),
            name=str(data.get("name") or ""),
            language=str(data.get("language") or "en"),
        )


@dataclass
class VerifiedContact:
    """Proof that a contact passed code verification. Single use."""

    method: ContactMethod
    value: str
    verified: bool = False
    consumed: bool = False


@dataclass(frozen=True)
class SessionState:
    loading: bool
    identity: Optional[Identity] = field(default=None)

    @property
    def signed_in(self) -> bool:
        return not self.loading and self.identity is not None

    def to_dict(self) -> dict:
        return {
            "loading": self.loading,
            "identity": self.identity.to_dict() if self.identity else None,
        }


# --- Errors -------------------------------------------------------------------


class AuthError(Exception):
    """Base class for recoverable auth failures. ``code`` is stable for clients."""

    code = "auth_error"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if code:
            self.code = code
        self.message = message or ""


class ValidationError(AuthError):
    """A required input is blank or the request does not fit the current step."""

    code = "validation_error"

    def __init__(self, field: str, code: str = "validation_error", message: str | None = None):
        super().__init__(message, code=code)
        self.field = field


class InvalidCodeError(AuthError):
    code = "invalid_code"


class AuthenticationError(AuthError):
    code = "not_authenticated"


class CodeDeliveryError(AuthError):
    code = "code_delivery_failed"


class RequestInFlightError(AuthError):
    code = "request_in_flight"


class AttemptCompletedError(AuthError):
    code = "attempt_completed"


__all__ = [
    "ALLOWED_ROLES",
    "DEFAULT_ROLE",
    "AttemptCompletedError",
    "AuthError",
    "AuthenticationError",
    "CodeDeliveryError",
    "ContactMethod",
    "Identity",
    "InvalidCodeError",
    "RequestInFlightError",
    "Role",
    "SessionState",
    "ValidationError",
    "VerifiedContact",
    "normalize_role",
    "parse_contact_method",
]
