"""
Identity directory: find-or-create identities by verified contact.

Why:
    Sign-in only proves control over an email address or phone number. The
    directory turns that contact into a stable identity (opaque id) and applies
    the role assignment policy. Returning visitors get their existing identity
    back, including profile changes.

Role policy:
    Roles are assigned from environment-configured contact lists
    (``ADMIN_CONTACTS``, ``PROVIDER_CONTACTS``). Everyone else is a ``user``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Optional
import os
import re
import uuid

from .domain import ContactMethod, Identity, Role

_PHONE_STRIP = re.compile(r"[\s\-().]")


def normalize_contact(method: ContactMethod, value: str) -> str:
    """Canonical form used for lookups: lowercase emails, compact phone numbers."""
    cleaned = (value or "").strip()
    if method is ContactMethod.EMAIL:
        return cleaned.lower()
    return _PHONE_STRIP.sub("", cleaned)


def _parse_contact_list(raw: str | None) -> FrozenSet[str]:
    """Parse a comma-separated contact list; empty entries are ignored.

    Entries containing '@' are treated as emails, everything else as phones.
    """
    if not raw:
        return frozenset()
    items = set()
    for part in str(raw).split(","):
        part = part.strip()
        if not part:
            continue
        method = ContactMethod.EMAIL if "@" in part else ContactMethod.PHONE
        items.add(normalize_contact(method, part))
    return frozenset(items)


@dataclass(frozen=True)
class RolePolicy:
    admin_contacts: FrozenSet[str] = field(default_factory=frozenset)
    provider_contacts: FrozenSet[str] = field(default_factory=frozenset)

    @classmethod
    def from_env(cls) -> "RolePolicy":
        return cls(
            admin_contacts=_parse_contact_list(os.getenv("ADMIN_CONTACTS")),
            provider_contacts=_parse_contact_list(os.getenv("PROVIDER_CONTACTS")),
        )

    def role_for(self, contact: str) -> Role:
        if contact in self.admin_contacts:
            return Role.ADMIN
        if contact in self.provider_contacts:
            return Role.PROVIDER
        return Role.USER


class IdentityDirectory:
    """In-memory directory keyed by normalized contact."""

    def __init__(self, policy: Optional[RolePolicy] = None) -> None:
        self.policy = policy or RolePolicy()
        self._by_contact: Dict[str, Identity] = {}

    def find_or_create(self, method: ContactMethod, value: str) -> Identity:
        contact = normalize_contact(method, value)
        if not contact:
            raise ValueError("contact must not be blank")
        existing = self._by_contact.get(contact)
        if existing is not None:
            return existing
        identity = Identity(
            id=str(uuid.uuid4()),
            email=contact if method is ContactMethod.EMAIL else None,
            phone=contact if method is ContactMethod.PHONE else None,
            role=self.policy.role_for(contact),
        )
        self._by_contact[contact] = identity
        return identity

    def save(self, identity: Identity) -> None:
        """Store profile changes so the next sign-in returns them."""
        self._by_contact[normalize_contact(identity.contact_method, identity.contact)] = identity
