"""
Session state for one client plus the in-memory identity record store.

Why: The SessionStore is the single source of truth for "who is signed in"
for a running client. Every guarded route of that client reads the same
instance; only ``sign_in``/``sign_out`` (and profile updates) mutate it.

Concurrency: Identity resolution is asynchronous. A monotonic version counter
guards against out-of-order completion: a resolution result is dropped when a
newer mutation happened after it started, or when the store was closed.

Security: Identity records are keyed by an opaque session id. Cookies carry
only that id; the identity snapshot stays server-side.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional
import asyncio
import logging
import secrets
import time

from anyio import to_thread

from .directory import IdentityDirectory
from .domain import AuthenticationError, Identity, SessionState, VerifiedContact

logger = logging.getLogger("daysi.identity_access")

Resolver = Callable[[], Awaitable[Optional[Identity]]]
Listener = Callable[[SessionState], None]

PROFILE_FIELDS = frozenset({"name", "language"})


def _now() -> int:
    return int(time.time())


def new_session_id() -> str:
    return secrets.token_urlsafe(24)


class SessionStore:
    def __init__(self, directory: IdentityDirectory):
        self._directory = directory
        self._state = SessionState(loading=True)
        self._version = 0
        self._listeners: List[Listener] = []
        self._settled = asyncio.Event()
        self._closed = False

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener for state changes; returns the unsubscribe callable."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def _publish(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as exc:
                logger.warning("Session listener failed: %s", exc.__class__.__name__)

    def _settle(self, identity: Optional[Identity]) -> None:
        self._publish(SessionState(loading=False, identity=identity))
        self._settled.set()

    async def resolve(self, resolver: Resolver) -> SessionState:
        """Run identity resolution and settle the loading phase.

        Calling this on an already settled store is an explicit
        re-authentication and re-enters the loading phase.
        """
        if self._closed:
            return self._state
        self._version += 1
        ticket = self._version
        if not self._state.loading:
            self._settled.clear()
            self._publish(SessionState(loading=True, identity=self._state.identity))
        try:
            identity = await resolver()
        except Exception as exc:
            logger.warning("Identity resolution failed: %s", exc.__class__.__name__)
            identity = None
        if self._closed or ticket != self._version:
            logger.debug("Discarding stale identity resolution (ticket=%s, current=%s)", ticket, self._version)
            return self._state
        self._settle(identity)
        return self._state

    async def wait_settled(self, timeout: float | None = None) -> SessionState:
        """Wait until the loading phase ended, at most ``timeout`` seconds."""
        if self._state.loading and not self._closed:
            try:
                await asyncio.wait_for(self._settled.wait(), timeout)
            except asyncio.TimeoutError:
                pass
        return self._state

    def sign_in(self, contact: VerifiedContact) -> Identity:
        """Populate the identity from a verified contact. Atomic."""
        if self._closed:
            raise AuthenticationError("Session has been closed.", code="session_closed")
        if not isinstance(contact, VerifiedContact) or not contact.verified or contact.consumed:
            raise AuthenticationError("Contact has not completed verification.")
        identity = self._directory.find_or_create(contact.method, contact.value)
        contact.consumed = True
        self._version += 1
        self._settle(identity)
        logger.info("Signed in identity %s (role=%s)", identity.id, identity.role.value)
        return identity

    def sign_out(self) -> None:
        self._version += 1
        previous = self._state.identity
        self._settle(None)
        if previous is not None:
            logger.info("Signed out identity %s", previous.id)

    def update_identity(self, **changes: object) -> Identity:
        """Apply profile changes (name, language) to the signed-in identity."""
        identity = self._state.identity
        if self._state.loading or identity is None:
            raise AuthenticationError("No identity signed in.")
        unknown = set(changes) - PROFILE_FIELDS
        if unknown:
            raise ValueError(f"unsupported profile fields: {', '.join(sorted(unknown))}")
        updated = identity.with_changes(**changes)
        self._directory.save(updated)
        self._version += 1
        self._settle(updated)
        return updated

    def close(self) -> None:
        """Tear down: pending results are no longer applied and listeners are dropped."""
        self._closed = True
        self._listeners.clear()
        self._settled.set()


@dataclass
class IdentityRecord:
    session_id: str
    identity: Identity
    expires_at: Optional[int] = None


class IdentityRecordStore:
    """In-memory identity persistence for development and tests."""

    def __init__(self, ttl_seconds: int = 3600):
        self.ttl_seconds = ttl_seconds
        self._data: Dict[str, IdentityRecord] = {}

    def put(self, session_id: str, identity: Identity, ttl_seconds: int | None = None) -> IdentityRecord:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        rec = IdentityRecord(session_id=session_id, identity=identity, expires_at=_now() + ttl)
        self._data[session_id] = rec
        return rec

    def get(self, session_id: str) -> Optional[IdentityRecord]:
        rec = self._data.get(session_id)
        if not rec:
            return None
        if rec.expires_at is not None and rec.expires_at < _now():
            self._data.pop(session_id, None)
            return None
        return rec

    def delete(self, session_id: str) -> None:
        self._data.pop(session_id, None)


class RecordResolver:
    """Identity resolution provider backed by a record store.

    Record stores may block (Postgres), so lookups run in a worker thread.
    """

    def __init__(self, records, session_id: str):
        self._records = records
        self._session_id = session_id

    async def __call__(self) -> Optional[Identity]:
        rec = await to_thread.run_sync(self._records.get, self._session_id)
        return rec.identity if rec else None
