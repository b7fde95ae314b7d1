"""
Per-client contexts for the web adapter.

Why: The session store is "one instance per running client". In a server
rendered app a client is a browser, identified by an opaque cookie. The
registry keeps one ClientContext (SessionStore + VerificationFlow) per cookie
so every guarded route of that browser reads the same store.

Behavior:
- A new context starts in the loading phase and resolves its identity from the
  identity record store in the background.
- Store changes are persisted back to the record store (subscription), so a
  reload or a restarted process restores the identity.
- Least recently used contexts are torn down when the registry is full.
"""
from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable, Optional
import asyncio
import logging
import re

from identity_access.codes import VerificationProvider
from identity_access.directory import IdentityDirectory
from identity_access.domain import SessionState
from identity_access.stores import RecordResolver, SessionStore, new_session_id
from identity_access.verification import VerificationFlow

logger = logging.getLogger("daysi.web.clients")

CLIENT_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]{16,64}$")


@dataclass
class ClientContext:
    client_id: str
    store: SessionStore
    flow: VerificationFlow
    resolution: Optional[asyncio.Task] = field(default=None, repr=False)
    unsubscribe: Optional[Callable[[], None]] = field(default=None, repr=False)


class ClientRegistry:
    def __init__(
        self,
        directory: IdentityDirectory,
        records,
        provider: VerificationProvider,
        *,
        ttl_seconds: int = 3600,
        max_clients: int = 10000,
    ) -> None:
        self.directory = directory
        self.records = records
        self.provider = provider
        self.ttl_seconds = ttl_seconds
        self.max_clients = max_clients
        self._clients: "OrderedDict[str, ClientContext]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._clients)

    def get(self, client_id: str | None) -> Optional[ClientContext]:
        if not client_id:
            return None
        ctx = self._clients.get(client_id)
        if ctx is not None:
            self._clients.move_to_end(client_id)
        return ctx

    def get_or_create(self, client_id: str | None) -> tuple[ClientContext, bool]:
        """Return the context for ``client_id`` and whether a new cookie must be issued."""
        ctx = self.get(client_id)
        if ctx is not None:
            return ctx, False
        # Adopt a well-formed unknown id so a persisted identity survives restarts.
        if client_id and CLIENT_ID_PATTERN.match(client_id):
            cid, issued = client_id, False
        else:
            cid, issued = new_session_id(), True
        ctx = self._create(cid)
        return ctx, issued

    def _create(self, client_id: str) -> ClientContext:
        store = SessionStore(self.directory)
        ctx = ClientContext(client_id=client_id, store=store, flow=VerificationFlow(store, self.provider))
        ctx.unsubscribe = store.subscribe(self._persist(client_id))
        ctx.resolution = asyncio.create_task(store.resolve(RecordResolver(self.records, client_id)))
        self._clients[client_id] = ctx
        while len(self._clients) > self.max_clients:
            oldest_id, _ = next(iter(self._clients.items()))
            self.discard(oldest_id)
        return ctx

    def _persist(self, client_id: str):
        def _on_change(state: SessionState) -> None:
            if state.loading:
                return
            if state.identity is not None:
                self.records.put(client_id, state.identity, self.ttl_seconds)
            else:
                self.records.delete(client_id)

        return _on_change

    def restart_flow(self, ctx: ClientContext) -> VerificationFlow:
        """Start a fresh verification attempt (e.g. after a completed one)."""
        self.provider.discard(ctx.flow.attempt_id)
        ctx.flow = VerificationFlow(ctx.store, self.provider)
        return ctx.flow

    def rotate(self, ctx: ClientContext) -> str:
        """Move the context to a fresh client id (after sign-in).

        The identity record follows the context; the old id resolves to nothing.
        """
        old_id = ctx.client_id
        new_id = new_session_id()
        self._clients.pop(old_id, None)
        if ctx.unsubscribe is not None:
            ctx.unsubscribe()
        ctx.client_id = new_id
        ctx.unsubscribe = ctx.store.subscribe(self._persist(new_id))
        self._clients[new_id] = ctx
        self.records.delete(old_id)
        state = ctx.store.state
        if not state.loading and state.identity is not None:
            self.records.put(new_id, state.identity, self.ttl_seconds)
        return new_id

    def discard(self, client_id: str) -> None:
        """Tear the client down; in-flight results are no longer applied."""
        ctx = self._clients.pop(client_id, None)
        if ctx is None:
            return
        ctx.store.close()
        self.provider.discard(ctx.flow.attempt_id)
        if ctx.resolution is not None and not ctx.resolution.done():
            ctx.resolution.cancel()
        logger.debug("Client context discarded")
