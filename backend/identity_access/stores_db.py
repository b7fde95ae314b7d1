"""
Database-backed identity record store for production use (Postgres).

Why: In-memory records are lost on restart and do not scale across
instances. This store persists the signed-in identity snapshot in Postgres
while the cookie stays an opaque session id.

Security:
- Intended for a server-side connection string; clients never access the
  `app_identity_sessions` table directly.
- The table name is validated against a strict identifier pattern before it is
  interpolated into SQL; all values are passed as parameters.

Note: This module uses psycopg3. It is imported only when enabled via
`SESSIONS_BACKEND=db`. Tests use the in-memory store or a fake driver.
"""
from __future__ import annotations

from typing import Optional
import os
import re
import time

import psycopg
from psycopg.types.json import Json

from .domain import Identity
from .stores import IdentityRecord

_TABLE_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]{0,62}(?:\.[A-Za-z_][A-Za-z0-9_]{0,62})?$")


def _now() -> int:
    return int(time.time())


class DBIdentityRecordStore:
    """Postgres-backed identity record store.

    Parameters
    ----------
    dsn:
        Psycopg3 connection string. Falls back to `DATABASE_URL`.
    table:
        Table name, optionally schema-qualified. Defaults to
        `public.app_identity_sessions`.
    ttl_seconds:
        Default record lifetime.
    """

    def __init__(self, dsn: str | None = None, table: str = "public.app_identity_sessions", ttl_seconds: int = 3600) -> None:
        self._dsn = dsn or os.getenv("DATABASE_URL", "")
        if not self._dsn:
            raise RuntimeError("No database DSN provided for DBIdentityRecordStore")
        if not _TABLE_PATTERN.match(table or ""):
            raise ValueError("Invalid table name")
        self._table = table
        self.ttl_seconds = ttl_seconds

    def put(self, session_id: str, identity: Identity, ttl_seconds: int | None = None) -> IdentityRecord:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        expires_at = _now() + ttl
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"insert into {self._table} (session_id, identity, expires_at) "
                    f"values (%s, %s, to_timestamp(%s)) "
                    f"on conflict (session_id) do update set identity = excluded.identity, expires_at = excluded.expires_at",
                    (session_id, Json(identity.to_dict()), expires_at),
                )
        return IdentityRecord(session_id=session_id, identity=identity, expires_at=expires_at)

    def get(self, session_id: str) -> Optional[IdentityRecord]:
        with psycopg.connect(self._dsn) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    f"select session_id, identity, extract(epoch from expires_at)::bigint "
                    f"from {self._table} where session_id = %s and expires_at > now()",
                    (session_id,),
                )
                row = cur.fetchone()
        if not row:
            return None
        data = row[1] if isinstance(row[1], dict) else None
        if not data:
            return None
        try:
            identity = Identity.from_dict(data)
        except (KeyError, ValueError):
            return None
        return IdentityRecord(
            session_id=row[0],
            identity=identity,
            expires_at=int(row[2]) if row[2] is not None else None,
        )

    def delete(self, session_id: str) -> None:
        with psycopg.connect(self._dsn, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(f"delete from {self._table} where session_id = %s", (session_id,))
