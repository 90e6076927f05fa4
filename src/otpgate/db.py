"""Database connection pool and helpers."""

from __future__ import annotations

import contextlib
from collections.abc import AsyncIterator
from typing import Any

import psycopg
import psycopg.rows
import psycopg_pool

from otpgate.config import settings

_pool: psycopg_pool.AsyncConnectionPool | None = None

# The profiles table belongs to the account service; the TOTP columns are
# added idempotently so this can run against an existing database.
SCHEMA = """
CREATE TABLE IF NOT EXISTS profiles (
    user_id      TEXT PRIMARY KEY,
    username     TEXT,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT now(),
    updated_at   TIMESTAMPTZ NOT NULL DEFAULT now()
);

ALTER TABLE profiles ADD COLUMN IF NOT EXISTS totp_secret TEXT;
ALTER TABLE profiles ADD COLUMN IF NOT EXISTS totp_enabled BOOLEAN NOT NULL DEFAULT false;
ALTER TABLE profiles ADD COLUMN IF NOT EXISTS totp_version BIGINT NOT NULL DEFAULT 0;

DO $$
BEGIN
    ALTER TABLE profiles ADD CONSTRAINT profiles_totp_enabled_needs_secret
        CHECK (NOT totp_enabled OR totp_secret IS NOT NULL);
EXCEPTION WHEN duplicate_object THEN NULL;
END $$;

CREATE TABLE IF NOT EXISTS security_events (
    id           BIGSERIAL PRIMARY KEY,
    timestamp    TIMESTAMPTZ NOT NULL DEFAULT now(),
    severity     TEXT NOT NULL,
    event_type   TEXT NOT NULL,
    account_id   TEXT,
    message      TEXT NOT NULL,
    context      JSONB NOT NULL DEFAULT '{}'::jsonb
);

CREATE INDEX IF NOT EXISTS security_events_account_idx
    ON security_events (account_id, id DESC);
"""


async def init_pool(
    min_size: int | None = None, max_size: int | None = None
) -> psycopg_pool.AsyncConnectionPool:
    """Open the shared pool once; later calls return the existing one."""
    global _pool
    if _pool is not None:
        return _pool
    _pool = psycopg_pool.AsyncConnectionPool(
        conninfo=settings.database_url,
        min_size=min_size if min_size is not None else settings.db_pool_min_size,
        max_size=max_size if max_size is not None else settings.db_pool_max_size,
        timeout=settings.dependency_timeout_s,
        kwargs={"row_factory": psycopg.rows.dict_row},
        open=False,
    )
    await _pool.open()
    return _pool


async def close_pool() -> None:
    global _pool
    if _pool is not None:
        await _pool.close()
        _pool = None


@contextlib.asynccontextmanager
async def get_conn() -> AsyncIterator[psycopg.AsyncConnection[dict[str, Any]]]:
    """Borrow a connection from the pool. The transaction commits when the block exits cleanly."""
    if _pool is None:
        raise RuntimeError("Database pool not initialized. Call init_pool() first.")
    async with _pool.connection() as conn:
        yield conn


async def _run(query: str, params: tuple[Any, ...] | None, fetch_all: bool) -> Any:
    async with get_conn() as conn, conn.cursor() as cur:
        await cur.execute(query, params)
        if cur.description is None:
            return [] if fetch_all else None
        return await (cur.fetchall() if fetch_all else cur.fetchone())


async def execute(query: str, params: tuple[Any, ...] | None = None) -> list[dict[str, Any]]:
    """Rows as dicts; statements without a result set give []."""
    return await _run(query, params, fetch_all=True)


async def execute_one(query: str, params: tuple[Any, ...] | None = None) -> dict[str, Any] | None:
    """First row, or None for no match (how stale conditional UPDATEs show up)."""
    return await _run(query, params, fetch_all=False)


async def init_schema() -> None:
    """Create the tables and TOTP columns if they are missing."""
    async with get_conn() as conn:
        await conn.execute(SCHEMA)
