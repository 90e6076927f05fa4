"""Tests for the pool-backed query helpers, with a stand-in pool."""

from __future__ import annotations

import asyncio
import contextlib

import pytest

from otpgate import db


class FakeCursor:
    def __init__(self, rows):
        self.rows = rows
        self.description = None
        self.executed = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False

    async def execute(self, query, params=None):
        self.executed.append((query, params))
        self.description = None if self.rows is None else [("col",)]

    async def fetchall(self):
        return list(self.rows)

    async def fetchone(self):
        return self.rows[0] if self.rows else None


class FakeConnection:
    def __init__(self, cursor):
        self._cursor = cursor

    def cursor(self):
        return self._cursor


class FakePool:
    def __init__(self, cursor):
        self._conn = FakeConnection(cursor)

    @contextlib.asynccontextmanager
    async def connection(self):
        yield self._conn


@pytest.fixture
def pool(monkeypatch):
    def _install(rows):
        cursor = FakeCursor(rows)
        monkeypatch.setattr(db, "_pool", FakePool(cursor))
        return cursor

    return _install


def test_execute_returns_all_rows(pool):
    cur = pool([{"id": 1}, {"id": 2}])
    rows = asyncio.run(db.execute("SELECT id FROM security_events WHERE user_id = %s", ("acct-1",)))
    assert rows == [{"id": 1}, {"id": 2}]
    assert cur.executed == [("SELECT id FROM security_events WHERE user_id = %s", ("acct-1",))]


def test_execute_without_result_set(pool):
    pool(None)
    assert asyncio.run(db.execute("DELETE FROM security_events")) == []
    assert asyncio.run(db.execute_one("DELETE FROM security_events")) is None


def test_execute_one_no_match(pool):
    pool([])
    assert asyncio.run(db.execute_one("UPDATE profiles SET totp_enabled = true WHERE totp_version = 9 RETURNING *")) is None


def test_get_conn_requires_pool(monkeypatch):
    monkeypatch.setattr(db, "_pool", None)
    with pytest.raises(RuntimeError, match="pool not initialized"):
        asyncio.run(db.execute("SELECT 1"))
