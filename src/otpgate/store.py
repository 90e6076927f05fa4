"""Account profile stores holding the per-account TOTP secret and enabled flag.

Every write is conditional on the ``version`` returned by the last read and
bumps it on success, so concurrent generate / enable / disable requests for
the same account cannot interleave into a lost update: the loser gets
ConcurrentUpdateError and nothing is written.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Protocol

from otpgate import crypto
from otpgate.db import execute_one
from otpgate.errors import ConcurrentUpdateError, ProfileNotFoundError
from otpgate.models import AccountSecurity

logger = logging.getLogger(__name__)


class AccountProfileStore(Protocol):
    async def read(self, account_id: str) -> AccountSecurity: ...

    async def write_secret(self, account_id: str, secret: str, expected_version: int) -> AccountSecurity:
        """Store a new pending secret (enabled=False), replacing any previous one."""
        ...

    async def commit_enabled(self, account_id: str, expected_version: int) -> AccountSecurity: ...

    async def clear(self, account_id: str, expected_version: int) -> AccountSecurity:
        """Drop the secret and the enabled flag."""
        ...


# ---------------------------------------------------------------------------
# In-memory store (tests, local development)
# ---------------------------------------------------------------------------


@dataclass
class _ProfileRow:
    username: str | None = None
    secret: str | None = None
    enabled: bool = False
    version: int = 0


class InMemoryProfileStore:
    """Dict-backed store with the same compare-and-swap semantics as the Postgres one.

    With ``autocreate`` unknown accounts read as unconfigured profiles;
    otherwise they raise ProfileNotFoundError.
    """

    def __init__(self, *, autocreate: bool = True) -> None:
        self._rows: dict[str, _ProfileRow] = {}
        self._autocreate = autocreate
        # critical sections never await, so a thread lock also serializes coroutines
        self._lock = threading.Lock()

    def add_profile(self, account_id: str, username: str | None = None) -> None:
        with self._lock:
            self._rows.setdefault(account_id, _ProfileRow(username=username))

    async def read(self, account_id: str) -> AccountSecurity:
        with self._lock:
            return self._snapshot(account_id, self._row(account_id))

    async def write_secret(self, account_id: str, secret: str, expected_version: int) -> AccountSecurity:
        with self._lock:
            row = self._row_at(account_id, expected_version)
            row.secret = secret
            row.enabled = False
            row.version += 1
            return self._snapshot(account_id, row)

    async def commit_enabled(self, account_id: str, expected_version: int) -> AccountSecurity:
        with self._lock:
            row = self._row_at(account_id, expected_version)
            if row.secret is None:
                raise ConcurrentUpdateError()
            row.enabled = True
            row.version += 1
            return self._snapshot(account_id, row)

    async def clear(self, account_id: str, expected_version: int) -> AccountSecurity:
        with self._lock:
            row = self._row_at(account_id, expected_version)
            row.secret = None
            row.enabled = False
            row.version += 1
            return self._snapshot(account_id, row)

    def _row(self, account_id: str) -> _ProfileRow:
        row = self._rows.get(account_id)
        if row is None:
            if not self._autocreate:
                raise ProfileNotFoundError()
            row = self._rows[account_id] = _ProfileRow()
        return row

    def _row_at(self, account_id: str, expected_version: int) -> _ProfileRow:
        row = self._row(account_id)
        if row.version != expected_version:
            logger.info(
                "Stale write for account %s (expected v%d, found v%d)",
                account_id, expected_version, row.version,
            )
            raise ConcurrentUpdateError()
        return row

    @staticmethod
    def _snapshot(account_id: str, row: _ProfileRow) -> AccountSecurity:
        return AccountSecurity.from_fields(
            account_id, row.secret, row.enabled, version=row.version, username=row.username,
        )


# ---------------------------------------------------------------------------
# Postgres store
# ---------------------------------------------------------------------------

_COLUMNS = "user_id, username, totp_secret, totp_enabled, totp_version"


class PostgresProfileStore:
    """Reads and conditionally updates the TOTP columns of the ``profiles`` table.

    Requires the pool from ``otpgate.db.init_pool()``. Secrets are sealed with
    AES-GCM before they are written when OTPGATE_MASTER_KEY is set.
    """

    async def read(self, account_id: str) -> AccountSecurity:
        row = await execute_one(
            f"SELECT {_COLUMNS} FROM profiles WHERE user_id = %s",
            (account_id,),
        )
        if row is None:
            raise ProfileNotFoundError()
        return self._to_state(row)

    async def write_secret(self, account_id: str, secret: str, expected_version: int) -> AccountSecurity:
        return await self._conditional_update(
            account_id,
            "totp_secret = %s, totp_enabled = false",
            (crypto.seal(secret, account_id),),
            expected_version,
        )

    async def commit_enabled(self, account_id: str, expected_version: int) -> AccountSecurity:
        return await self._conditional_update(
            account_id,
            "totp_enabled = true",
            (),
            expected_version,
            extra_condition="AND totp_secret IS NOT NULL",
        )

    async def clear(self, account_id: str, expected_version: int) -> AccountSecurity:
        return await self._conditional_update(
            account_id,
            "totp_secret = NULL, totp_enabled = false",
            (),
            expected_version,
        )

    async def _conditional_update(
        self,
        account_id: str,
        assignments: str,
        params: tuple[Any, ...],
        expected_version: int,
        *,
        extra_condition: str = "",
    ) -> AccountSecurity:
        row = await execute_one(
            f"""UPDATE profiles
                SET {assignments}, totp_version = totp_version + 1, updated_at = now()
                WHERE user_id = %s AND totp_version = %s {extra_condition}
                RETURNING {_COLUMNS}""",
            (*params, account_id, expected_version),
        )
        if row is None:
            logger.info("Stale write for account %s (expected v%d)", account_id, expected_version)
            raise ConcurrentUpdateError()
        return self._to_state(row)

    @staticmethod
    def _to_state(row: dict[str, Any]) -> AccountSecurity:
        account_id = str(row["user_id"])
        stored = row["totp_secret"]
        return AccountSecurity.from_fields(
            account_id,
            crypto.unseal(stored, account_id) if stored is not None else None,
            bool(row["totp_enabled"]),
            version=row["totp_version"],
            username=row["username"],
        )
