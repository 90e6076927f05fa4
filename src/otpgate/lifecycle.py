"""Two-factor state machine: Unconfigured -> PendingVerification -> Enabled.

Binds secret provisioning and code verification to the account state held
in an AccountProfileStore. Each mutating transition is one conditional write
guarded by the version that was read at the start of the request; nothing is
kept in process between requests.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from otpgate import provisioning, totp
from otpgate.config import settings
from otpgate.errors import (
    AlreadyEnabledError,
    DependencyFailure,
    InvalidCodeError,
    InvalidFormatError,
    InvalidSecretError,
    NotConfiguredError,
    TwoFactorError,
)
from otpgate.models import AccountSecurity, SecurityState, VerifyAction
from otpgate.provisioning import ProvisionedSecret
from otpgate.store import AccountProfileStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

EventSink = Callable[..., Awaitable[Any]]


@dataclass(frozen=True)
class VerifyOutcome:
    action: VerifyAction
    state: SecurityState
    message: str | None = None


class TwoFactorLifecycle:
    def __init__(
        self,
        store: AccountProfileStore,
        *,
        issuer: str | None = None,
        secret_bytes: int | None = None,
        window: int | None = None,
        timeout: float | None = None,
        clock: Callable[[], float] = time.time,
        on_event: EventSink | None = None,
    ) -> None:
        self._store = store
        self._issuer = issuer if issuer is not None else settings.issuer
        self._secret_bytes = secret_bytes if secret_bytes is not None else settings.secret_bytes
        self._window = window if window is not None else settings.verify_window
        self._timeout = timeout if timeout is not None else settings.dependency_timeout_s
        self._clock = clock
        self._on_event = on_event

    async def state(self, account_id: str) -> AccountSecurity:
        return await self._call(self._store.read(account_id))

    async def generate_secret(self, account_id: str, *, email: str | None = None) -> ProvisionedSecret:
        """Provision a new pending secret, replacing any unconfirmed one.

        Raises AlreadyEnabledError when 2FA is on: it has to be disabled first.
        """
        current = await self.state(account_id)
        if current.state is SecurityState.ENABLED:
            raise AlreadyEnabledError()

        try:
            provisioned = provisioning.provision(
                provisioning.account_label(current.username, email),
                issuer=self._issuer,
                num_bytes=self._secret_bytes,
            )
        except OSError as exc:
            logger.error("Randomness source unavailable", exc_info=True)
            raise DependencyFailure() from exc

        await self._call(self._store.write_secret(account_id, provisioned.secret, current.version))
        logger.info("Provisioned 2FA secret for account %s", account_id)
        await self._emit("twofa_secret_generated", "2FA secret generated", account_id)
        return provisioned

    async def verify_code(
        self,
        account_id: str,
        code: str | None,
        action: VerifyAction | str = VerifyAction.VERIFY,
    ) -> VerifyOutcome:
        """Check ``code`` and apply ``action``.

        enable  - PendingVerification becomes Enabled (no-op when already Enabled)
        verify  - step-up confirmation, no state change
        disable - secret and flag are cleared
        """
        action = _parse_action(action)
        totp.check_code_format(code)

        current = await self.state(account_id)
        if current.state is SecurityState.UNCONFIGURED:
            raise NotConfiguredError()

        try:
            ok = totp.verify(current.secret, code, self._clock(), self._window)
        except InvalidSecretError as exc:
            logger.error("Stored 2FA secret for account %s is not valid base32", account_id)
            raise DependencyFailure() from exc
        if not ok:
            logger.warning("Invalid 2FA code for account %s (action=%s)", account_id, action)
            raise InvalidCodeError()

        if action is VerifyAction.ENABLE:
            if current.state is SecurityState.PENDING:
                await self._call(self._store.commit_enabled(account_id, current.version))
                logger.info("2FA enabled for account %s", account_id)
                await self._emit("twofa_enabled", "2FA enabled", account_id)
            return VerifyOutcome(action, SecurityState.ENABLED, "2FA enabled successfully")

        if action is VerifyAction.DISABLE:
            await self._call(self._store.clear(account_id, current.version))
            logger.info("2FA disabled for account %s", account_id)
            await self._emit("twofa_disabled", "2FA disabled", account_id)
            return VerifyOutcome(action, SecurityState.UNCONFIGURED, "2FA disabled successfully")

        return VerifyOutcome(action, current.state)

    async def _call(self, awaitable: Awaitable[T]) -> T:
        """Await a store call under the dependency timeout, mapping failures to DependencyFailure."""
        try:
            async with asyncio.timeout(self._timeout):
                return await awaitable
        except TwoFactorError:
            raise
        except TimeoutError as exc:
            logger.error("Profile store timed out after %.1fs", self._timeout)
            raise DependencyFailure() from exc
        except Exception as exc:
            logger.error("Profile store failure", exc_info=True)
            raise DependencyFailure() from exc

    async def _emit(self, event_type: str, message: str, account_id: str) -> None:
        if self._on_event is None:
            return
        try:
            async with asyncio.timeout(self._timeout):
                await self._on_event(event_type, message, account_id=account_id)
        except Exception:
            logger.warning("Failed to record %s for account %s", event_type, account_id, exc_info=True)


def _parse_action(action: VerifyAction | str) -> VerifyAction:
    try:
        return VerifyAction(action)
    except ValueError:
        raise InvalidFormatError("Invalid action") from None
