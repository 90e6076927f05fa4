"""Caller authentication against a Supabase-compatible auth endpoint.

The 2FA core never handles passwords or sessions: it forwards the caller's
``Authorization`` header to the auth provider and trusts the user id it
returns.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from otpgate.config import settings
from otpgate.errors import DependencyFailure, UnauthorizedError
from otpgate.models import Caller

logger = logging.getLogger(__name__)


class AuthGateway(Protocol):
    async def authenticate(self, credential: str | None) -> Caller: ...


class SupabaseAuthGateway:
    """Resolves a bearer token via ``GET {auth_url}/auth/v1/user``."""

    def __init__(
        self,
        base_url: str | None = None,
        anon_key: str | None = None,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or settings.auth_url).rstrip("/")
        self._anon_key = settings.auth_anon_key if anon_key is None else anon_key
        self._timeout = settings.dependency_timeout_s if timeout is None else timeout
        self._transport = transport

    def _headers(self, credential: str) -> dict[str, str]:
        return {
            "Authorization": credential,
            "apikey": self._anon_key,
        }

    async def authenticate(self, credential: str | None) -> Caller:
        if not credential:
            raise UnauthorizedError()

        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport,
            ) as client:
                resp = await client.get("/auth/v1/user", headers=self._headers(credential))
        except httpx.HTTPError as exc:
            logger.error("Auth provider unreachable at %s", self._base_url, exc_info=True)
            raise DependencyFailure() from exc

        if resp.status_code in (401, 403):
            raise UnauthorizedError()
        if resp.is_error:
            logger.error("Auth provider returned %d", resp.status_code)
            raise DependencyFailure()

        try:
            data = resp.json()
        except ValueError as exc:
            logger.error("Auth provider returned a non-JSON body")
            raise DependencyFailure() from exc
        user_id = data.get("id")
        if not user_id:
            raise UnauthorizedError()
        return Caller(account_id=str(user_id), email=data.get("email"))
