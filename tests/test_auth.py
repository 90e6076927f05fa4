"""Tests for the Supabase-compatible auth gateway."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from otpgate.auth import SupabaseAuthGateway
from otpgate.errors import DependencyFailure, UnauthorizedError


def _gateway(handler) -> SupabaseAuthGateway:
    return SupabaseAuthGateway(
        "https://auth.example.test/",
        "anon-key",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def test_authenticate_returns_caller():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "user-42", "email": "alice@example.com"})

    caller = asyncio.run(_gateway(handler).authenticate("Bearer token-abc"))
    assert caller.account_id == "user-42"
    assert caller.email == "alice@example.com"
    assert str(seen[0].url) == "https://auth.example.test/auth/v1/user"
    assert seen[0].headers["authorization"] == "Bearer token-abc"
    assert seen[0].headers["apikey"] == "anon-key"


@pytest.mark.parametrize("credential", [None, ""])
def test_missing_credential_makes_no_request(credential):
    def handler(request):
        raise AssertionError("auth provider must not be called")

    with pytest.raises(UnauthorizedError):
        asyncio.run(_gateway(handler).authenticate(credential))


@pytest.mark.parametrize("status", [401, 403])
def test_rejected_token(status):
    gateway = _gateway(lambda request: httpx.Response(status, json={"msg": "invalid JWT"}))
    with pytest.raises(UnauthorizedError):
        asyncio.run(gateway.authenticate("Bearer expired"))


def test_response_without_user_id():
    gateway = _gateway(lambda request: httpx.Response(200, json={}))
    with pytest.raises(UnauthorizedError):
        asyncio.run(gateway.authenticate("Bearer token"))


def test_provider_error_is_dependency_failure():
    gateway = _gateway(lambda request: httpx.Response(503, text="unavailable"))
    with pytest.raises(DependencyFailure):
        asyncio.run(gateway.authenticate("Bearer token"))


def test_provider_non_json_is_dependency_failure():
    gateway = _gateway(lambda request: httpx.Response(200, text="<html>"))
    with pytest.raises(DependencyFailure):
        asyncio.run(gateway.authenticate("Bearer token"))


def test_provider_unreachable_is_dependency_failure():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(DependencyFailure):
        asyncio.run(_gateway(handler).authenticate("Bearer token"))
