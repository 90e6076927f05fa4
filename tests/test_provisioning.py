"""Tests for secret generation and provisioning URIs."""

from __future__ import annotations

import base64
from urllib.parse import parse_qs, urlsplit

import pytest

from otpgate import provisioning, totp


def _decoded_len(secret: str) -> int:
    return len(base64.b32decode(secret + "=" * (-len(secret) % 8)))


def test_new_secret_default_length():
    secret = provisioning.new_secret()
    assert _decoded_len(secret) == 20
    assert len(secret) == 32
    assert "=" not in secret
    assert totp.normalize_secret(secret) == secret


@pytest.mark.parametrize("num_bytes", [16, 20, 21, 32, 64])
def test_new_secret_configured_length(num_bytes):
    assert _decoded_len(provisioning.new_secret(num_bytes)) == num_bytes


def test_new_secret_is_random():
    assert len({provisioning.new_secret() for _ in range(20)}) == 20


def test_new_secret_too_short():
    with pytest.raises(ValueError, match="at least 16 bytes"):
        provisioning.new_secret(10)


def test_provisioning_uri_format():
    uri = provisioning.provisioning_uri("JBSWY3DPEHPK3PXP", "alice", issuer="WordPress CMS")
    assert uri == (
        "otpauth://totp/WordPress%20CMS:alice"
        "?secret=JBSWY3DPEHPK3PXP&issuer=WordPress%20CMS"
        "&algorithm=SHA1&digits=6&period=30"
    )


def test_provisioning_uri_encodes_label():
    uri = provisioning.provisioning_uri("JBSWY3DPEHPK3PXP", "bob+2fa@example.com:x", issuer="A&B")
    parts = urlsplit(uri)
    assert parts.scheme == "otpauth"
    assert parts.netloc == "totp"
    assert parts.path == "/A%26B:bob%2B2fa%40example.com%3Ax"
    query = parse_qs(parts.query)
    assert query["issuer"] == ["A&B"]
    assert query["secret"] == ["JBSWY3DPEHPK3PXP"]


def test_provisioning_uri_default_issuer():
    uri = provisioning.provisioning_uri("JBSWY3DPEHPK3PXP", "carol")
    assert uri.startswith("otpauth://totp/WordPress%20CMS:carol?")


def test_account_label_fallbacks():
    assert provisioning.account_label("alice", "alice@example.com") == "alice"
    assert provisioning.account_label(None, "alice@example.com") == "alice@example.com"
    assert provisioning.account_label("", None) == "user"


def test_provision_secret_matches_uri():
    provisioned = provisioning.provision("dave", issuer="Test")
    assert f"secret={provisioned.secret}&" in provisioned.provisioning_uri
    assert _decoded_len(provisioned.secret) == 20
