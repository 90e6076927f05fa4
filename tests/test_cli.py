"""Tests for the offline CLI commands."""

from __future__ import annotations

from click.testing import CliRunner

from otpgate import totp
from otpgate.cli import main

RFC_SECRET = "GEZDGNBVGY3TQOJQGEZDGNBVGY3TQOJQ"


def test_code_prints_current_code():
    result = CliRunner().invoke(main, ["code", RFC_SECRET, "--at", "59"])
    assert result.exit_code == 0
    assert result.output.strip() == "287082"


def test_code_rejects_bad_secret():
    result = CliRunner().invoke(main, ["code", "not-base32!"])
    assert result.exit_code != 0
    assert "not valid base32" in result.output


def test_new_secret_prints_secret_and_uri():
    result = CliRunner().invoke(main, ["new-secret", "--label", "alice", "--issuer", "Test"])
    assert result.exit_code == 0
    lines = result.output.splitlines()
    secret = lines[0].split(":", 1)[1].strip()
    assert len(totp.decode_secret(secret)) == 20
    assert "otpauth://totp/Test:alice?secret=" in result.output


def test_status_masks_keys():
    result = CliRunner().invoke(main, ["status"])
    assert result.exit_code == 0
    assert "Issuer:" in result.output
    assert "Master key:" in result.output
