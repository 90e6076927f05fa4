"""TOTP secret generation and otpauth:// URIs for authenticator-app enrolment."""

from __future__ import annotations

import base64
import os
from dataclasses import dataclass
from urllib.parse import quote

from otpgate import totp
from otpgate.config import settings

MIN_SECRET_BYTES = 16  # RFC 4226 R6: at least 128 bits of shared secret


@dataclass(frozen=True)
class ProvisionedSecret:
    """A freshly generated secret and the URI an authenticator app scans."""
    secret: str
    provisioning_uri: str


def new_secret(num_bytes: int | None = None) -> str:
    """Generate a random secret of ``num_bytes`` bytes as unpadded base32."""
    if num_bytes is None:
        num_bytes = settings.secret_bytes
    if num_bytes < MIN_SECRET_BYTES:
        raise ValueError(f"TOTP secrets need at least {MIN_SECRET_BYTES} bytes, got {num_bytes}")
    return base64.b32encode(os.urandom(num_bytes)).decode("ascii").rstrip("=")


def account_label(username: str | None, email: str | None) -> str:
    """Name shown next to the issuer in the authenticator app."""
    return username or email or "user"


def provisioning_uri(secret: str, label: str, issuer: str | None = None) -> str:
    """Build the otpauth:// URI with every TOTP parameter spelled out.

    Issuer and label are percent-encoded; algorithm, digits and period are
    always present so apps never fall back to their own defaults.
    """
    if issuer is None:
        issuer = settings.issuer
    quoted_issuer = quote(issuer, safe="")
    return (
        f"otpauth://totp/{quoted_issuer}:{quote(label, safe='')}"
        f"?secret={totp.normalize_secret(secret)}"
        f"&issuer={quoted_issuer}"
        f"&algorithm={totp.ALGORITHM}"
        f"&digits={totp.DIGITS}"
        f"&period={totp.PERIOD}"
    )


def provision(label: str, *, issuer: str | None = None, num_bytes: int | None = None) -> ProvisionedSecret:
    secret = new_secret(num_bytes)
    return ProvisionedSecret(secret=secret, provisioning_uri=provisioning_uri(secret, label, issuer))
