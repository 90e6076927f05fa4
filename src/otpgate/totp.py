"""TOTP code engine (RFC 4226 HOTP + RFC 6238 time steps).

Codes are SHA1, 6 digits, 30-second steps: the defaults every authenticator
app assumes. HMAC and dynamic truncation are delegated to pyotp; this module
owns the time-step arithmetic, the drift window and the constant-time
comparison. Nothing here does I/O or keeps state.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import re
import time

import pyotp

from otpgate.errors import InvalidFormatError, InvalidSecretError

ALGORITHM = "SHA1"
DIGITS = 6
PERIOD = 30
DEFAULT_WINDOW = 1

# [0-9] rather than \d: \d also matches non-ASCII digits
_CODE_RE = re.compile(r"[0-9]{6}")
_BASE32_RE = re.compile(r"[A-Z2-7]+")


def normalize_secret(secret: str) -> str:
    """Canonical form of a base32 secret: upper-case, no whitespace, no padding.

    Characters outside the base32 alphabet are rejected.
    """
    compact = "".join(secret.split()).upper().rstrip("=")
    if not compact or not _BASE32_RE.fullmatch(compact):
        raise InvalidSecretError("TOTP secret is not valid base32")
    try:
        base64.b32decode(compact + "=" * (-len(compact) % 8))
    except binascii.Error as exc:
        raise InvalidSecretError("TOTP secret has an invalid base32 length") from exc
    return compact


def decode_secret(secret: str) -> bytes:
    """Raw key bytes of a base32 secret."""
    compact = normalize_secret(secret)
    return base64.b32decode(compact + "=" * (-len(compact) % 8))


def is_well_formed(code: object) -> bool:
    return isinstance(code, str) and _CODE_RE.fullmatch(code) is not None


def check_code_format(code: object) -> str:
    """Return ``code`` if it is exactly six ASCII digits, else raise InvalidFormatError."""
    if not is_well_formed(code):
        raise InvalidFormatError()
    return code  # type: ignore[return-value]


def time_counter(now: float) -> int:
    """Number of whole 30-second steps since the Unix epoch."""
    return int(now // PERIOD)


def compute_code(secret: str, counter: int) -> str:
    """HOTP value of ``secret`` at ``counter``, zero-padded to six digits."""
    if counter < 0:
        raise ValueError("counter must be non-negative")
    return pyotp.HOTP(normalize_secret(secret), digits=DIGITS).at(counter)


def current_code(secret: str, now: float | None = None) -> str:
    """The code an authenticator app shows for ``secret`` at ``now`` (default: wall clock)."""
    if now is None:
        now = time.time()
    return compute_code(secret, time_counter(now))


def verify(
    secret: str,
    submitted_code: str,
    now: float | None = None,
    window_steps: int = DEFAULT_WINDOW,
) -> bool:
    """Check ``submitted_code`` against the steps ``-window_steps .. +window_steps`` around ``now``.

    Malformed codes are rejected before any HMAC is computed.
    """
    if not is_well_formed(submitted_code):
        return False
    if window_steps < 0:
        raise ValueError("window_steps must be non-negative")
    if now is None:
        now = time.time()

    key = normalize_secret(secret)
    counter = time_counter(now)
    for offset in range(-window_steps, window_steps + 1):
        step = counter + offset
        if step < 0:
            continue
        if hmac.compare_digest(compute_code(key, step), submitted_code):
            return True
    return False
