"""AES-256-GCM sealing of TOTP secrets stored in the profile table.

A sealed value is ``enc:`` followed by base64(nonce || ciphertext || tag).
The owning account id is passed as associated data, so a sealed secret
copied onto another profile row fails to open instead of yielding a
working second factor for the wrong account.
"""

from __future__ import annotations

import base64
import os

from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from otpgate.config import settings

_NONCE_SIZE = 12

# ':' is outside the base32 alphabet, so sealed values never collide with plaintext secrets
_SEALED_PREFIX = "enc:"


def _cipher() -> AESGCM:
    raw = settings.master_key
    if not raw:
        raise RuntimeError("OTPGATE_MASTER_KEY not set")
    key = base64.b64decode(raw)
    if len(key) != 32:
        raise ValueError("OTPGATE_MASTER_KEY must be 32 bytes (base64-encoded)")
    return AESGCM(key)


def encryption_enabled() -> bool:
    return bool(settings.master_key)


def encrypt(plaintext: str, account_id: str | None = None) -> str:
    nonce = os.urandom(_NONCE_SIZE)
    aad = account_id.encode() if account_id is not None else None
    return base64.b64encode(nonce + _cipher().encrypt(nonce, plaintext.encode(), aad)).decode()


def decrypt(token: str, account_id: str | None = None) -> str:
    """Raises cryptography's InvalidTag if the token was sealed for a different account."""
    blob = base64.b64decode(token)
    aad = account_id.encode() if account_id is not None else None
    return _cipher().decrypt(blob[:_NONCE_SIZE], blob[_NONCE_SIZE:], aad).decode()


def seal(secret: str, account_id: str) -> str:
    """Prepare a TOTP secret for storage, encrypting it when a master key is configured."""
    if not encryption_enabled():
        return secret
    return _SEALED_PREFIX + encrypt(secret, account_id)


def unseal(stored: str, account_id: str) -> str:
    # rows written before a key was configured pass through as-is
    if stored.startswith(_SEALED_PREFIX):
        return decrypt(stored[len(_SEALED_PREFIX):], account_id)
    return stored
