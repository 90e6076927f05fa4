"""Error taxonomy for two-factor authentication.

Every error carries a stable ``code`` and the HTTP ``status_code`` the API
answers with. Messages are generic on purpose and safe to show to end users:
a failed verification never says which step of the window or which part of
the algorithm did not match.
"""

from __future__ import annotations


class TwoFactorError(Exception):
    """Base class for errors surfaced to the caller."""

    code: str = "TWO_FACTOR_ERROR"
    status_code: int = 400
    default_message: str = "Two-factor authentication error"

    def __init__(self, message: str | None = None, *, code: str | None = None):
        super().__init__(message or self.default_message)
        if code:
            self.code = code

    @property
    def message(self) -> str:
        return str(self)


class UnauthorizedError(TwoFactorError):
    code = "UNAUTHORIZED"
    status_code = 401
    default_message = "Unauthorized"


class AlreadyEnabledError(TwoFactorError):
    code = "ALREADY_ENABLED"
    default_message = "2FA is already enabled"


class NotConfiguredError(TwoFactorError):
    code = "NOT_CONFIGURED"
    default_message = "2FA not set up"


class InvalidFormatError(TwoFactorError):
    code = "INVALID_FORMAT"
    default_message = "Invalid code format"


class InvalidCodeError(TwoFactorError):
    code = "INVALID_CODE"
    default_message = "Invalid code"


class ProfileNotFoundError(TwoFactorError):
    code = "PROFILE_NOT_FOUND"
    status_code = 404
    default_message = "Profile not found"


class ConcurrentUpdateError(TwoFactorError):
    """The account's 2FA state changed between read and conditional write."""

    code = "CONCURRENT_UPDATE"
    status_code = 409
    default_message = "2FA settings were changed by another request, please retry"


class DependencyFailure(TwoFactorError):
    """Storage, auth provider or randomness source unavailable."""

    code = "DEPENDENCY_FAILURE"
    status_code = 500
    default_message = "Service temporarily unavailable"


class InvalidSecretError(ValueError):
    """A TOTP secret is not valid base32."""
