"""Pydantic models for account security state and the HTTP payloads."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, model_validator


# === Enums ===


class SecurityState(StrEnum):
    UNCONFIGURED = "unconfigured"
    PENDING = "pending_verification"
    ENABLED = "enabled"


class VerifyAction(StrEnum):
    ENABLE = "enable"
    VERIFY = "verify"
    DISABLE = "disable"


# === Persisted state ===


class AccountSecurity(BaseModel):
    """Per-account 2FA state as read from the profile store.

    ``version`` increases with every committed write and is the expected
    value for the next conditional write.
    """

    model_config = ConfigDict(frozen=True)

    account_id: str
    state: SecurityState = SecurityState.UNCONFIGURED
    secret: str | None = Field(default=None, repr=False)
    version: int = 0
    username: str | None = None

    @model_validator(mode="after")
    def _secret_matches_state(self) -> AccountSecurity:
        if self.state is SecurityState.UNCONFIGURED and self.secret is not None:
            raise ValueError("an unconfigured account cannot hold a secret")
        if self.state is not SecurityState.UNCONFIGURED and self.secret is None:
            raise ValueError(f"state {self.state} requires a secret")
        return self

    @classmethod
    def from_fields(
        cls,
        account_id: str,
        secret: str | None,
        enabled: bool,
        *,
        version: int = 0,
        username: str | None = None,
    ) -> AccountSecurity:
        """Build the tagged state from the two persisted columns."""
        if secret is None:
            if enabled:
                raise ValueError(f"account {account_id} is flagged enabled without a secret")
            state = SecurityState.UNCONFIGURED
        else:
            state = SecurityState.ENABLED if enabled else SecurityState.PENDING
        return cls(
            account_id=account_id,
            state=state,
            secret=secret,
            version=version,
            username=username,
        )

    @property
    def enabled(self) -> bool:
        return self.state is SecurityState.ENABLED


class Caller(BaseModel):
    """An authenticated caller as reported by the auth gateway."""

    account_id: str
    email: str | None = None


# === HTTP payloads ===


class SecretResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    secret: str
    otpauth_uri: str = Field(alias="otpauthUri")


class VerifyRequest(BaseModel):
    code: str | None = None
    action: str = VerifyAction.VERIFY


class VerifyResponse(BaseModel):
    success: bool = True
    message: str | None = None
    verified: bool | None = None


class ErrorResponse(BaseModel):
    error: str
