"""OTPGATE — TOTP two-factor authentication for account services."""

__version__ = "0.1.0"
