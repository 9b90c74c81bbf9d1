"""
auth/exceptions.py -- Error kinds raised by the account core.

Each class is one error kind. The core attaches a machine-readable code and
structured details; turning a kind into an HTTP status and user-facing text is
the API layer's job (api/errors.py).

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from typing import Any


class AccountError(Exception):
    """Base class for every error the account core raises on purpose."""

    code = "account_error"

    def __init__(self, message: str = "", details: dict[str, Any] | None = None) -> None:
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details or {}


class ValidationError(AccountError):
    """Malformed or missing input. User-correctable."""

    code = "validation_error"

    def __init__(self, reason: str, message: str = "", field: str | None = None) -> None:
        details: dict[str, Any] = {"reason": reason}
        if field is not None:
            details["field"] = field
        super().__init__(message or reason, details)
        self.reason = reason
        self.field = field


class DuplicateError(AccountError):
    """Uniqueness violation on email or username."""

    code = "duplicate"

    def __init__(self, field: str) -> None:
        super().__init__(f"{field} already exists", {"field": field})
        self.field = field


class AuthError(AccountError):
    """Bad credentials or inactive account.

    Deliberately carries no detail about which check failed, so callers cannot
    tell an unknown email from a wrong password.
    """

    code = "invalid_credentials"

    def __init__(self) -> None:
        super().__init__("invalid credentials")


class InvalidTokenError(AccountError):
    """Token signature, expiry, type or payload check failed."""

    code = "invalid_token"


class RevokedError(AccountError):
    """Refresh token id is no longer in the user's valid set."""

    code = "revoked_token"


class NotFoundError(AccountError):
    """The targeted record does not exist."""

    code = "not_found"

    def __init__(self, user_id: str) -> None:
        super().__init__(f"user not found: {user_id}", {"user_id": user_id})


class InternalError(AccountError):
    """Storage, hashing or signing failure not caused by caller input."""

    code = "internal_error"
