# mysecrets/core/errors.py
"""
Typed failures raised by the credential-security core.

Every error carries an ``ErrorKind`` and the HTTP status the API boundary
should answer with. Messages for credential failures are deliberately generic.
"""
from __future__ import annotations

import enum
from typing import Any


class ErrorKind(str, enum.Enum):
    VALIDATION = "validation"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_INACTIVE = "account_inactive"
    EMAIL_EXISTS = "email_exists"
    EMAIL_CONFLICT = "email_conflict"
    INVALID_TOKEN = "invalid_token"
    REUSE_DETECTED = "reuse_detected"
    DECRYPTION = "decryption"
    NOT_FOUND = "not_found"
    UNAUTHENTICATED = "unauthenticated"


class VaultError(Exception):
    """Base exception for expected core failures."""

    kind: ErrorKind = ErrorKind.VALIDATION
    status_code: int = 400
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(VaultError):
    kind = ErrorKind.VALIDATION
    status_code = 400
    default_message = "Invalid request"


class InvalidCredentials(VaultError):
    kind = ErrorKind.INVALID_CREDENTIALS
    status_code = 401
    default_message = "Invalid email or password"


class AccountInactive(InvalidCredentials):
    kind = ErrorKind.ACCOUNT_INACTIVE
    status_code = 403
    default_message = "Account is inactive"


class EmailExists(VaultError):
    kind = ErrorKind.EMAIL_EXISTS
    status_code = 409
    default_message = "An account with this email already exists"


class EmailConflict(VaultError):
    kind = ErrorKind.EMAIL_CONFLICT
    status_code = 409
    default_message = "An account with this email already exists. Please login with your password."


class InvalidToken(VaultError):
    kind = ErrorKind.INVALID_TOKEN
    status_code = 401
    default_message = "Invalid refresh token"


class ReuseDetected(InvalidToken):
    """Internal signal: a revoked refresh token was presented again.

    Callers see it as a plain InvalidToken (same status and message).
    """

    kind = ErrorKind.REUSE_DETECTED


class DecryptionError(VaultError):
    kind = ErrorKind.DECRYPTION
    status_code = 500
    default_message = "Failed to decrypt password"


class NotFound(VaultError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
    default_message = "Not found"


class Unauthenticated(VaultError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401
    default_message = "Could not validate credentials"
