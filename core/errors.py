"""
core/errors.py -- Domain error taxonomy and its HTTP status mapping.

Every error the service and store layers raise on purpose is an AppError with
a tagged ErrorKind. The API layer never compares message strings: it looks the
kind up in STATUS_BY_KIND and renders AppError.to_body().

Kinds that are not in STATUS_BY_KIND (data access failures, token signing
failures) are "unclassified": the generic 500 handler logs them in full and
returns a fixed message to the client.

Layer rule: core/ is the kernel. This module may not import from api/ or auth/.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    validation = "validation"
    duplicate_email = "duplicate_email"
    not_found = "not_found"
    user_not_found = "user_not_found"
    invalid_password = "invalid_password"
    unauthorized = "unauthorized"
    forbidden = "forbidden"
    token_invalid = "token_invalid"
    token_signing = "token_signing"
    data_access = "data_access"


STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.validation: 400,
    ErrorKind.duplicate_email: 409,
    ErrorKind.not_found: 404,
    ErrorKind.user_not_found: 404,
    ErrorKind.invalid_password: 401,
    ErrorKind.unauthorized: 401,
    ErrorKind.forbidden: 403,
    ErrorKind.token_invalid: 403,
}


class AppError(Exception):
    """Base class for every deliberate application error.

    `error` is the short client-facing label, `message` an optional sentence,
    `details` an optional list of field-level problems.
    """

    kind: ErrorKind = ErrorKind.data_access
    error: str = "Internal Server Error"

    def __init__(
        self,
        message: str | None = None,
        *,
        details: list[dict[str, str]] | None = None,
    ) -> None:
        super().__init__(message or self.error)
        self.message = message
        self.details = details

    @property
    def status_code(self) -> int | None:
        """HTTP status for this error, or None when it is unclassified."""
        return STATUS_BY_KIND.get(self.kind)

    def to_body(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error}
        if self.message is not None:
            body["message"] = self.message
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(AppError):
    kind = ErrorKind.validation
    error = "Validation failed"

    def __init__(self, details: list[dict[str, str]]) -> None:
        super().__init__(details=details)


class DuplicateEmail(AppError):
    kind = ErrorKind.duplicate_email
    error = "User with this email already exists"


class NotFound(AppError):
    kind = ErrorKind.not_found
    error = "Not Found"

    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


class UserNotFound(AppError):
    """Sign-in lookup miss. Rendered as a bare {error} body."""

    kind = ErrorKind.user_not_found
    error = "User not found"


class InvalidPassword(AppError):
    kind = ErrorKind.invalid_password
    error = "Invalid credentials"


class Unauthorized(AppError):
    kind = ErrorKind.unauthorized
    error = "Unauthorized"

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class Forbidden(AppError):
    kind = ErrorKind.forbidden
    error = "Forbidden"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class TokenInvalidError(AppError):
    """Malformed, tampered, or expired token. Callers never learn which."""

    kind = ErrorKind.token_invalid
    error = "Forbidden"

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


class TokenSigningError(AppError):
    kind = ErrorKind.token_signing


class DataAccessError(AppError):
    kind = ErrorKind.data_access
