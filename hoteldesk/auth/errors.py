"""
Typed results for identity operations.

Service methods return an AuthResult instead of raising. Only the HTTP
layer turns an error kind into a status code.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

T = TypeVar("T")


class AuthErrorKind(str, Enum):
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_CONFLICT = "account_conflict"
    INACTIVE_ACCOUNT = "inactive_account"
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"
    VALIDATION_ERROR = "validation_error"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES = {
    AuthErrorKind.INVALID_CREDENTIALS: 401,
    AuthErrorKind.ACCOUNT_CONFLICT: 409,
    AuthErrorKind.INACTIVE_ACCOUNT: 403,
    AuthErrorKind.INVALID_OR_EXPIRED_TOKEN: 401,
    AuthErrorKind.VALIDATION_ERROR: 400,
}


@dataclass(frozen=True)
class AuthError:
    kind: AuthErrorKind
    message: str


@dataclass(frozen=True)
class AuthResult(Generic[T]):
    """Either a value or an AuthError, never both."""

    value: T | None = None
    error: AuthError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> AuthResult[T]:
        return cls(value=value)

    @classmethod
    def failure(cls, kind: AuthErrorKind, message: str) -> AuthResult[T]:
        return cls(error=AuthError(kind=kind, message=message))
