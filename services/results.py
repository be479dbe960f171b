"""
Tagged outcomes returned by the auth core.

An Outcome is either a success carrying a value or a failure carrying an
AuthError. Callers branch on `ok` and handle each ErrorKind; the core does
not raise for these conditions. Infrastructure failures (database down,
etc.) are still exceptions.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, enum.Enum):
    CREDENTIAL_MISMATCH = "CredentialMismatch"
    ALREADY_EXISTS = "AlreadyExists"
    INVALID_CREDENTIALS = "InvalidCredentials"
    NOT_FOUND = "NotFound"
    STATE_INCONSISTENCY = "StateInconsistency"
    # the account is in a state that does not allow the operation
    INVALID_STATE = "InvalidState"


@dataclass(frozen=True)
class AuthError:
    kind: ErrorKind
    # Detail for logs; the HTTP layer decides how much of it a client sees
    message: str


@dataclass(frozen=True)
class Outcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[AuthError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "Outcome[T]":
        return cls(error=AuthError(kind, message))


@dataclass(frozen=True)
class LoginTokens:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class RefreshedToken:
    access_token: str


@dataclass(frozen=True)
class PublicPrincipal:
    """What a principal looks like to the outside: no password hash, no tokens."""
    id: str
    email: str
    first_name: Optional[str]
    last_name: Optional[str]
    role: str
    is_enabled: bool
    is_non_locked: bool
    registered_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_user(cls, user) -> "PublicPrincipal":
        role = getattr(user.role, "value", user.role)
        return cls(
            id=user.id,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=role,
            is_enabled=bool(user.is_enabled),
            is_non_locked=bool(user.is_non_locked),
            registered_at=user.registered_at,
            updated_at=user.updated_at,
        )
