"""
security helpers:
- Argon2 password hashing via argon2-cffi
- JWT creation/verification via PyJWT (TokenCodec)
- JTI generation for token identifiers
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

ph = PasswordHasher()

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"
RESET = "reset"


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_jti() -> str:
    """Generate a unique JTI (JWT ID).
    """
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """
    Creates and verifies signed, expiring JWTs. Holds nothing but its
    settings; verification never looks at storage.

    Every token gets a fresh jti, so two tokens issued for the same subject
    within the same second are still distinct strings.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
        reset_ttl: timedelta = timedelta(minutes=30),
        issuer: str = "home-and-garden-api",
        clock: Callable[[], datetime] = _utcnow,
    ):
        if not secret:
            raise ValueError("TokenCodec requires a signing secret")
        self._secret = secret
        self._algorithm = algorithm
        self._ttl = {ACCESS: access_ttl, REFRESH: refresh_ttl, RESET: reset_ttl}
        self._issuer = issuer
        self._clock = clock

    def _issue(self, subject: str, token_type: str) -> str:
        now = self._clock()
        payload = {
            "iss": self._issuer,
            "sub": str(subject),
            "iat": int(now.timestamp()),
            "exp": int((now + self._ttl[token_type]).timestamp()),
            "type": token_type,
            "jti": generate_jti(),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def _decode(self, token: str, expected_type: str) -> Optional[Dict[str, Any]]:
        """
        Signature, expiry (against the current clock), issuer and type must
        all check out; otherwise None.
        """
        if not token:
            return None
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                issuer=self._issuer,
                options={"require": ["exp", "sub", "type"]},
            )
        except jwt.ExpiredSignatureError:
            logger.debug("Rejected expired %s token", expected_type)
            return None
        except jwt.InvalidTokenError as exc:
            logger.debug("Rejected %s token: %s", expected_type, exc)
            return None
        if decoded.get("type") != expected_type:
            return None
        return decoded

    def issue_access_token(self, subject: str) -> str:
        return self._issue(subject, ACCESS)

    def issue_refresh_token(self, subject: str) -> str:
        return self._issue(subject, REFRESH)

    def issue_password_reset_token(self, subject: str) -> str:
        return self._issue(subject, RESET)

    def verify_access_token(self, token: str) -> Optional[Dict[str, Any]]:
        """Return the claims of a valid access token, else None."""
        return self._decode(token, ACCESS)

    def verify_refresh_token(self, token: str) -> bool:
        return self._decode(token, REFRESH) is not None

    def verify_password_reset_token(self, token: str) -> bool:
        return self._decode(token, RESET) is not None

    @staticmethod
    def subject_of(token: str) -> Optional[str]:
        """
        Read the sub claim without verifying anything. Callers verify first;
        an unparsable token has no subject.
        """
        if not token:
            return None
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return None
        subject = claims.get("sub")
        return subject if isinstance(subject, str) and subject else None
