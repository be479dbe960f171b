"""
AuthService: registration, login, refresh-token exchange, logout and
password reset.

Per principal the session state lives in a single column:
- refresh_token is None  -> no session
- refresh_token == T     -> active session, T is the only refresh token honoured

Login overwrites the column (any older token dies with it). Refresh only
succeeds when the presented token is exactly the stored one; a valid but
different token means it was replaced, so it is treated as stolen and the
session is ended.

Every read-modify-write on a principal row runs inside one transaction with
the row selected FOR UPDATE, so concurrent logins cannot interleave. The
service itself keeps no state between calls.
"""
from __future__ import annotations

import hmac
import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from models.credential_store import CredentialStore, normalize_email
from models.user import User, UserRole
from services.results import (
    ErrorKind,
    LoginTokens,
    Outcome,
    PublicPrincipal,
    RefreshedToken,
)
from utils.mailer import LogMailer
from utils.security import TokenCodec, hash_password, verify_password

logger = logging.getLogger(__name__)


def _same_token(presented: str, stored: Optional[str]) -> bool:
    if stored is None:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), stored.encode("utf-8"))


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


class AuthService:

    def __init__(self, store: CredentialStore, codec: TokenCodec, mailer=None, reset_base_url: str = ""):
        self._store = store
        self._codec = codec
        self._mailer = mailer or LogMailer()
        self._reset_base_url = reset_base_url

    @property
    def store(self) -> CredentialStore:
        return self._store

    @property
    def codec(self) -> TokenCodec:
        return self._codec

    def register(self, email: str, password: str, confirm_password: str,
                 first_name: str | None = None, last_name: str | None = None) -> Outcome[PublicPrincipal]:
        if password != confirm_password:
            return Outcome.failure(ErrorKind.CREDENTIAL_MISMATCH, "Password doesn't match the confirm password field.")

        email = normalize_email(email)
        if self._store.exists_by_email(email):
            existing = self._store.find_by_email(email)
            if existing is not None and not existing.is_enabled:
                detail = f"User with email: {email}, already exists and is disabled."
            elif existing is not None and not existing.is_non_locked:
                detail = f"User with email: {email}, already exists and is locked."
            else:
                detail = f"User with email: {email}, already registered."
            return Outcome.failure(ErrorKind.ALREADY_EXISTS, detail)

        user = User(
            email=email,
            password_hash=hash_password(password),
            first_name=first_name,
            last_name=last_name,
            role=UserRole.CLIENT,
            is_enabled=True,
            is_non_locked=True,
            refresh_token=None,
        )
        try:
            with self._store.transaction():
                saved = self._store.save(user)
        except IntegrityError:
            # lost a race with a concurrent registration for the same email
            logger.warning("Concurrent registration rejected for %s", email)
            return Outcome.failure(ErrorKind.ALREADY_EXISTS, f"User with email: {email}, already registered.")

        logger.info("Registered user %s", saved.id)
        return Outcome.success(PublicPrincipal.from_user(saved))

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """
        The principal for these credentials, or None. Unknown email, wrong
        password, disabled and locked accounts all look the same.
        """
        user = self._store.find_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            return None
        if not user.is_active:
            return None
        return user

    def login(self, email: str, password: str) -> Outcome[LoginTokens]:
        if self.authenticate(email, password) is None:
            logger.warning("Authentication failed for email: %s", email)
            return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Invalid email or password.")

        with self._store.transaction():
            user = self._store.find_by_email(email, for_update=True)
            if user is None:
                # deleted between the credential check and the lock
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Invalid email or password.")

            access_token = self._codec.issue_access_token(user.email)
            refresh_token = self._codec.issue_refresh_token(user.email)

            user.refresh_token = refresh_token
            saved = self._store.save(user)

            if saved.refresh_token is None or not _same_token(refresh_token, saved.refresh_token):
                self._store.rollback()
                logger.error("Refresh token was generated but not saved for user with email: %s", user.email)
                return Outcome.failure(ErrorKind.STATE_INCONSISTENCY, "Refresh token was generated but not saved.")

        logger.info("User %s logged in", saved.id)
        return Outcome.success(LoginTokens(access_token=access_token, refresh_token=refresh_token))

    def refresh(self, refresh_token: Optional[str]) -> Outcome[RefreshedToken]:
        if _blank(refresh_token):
            return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Refresh token is missing or empty.")

        if not self._codec.verify_refresh_token(refresh_token):
            logger.warning("Invalid or expired refresh token presented")
            return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Invalid or expired refresh token.")

        email = self._codec.subject_of(refresh_token)
        if email is None:
            return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Token does not contain a user identifier.")

        with self._store.transaction():
            user = self._store.find_by_email(email, for_update=True)
            if user is None:
                return Outcome.failure(
                    ErrorKind.NOT_FOUND,
                    f"User with email: {email}, associated with refresh token, not found.",
                )
            if not user.is_active:
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, f"User with email: {email}, is disabled or locked.")

            if not _same_token(refresh_token, user.refresh_token):
                user.refresh_token = None
                self._store.save(user)
                logger.warning("Refresh token mismatch or reuse detected for %s; session revoked", email)
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Refresh token mismatch or reuse detected.")

            access_token = self._codec.issue_access_token(user.email)

        return Outcome.success(RefreshedToken(access_token=access_token))

    def logout(self, principal: User) -> Outcome[str]:
        with self._store.transaction():
            user = self._store.find_by_email(principal.email, for_update=True)
            if user is None:
                return Outcome.failure(ErrorKind.NOT_FOUND, f"User with email: {principal.email}, was not found.")
            if user.refresh_token is None:
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "User is already logged out.")
            user.refresh_token = None
            self._store.save(user)

        logger.info("User %s logged out", user.id)
        return Outcome.success("Logout successful.")

    def forgot_password(self, email: str) -> Outcome[str]:
        email = normalize_email(email)
        with self._store.transaction():
            user = self._store.find_by_email(email, for_update=True)
            if user is None:
                return Outcome.failure(ErrorKind.NOT_FOUND, f"User with email: {email}, was not found.")
            if not user.is_active:
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, f"User with email: {email}, is disabled or locked.")

            reset_token = self._codec.issue_password_reset_token(user.email)
            user.password_reset_token = reset_token
            self._store.save(user)

            # inside the transaction: a failed send leaves no dangling reset token
            link = f"{self._reset_base_url}?token={reset_token}"
            self._mailer.send_password_reset(user.email, link)

        return Outcome.success("Password reset link sent to user's email.")

    def reset_password(self, reset_token: Optional[str], new_password: str, confirm_password: str) -> Outcome[str]:
        if new_password != confirm_password:
            return Outcome.failure(ErrorKind.CREDENTIAL_MISMATCH, "Password doesn't match the confirm password field.")
        if _blank(reset_token):
            return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Password reset token is missing or empty.")
        if not self._codec.verify_password_reset_token(reset_token):
            return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Invalid or expired password reset token.")

        email = self._codec.subject_of(reset_token)
        if email is None:
            return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Token does not contain a user identifier.")

        with self._store.transaction():
            user = self._store.find_by_email(email, for_update=True)
            if user is None:
                return Outcome.failure(
                    ErrorKind.NOT_FOUND,
                    f"User with email: {email}, associated with password reset token, not found.",
                )
            if not user.is_active:
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, f"User with email: {email}, is disabled or locked.")

            if not _same_token(reset_token, user.password_reset_token):
                user.password_reset_token = None
                self._store.save(user)
                logger.warning("Password reset token mismatch or reuse detected for %s", email)
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Password reset token mismatch or reuse detected.")

            user.password_hash = hash_password(new_password)
            user.password_reset_token = None
            self._store.save(user)

        logger.info("Password reset for user %s", user.id)
        return Outcome.success("Password has been successfully reset.")
