"""
AccountService: what a principal can do to their own account (unregister,
change password) and the administrator's lock toggle.

Unregistering disables the account and ends its session; the row and the
email stay, so a later registration with the same email is refused as
"already exists and is disabled".
"""
from __future__ import annotations

import logging

from models.credential_store import CredentialStore
from models.user import User
from services.results import ErrorKind, Outcome
from utils.security import hash_password, verify_password

logger = logging.getLogger(__name__)

DISABLED_NAME = "Disabled User"


class AccountService:

    def __init__(self, store: CredentialStore):
        self._store = store

    def unregister(self, principal: User, password: str, confirm_password: str) -> Outcome[str]:
        if password != confirm_password:
            return Outcome.failure(ErrorKind.CREDENTIAL_MISMATCH, "Password doesn't match the confirm password field.")

        with self._store.transaction():
            user = self._store.find_by_email(principal.email, for_update=True)
            if user is None:
                return Outcome.failure(ErrorKind.NOT_FOUND, f"User with email: {principal.email}, was not found.")
            if not verify_password(password, user.password_hash):
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Password is incorrect.")

            user.first_name = DISABLED_NAME
            user.last_name = DISABLED_NAME
            user.is_enabled = False
            user.refresh_token = None
            user.password_reset_token = None
            self._store.save(user)

        logger.info("User %s unregistered", user.id)
        return Outcome.success(f"User with email: {user.email}, has been unregistered.")

    def toggle_lock(self, user_id: str) -> Outcome[str]:
        with self._store.transaction():
            user = self._store.find_by_id(user_id, for_update=True)
            if user is None:
                return Outcome.failure(ErrorKind.NOT_FOUND, f"User with id: {user_id}, was not found.")
            if not user.is_enabled:
                return Outcome.failure(
                    ErrorKind.INVALID_STATE,
                    f"User with id: {user_id}, is unregistered and cannot be locked or unlocked.",
                )

            user.is_non_locked = not user.is_non_locked
            if not user.is_non_locked:
                # a locked account keeps no session
                user.refresh_token = None
            self._store.save(user)
            state = "unlocked" if user.is_non_locked else "locked"

        logger.info("User %s has been %s", user_id, state)
        return Outcome.success(f"User with id: {user_id} has been {state}.")

    def change_password(self, principal: User, current_password: str, new_password: str,
                        confirm_new_password: str) -> Outcome[str]:
        if new_password != confirm_new_password:
            return Outcome.failure(
                ErrorKind.CREDENTIAL_MISMATCH, "New password doesn't match the confirm new password field."
            )

        with self._store.transaction():
            user = self._store.find_by_email(principal.email, for_update=True)
            if user is None:
                return Outcome.failure(ErrorKind.NOT_FOUND, f"User with email: {principal.email}, was not found.")
            if not verify_password(current_password, user.password_hash):
                return Outcome.failure(ErrorKind.INVALID_CREDENTIALS, "Current password is incorrect.")

            user.password_hash = hash_password(new_password)
            self._store.save(user)

        logger.info("Password changed for user %s", user.id)
        return Outcome.success(f"Password for user with email: {user.email}, has been successfully changed.")
