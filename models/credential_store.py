"""
CredentialStore: the persistence boundary for principals.

Everything that needs a user record (auth, carts, orders, wishlists) goes
through these lookups. Storage errors are not translated here; SQLAlchemy
exceptions propagate to the caller.
"""
from __future__ import annotations

from typing import List, Optional, Tuple

from sqlalchemy import func

from models.db_storage import DBStorage
from models.user import User


def normalize_email(email: str) -> str:
    return email.strip().lower()


class CredentialStore:

    def __init__(self, storage: DBStorage):
        self._storage = storage

    def _query(self):
        return self._storage.get_session().query(User)

    def exists_by_email(self, email: str) -> bool:
        session = self._storage.get_session()
        q = self._query().filter(func.lower(User.email) == normalize_email(email))
        return session.query(q.exists()).scalar()

    def find_by_email(self, email: str, for_update: bool = False) -> Optional[User]:
        """
        Case-insensitive lookup. With for_update=True the row is locked until
        the surrounding transaction ends (ignored by SQLite, which locks the
        whole database on write anyway).
        """
        q = self._query().filter(func.lower(User.email) == normalize_email(email))
        if for_update:
            q = q.with_for_update()
        return q.first()

    def find_by_id(self, user_id: str, for_update: bool = False) -> Optional[User]:
        q = self._query().filter(User.id == user_id)
        if for_update:
            q = q.with_for_update()
        return q.first()

    def save(self, user: User) -> User:
        """
        Upsert the principal and return it as read back from the database,
        including server-assigned fields.
        """
        self._storage.new(user)
        self._storage.flush()
        self._storage.refresh(user)
        return user

    def list_page(self, page: int, limit: int) -> Tuple[List[User], int]:
        query = self._query()
        total = query.count()
        rows = query.order_by(User.created_at.asc(), User.email.asc()).offset((page - 1) * limit).limit(limit).all()
        return rows, total

    def transaction(self):
        return self._storage.transaction()

    def rollback(self):
        self._storage.rollback()
