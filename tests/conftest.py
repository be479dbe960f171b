from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from api import create_app
from models.user import User, UserRole
from utils.security import TokenCodec, hash_password

TEST_SECRET = "test-secret-key-with-enough-length-for-hs256"
PASSWORD = "Abc12345!"


class OutboxMailer:
    """Collects reset mails instead of sending them."""

    def __init__(self):
        self.sent = []

    def send_password_reset(self, to_email: str, link: str) -> None:
        self.sent.append((to_email, link))

    @property
    def last_token(self) -> str:
        return self.sent[-1][1].split("token=", 1)[1]


@pytest.fixture
def mailer() -> OutboxMailer:
    return OutboxMailer()


@pytest.fixture
def app(tmp_path, mailer):
    app = create_app(
        "testing",
        DATABASE_URL=f"sqlite:///{tmp_path / 'test.db'}",
        JWT_SECRET=TEST_SECRET,
        PASSWORD_RESET_BASE_URL="http://shop.test/reset",
        mailer=mailer,
    )
    yield app
    app.extensions["storage"].dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions["credential_store"]


@pytest.fixture
def codec(app):
    return app.extensions["token_codec"]


@pytest.fixture
def service(app):
    return app.extensions["auth_service"]


@pytest.fixture
def accounts(app):
    return app.extensions["account_service"]


def past_clock(days: int = 30):
    """A clock frozen far enough back that anything it issues has already expired."""
    frozen = datetime.now(timezone.utc) - timedelta(days=days)
    return lambda: frozen


def make_codec(**kwargs) -> TokenCodec:
    kwargs.setdefault("secret", TEST_SECRET)
    return TokenCodec(**kwargs)


def add_user(store, email="a@b.com", password=PASSWORD, role=UserRole.CLIENT,
             is_enabled=True, is_non_locked=True) -> User:
    with store.transaction():
        user = store.save(
            User(
                email=email,
                password_hash=hash_password(password),
                first_name="Ann",
                last_name="Gardener",
                role=role,
                is_enabled=is_enabled,
                is_non_locked=is_non_locked,
            )
        )
    return user


def register_payload(email="a@b.com", password=PASSWORD, confirm=None, **extra):
    payload = {
        "email": email,
        "password": password,
        "confirm_password": confirm if confirm is not None else password,
        "first_name": "Ann",
        "last_name": "Gardener",
    }
    payload.update(extra)
    return payload


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
