from __future__ import annotations

from models.credential_store import CredentialStore
from services.auth_service import AuthService
from services.results import ErrorKind
from utils.security import verify_password
from conftest import PASSWORD, add_user, make_codec, past_clock


class CorruptingStore(CredentialStore):
    """Reads back a different refresh token than the one written."""

    def save(self, user):
        saved = super().save(user)
        if saved.refresh_token is not None:
            saved.refresh_token = saved.refresh_token + "x"
        return saved


class SpyStore:
    def __init__(self):
        self.calls = []

    def __getattr__(self, name):
        def record(*args, **kwargs):
            self.calls.append(name)
            raise AssertionError(f"store.{name} should not be called")
        return record


class SpyCodec(SpyStore):
    pass


# register

def test_register_returns_public_projection(service):
    outcome = service.register("A@B.com ", PASSWORD, PASSWORD, "Ann", "Gardener")
    assert outcome.ok
    principal = outcome.value
    assert principal.email == "a@b.com"
    assert principal.role == "CLIENT"
    assert principal.is_enabled and principal.is_non_locked
    assert principal.registered_at is not None
    for hidden in ("password_hash", "refresh_token", "password_reset_token"):
        assert not hasattr(principal, hidden)


def test_register_stores_hash_and_no_session(service, store):
    service.register("a@b.com", PASSWORD, PASSWORD, "Ann", "Gardener")
    user = store.find_by_email("a@b.com")
    assert user.password_hash != PASSWORD
    assert verify_password(PASSWORD, user.password_hash)
    assert user.refresh_token is None


def test_register_password_mismatch(service, store):
    outcome = service.register("a@b.com", PASSWORD, "Abc12345?", "Ann", "Gardener")
    assert outcome.error.kind is ErrorKind.CREDENTIAL_MISMATCH
    assert not store.exists_by_email("a@b.com")


def test_register_twice_is_already_exists(service):
    assert service.register("a@b.com", PASSWORD, PASSWORD).ok
    outcome = service.register("A@b.COM", PASSWORD, PASSWORD)
    assert outcome.error.kind is ErrorKind.ALREADY_EXISTS
    assert "already registered" in outcome.error.message


def test_register_existing_disabled_or_locked_is_already_exists(service, store):
    add_user(store, email="off@b.com", is_enabled=False)
    add_user(store, email="locked@b.com", is_non_locked=False)

    disabled = service.register("off@b.com", PASSWORD, PASSWORD)
    locked = service.register("locked@b.com", PASSWORD, PASSWORD)

    assert disabled.error.kind is ErrorKind.ALREADY_EXISTS
    assert "disabled" in disabled.error.message
    assert locked.error.kind is ErrorKind.ALREADY_EXISTS
    assert "locked" in locked.error.message


def test_register_race_on_unique_email(service, store, monkeypatch):
    add_user(store, email="a@b.com")
    # the pre-check misses the row, the unique constraint catches it
    monkeypatch.setattr(store, "exists_by_email", lambda email: False)
    outcome = service.register("a@b.com", PASSWORD, PASSWORD)
    assert outcome.error.kind is ErrorKind.ALREADY_EXISTS
    # the session is usable again after the rollback
    assert store.find_by_email("a@b.com") is not None


# login

def test_login_issues_tokens_and_stores_refresh(service, store):
    add_user(store)
    outcome = service.login("a@b.com", PASSWORD)
    assert outcome.ok
    assert outcome.value.access_token != outcome.value.refresh_token
    assert store.find_by_email("a@b.com").refresh_token == outcome.value.refresh_token


def test_login_unknown_email_and_wrong_password_look_the_same(service, store):
    add_user(store)
    wrong = service.login("a@b.com", "Wrong1234!")
    unknown = service.login("nobody@b.com", PASSWORD)
    assert wrong.error.kind is ErrorKind.INVALID_CREDENTIALS
    assert unknown.error.kind is ErrorKind.INVALID_CREDENTIALS
    assert wrong.error.message == unknown.error.message


def test_login_rejects_disabled_and_locked(service, store):
    add_user(store, email="off@b.com", is_enabled=False)
    add_user(store, email="locked@b.com", is_non_locked=False)
    assert service.login("off@b.com", PASSWORD).error.kind is ErrorKind.INVALID_CREDENTIALS
    assert service.login("locked@b.com", PASSWORD).error.kind is ErrorKind.INVALID_CREDENTIALS


def test_login_detects_refresh_token_not_persisted(app, store):
    add_user(store)
    storage = app.extensions["storage"]
    corrupt = AuthService(CorruptingStore(storage), app.extensions["token_codec"])

    outcome = corrupt.login("a@b.com", PASSWORD)

    assert outcome.error.kind is ErrorKind.STATE_INCONSISTENCY
    assert store.find_by_email("a@b.com").refresh_token is None


def test_second_login_replaces_refresh_token(service, store):
    add_user(store)
    first = service.login("a@b.com", PASSWORD).value
    second = service.login("a@b.com", PASSWORD).value
    assert first.refresh_token != second.refresh_token
    assert store.find_by_email("a@b.com").refresh_token == second.refresh_token


# refresh

def test_refresh_with_current_token(service, store):
    add_user(store)
    tokens = service.login("a@b.com", PASSWORD).value

    outcome = service.refresh(tokens.refresh_token)

    assert outcome.ok
    assert outcome.value.access_token != tokens.access_token
    # the refresh token is not rotated by an access-token refresh
    assert store.find_by_email("a@b.com").refresh_token == tokens.refresh_token
    assert service.refresh(tokens.refresh_token).ok


def test_refresh_blank_token_touches_nothing():
    service = AuthService(SpyStore(), SpyCodec())
    for token in (None, "", "   "):
        outcome = service.refresh(token)
        assert outcome.error.kind is ErrorKind.INVALID_CREDENTIALS


def test_refresh_with_garbage_token(service):
    assert service.refresh("not-a-token").error.kind is ErrorKind.INVALID_CREDENTIALS


def test_refresh_with_access_token_is_rejected(service, store):
    add_user(store)
    tokens = service.login("a@b.com", PASSWORD).value
    assert service.refresh(tokens.access_token).error.kind is ErrorKind.INVALID_CREDENTIALS


def test_expired_refresh_token_is_invalid_not_not_found(service, store):
    add_user(store)
    expired = make_codec(clock=past_clock()).issue_refresh_token("a@b.com")
    with store.transaction():
        user = store.find_by_email("a@b.com")
        user.refresh_token = expired
        store.save(user)

    outcome = service.refresh(expired)

    assert outcome.error.kind is ErrorKind.INVALID_CREDENTIALS


def test_refresh_for_unknown_subject_is_not_found(service, codec):
    token = codec.issue_refresh_token("ghost@b.com")
    assert service.refresh(token).error.kind is ErrorKind.NOT_FOUND


def test_refresh_for_locked_user_is_invalid(service, store):
    add_user(store)
    tokens = service.login("a@b.com", PASSWORD).value
    with store.transaction():
        user = store.find_by_email("a@b.com")
        user.is_non_locked = False
        store.save(user)
    assert service.refresh(tokens.refresh_token).error.kind is ErrorKind.INVALID_CREDENTIALS


def test_reused_refresh_token_ends_session(service, store):
    add_user(store)
    old = service.login("a@b.com", PASSWORD).value
    new = service.login("a@b.com", PASSWORD).value

    outcome = service.refresh(old.refresh_token)

    assert outcome.error.kind is ErrorKind.INVALID_CREDENTIALS
    assert store.find_by_email("a@b.com").refresh_token is None
    # the session is gone for the newer token as well
    assert service.refresh(new.refresh_token).error.kind is ErrorKind.INVALID_CREDENTIALS


def test_refresh_after_logout_is_rejected(service, store):
    user = add_user(store)
    tokens = service.login("a@b.com", PASSWORD).value
    assert service.logout(user).ok
    assert service.refresh(tokens.refresh_token).error.kind is ErrorKind.INVALID_CREDENTIALS


# logout

def test_logout_twice(service, store):
    user = add_user(store)
    service.login("a@b.com", PASSWORD)
    assert service.logout(user).ok
    assert store.find_by_email("a@b.com").refresh_token is None
    assert service.logout(user).error.kind is ErrorKind.INVALID_CREDENTIALS


# password reset

def test_forgot_password_mails_link_and_stores_token(service, store, mailer):
    add_user(store)
    assert service.forgot_password("A@b.com").ok

    to_email, link = mailer.sent[-1]
    assert to_email == "a@b.com"
    assert link.startswith("http://shop.test/reset?token=")
    assert store.find_by_email("a@b.com").password_reset_token == mailer.last_token


def test_forgot_password_unknown_and_inactive(service, store, mailer):
    add_user(store, email="off@b.com", is_enabled=False)
    assert service.forgot_password("nobody@b.com").error.kind is ErrorKind.NOT_FOUND
    assert service.forgot_password("off@b.com").error.kind is ErrorKind.INVALID_CREDENTIALS
    assert mailer.sent == []


def test_reset_password_is_single_use(service, store, mailer):
    add_user(store)
    service.forgot_password("a@b.com")
    token = mailer.last_token

    assert service.reset_password(token, "Xyz98765#", "Xyz98765#").ok
    assert service.login("a@b.com", "Xyz98765#").ok
    assert service.login("a@b.com", PASSWORD).error.kind is ErrorKind.INVALID_CREDENTIALS

    again = service.reset_password(token, "Qwe45678@", "Qwe45678@")
    assert again.error.kind is ErrorKind.INVALID_CREDENTIALS


def test_reset_password_with_superseded_token_clears_it(service, store, mailer):
    add_user(store)
    service.forgot_password("a@b.com")
    first = mailer.last_token
    service.forgot_password("a@b.com")
    second = mailer.last_token

    outcome = service.reset_password(first, "Xyz98765#", "Xyz98765#")

    assert outcome.error.kind is ErrorKind.INVALID_CREDENTIALS
    assert store.find_by_email("a@b.com").password_reset_token is None
    assert service.reset_password(second, "Xyz98765#", "Xyz98765#").error.kind is ErrorKind.INVALID_CREDENTIALS


def test_reset_password_checks(service, codec):
    assert service.reset_password("t", "Xyz98765#", "Xyz98765$").error.kind is ErrorKind.CREDENTIAL_MISMATCH
    assert service.reset_password("", "Xyz98765#", "Xyz98765#").error.kind is ErrorKind.INVALID_CREDENTIALS
    # a refresh token is not a reset token
    refresh = codec.issue_refresh_token("a@b.com")
    assert service.reset_password(refresh, "Xyz98765#", "Xyz98765#").error.kind is ErrorKind.INVALID_CREDENTIALS
    ghost = codec.issue_password_reset_token("ghost@b.com")
    assert service.reset_password(ghost, "Xyz98765#", "Xyz98765#").error.kind is ErrorKind.NOT_FOUND
