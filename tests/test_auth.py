import sqlite3

import pytest

from smb_advisor import auth
from smb_advisor.auth import (
    AuthError,
    SessionState,
    User,
    clear_session_token,
    current_user,
    load_session_token,
    save_session_token,
    session_state,
    sign_in,
    sign_out,
    sign_up,
)
from smb_advisor.db import DatabaseConfig, DataStoreError, get_user_by_email


def make_cfg(tmp_path) -> DatabaseConfig:
    return DatabaseConfig(engine="sqlite", path=tmp_path / "auth.sqlite")


def test_sign_up_sign_in_sign_out_flow(tmp_path):
    """A registered user can sign in, is resolved from the token, then signs out."""
    cfg = make_cfg(tmp_path)

    user = sign_up(cfg, "Alice@Example.com", "secret1", "secret1")
    assert user.email == "alice@example.com"

    # The password is stored hashed.
    assert get_user_by_email(cfg, "alice@example.com").password_hash != "secret1"

    session = sign_in(cfg, "alice@example.com", "secret1")
    assert session.user == user
    assert current_user(cfg, session.token) == user
    assert session_state(cfg, session.token) == SessionState(user=user, loading=False)

    sign_out(cfg, session.token)
    assert current_user(cfg, session.token) is None
    assert session_state(cfg, session.token).user is None


@pytest.mark.parametrize(
    "email,password,confirm",
    [
        ("not-an-email", "secret1", None),
        ("a@example.com", "12345", None),
        ("a@example.com", "secret1", "secret2"),
    ],
)
def test_sign_up_rejects_invalid_input(tmp_path, email, password, confirm):
    with pytest.raises(AuthError):
        sign_up(make_cfg(tmp_path), email, password, confirm)


def test_sign_up_rejects_duplicate_email(tmp_path):
    cfg = make_cfg(tmp_path)
    sign_up(cfg, "bob@example.com", "secret1")

    with pytest.raises(AuthError):
        sign_up(cfg, "BOB@example.com", "another1")


def test_sign_in_rejects_wrong_credentials(tmp_path):
    """Unknown email and wrong password produce the same message."""
    cfg = make_cfg(tmp_path)
    sign_up(cfg, "carol@example.com", "secret1")

    with pytest.raises(AuthError, match="Invalid email or password"):
        sign_in(cfg, "carol@example.com", "wrong-password")
    with pytest.raises(AuthError, match="Invalid email or password"):
        sign_in(cfg, "nobody@example.com", "secret1")


def test_current_user_without_token(tmp_path):
    cfg = make_cfg(tmp_path)

    assert current_user(cfg, None) is None
    assert current_user(cfg, "unknown-token") is None


def test_sign_out_with_unknown_token_is_ignored(tmp_path):
    sign_out(make_cfg(tmp_path), "unknown-token")


def test_session_file_round_trip(tmp_path):
    path = tmp_path / "state" / ".session"

    assert load_session_token(path) is None
    save_session_token(path, "tok-123")
    assert load_session_token(path) == "tok-123"

    clear_session_token(path)
    assert load_session_token(path) is None
    clear_session_token(path)


def test_user_is_a_plain_value():
    assert User(id="1", email="a@b.c") == User(id="1", email="a@b.c")


def test_database_failures_surface_as_data_store_errors(tmp_path, monkeypatch):
    """sqlite3 errors other than a duplicate email never leak out of auth."""
    cfg = make_cfg(tmp_path)
    sign_up(cfg, "bob@example.com", "secret1")

    def locked(*args, **kwargs):
        raise sqlite3.OperationalError("database is locked")

    monkeypatch.setattr(auth, "get_user_by_email", locked)
    monkeypatch.setattr(auth, "get_session_user_id", locked)
    monkeypatch.setattr(auth, "insert_user", locked)
    monkeypatch.setattr(auth, "delete_session", locked)

    with pytest.raises(DataStoreError):
        sign_in(cfg, "bob@example.com", "secret1")
    with pytest.raises(DataStoreError):
        current_user(cfg, "some-token")
    with pytest.raises(DataStoreError):
        sign_up(cfg, "carol@example.com", "secret1")
    with pytest.raises(DataStoreError):
        sign_out(cfg, "some-token")


def test_duplicate_email_is_still_an_auth_error(tmp_path):
    cfg = make_cfg(tmp_path)
    sign_up(cfg, "dan@example.com", "secret1")

    with pytest.raises(AuthError, match="already exists"):
        sign_up(cfg, "dan@example.com", "secret1")
