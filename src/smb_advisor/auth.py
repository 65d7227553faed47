# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Authentication adapter for SMB Advisor.

Users and session tokens live in the application database. Passwords are
hashed with werkzeug; sessions are opaque random tokens. The identifier of the
current user is the foreign key used by every data-store query.

Operations:
    sign_up(cfg, email, password, confirm)  -> User
    sign_in(cfg, email, password)           -> Session
    sign_out(cfg, token)
    current_user(cfg, token)                -> User | None

The CLI keeps the token of the active session in a small session file
(see ``save_session_token`` / ``load_session_token``).
"""

import logging
import secrets
import sqlite3
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from werkzeug.security import check_password_hash, generate_password_hash

from .db import (
    DatabaseConfig,
    delete_session,
    get_session_user_id,
    get_user_by_email,
    get_user_by_id,
    insert_session,
    insert_user,
    wrap_data_store_errors,
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6


class AuthError(Exception):
    """Raised when sign-up or sign-in cannot be completed."""


@dataclass(frozen=True)
class User:
    id: str
    email: str


@dataclass(frozen=True)
class Session:
    token: str
    user: User


@dataclass(frozen=True)
class SessionState:
    """Readable auth state for UI layers: current user and loading flag."""

    user: Optional[User]
    loading: bool = False


def _normalize_email(email: str) -> str:
    return email.strip().lower()


def sign_up(
    cfg: DatabaseConfig,
    email: str,
    password: str,
    confirm: Optional[str] = None,
) -> User:
    """
    Register a new user.

    Raises:
        AuthError: invalid email, password shorter than 6 characters,
            confirmation mismatch, or email already registered.
        DataStoreError: if the account cannot be stored.
    """
    email = _normalize_email(email)
    if "@" not in email or email.startswith("@") or email.endswith("@"):
        raise AuthError(f"Invalid email address: {email!r}")
    if confirm is not None and password != confirm:
        raise AuthError("Passwords do not match.")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise AuthError(
            f"Password must contain at least {MIN_PASSWORD_LENGTH} characters."
        )

    user_id = uuid.uuid4().hex
    with wrap_data_store_errors():
        try:
            row = insert_user(cfg, user_id, email, generate_password_hash(password))
        except sqlite3.IntegrityError as exc:
            raise AuthError(f"An account already exists for {email}.") from exc

    logger.info("Registered user %s", row.id)
    return User(id=row.id, email=row.email)


def sign_in(cfg: DatabaseConfig, email: str, password: str) -> Session:
    """
    Authenticate a user and open a new session.

    Raises:
        AuthError: unknown email or wrong password (same message for both).
        DataStoreError: if the user or the session cannot be read or stored.
    """
    with wrap_data_store_errors():
        row = get_user_by_email(cfg, _normalize_email(email))
    if row is None or not check_password_hash(row.password_hash, password):
        raise AuthError("Invalid email or password.")

    token = secrets.token_urlsafe(32)
    with wrap_data_store_errors():
        insert_session(cfg, token, row.id)
    return Session(token=token, user=User(id=row.id, email=row.email))


def sign_out(cfg: DatabaseConfig, token: str) -> None:
    """Close a session. Unknown tokens are ignored."""
    with wrap_data_store_errors():
        deleted = delete_session(cfg, token)
    if not deleted:
        logger.info("sign_out called with an unknown session token")


def current_user(cfg: DatabaseConfig, token: Optional[str]) -> Optional[User]:
    """Return the user bound to a session token, or None."""
    if not token:
        return None
    with wrap_data_store_errors():
        user_id = get_session_user_id(cfg, token)
        row = get_user_by_id(cfg, user_id) if user_id is not None else None
    if row is None:
        return None
    return User(id=row.id, email=row.email)


def session_state(cfg: DatabaseConfig, token: Optional[str]) -> SessionState:
    """Resolve the session token into a (user, loading=False) state."""
    return SessionState(user=current_user(cfg, token), loading=False)


# ---------------------------------------------------------------------------
# CLI session file
# ---------------------------------------------------------------------------


def save_session_token(path: Path, token: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(token, encoding="utf-8")
    path.chmod(0o600)


def load_session_token(path: Path) -> Optional[str]:
    if not path.is_file():
        return None
    token = path.read_text(encoding="utf-8").strip()
    return token or None


def clear_session_token(path: Path) -> None:
    path.unlink(missing_ok=True)
