# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Database layer for SMB Advisor.

This module provides all low-level accessors for the SQLite database used by
the application. It is responsible for:

- Initializing the database schema.
- Inserting and listing annual financial records per user.
- Upserting and reading the company profile of a user.
- Storing user accounts and session tokens for the auth adapter.

------------------------------------------------------------------------------
Schema Overview
------------------------------------------------------------------------------

1) users
   - id             TEXT PRIMARY KEY       -- opaque user identifier (uuid4 hex)
   - email          TEXT NOT NULL UNIQUE   -- lower-cased email
   - password_hash  TEXT NOT NULL
   - created_at     TEXT NOT NULL          -- ISO datetime, UTC

2) sessions
   - token          TEXT PRIMARY KEY
   - user_id        TEXT NOT NULL          -- foreign key to users.id
   - created_at     TEXT NOT NULL

3) financial_data
   One row per submission. Records are never updated in place: a new
   submission for the same year is a new row, and the most recent
   submission wins when records are listed.

   - id              INTEGER PRIMARY KEY AUTOINCREMENT
   - user_id         TEXT    NOT NULL
   - year            INTEGER NOT NULL
   - revenue_cents, fixed_costs_cents, variable_costs_cents,
     payroll_cents, cash_flow_cents      INTEGER NOT NULL
   - notes           TEXT
   - created_at      TEXT    NOT NULL

4) company_profiles
   At most one row per user (user_id is the primary key).

   - user_id         TEXT PRIMARY KEY
   - company_name    TEXT NOT NULL
   - sector          TEXT
   - employee_count  INTEGER NOT NULL DEFAULT 0
   - revenue_cents   INTEGER NOT NULL DEFAULT 0
   - fiscal_regime   TEXT
   - updated_at      TEXT NOT NULL

------------------------------------------------------------------------------
SQLite Notes
------------------------------------------------------------------------------

- Amounts are stored as integer cents and converted back to floats.
- All timestamps are stored as ISO-8601 text (UTC).
- Foreign key enforcement is explicitly enabled.
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import pandas as pd

from .models import (
    AMOUNT_FIELDS,
    CompanyProfile,
    FinancialRecord,
    StoredFinancialRecord,
)

# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class DataStoreError(Exception):
    """Raised when the data store cannot complete a request."""


@contextmanager
def wrap_data_store_errors() -> Iterator[None]:
    """Convert sqlite3 failures raised inside the block into DataStoreError."""
    try:
        yield
    except sqlite3.Error as exc:
        raise DataStoreError(f"Data store request failed: {exc}") from exc


# ---------------------------------------------------------------------------
# Dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DatabaseConfig:
    """
    Database configuration for SMB Advisor.

    Attributes
    ----------
    engine:
        Database engine identifier. Only "sqlite" is supported.
    path:
        Path to the SQLite database file.
    """

    engine: str
    path: Path


@dataclass(frozen=True)
class UserRow:
    """Raw row of the `users` table."""

    id: str
    email: str
    password_hash: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _ensure_sqlite(cfg: DatabaseConfig) -> None:
    """Raise if the configuration does not refer to a supported engine."""
    if cfg.engine.lower() != "sqlite":
        msg = (
            f"Unsupported database engine: {cfg.engine!r}. "
            "Only 'sqlite' is supported for now."
        )
        raise ValueError(msg)


def _connect(cfg: DatabaseConfig) -> sqlite3.Connection:
    """
    Open a SQLite connection with foreign keys enabled.

    The caller is responsible for closing the connection.
    """
    _ensure_sqlite(cfg)
    conn = sqlite3.connect(cfg.path)
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def _create_schema_if_needed(conn: sqlite3.Connection) -> None:
    """
    Create tables and indexes if they do not exist yet.

    This function is idempotent and can be called multiple times safely.
    """
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id            TEXT PRIMARY KEY,
            email         TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at    TEXT NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS sessions (
            token       TEXT PRIMARY KEY,
            user_id     TEXT NOT NULL,
            created_at  TEXT NOT NULL,

            FOREIGN KEY (user_id) REFERENCES users(id) ON DELETE CASCADE
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS financial_data (
            id                    INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id               TEXT    NOT NULL,
            year                  INTEGER NOT NULL,
            revenue_cents         INTEGER NOT NULL,
            fixed_costs_cents     INTEGER NOT NULL,
            variable_costs_cents  INTEGER NOT NULL,
            payroll_cents         INTEGER NOT NULL,
            cash_flow_cents       INTEGER NOT NULL,
            notes                 TEXT,
            created_at            TEXT    NOT NULL
        );
        """
    )

    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS company_profiles (
            user_id         TEXT PRIMARY KEY,
            company_name    TEXT    NOT NULL,
            sector          TEXT,
            employee_count  INTEGER NOT NULL DEFAULT 0,
            revenue_cents   INTEGER NOT NULL DEFAULT 0,
            fiscal_regime   TEXT,
            updated_at      TEXT    NOT NULL
        );
        """
    )

    # Indexes
    conn.execute(
        """
        CREATE INDEX IF NOT EXISTS idx_financial_data_user_year
            ON financial_data(user_id, year);
        """
    )

    conn.commit()


def _to_cents(amount: float) -> int:
    return int(round(amount * 100))


def _from_cents(cents: int) -> float:
    return float(cents) / 100.0


def _now_utc_iso() -> str:
    """Return the current UTC datetime as ISO string."""
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


_FINANCIAL_COLUMNS = (
    "id, user_id, year, revenue_cents, fixed_costs_cents, variable_costs_cents, "
    "payroll_cents, cash_flow_cents, notes, created_at"
)


def _row_to_financial_record(row: tuple) -> StoredFinancialRecord:
    """Convert a `financial_data` row (in _FINANCIAL_COLUMNS order)."""
    (
        record_id,
        user_id,
        year,
        revenue_cents,
        fixed_cents,
        variable_cents,
        payroll_cents,
        cash_cents,
        notes,
        created_at,
    ) = row

    record = FinancialRecord(
        year=int(year),
        revenue=_from_cents(revenue_cents),
        fixed_costs=_from_cents(fixed_cents),
        variable_costs=_from_cents(variable_cents),
        payroll=_from_cents(payroll_cents),
        cash_flow=_from_cents(cash_cents),
        notes=notes or "",
    )
    return StoredFinancialRecord(
        id=int(record_id),
        user_id=str(user_id),
        record=record,
        created_at=_parse_timestamp(created_at),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def init_database(cfg: DatabaseConfig) -> None:
    """
    Initialize the database schema if needed.

    - Creates the SQLite file (and its parent directory) if it does not exist.
    - Creates tables and indexes if they are missing.
    - This function is idempotent: calling it multiple times is safe.

    Raises
    ------
    ValueError
        If cfg.engine is not supported.
    sqlite3.Error
        If schema creation fails.
    """
    cfg.path.parent.mkdir(parents=True, exist_ok=True)

    conn = _connect(cfg)
    try:
        _create_schema_if_needed(conn)
    finally:
        conn.close()


# ---------------------------------------------------------------------------
# Financial records
# ---------------------------------------------------------------------------


def insert_financial_record(
    cfg: DatabaseConfig,
    user_id: str,
    record: FinancialRecord,
) -> StoredFinancialRecord:
    """
    Insert a new financial record for a user.

    The record is expected to be validated by the caller (service layer).
    """
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            INSERT INTO financial_data (
                user_id,
                year,
                revenue_cents,
                fixed_costs_cents,
                variable_costs_cents,
                payroll_cents,
                cash_flow_cents,
                notes,
                created_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?);
            """,
            (
                user_id,
                record.year,
                *(_to_cents(getattr(record, field)) for field in AMOUNT_FIELDS),
                record.notes,
                _now_utc_iso(),
            ),
        )
        record_id = cur.lastrowid
        conn.commit()

        cur.execute(
            f"SELECT {_FINANCIAL_COLUMNS} FROM financial_data WHERE id = ?;",
            (record_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    if row is None:
        msg = f"Financial record #{record_id} was just inserted but could not be reloaded."
        raise RuntimeError(msg)
    return _row_to_financial_record(row)


def list_financial_records(
    cfg: DatabaseConfig,
    user_id: str,
    *,
    limit: int | None = None,
) -> list[StoredFinancialRecord]:
    """
    List the financial records of a user, most recent year first.

    Submissions for the same year are ordered from the newest to the oldest.

    Parameters
    ----------
    cfg:
        Database configuration.
    user_id:
        Owner of the records.
    limit:
        Optional maximum number of rows.
    """
    init_database(cfg)

    sql = (
        f"SELECT {_FINANCIAL_COLUMNS} FROM financial_data "
        "WHERE user_id = ? ORDER BY year DESC, id DESC"
    )
    params: list[object] = [user_id]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(int(limit))

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(sql + ";", params)
        rows = cur.fetchall()
    finally:
        conn.close()

    return [_row_to_financial_record(row) for row in rows]


def get_latest_financial_record(
    cfg: DatabaseConfig,
    user_id: str,
) -> StoredFinancialRecord | None:
    """Return the most recent financial record of a user, or None."""
    records = list_financial_records(cfg, user_id, limit=1)
    return records[0] if records else None


def load_financial_data(cfg: DatabaseConfig, user_id: str) -> pd.DataFrame:
    """
    Load the financial records of a user as a DataFrame.

    Returns
    -------
    pandas.DataFrame
        Columns: id, year, revenue, fixed_costs, variable_costs, payroll,
        cash_flow, notes, created_at. Sorted by year descending. Empty (with
        the same columns) when the user has no records.
    """
    columns = ["id", "year", *AMOUNT_FIELDS, "notes", "created_at"]
    records = list_financial_records(cfg, user_id)
    if not records:
        return pd.DataFrame(columns=columns)

    rows = []
    for stored in records:
        rec = stored.record
        rows.append(
            {
                "id": stored.id,
                "year": rec.year,
                **{field: getattr(rec, field) for field in AMOUNT_FIELDS},
                "notes": rec.notes,
                "created_at": stored.created_at,
            }
        )
    return pd.DataFrame(rows, columns=columns)


# ---------------------------------------------------------------------------
# Company profiles
# ---------------------------------------------------------------------------


def upsert_company_profile(
    cfg: DatabaseConfig,
    user_id: str,
    profile: CompanyProfile,
) -> CompanyProfile:
    """Create or overwrite the company profile of a user."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        conn.execute(
            """
            INSERT INTO company_profiles (
                user_id,
                company_name,
                sector,
                employee_count,
                revenue_cents,
                fiscal_regime,
                updated_at
            )
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id) DO UPDATE SET
                company_name   = excluded.company_name,
                sector         = excluded.sector,
                employee_count = excluded.employee_count,
                revenue_cents  = excluded.revenue_cents,
                fiscal_regime  = excluded.fiscal_regime,
                updated_at     = excluded.updated_at;
            """,
            (
                user_id,
                profile.company_name,
                profile.sector,
                profile.employee_count,
                _to_cents(profile.revenue),
                profile.fiscal_regime,
                _now_utc_iso(),
            ),
        )
        conn.commit()
    finally:
        conn.close()

    return profile


def get_company_profile(cfg: DatabaseConfig, user_id: str) -> CompanyProfile | None:
    """Return the company profile of a user, or None."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            SELECT company_name, sector, employee_count, revenue_cents, fiscal_regime
              FROM company_profiles
             WHERE user_id = ?;
            """,
            (user_id,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    if row is None:
        return None

    company_name, sector, employee_count, revenue_cents, fiscal_regime = row
    return CompanyProfile(
        company_name=company_name,
        sector=sector or "",
        employee_count=int(employee_count or 0),
        revenue=_from_cents(revenue_cents or 0),
        fiscal_regime=fiscal_regime or "",
    )


# ---------------------------------------------------------------------------
# Users and sessions
# ---------------------------------------------------------------------------


def insert_user(
    cfg: DatabaseConfig,
    user_id: str,
    email: str,
    password_hash: str,
) -> UserRow:
    """
    Insert a new user.

    Raises
    ------
    sqlite3.IntegrityError
        If the email is already registered.
    """
    init_database(cfg)

    created_at = _now_utc_iso()
    conn = _connect(cfg)
    try:
        conn.execute(
            """
            INSERT INTO users (id, email, password_hash, created_at)
            VALUES (?, ?, ?, ?);
            """,
            (user_id, email, password_hash, created_at),
        )
        conn.commit()
    finally:
        conn.close()

    return UserRow(
        id=user_id,
        email=email,
        password_hash=password_hash,
        created_at=datetime.fromisoformat(created_at),
    )


def _fetch_user(cfg: DatabaseConfig, where: str, value: str) -> UserRow | None:
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute(
            f"SELECT id, email, password_hash, created_at FROM users WHERE {where} = ?;",
            (value,),
        )
        row = cur.fetchone()
    finally:
        conn.close()

    if row is None:
        return None
    return UserRow(
        id=row[0],
        email=row[1],
        password_hash=row[2],
        created_at=datetime.fromisoformat(row[3]),
    )


def get_user_by_email(cfg: DatabaseConfig, email: str) -> UserRow | None:
    """Return the user registered with this (lower-cased) email, or None."""
    return _fetch_user(cfg, "email", email)


def get_user_by_id(cfg: DatabaseConfig, user_id: str) -> UserRow | None:
    """Return the user with this id, or None."""
    return _fetch_user(cfg, "id", user_id)


def insert_session(cfg: DatabaseConfig, token: str, user_id: str) -> None:
    """Record a new session token for a user."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        conn.execute(
            "INSERT INTO sessions (token, user_id, created_at) VALUES (?, ?, ?);",
            (token, user_id, _now_utc_iso()),
        )
        conn.commit()
    finally:
        conn.close()


def get_session_user_id(cfg: DatabaseConfig, token: str) -> str | None:
    """Return the user id bound to a session token, or None."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.cursor()
        cur.execute("SELECT user_id FROM sessions WHERE token = ?;", (token,))
        row = cur.fetchone()
    finally:
        conn.close()

    return None if row is None else str(row[0])


def delete_session(cfg: DatabaseConfig, token: str) -> bool:
    """Delete a session token. Returns True if a session was removed."""
    init_database(cfg)

    conn = _connect(cfg)
    try:
        cur = conn.execute("DELETE FROM sessions WHERE token = ?;", (token,))
        conn.commit()
        return cur.rowcount > 0
    finally:
        conn.close()
