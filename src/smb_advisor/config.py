# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Configuration helpers for SMB Advisor.

This module is responsible for:
- loading the application configuration from a TOML file,
- loading an optional ``.env`` file next to it (API keys),
- exposing typed dataclasses used by the rest of the application.
"""

import os
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dotenv import load_dotenv

from .db import DatabaseConfig

DEFAULT_CONFIG_FILE = "smb_advisor_config.toml"


@dataclass(frozen=True)
class StorageConfig:
    """Object store settings: root directory and bucket name."""

    root: Path
    bucket: str


@dataclass(frozen=True)
class AuthConfig:
    """Where the CLI keeps the token of the active session."""

    session_file: Path


@dataclass(frozen=True)
class ExtractionConfig:
    """
    Settings of the PDF extraction adapter.

    The API key itself is never stored in the TOML file: ``api_key_env`` names
    the environment variable holding it.
    """

    model: str
    api_key_env: str
    max_tokens: int
    temperature: float
    timeout_seconds: float

    @property
    def api_key(self) -> Optional[str]:
        value = os.environ.get(self.api_key_env, "").strip()
        return value or None


@dataclass(frozen=True)
class AppConfig:
    """
    Application-wide configuration for SMB Advisor.

    This aggregates:
    - the database configuration (financial records, profiles, users),
    - the object store configuration (uploaded PDFs),
    - the auth configuration (CLI session file),
    - the extraction adapter settings,
    - display options for tables and ratios.
    """

    database: DatabaseConfig
    storage: StorageConfig
    auth: AuthConfig
    extraction: ExtractionConfig
    display_mode: str
    ratio_decimals: int
    currency: str


def _load_toml(path: Path) -> dict[str, Any]:
    """
    Load a TOML file and return its content as a dictionary.

    Raises:
        FileNotFoundError: if the file does not exist.
        ValueError: if the TOML content cannot be parsed or is not a table.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        data = tomllib.loads(path.read_text(encoding="utf-8"))
    except Exception as exc:  # noqa: BLE001
        raise ValueError(f"Failed to parse TOML config file: {path}") from exc

    if not isinstance(data, dict):
        raise ValueError(f"Invalid TOML root type in {path}, expected a table.")

    return data


def _section(raw: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    section = raw.get(name) or {}
    if not isinstance(section, Mapping):
        return {}
    return section


def _parse_extraction(section: Mapping[str, Any]) -> ExtractionConfig:
    try:
        max_tokens = int(section.get("max_tokens", 1000))
        temperature = float(section.get("temperature", 0.1))
        timeout_seconds = float(section.get("timeout_seconds", 60))
    except (TypeError, ValueError) as exc:
        raise ValueError(
            "Invalid numeric value in the [extraction] section of the configuration."
        ) from exc

    return ExtractionConfig(
        model=str(section.get("model") or "gpt-4o-mini"),
        api_key_env=str(section.get("api_key_env") or "OPENAI_API_KEY"),
        max_tokens=max_tokens,
        temperature=temperature,
        timeout_seconds=timeout_seconds,
    )


def build_app_config(raw: Mapping[str, Any], base_dir: Path) -> AppConfig:
    """
    Build an AppConfig from parsed TOML data.

    All relative paths are resolved against ``base_dir``.

    Expected sections (all optional)
    --------------------------------
    [database]    engine, path
    [storage]     root, bucket
    [auth]        session_file
    [extraction]  model, api_key_env, max_tokens, temperature, timeout_seconds
    [display]     mode, ratio_decimals, currency
    """
    database_section = _section(raw, "database")
    db_engine = str(database_section.get("engine") or "sqlite")
    db_path_raw = database_section.get("path") or "data/db/smb_advisor.sqlite"
    database = DatabaseConfig(
        engine=db_engine,
        path=(base_dir / str(db_path_raw)).resolve(),
    )

    storage_section = _section(raw, "storage")
    storage = StorageConfig(
        root=(base_dir / str(storage_section.get("root") or "data/storage")).resolve(),
        bucket=str(storage_section.get("bucket") or "documents"),
    )

    auth_section = _section(raw, "auth")
    auth = AuthConfig(
        session_file=(
            base_dir / str(auth_section.get("session_file") or "data/.session")
        ).resolve(),
    )

    extraction = _parse_extraction(_section(raw, "extraction"))

    display_section = _section(raw, "display")
    display_mode = str(display_section.get("mode", "table"))
    if display_mode not in {"table", "csv", "both"}:
        raise ValueError(
            f"Invalid display.mode {display_mode!r}, expected table, csv or both."
        )
    try:
        ratio_decimals = int(display_section.get("ratio_decimals", 1))
    except (TypeError, ValueError):
        ratio_decimals = 1

    return AppConfig(
        database=database,
        storage=storage,
        auth=auth,
        extraction=extraction,
        display_mode=display_mode,
        ratio_decimals=ratio_decimals,
        currency=str(display_section.get("currency") or "€"),
    )


def load_app_config(config_path: Optional[str] = None) -> AppConfig:
    """
    Load the SMB Advisor configuration from a TOML file.

    When ``config_path`` is None, ``smb_advisor_config.toml`` in the current
    directory is used if it exists; otherwise built-in defaults apply (paths
    relative to the current directory). An explicit path that does not exist
    raises FileNotFoundError.

    A ``.env`` file located next to the configuration file is loaded into the
    environment (without overriding existing variables) so that API keys can
    be kept out of the TOML file.
    """
    if config_path is None:
        config_file = Path(DEFAULT_CONFIG_FILE).resolve()
        raw = _load_toml(config_file) if config_file.is_file() else {}
    else:
        config_file = Path(config_path).resolve()
        raw = _load_toml(config_file)

    base_dir = config_file.parent

    env_file = base_dir / ".env"
    if env_file.is_file():
        load_dotenv(env_file, override=False)

    return build_app_config(raw, base_dir)
