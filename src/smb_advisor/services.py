# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
High-level services for SMB Advisor.

This module sits between:
- the low-level helpers (db.py, storage.py, extraction.py), and
- user-facing layers such as the CLI.

Responsibilities
----------------
1) Financial records
   - Validate and store a new annual record for the current user.
   - List the history of records, most recent year first.

2) Dashboard
   - Latest record, its ratios, and chart series (revenue, total costs and
     cash position per year).

3) Recommendations
   - Latest record + company profile -> sector benchmark -> prioritized
     recommendations. A user without data gets an empty report.

4) Company profile
   - Validate and upsert the profile; read it back.

5) Document analysis
   - Store an uploaded PDF, then run the extraction adapter on it. Extraction
     problems never raise: they come back as placeholder results.

Error handling
--------------
- Invalid input raises InvalidInputError before anything is stored or
  computed.
- Failures of the database are wrapped into DataStoreError, failures of the
  object store into StorageError. The rule engine only ever runs on a record
  that was successfully loaded and validated.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

import pandas as pd

from .benchmarks import SectorBenchmark, get_benchmark
from .config import AppConfig
from .db import (
    DatabaseConfig,
    DataStoreError,
    get_company_profile as _db_get_company_profile,
    get_latest_financial_record as _db_get_latest_financial_record,
    insert_financial_record as _db_insert_financial_record,
    list_financial_records as _db_list_financial_records,
    load_financial_data as _db_load_financial_data,
    upsert_company_profile as _db_upsert_company_profile,
    wrap_data_store_errors as _data_store,
)
from .extraction import (
    ExtractionGuard,
    ExtractionResult,
    analyze_document,
)
from .models import (
    CompanyProfile,
    FinancialRecord,
    InvalidInputError,
    StoredFinancialRecord,
    company_profile_from_mapping,
    financial_record_from_mapping,
    validate_company_profile,
    validate_financial_record,
)
from .ratios import FinancialRatios, compute_ratios
from .recommendations import (
    Recommendation,
    RecommendationsSummary,
    generate_recommendations,
    summarize_recommendations,
)
from .storage import ObjectStore, StorageError

logger = logging.getLogger(__name__)

LOCKS_DIRNAME = ".locks"

HISTORY_COLUMNS = ["year", "revenue", "total_costs", "cash_flow"]


@dataclass(frozen=True)
class Dashboard:
    """Data needed to render the dashboard of a user."""

    latest: StoredFinancialRecord
    ratios: FinancialRatios
    history: pd.DataFrame


@dataclass(frozen=True)
class RecommendationsReport:
    """Recommendations computed for the latest record of a user."""

    record: Optional[StoredFinancialRecord]
    profile: Optional[CompanyProfile]
    benchmark: SectorBenchmark
    recommendations: list[Recommendation]
    summary: RecommendationsSummary

    @property
    def is_empty(self) -> bool:
        return not self.recommendations


@dataclass(frozen=True)
class DocumentAnalysis:
    """Stored object path and extraction outcome of an uploaded document."""

    file_path: str
    result: ExtractionResult


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _get_db_config(app_config: AppConfig) -> DatabaseConfig:
    return app_config.database


def _get_object_store(app_config: AppConfig) -> ObjectStore:
    return ObjectStore(app_config.storage.root, app_config.storage.bucket)


def _get_extraction_guard(app_config: AppConfig) -> ExtractionGuard:
    return ExtractionGuard(lock_dir=app_config.storage.root / LOCKS_DIRNAME)


def _latest_record(app_config: AppConfig, user_id: str) -> Optional[StoredFinancialRecord]:
    """
    Load the most recent record of a user and check it is still valid.

    An invalid latest record is reported, never replaced by an older one:
    the figures shown must be those of the year the user entered last.
    """
    with _data_store():
        latest = _db_get_latest_financial_record(_get_db_config(app_config), user_id)
    if latest is None:
        return None

    try:
        validate_financial_record(latest.record)
    except InvalidInputError as exc:
        year = latest.record.year
        raise InvalidInputError(
            f"Latest financial record #{latest.id} (year {year}) is invalid: {exc} "
            f"Submit corrected figures for {year}."
        ) from exc
    return latest


# ---------------------------------------------------------------------------
# Financial records
# ---------------------------------------------------------------------------


def submit_financial_record(
    app_config: AppConfig,
    user_id: str,
    data: Union[FinancialRecord, Mapping[str, Any]],
) -> StoredFinancialRecord:
    """
    Validate and store a new annual record for a user.

    Args:
        app_config: Global application configuration.
        user_id: Owner of the record.
        data: A FinancialRecord or a loose mapping (form input).

    Raises:
        InvalidInputError: if the figures are missing or invalid.
        DataStoreError: if the record cannot be stored.
    """
    record = data if isinstance(data, FinancialRecord) else financial_record_from_mapping(data)
    validate_financial_record(record)

    with _data_store():
        stored = _db_insert_financial_record(_get_db_config(app_config), user_id, record)

    logger.info("Stored financial record #%s (year %s)", stored.id, record.year)
    return stored


def list_financial_history(
    app_config: AppConfig,
    user_id: str,
) -> list[StoredFinancialRecord]:
    """Return the records of a user, most recent year first."""
    with _data_store():
        return _db_list_financial_records(_get_db_config(app_config), user_id)


def history_series(data: pd.DataFrame) -> pd.DataFrame:
    """
    Build chart series from the financial data of a user.

    ``data`` has the columns returned by ``db.load_financial_data``. The
    result holds one point per year (the most recent submission of that
    year), sorted by ascending year, with columns: year, revenue,
    total_costs, cash_flow.
    """
    if data.empty:
        return pd.DataFrame(columns=HISTORY_COLUMNS)

    df = data.assign(total_costs=data["fixed_costs"] + data["variable_costs"] + data["payroll"])
    df = df.sort_values(["year", "id"], ascending=[True, False], kind="stable")
    df = df.drop_duplicates(subset="year", keep="first")
    return df[HISTORY_COLUMNS].reset_index(drop=True)


def build_dashboard(app_config: AppConfig, user_id: str) -> Optional[Dashboard]:
    """
    Build the dashboard of a user.

    Returns:
        None when the user has no record, else a Dashboard with the latest
        record, its ratios and the yearly chart series.

    Raises:
        InvalidInputError: if the latest record no longer passes validation.
        DataStoreError: if the records cannot be read.
    """
    latest = _latest_record(app_config, user_id)
    if latest is None:
        return None

    with _data_store():
        data = _db_load_financial_data(_get_db_config(app_config), user_id)

    return Dashboard(
        latest=latest,
        ratios=compute_ratios(latest.record),
        history=history_series(data),
    )


# ---------------------------------------------------------------------------
# Company profile
# ---------------------------------------------------------------------------


def save_company_profile(
    app_config: AppConfig,
    user_id: str,
    data: Union[CompanyProfile, Mapping[str, Any]],
) -> CompanyProfile:
    """
    Validate and upsert the company profile of a user.

    Raises:
        InvalidInputError: if the profile is invalid.
        DataStoreError: if the profile cannot be stored.
    """
    profile = data if isinstance(data, CompanyProfile) else company_profile_from_mapping(data)
    validate_company_profile(profile)

    with _data_store():
        return _db_upsert_company_profile(_get_db_config(app_config), user_id, profile)


def get_company_profile(app_config: AppConfig, user_id: str) -> Optional[CompanyProfile]:
    """Return the company profile of a user, or None."""
    with _data_store():
        return _db_get_company_profile(_get_db_config(app_config), user_id)


# ---------------------------------------------------------------------------
# Recommendations
# ---------------------------------------------------------------------------


def build_recommendations(app_config: AppConfig, user_id: str) -> RecommendationsReport:
    """
    Compute recommendations for the latest record of a user.

    The benchmark is selected from the company profile sector (default
    benchmark when there is no profile or an unknown sector). A user without
    any record gets an empty report.

    Raises:
        InvalidInputError: if the latest record no longer passes validation.
    """
    latest = _latest_record(app_config, user_id)
    profile = get_company_profile(app_config, user_id)
    benchmark = get_benchmark(profile.sector if profile else None)

    recommendations = generate_recommendations(
        latest.record if latest else None,
        benchmark=benchmark,
        profile=profile,
    )
    return RecommendationsReport(
        record=latest,
        profile=profile,
        benchmark=benchmark,
        recommendations=recommendations,
        summary=summarize_recommendations(recommendations),
    )


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------


def _looks_like_pdf(filename: str, content: bytes) -> bool:
    return filename.lower().endswith(".pdf") or content.startswith(b"%PDF")


def upload_and_analyze_document(
    app_config: AppConfig,
    user_id: str,
    filename: str,
    content: bytes,
    *,
    client=None,
    guard: Optional[ExtractionGuard] = None,
) -> DocumentAnalysis:
    """
    Store an uploaded PDF and extract pre-fill figures from it.

    The extracted figures are NOT stored: the user must confirm (and usually
    correct) them, then submit them through ``submit_financial_record``.

    Raises:
        InvalidInputError: if the file is empty or not a PDF.
        StorageError: if the file cannot be stored.
        ExtractionInProgressError: if an analysis is already running for
            this user, in this or another process sharing the same
            storage root.
    """
    if not content:
        raise InvalidInputError("The uploaded file is empty.")
    if not _looks_like_pdf(filename, content):
        raise InvalidInputError(f"Only PDF documents are supported (got {filename!r}).")

    store = _get_object_store(app_config)
    if guard is None:
        guard = _get_extraction_guard(app_config)
    with guard.hold(user_id):
        file_path = store.upload(user_id, filename, content)
        result = analyze_document(store, file_path, app_config.extraction, client=client)

    if result.is_fallback:
        logger.warning("Document %s was not analyzed (%s)", file_path, result.status)
    return DocumentAnalysis(file_path=file_path, result=result)


__all__ = [
    "DataStoreError",
    "Dashboard",
    "DocumentAnalysis",
    "RecommendationsReport",
    "StorageError",
    "build_dashboard",
    "build_recommendations",
    "get_company_profile",
    "history_series",
    "list_financial_history",
    "save_company_profile",
    "submit_financial_record",
    "upload_and_analyze_document",
]
