# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Typed records handled by SMB Advisor.

This module defines the explicit contracts exchanged between the data store,
the extraction adapter and the pure computation core:

- ``FinancialRecord``: one year of raw financial figures for a user,
- ``StoredFinancialRecord``: the same record as persisted in the database,
- ``CompanyProfile``: the (single) company profile of a user.

Every record reaching the ratio calculator goes through
``validate_financial_record()``. Loose mappings (form input, database rows,
extraction output) are converted with ``financial_record_from_mapping()`` and
``company_profile_from_mapping()``.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Optional

SECTORS: tuple[str, ...] = (
    "Commerce",
    "Services",
    "Restauration",
    "BTP",
    "Industrie",
    "Technologies",
    "Santé",
    "Transport",
    "Autre",
)

FISCAL_REGIMES: tuple[str, ...] = (
    "Micro-entreprise",
    "Réel simplifié",
    "Réel normal",
    "IS (Impôt sur les sociétés)",
    "IR (Impôt sur le revenu)",
)

AMOUNT_FIELDS: tuple[str, ...] = (
    "revenue",
    "fixed_costs",
    "variable_costs",
    "payroll",
    "cash_flow",
)


class InvalidInputError(ValueError):
    """Raised when financial figures or profile fields are not acceptable."""


@dataclass(frozen=True)
class FinancialRecord:
    """
    Annual financial figures for one fiscal year.

    Attributes:
        year: Fiscal year (e.g. 2024).
        revenue: Revenue (chiffre d'affaires HT), in euros.
        fixed_costs: Fixed costs (rent, insurance, depreciation), in euros.
        variable_costs: Variable costs (purchases, subcontracting), in euros.
        payroll: Payroll including social charges, in euros.
        cash_flow: Available net cash position, in euros.
        notes: Free text notes.
    """

    year: int
    revenue: float
    fixed_costs: float
    variable_costs: float
    payroll: float
    cash_flow: float
    notes: str = ""

    @property
    def total_costs(self) -> float:
        return self.fixed_costs + self.variable_costs + self.payroll


@dataclass(frozen=True)
class StoredFinancialRecord:
    """A FinancialRecord as persisted in the ``financial_data`` table."""

    id: int
    user_id: str
    record: FinancialRecord
    created_at: Optional[datetime]


@dataclass(frozen=True)
class CompanyProfile:
    """Company profile; at most one per user."""

    company_name: str
    sector: str
    employee_count: int
    revenue: float
    fiscal_regime: str


def _to_float(value: Any, field: str) -> float:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidInputError(f"Missing required numeric field: {field!r}.")
    if isinstance(value, bool):
        raise InvalidInputError(f"Invalid numeric value for {field!r}: {value!r}.")
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise InvalidInputError(
            f"Invalid numeric value for {field!r}: {value!r}."
        ) from exc
    if not math.isfinite(number):
        raise InvalidInputError(f"Non-finite value for {field!r}: {value!r}.")
    return number


def _to_int(value: Any, field: str) -> int:
    number = _to_float(value, field)
    if not number.is_integer():
        raise InvalidInputError(f"Expected an integer for {field!r}: {value!r}.")
    return int(number)


def financial_record_from_mapping(data: Mapping[str, Any]) -> FinancialRecord:
    """
    Build a FinancialRecord from a loose mapping.

    All amount fields are required and must be numeric. ``year`` defaults to
    the current year and ``notes`` to an empty string.

    The returned record is *not* validated against the business invariants
    (revenue > 0, non-negative amounts): extraction pre-fill data can
    legitimately contain zeros. Use ``validate_financial_record()`` before
    computing ratios or storing the record.

    Raises:
        InvalidInputError: if a required field is missing or not numeric.
    """
    amounts = {field: _to_float(data.get(field), field) for field in AMOUNT_FIELDS}

    raw_year = data.get("year")
    year = date.today().year if raw_year in (None, "") else _to_int(raw_year, "year")

    notes = data.get("notes")
    return FinancialRecord(
        year=year,
        notes="" if notes is None else str(notes),
        **amounts,
    )


def validate_financial_record(record: FinancialRecord) -> FinancialRecord:
    """
    Check the business invariants of a FinancialRecord.

    - every amount is finite and non-negative,
    - revenue is strictly positive (all ratios divide by revenue),
    - the fiscal year is plausible.

    Returns:
        The record itself, to allow chaining.

    Raises:
        InvalidInputError: if any invariant is violated.
    """
    for field in AMOUNT_FIELDS:
        value = getattr(record, field)
        if value is None or not math.isfinite(value):
            raise InvalidInputError(f"Invalid value for {field!r}: {value!r}.")
        if value < 0:
            raise InvalidInputError(f"{field!r} cannot be negative (got {value!r}).")

    if record.revenue <= 0:
        raise InvalidInputError(
            "Revenue must be strictly positive to compute financial ratios."
        )

    if not 1900 <= record.year <= 2100:
        raise InvalidInputError(f"Implausible fiscal year: {record.year!r}.")

    return record


def company_profile_from_mapping(data: Mapping[str, Any]) -> CompanyProfile:
    """Build a CompanyProfile from a loose mapping (form input or DB row)."""
    raw_employees = data.get("employee_count")
    raw_revenue = data.get("revenue")
    return CompanyProfile(
        company_name=str(data.get("company_name") or "").strip(),
        sector=str(data.get("sector") or "").strip(),
        employee_count=0
        if raw_employees in (None, "")
        else _to_int(raw_employees, "employee_count"),
        revenue=0.0 if raw_revenue in (None, "") else _to_float(raw_revenue, "revenue"),
        fiscal_regime=str(data.get("fiscal_regime") or "").strip(),
    )


def validate_company_profile(profile: CompanyProfile) -> CompanyProfile:
    """
    Check a CompanyProfile before it is upserted.

    Raises:
        InvalidInputError: on an empty company name, negative figures, or a
            sector / fiscal regime outside the supported lists.
    """
    if not profile.company_name:
        raise InvalidInputError("Company name is required.")
    if profile.sector not in SECTORS:
        raise InvalidInputError(
            f"Unknown sector {profile.sector!r}. Expected one of: {', '.join(SECTORS)}."
        )
    if profile.fiscal_regime not in FISCAL_REGIMES:
        raise InvalidInputError(
            f"Unknown fiscal regime {profile.fiscal_regime!r}. "
            f"Expected one of: {', '.join(FISCAL_REGIMES)}."
        )
    if profile.employee_count < 0:
        raise InvalidInputError("Employee count cannot be negative.")
    if profile.revenue < 0 or not math.isfinite(profile.revenue):
        raise InvalidInputError("Annual revenue cannot be negative.")
    return profile
