# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.


"""
Ratio calculator for SMB Advisor.

This module derives the normalized indicators used throughout the
application from one year of raw figures (a FinancialRecord):

    total_costs         = fixed_costs + variable_costs + payroll
    margin              = (revenue - variable_costs) / revenue * 100
    cost_ratio          = total_costs / revenue * 100
    payroll_ratio       = payroll / revenue * 100
    fixed_cost_ratio    = fixed_costs / revenue * 100
    variable_cost_ratio = variable_costs / revenue * 100
    cash_flow_ratio     = cash_flow / revenue * 100
    ebe                 = revenue - total_costs            (amount)
    profitability       = ebe / revenue * 100

Every ratio divides by revenue. Records are therefore validated before any
computation: a zero or negative revenue is rejected with InvalidInputError
instead of producing infinite or NaN percentages.

The computation is pure and deterministic. Presentation concerns (labels,
units, rounding) are handled by ``ratios_as_results()`` and views.py.
"""

from dataclasses import dataclass
from typing import Optional

from .models import FinancialRecord, validate_financial_record


@dataclass(frozen=True)
class FinancialRatios:
    """
    Indicators derived from a FinancialRecord.

    All attributes are percentages of revenue, except ``revenue``,
    ``total_costs`` and ``ebe`` which are amounts in euros.
    """

    revenue: float
    total_costs: float
    margin: float
    cost_ratio: float
    payroll_ratio: float
    fixed_cost_ratio: float
    variable_cost_ratio: float
    cash_flow_ratio: float
    ebe: float
    profitability: float


@dataclass(frozen=True)
class RatioResult:
    """
    Ratio or KPI prepared for display.

    Attributes:
        key: Internal identifier (e.g. 'margin').
        label: Human-readable label (e.g. 'Taux de marge').
        value: Numeric value or None if not computable.
        unit: Unit hint ('percent' or 'amount').
        notes: Short description of the formula.
    """

    key: str
    label: str
    value: Optional[float]
    unit: str
    notes: str


# key -> (label, unit, notes), in display order
RATIO_DEFINITIONS: dict[str, tuple[str, str, str]] = {
    "revenue": ("Chiffre d'affaires", "amount", "CA total HT"),
    "total_costs": (
        "Charges totales",
        "amount",
        "Charges fixes + charges variables + masse salariale",
    ),
    "margin": ("Taux de marge", "percent", "(CA - charges variables) / CA"),
    "ebe": ("EBE", "amount", "CA - charges totales"),
    "profitability": ("Rentabilité", "percent", "EBE / CA"),
    "cost_ratio": ("Poids des charges", "percent", "Charges totales / CA"),
    "payroll_ratio": ("Poids de la masse salariale", "percent", "Masse salariale / CA"),
    "fixed_cost_ratio": ("Poids des charges fixes", "percent", "Charges fixes / CA"),
    "variable_cost_ratio": (
        "Poids des charges variables",
        "percent",
        "Charges variables / CA",
    ),
    "cash_flow_ratio": ("Trésorerie / CA", "percent", "Trésorerie disponible / CA"),
}


def compute_ratios(record: FinancialRecord) -> FinancialRatios:
    """
    Compute the indicator set for one FinancialRecord.

    Args:
        record: Raw annual figures.

    Returns:
        A FinancialRatios instance.

    Raises:
        InvalidInputError: if the record is invalid (revenue <= 0, negative
            or non-finite amounts).
    """
    validate_financial_record(record)

    revenue = record.revenue
    total_costs = record.fixed_costs + record.variable_costs + record.payroll
    ebe = revenue - total_costs

    return FinancialRatios(
        revenue=revenue,
        total_costs=total_costs,
        margin=(revenue - record.variable_costs) / revenue * 100,
        cost_ratio=total_costs / revenue * 100,
        payroll_ratio=record.payroll / revenue * 100,
        fixed_cost_ratio=record.fixed_costs / revenue * 100,
        variable_cost_ratio=record.variable_costs / revenue * 100,
        cash_flow_ratio=record.cash_flow / revenue * 100,
        ebe=ebe,
        profitability=ebe / revenue * 100,
    )


def ratios_as_results(
    ratios: FinancialRatios,
    keys: Optional[tuple[str, ...]] = None,
) -> list[RatioResult]:
    """
    Convert FinancialRatios into a list of RatioResult for display.

    Args:
        ratios: Computed ratios.
        keys: Optional subset of ratio keys to keep. Defaults to all keys in
            RATIO_DEFINITIONS order.

    Returns:
        A list of RatioResult, in the requested order.
    """
    selected = keys if keys is not None else tuple(RATIO_DEFINITIONS)

    results: list[RatioResult] = []
    for key in selected:
        if key not in RATIO_DEFINITIONS:
            raise ValueError(f"Unknown ratio key: {key!r}")
        label, unit, notes = RATIO_DEFINITIONS[key]
        results.append(
            RatioResult(
                key=key,
                label=label,
                value=float(getattr(ratios, key)),
                unit=unit,
                notes=notes,
            )
        )
    return results
