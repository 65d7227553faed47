# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
View utilities for SMB Advisor.

This module turns computed objects (ratios, stored records, chart series,
recommendations) into pandas DataFrames or plain text, ready to be printed
by the CLI or exported to CSV. It does not compute anything itself: numbers
come from ratios.py, recommendations.py and services.py.

The main views are:

- ratios:          one row per indicator (key, label, value, unit, notes),
- history:         one row per stored record, most recent year first,
- chart series:    one row per year (ascending), amounts only,
- recommendations: one row per recommendation, in priority order, plus a
                   text rendering with the suggested actions.
"""

import pandas as pd

from .formatting import format_currency, format_percent, format_points
from .models import CompanyProfile, StoredFinancialRecord
from .ratios import RatioResult
from .recommendations import Recommendation, RecommendationsSummary

IMPACT_LABELS = {"high": "Impact fort", "medium": "Impact moyen", "low": "Impact faible"}
EFFORT_LABELS = {"high": "Effort élevé", "medium": "Effort moyen", "low": "Effort faible"}


def _format_value(value, unit: str, currency: str = "€", decimals: int = 1) -> str:
    if unit == "percent":
        return format_percent(value, decimals)
    if unit in ("amount", "€"):
        return format_currency(value, currency)
    if unit == "%":
        return format_percent(value, decimals)
    return "N/A" if value is None else f"{value:.{decimals}f}"


def ratios_to_dataframe(
    ratios: list[RatioResult],
    decimals: int,
    currency: str = "€",
) -> pd.DataFrame:
    """
    Convert a list of RatioResult objects into a pandas DataFrame.

    The resulting DataFrame has the following columns:
        - key:     Internal ratio identifier (e.g. "margin").
        - label:   Human-readable label to display.
        - value:   Numeric value, rounded to the requested number of
                   decimals, or NaN if the ratio could not be computed.
        - unit:    Unit hint ("percent" or "amount").
        - display: Formatted value ("40.0%", "500 000 €").
        - notes:   Formula reminder.

    Rows keep the order of ``ratios``.
    """
    columns = ["key", "label", "value", "unit", "display", "notes"]
    if not ratios:
        return pd.DataFrame(columns=columns)

    rows: list[dict[str, object]] = []
    for r in ratios:
        value = float("nan") if r.value is None else round(r.value, decimals)
        rows.append(
            {
                "key": r.key,
                "label": r.label,
                "value": value,
                "unit": r.unit,
                "display": _format_value(r.value, r.unit, currency, decimals),
                "notes": r.notes,
            }
        )

    return pd.DataFrame(rows)[columns]


def records_to_dataframe(records: list[StoredFinancialRecord]) -> pd.DataFrame:
    """One row per stored record, in the given order (most recent first)."""
    columns = [
        "id",
        "year",
        "revenue",
        "fixed_costs",
        "variable_costs",
        "payroll",
        "cash_flow",
        "total_costs",
        "notes",
        "created_at",
    ]
    if not records:
        return pd.DataFrame(columns=columns)

    rows = []
    for stored in records:
        rec = stored.record
        rows.append(
            {
                "id": stored.id,
                "year": rec.year,
                "revenue": rec.revenue,
                "fixed_costs": rec.fixed_costs,
                "variable_costs": rec.variable_costs,
                "payroll": rec.payroll,
                "cash_flow": rec.cash_flow,
                "total_costs": rec.total_costs,
                "notes": rec.notes,
                "created_at": stored.created_at.isoformat() if stored.created_at else "",
            }
        )
    return pd.DataFrame(rows)[columns]


def chart_series_to_display(history: pd.DataFrame, currency: str = "€") -> pd.DataFrame:
    """Format the amount columns of a chart series for terminal output."""
    df = history.copy()
    for col in ("revenue", "total_costs", "cash_flow"):
        if col in df.columns:
            df[col] = df[col].map(lambda v: format_currency(float(v), currency))
    return df


def recommendations_to_dataframe(recommendations: list[Recommendation]) -> pd.DataFrame:
    """
    Convert recommendations into a DataFrame (one row each, priority order).

    Columns: rank, id, title, category, impact, effort, priority,
    current_value, target_value, unit, potential_gain, benchmark.
    """
    columns = [
        "rank",
        "id",
        "title",
        "category",
        "impact",
        "effort",
        "priority",
        "current_value",
        "target_value",
        "unit",
        "potential_gain",
        "benchmark",
    ]
    if not recommendations:
        return pd.DataFrame(columns=columns)

    rows = [
        {
            "rank": i,
            "id": rec.id,
            "title": rec.title,
            "category": rec.category,
            "impact": rec.impact,
            "effort": rec.effort,
            "priority": rec.priority,
            "current_value": round(rec.current_value, 2),
            "target_value": round(rec.target_value, 2),
            "unit": rec.unit,
            "potential_gain": rec.potential_gain,
            "benchmark": rec.benchmark or "",
        }
        for i, rec in enumerate(recommendations, start=1)
    ]
    return pd.DataFrame(rows)[columns]


def format_recommendation(rec: Recommendation, rank: int, currency: str = "€") -> str:
    """Render one recommendation with its values and suggested actions."""
    current = _format_value(rec.current_value, rec.unit, currency)
    target = _format_value(rec.target_value, rec.unit, currency)

    lines = [
        f"{rank}. {rec.title} [{rec.category}]",
        f"   {IMPACT_LABELS.get(rec.impact, rec.impact)} · "
        f"{EFFORT_LABELS.get(rec.effort, rec.effort)}"
        + (" · Quick win" if rec.is_quick_win else ""),
        f"   {rec.description}",
        f"   Actuel : {current} -> Objectif : {target}",
    ]
    if rec.unit == "%" and rec.current_value != rec.target_value:
        lines[-1] += f" (écart {format_points(abs(rec.target_value - rec.current_value))})"
    if rec.benchmark:
        lines.append(f"   Référence : {rec.benchmark}")
    lines.append(f"   Gain potentiel : {rec.potential_gain}")
    if rec.actions:
        lines.append("   Actions :")
        for action in rec.actions:
            lines.append(f"     - {action.title} : {action.description}")
    return "\n".join(lines)


def format_summary(summary: RecommendationsSummary, currency: str = "€") -> str:
    text = (
        f"{summary.total} recommandation(s) : "
        f"{summary.by_impact['high']} impact fort, "
        f"{summary.by_impact['medium']} impact moyen, "
        f"{summary.by_impact['low']} impact faible. "
        f"Quick wins : {summary.quick_wins}. "
        f"Gain d'EBE estimé : {format_currency(summary.estimated_gain, currency)}"
    )
    if summary.cash_gap:
        text += f". Trésorerie à reconstituer : {format_currency(summary.cash_gap, currency)}"
    if summary.revenue_gap:
        text += f". CA à conquérir : {format_currency(summary.revenue_gap, currency)}"
    return text


def format_profile(profile: CompanyProfile, currency: str = "€") -> str:
    return "\n".join(
        [
            f"Entreprise      : {profile.company_name}",
            f"Secteur         : {profile.sector}",
            f"Salariés        : {profile.employee_count}",
            f"CA              : {format_currency(profile.revenue, currency)}",
            f"Régime fiscal   : {profile.fiscal_regime}",
        ]
    )
