# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Number formatting helpers shared by the recommendation texts and the views.

Percentages are rendered with one decimal place ("40.0%"). Currency amounts
use French digit grouping with a narrow no-break space and no decimals
("500 000 €").
"""

from typing import Optional

GROUP_SEPARATOR = "\u202f"


def format_percent(value: Optional[float], decimals: int = 1) -> str:
    """Format a percentage value, e.g. 40 -> '40.0%'."""
    if value is None:
        return "N/A"
    return f"{value:.{decimals}f}%"


def format_points(value: float) -> str:
    """Format a gap expressed in percentage points, e.g. 5 -> '5.0 pts'."""
    return f"{value:.1f} pts"


def format_amount(value: Optional[float]) -> str:
    """Format a currency amount without the currency sign, e.g. '500 000'."""
    if value is None:
        return "N/A"
    return f"{round(value):,.0f}".replace(",", GROUP_SEPARATOR)


def format_currency(value: Optional[float], currency: str = "€") -> str:
    """Format a currency amount, e.g. 500000 -> '500 000 €'."""
    if value is None:
        return "N/A"
    return f"{format_amount(value)} {currency}"
