# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
SMB Advisor
-----------

A Python-based financial diagnostic application for Small and Medium-sized
Businesses (SMBs). Users record a few annual figures (revenue, fixed costs,
variable costs, payroll, cash position); the application derives ratios,
compares them with sector benchmarks and emits a prioritized list of
recommendations.

Main capabilities:
- ratio calculator (margin, cost weights, EBE, profitability, cash ratio),
- rule-based recommendation engine with per-sector benchmarks,
- company profile and yearly history stored in SQLite,
- optional AI-assisted pre-fill from a tax return PDF (OpenAI),
- command-line interface with table and CSV output.

SMB Advisor separates computation (ratios, recommendations), storage (db,
object store), configuration (TOML) and presentation (CLI).


Version: 0.1.0

Usage:
    python -m smb_advisor.cli --help
"""

__all__ = ["ratios", "recommendations", "services", "views"]

__version__ = "0.1.0"
