# SMB Advisor - Financial ratios & recommendations for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""
Sector benchmarks used as comparison baselines by the recommendation engine.

The table is static reference data compiled into the application. Values are
percentages of revenue describing a "typical" SMB of the sector:

- margin:          revenue after variable costs,
- cost_ratio:      total costs (fixed + variable + payroll),
- payroll_ratio:   payroll including social charges,
- cash_flow_ratio: available cash position.

A default entry is used when the company profile has no sector or a sector
that is not part of the table.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SectorBenchmark:
    """Typical ratios (in percent) for a sector."""

    margin: float
    cost_ratio: float
    payroll_ratio: float
    cash_flow_ratio: float
    sector: Optional[str] = None

    @property
    def label(self) -> str:
        """Human-readable label, as displayed next to recommendations."""
        if self.sector is None:
            return "Moyenne PME"
        return f"Secteur {self.sector}"


DEFAULT_BENCHMARK = SectorBenchmark(
    margin=35.0,
    cost_ratio=75.0,
    payroll_ratio=30.0,
    cash_flow_ratio=15.0,
)

# The default and Technologies rows are reference figures. The other sector
# rows are estimates and should be replaced by published sector statistics.
SECTOR_BENCHMARKS: dict[str, SectorBenchmark] = {
    "Commerce": SectorBenchmark(25.0, 85.0, 15.0, 10.0, sector="Commerce"),
    "Services": SectorBenchmark(45.0, 70.0, 45.0, 20.0, sector="Services"),
    "Restauration": SectorBenchmark(65.0, 90.0, 35.0, 8.0, sector="Restauration"),
    "BTP": SectorBenchmark(30.0, 88.0, 35.0, 12.0, sector="BTP"),
    "Industrie": SectorBenchmark(35.0, 85.0, 25.0, 12.0, sector="Industrie"),
    "Technologies": SectorBenchmark(50.0, 65.0, 40.0, 25.0, sector="Technologies"),
    "Santé": SectorBenchmark(55.0, 75.0, 45.0, 18.0, sector="Santé"),
    "Transport": SectorBenchmark(30.0, 88.0, 35.0, 10.0, sector="Transport"),
    "Autre": SectorBenchmark(35.0, 75.0, 30.0, 15.0, sector="Autre"),
}


def get_benchmark(sector: Optional[str]) -> SectorBenchmark:
    """
    Return the benchmark for a sector, or the default one.

    Sector lookup is exact (sector names come from a fixed list). Unknown,
    empty or missing sectors fall back to ``DEFAULT_BENCHMARK``.
    """
    if not sector:
        return DEFAULT_BENCHMARK
    return SECTOR_BENCHMARKS.get(sector.strip(), DEFAULT_BENCHMARK)
