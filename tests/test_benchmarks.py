from smb_advisor.benchmarks import (
    DEFAULT_BENCHMARK,
    SECTOR_BENCHMARKS,
    SectorBenchmark,
    get_benchmark,
)
from smb_advisor.models import SECTORS
from smb_advisor.recommendations import BENCHMARK_TOLERANCE


def test_every_sector_has_a_benchmark():
    assert set(SECTOR_BENCHMARKS) == set(SECTORS)
    for name, benchmark in SECTOR_BENCHMARKS.items():
        assert benchmark.sector == name


def test_known_sector_lookup():
    tech = get_benchmark("Technologies")

    assert tech == SectorBenchmark(50.0, 65.0, 40.0, 25.0, sector="Technologies")
    assert tech.label == "Secteur Technologies"


def test_default_benchmark_gives_the_fixed_alert_thresholds():
    """Default benchmark with the tolerance: margin < 30, costs > 80, cash < 10."""
    assert DEFAULT_BENCHMARK.margin - BENCHMARK_TOLERANCE == 30.0
    assert DEFAULT_BENCHMARK.cost_ratio + BENCHMARK_TOLERANCE == 80.0
    assert DEFAULT_BENCHMARK.cash_flow_ratio - BENCHMARK_TOLERANCE == 10.0


def test_autre_uses_the_default_values():
    autre = get_benchmark("Autre")

    assert (autre.margin, autre.cost_ratio, autre.payroll_ratio, autre.cash_flow_ratio) == (
        DEFAULT_BENCHMARK.margin,
        DEFAULT_BENCHMARK.cost_ratio,
        DEFAULT_BENCHMARK.payroll_ratio,
        DEFAULT_BENCHMARK.cash_flow_ratio,
    )
    assert autre.label == "Secteur Autre"


def test_unknown_or_missing_sector_falls_back_to_default():
    """Missing, empty and unknown sectors all use the default benchmark."""
    assert get_benchmark(None) is DEFAULT_BENCHMARK
    assert get_benchmark("") is DEFAULT_BENCHMARK
    assert get_benchmark("Aéronautique") is DEFAULT_BENCHMARK


def test_default_benchmark_values_and_label():
    assert DEFAULT_BENCHMARK.margin == 35.0
    assert DEFAULT_BENCHMARK.cost_ratio == 75.0
    assert DEFAULT_BENCHMARK.payroll_ratio == 30.0
    assert DEFAULT_BENCHMARK.cash_flow_ratio == 15.0
    assert DEFAULT_BENCHMARK.label == "Moyenne PME"
