import pytest

from smb_advisor.benchmarks import DEFAULT_BENCHMARK, SectorBenchmark, get_benchmark
from smb_advisor.models import CompanyProfile, FinancialRecord, InvalidInputError
from smb_advisor.recommendations import (
    EFFORT_WEIGHTS,
    IMPACT_WEIGHTS,
    RULES,
    Recommendation,
    generate_recommendations,
    priority_score,
    sort_by_priority,
    summarize_recommendations,
)

GENERIC_IDS = {"financing", "marketing", "payroll-charges", "opex"}


def make_record(**overrides) -> FinancialRecord:
    values = {
        "year": 2024,
        "revenue": 500_000.0,
        "fixed_costs": 50_000.0,
        "variable_costs": 300_000.0,
        "payroll": 100_000.0,
        "cash_flow": 20_000.0,
    }
    values.update(overrides)
    return FinancialRecord(**values)


def ids(recs: list[Recommendation]) -> list[str]:
    return [r.id for r in recs]


def test_no_record_gives_no_recommendations():
    assert generate_recommendations(None) == []
    assert generate_recommendations(None, profile=None, benchmark=DEFAULT_BENCHMARK) == []


def test_priority_weights():
    """Impact weight times inverted effort weight."""
    assert IMPACT_WEIGHTS == {"high": 3, "medium": 2, "low": 1}
    assert EFFORT_WEIGHTS == {"high": 1, "medium": 2, "low": 3}
    assert priority_score("high", "low") == 9
    assert priority_score("high", "medium") == 6
    assert priority_score("low", "high") == 1

    with pytest.raises(ValueError):
        priority_score("huge", "low")


def test_scenario_default_benchmark():
    """
    Revenue 500k, variable 300k, fixed 50k, payroll 100k, cash 20k, no profile.

    margin 40% (no trigger), cost ratio 90% (> 80), payroll 20% (no trigger),
    cash ratio 4% (< 10), profitability 10% (not < 10), variable ratio 60%.
    """
    recs = generate_recommendations(make_record())
    triggered = set(ids(recs))

    assert "margin" not in triggered
    assert "cost-ratio" in triggered
    assert "payroll" not in triggered
    assert "cash-flow" in triggered
    assert "fixed-costs" not in triggered
    assert "profitability" not in triggered
    assert "growth" not in triggered
    assert "purchasing" in triggered
    assert GENERIC_IDS <= triggered

    # Stable sort: equal priorities keep rule order.
    assert ids(recs) == [
        "cost-ratio",
        "cash-flow",
        "financing",
        "payroll-charges",
        "purchasing",
        "marketing",
        "opex",
    ]


def test_scenario_texts_use_user_figures():
    recs = {r.id: r for r in generate_recommendations(make_record())}

    cost = recs["cost-ratio"]
    assert cost.title == "Réduire le poids des charges"
    assert "90.0%" in cost.description
    assert "75.0%" in cost.description
    assert cost.benchmark == "Moyenne PME"
    assert cost.current_value == pytest.approx(90.0)
    assert cost.target_value == 75.0
    assert cost.estimated_gain == pytest.approx(75_000.0)

    cash = recs["cash-flow"]
    assert "4.0%" in cash.description
    assert cash.category == "Trésorerie"
    assert cash.actions


def test_scenario_technology_sector_triggers_margin_rule():
    """Technologies benchmark margin 50: 40% is below 50 - 5."""
    profile = CompanyProfile(
        company_name="Tech SAS",
        sector="Technologies",
        employee_count=10,
        revenue=500_000.0,
        fiscal_regime="Réel normal",
    )
    recs = generate_recommendations(make_record(), profile=profile)
    by_id = {r.id: r for r in recs}

    assert "margin" in by_id
    margin = by_id["margin"]
    assert margin.title == "Améliorer la marge commerciale"
    assert margin.target_value == 50.0
    assert margin.benchmark == "Secteur Technologies"
    assert "secteur Technologies" in margin.description


def test_explicit_benchmark_overrides_profile():
    profile = CompanyProfile("X", "Technologies", 1, 0.0, "Réel normal")
    recs = generate_recommendations(make_record(), benchmark=DEFAULT_BENCHMARK, profile=profile)

    assert "margin" not in ids(recs)


def test_margin_boundary_is_strict():
    """margin == benchmark - 5 does not trigger; just below it does."""
    benchmark = SectorBenchmark(
        margin=55.0, cost_ratio=75.0, payroll_ratio=30.0, cash_flow_ratio=15.0
    )
    at_threshold = make_record(
        revenue=200_000.0, variable_costs=100_000.0, fixed_costs=10_000.0, payroll=20_000.0
    )
    below = make_record(
        revenue=200_000.0, variable_costs=100_020.0, fixed_costs=10_000.0, payroll=20_000.0
    )

    assert "margin" not in ids(generate_recommendations(at_threshold, benchmark=benchmark))
    assert "margin" in ids(generate_recommendations(below, benchmark=benchmark))


def test_small_company_triggers_growth_fixed_costs_and_profitability():
    record = make_record(
        revenue=80_000.0,
        fixed_costs=40_000.0,
        variable_costs=20_000.0,
        payroll=15_000.0,
        cash_flow=15_000.0,
    )
    recs = {r.id: r for r in generate_recommendations(record)}

    assert recs["growth"].estimated_gain == pytest.approx(20_000.0)
    assert recs["growth"].unit == "€"
    assert recs["fixed-costs"].current_value == pytest.approx(50.0)
    assert recs["fixed-costs"].target_value == 30.0
    assert recs["profitability"].current_value == pytest.approx(6.25)


def test_generic_rules_always_fire_for_healthy_company():
    record = make_record(
        revenue=1_000_000.0,
        fixed_costs=100_000.0,
        variable_costs=300_000.0,
        payroll=250_000.0,
        cash_flow=200_000.0,
    )
    recs = generate_recommendations(record)

    assert set(ids(recs)) == GENERIC_IDS
    # financing and payroll-charges (6) first, marketing (4), opex (3) last.
    assert ids(recs) == ["financing", "payroll-charges", "marketing", "opex"]


def test_output_is_sorted_by_descending_priority():
    record = make_record(revenue=60_000.0, fixed_costs=30_000.0, cash_flow=0.0, payroll=30_000.0, variable_costs=5_000.0)
    recs = generate_recommendations(record)

    priorities = [r.priority for r in recs]
    assert priorities == sorted(priorities, reverse=True)


def test_generation_is_deterministic():
    record = make_record()
    benchmark = get_benchmark("Services")

    assert generate_recommendations(record, benchmark) == generate_recommendations(record, benchmark)


def test_invalid_record_is_rejected():
    with pytest.raises(InvalidInputError):
        generate_recommendations(make_record(revenue=0.0))


def test_sort_by_priority_is_stable():
    recs = generate_recommendations(make_record())
    shuffled = list(reversed(recs))
    resorted = sort_by_priority(shuffled)

    top = [r.id for r in resorted if r.priority == 6]
    assert top == [r.id for r in shuffled if r.priority == 6]


def test_rule_count():
    assert len(RULES) == 12


def test_summarize_recommendations():
    recs = generate_recommendations(make_record())
    summary = summarize_recommendations(recs)

    assert summary.total == 7
    assert summary.by_impact == {"high": 2, "medium": 4, "low": 1}
    assert summary.quick_wins == 0
    # cost-ratio and purchasing both aim at the same 75k of EBE: not summed.
    assert summary.estimated_gain == pytest.approx(75_000.0)
    assert summary.cash_gap == pytest.approx(55_000.0)
    assert summary.revenue_gap == 0.0


def test_summary_never_exceeds_the_largest_single_ebe_gain():
    recs = generate_recommendations(make_record())
    ebe_gains = [r.estimated_gain for r in recs if r.gain_kind == "ebe" and r.estimated_gain]

    assert summarize_recommendations(recs).estimated_gain == pytest.approx(max(ebe_gains))
    assert {r.id: r.gain_kind for r in recs}["cash-flow"] == "cash"


def test_summary_keeps_revenue_target_apart_from_ebe_gain():
    record = make_record(
        revenue=80_000.0,
        fixed_costs=40_000.0,
        variable_costs=20_000.0,
        payroll=15_000.0,
        cash_flow=15_000.0,
    )
    recs = generate_recommendations(record)
    summary = summarize_recommendations(recs)
    ebe_gains = [r.estimated_gain for r in recs if r.gain_kind == "ebe" and r.estimated_gain]

    assert summary.revenue_gap == pytest.approx(20_000.0)
    assert summary.estimated_gain == pytest.approx(max(ebe_gains, default=0.0))


def test_summarize_empty():
    summary = summarize_recommendations([])

    assert summary.total == 0
    assert summary.estimated_gain == 0.0
