from datetime import date

import pytest

from smb_advisor.models import (
    CompanyProfile,
    FinancialRecord,
    InvalidInputError,
    company_profile_from_mapping,
    financial_record_from_mapping,
    validate_company_profile,
    validate_financial_record,
)


def test_financial_record_from_mapping_accepts_strings():
    """Form input arrives as strings; numbers are parsed."""
    record = financial_record_from_mapping(
        {
            "year": "2023",
            "revenue": "250000",
            "fixed_costs": "40000.5",
            "variable_costs": 100000,
            "payroll": 60000,
            "cash_flow": "0",
            "notes": "Exercice clos",
        }
    )

    assert record == FinancialRecord(
        year=2023,
        revenue=250_000.0,
        fixed_costs=40_000.5,
        variable_costs=100_000.0,
        payroll=60_000.0,
        cash_flow=0.0,
        notes="Exercice clos",
    )
    assert record.total_costs == pytest.approx(200_000.5)


def test_financial_record_year_defaults_to_current_year():
    record = financial_record_from_mapping(
        {"revenue": 1, "fixed_costs": 0, "variable_costs": 0, "payroll": 0, "cash_flow": 0}
    )

    assert record.year == date.today().year
    assert record.notes == ""


@pytest.mark.parametrize(
    "data",
    [
        {"fixed_costs": 0, "variable_costs": 0, "payroll": 0, "cash_flow": 0},
        {"revenue": "abc", "fixed_costs": 0, "variable_costs": 0, "payroll": 0, "cash_flow": 0},
        {"revenue": "", "fixed_costs": 0, "variable_costs": 0, "payroll": 0, "cash_flow": 0},
        {"revenue": "nan", "fixed_costs": 0, "variable_costs": 0, "payroll": 0, "cash_flow": 0},
        {"revenue": 1, "fixed_costs": 0, "variable_costs": 0, "payroll": 0, "cash_flow": 0, "year": 2024.5},
    ],
)
def test_financial_record_from_mapping_rejects_bad_input(data):
    with pytest.raises(InvalidInputError):
        financial_record_from_mapping(data)


def test_mapping_does_not_validate_zero_revenue():
    """Pre-fill data may contain zeros; validation is a separate step."""
    record = financial_record_from_mapping(
        {"revenue": 0, "fixed_costs": 0, "variable_costs": 0, "payroll": 0, "cash_flow": 0}
    )
    assert record.revenue == 0.0

    with pytest.raises(InvalidInputError):
        validate_financial_record(record)


def test_validate_financial_record_checks_year_and_signs():
    ok = FinancialRecord(2024, 10.0, 1.0, 1.0, 1.0, 1.0)
    assert validate_financial_record(ok) is ok

    with pytest.raises(InvalidInputError):
        validate_financial_record(FinancialRecord(1800, 10.0, 1.0, 1.0, 1.0, 1.0))
    with pytest.raises(InvalidInputError):
        validate_financial_record(FinancialRecord(2024, 10.0, -1.0, 1.0, 1.0, 1.0))


def test_company_profile_round_trip_and_validation():
    profile = company_profile_from_mapping(
        {
            "company_name": "  Boulangerie Martin ",
            "sector": "Commerce",
            "employee_count": "4",
            "revenue": "320000",
            "fiscal_regime": "Réel simplifié",
        }
    )

    assert profile == CompanyProfile(
        company_name="Boulangerie Martin",
        sector="Commerce",
        employee_count=4,
        revenue=320_000.0,
        fiscal_regime="Réel simplifié",
    )
    assert validate_company_profile(profile) is profile


@pytest.mark.parametrize(
    "overrides",
    [
        {"company_name": ""},
        {"sector": "Aéronautique"},
        {"fiscal_regime": "Forfait"},
        {"employee_count": -1},
        {"revenue": -5.0},
    ],
)
def test_validate_company_profile_rejects(overrides):
    values = {
        "company_name": "ACME",
        "sector": "Services",
        "employee_count": 3,
        "revenue": 100_000.0,
        "fiscal_regime": "Micro-entreprise",
    }
    values.update(overrides)

    with pytest.raises(InvalidInputError):
        validate_company_profile(CompanyProfile(**values))
