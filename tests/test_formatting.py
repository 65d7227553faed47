from smb_advisor.formatting import (
    GROUP_SEPARATOR,
    format_amount,
    format_currency,
    format_percent,
    format_points,
)


def test_format_percent_one_decimal():
    assert format_percent(40) == "40.0%"
    assert format_percent(4.04) == "4.0%"
    assert format_percent(12.345, decimals=2) == "12.35%"
    assert format_percent(None) == "N/A"


def test_format_points():
    assert format_points(5) == "5.0 pts"


def test_format_currency_groups_thousands():
    """French grouping uses a narrow no-break space and no decimals."""
    assert format_amount(500_000) == f"500{GROUP_SEPARATOR}000"
    assert format_currency(500_000) == f"500{GROUP_SEPARATOR}000 €"
    assert format_currency(1_234_567.6) == f"1{GROUP_SEPARATOR}234{GROUP_SEPARATOR}568 €"
    assert format_currency(999) == "999 €"
    assert format_currency(None) == "N/A"


def test_format_currency_negative_and_custom_currency():
    assert format_currency(-75_000, currency="$") == f"-75{GROUP_SEPARATOR}000 $"
