"""Unit tests for cell normalizers and date helpers"""

import math
import pytest
from datetime import date, datetime
from portfolio_assessment.domain.normalizers import (
    is_blank,
    parse_date,
    parse_ltv,
    parse_number,
    parse_payment_status,
    parse_rate,
    parse_text,
    scale_side,
)
from portfolio_assessment.domain.columns import (
    LOAN_TAPE_COLUMNS,
    map_headers,
    missing_fields,
    normalize_header,
)
from portfolio_assessment.utils.date_utils import (
    excel_serial_to_date,
    months_between,
    parse_month_token,
    round_half_up,
)


def test_is_blank():
    assert is_blank(None)
    assert is_blank("   ")
    assert is_blank(math.nan)
    assert not is_blank(0)
    assert not is_blank("x")


def test_parse_text_drops_integral_float_suffix():
    assert parse_text(1001.0) == "1001"
    assert parse_text("  Acme LLC ") == "Acme LLC"
    assert parse_text("") is None
    assert parse_text(None) is None


def test_parse_number_strips_currency():
    assert parse_number("$1,250,000") == 1250000.0
    assert parse_number(" 42.5 ") == 42.5
    assert parse_number(7) == 7.0


def test_parse_number_percent_divides_only_above_one():
    assert parse_number("8%") == pytest.approx(0.08)
    # Already fractional: left as-is
    assert parse_number("0.08%") == pytest.approx(0.08)


def test_parse_number_rejects_non_numeric():
    assert parse_number("abc") is None
    assert parse_number("") is None
    assert parse_number(True) is None
    assert parse_number(datetime(2024, 1, 1)) is None


def test_parse_rate_scale_heuristic():
    assert parse_rate(0.085) == pytest.approx(8.5)
    assert parse_rate(8.5) == pytest.approx(8.5)
    assert parse_rate("8%") == pytest.approx(8.0)
    # Boundary value is treated as a decimal
    assert parse_rate(0.3) == pytest.approx(30.0)
    assert parse_rate(0.31) == pytest.approx(0.31)
    assert parse_rate(None) is None


def test_parse_ltv_scale_heuristic():
    assert parse_ltv(0.75) == pytest.approx(75.0)
    assert parse_ltv(75) == pytest.approx(75.0)
    assert parse_ltv(1) == pytest.approx(100.0)
    assert parse_ltv("n/a") is None


def test_parse_date_variants():
    assert parse_date(datetime(2024, 1, 5, 10, 30)) == date(2024, 1, 5)
    assert parse_date(date(2024, 1, 5)) == date(2024, 1, 5)
    assert parse_date(45292) == date(2024, 1, 1)  # Excel serial
    assert parse_date("2024-03-15") == date(2024, 3, 15)
    assert parse_date("03/15/2024") == date(2024, 3, 15)
    assert parse_date("Jan-24") == date(2024, 1, 1)
    assert parse_date("garbage") is None
    assert parse_date(None) is None


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Current", "current"),
        ("Performing", "current"),
        (0, "current"),
        (None, "current"),
        ("30 days late", "30_day"),
        (1, "30_day"),
        ("60 Day", "60_day"),
        (2, "60_day"),
        ("90+ days", "90_day"),
        ("Default", "default"),
        ("Charged Off", "default"),
        (4, "default"),
        ("Paid Off", "paid_off"),
        ("Matured", "paid_off"),
        ("something else", "current"),
    ],
)
def test_parse_payment_status(raw, expected):
    assert parse_payment_status(raw) == expected


def test_scale_side():
    assert scale_side(0.085, 0.3) == "decimal"
    assert scale_side(8.5, 0.3) == "percent"
    assert scale_side(0, 0.3) is None
    assert scale_side("x", 0.3) is None


def test_normalize_and_map_headers():
    assert normalize_header("  Loan ID ") == "loan id"
    assert normalize_header(None) == ""

    mapping, unmapped = map_headers(["Loan ID", "Current Balance", "Coupon", "Notes", None], LOAN_TAPE_COLUMNS)

    assert mapping == {0: "loan_id", 1: "current_balance", 2: "interest_rate"}
    assert unmapped == ["notes"]
    assert missing_fields(mapping, ("loan_id", "current_balance", "interest_rate")) == []
    assert missing_fields({0: "loan_id"}, ("loan_id", "current_balance")) == ["current_balance"]


def test_round_half_up_matches_js_rounding():
    assert round_half_up(2.5) == 3
    assert round_half_up(3.5) == 4
    assert round_half_up(2.4) == 2
    assert round_half_up(-0.5) == 0


def test_months_between_uses_thirty_day_months():
    # 366 days / 30 = 12.2
    assert months_between(date(2024, 1, 1), date(2025, 1, 1)) == 12
    # 45 days / 30 = 1.5 rounds up
    assert months_between(date(2024, 1, 1), date(2024, 2, 15)) == 2
    assert months_between(date(2025, 1, 1), date(2024, 1, 1)) == -12


def test_excel_serial_bounds():
    assert excel_serial_to_date(1) == date(1899, 12, 31)
    assert excel_serial_to_date(0) is None
    assert excel_serial_to_date(3_000_000) is None


def test_parse_month_token():
    assert parse_month_token("Dec-23") == date(2023, 12, 1)
    assert parse_month_token("Foo-23") is None
    assert parse_month_token("2023-12") is None
