"""Unit tests for loan tape and performance history parsing"""

import pytest
from datetime import date
from portfolio_assessment.domain.ingestion import (
    parse_loan_tape,
    parse_performance_history,
    read_sheet_rows,
    select_sheet,
)
from portfolio_assessment.domain.exceptions import WorkbookReadError


def test_parse_loan_tape_normalizes_cells(make_workbook):
    """Currency strings, percent rates and status text are coerced to canonical values"""
    content = make_workbook(
        {
            "Loan Tape": [
                ["Loan ID", "Current Balance", "Rate", "Status", "LTV", "Lien", "Notes"],
                ["L1", "$100,000", "8%", "30 days late", 0.75, "1st Lien", "watch"],
                [1002, 250000, 0.095, "Current", 65, "1st Lien", None],
            ]
        }
    )

    result = parse_loan_tape(content, "tape.xlsx")

    assert result.success is True
    assert result.errors == []
    assert result.unmapped_columns == ["notes"]
    assert len(result.data) == 2

    first, second = result.data
    assert first.loan_id == "L1"
    assert first.current_balance == 100000.0
    assert first.interest_rate == pytest.approx(8.0)
    assert first.payment_status == "30_day"
    assert first.current_ltv == pytest.approx(75.0)
    assert first.lien_position == "1st Lien"

    assert second.loan_id == "1002"
    assert second.interest_rate == pytest.approx(9.5)
    assert second.current_ltv == pytest.approx(65.0)


def test_parse_loan_tape_reads_date_cells(make_workbook):
    content = make_workbook(
        {
            "Sheet1": [
                ["Loan ID", "Current Balance", "Interest Rate", "Origination Date", "Appraisal Date"],
                ["L1", 100000, 9.0, date(2022, 6, 1), "2023-03-15"],
            ]
        }
    )

    result = parse_loan_tape(content, "tape.xlsx")

    loan = result.data[0]
    assert loan.origination_date == date(2022, 6, 1)
    assert loan.appraisal_date == date(2023, 3, 15)


def test_parse_loan_tape_missing_required_columns(make_workbook):
    content = make_workbook({"Loans": [["Loan ID", "Current Balance"], ["L1", 100000]]})

    result = parse_loan_tape(content, "tape.xlsx")

    assert result.success is False
    assert result.errors == ["Missing required columns: interest_rate"]
    assert result.data == []


def test_parse_loan_tape_header_only(make_workbook):
    content = make_workbook({"Loans": [["Loan ID", "Current Balance", "Rate"]]})

    result = parse_loan_tape(content, "tape.xlsx")

    assert result.success is False
    assert result.errors == ["File contains no data rows"]


def test_parse_loan_tape_skips_incomplete_rows(make_workbook):
    content = make_workbook(
        {
            "Loans": [
                ["Loan ID", "Current Balance", "Rate"],
                ["L1", 100000, 9.0],
                ["L2", None, 9.0],
                [None, 50000, 9.0],
            ]
        }
    )

    result = parse_loan_tape(content, "tape.xlsx")

    assert result.success is True
    assert [loan.loan_id for loan in result.data] == ["L1"]
    assert "Row 3: Missing loan ID or current balance, skipped" in result.warnings
    assert "Row 4: Missing loan ID or current balance, skipped" in result.warnings


def test_parse_loan_tape_no_valid_records(make_workbook):
    content = make_workbook({"Loans": [["Loan ID", "Current Balance", "Rate"], ["L1", "n/a", 9.0]]})

    result = parse_loan_tape(content, "tape.xlsx")

    assert result.success is False
    assert "No valid loan records found" in result.errors


def test_parse_loan_tape_warns_on_mixed_rate_scale(make_workbook):
    content = make_workbook(
        {
            "Loans": [
                ["Loan ID", "Current Balance", "Rate"],
                ["L1", 100000, 0.085],
                ["L2", 100000, 9.5],
            ]
        }
    )

    result = parse_loan_tape(content, "tape.xlsx")

    assert [loan.interest_rate for loan in result.data] == [pytest.approx(8.5), pytest.approx(9.5)]
    assert any("interest_rate" in warning and "mixes" in warning for warning in result.warnings)


def test_parse_loan_tape_warns_on_duplicate_ids(make_workbook):
    content = make_workbook(
        {
            "Loans": [
                ["Loan ID", "Current Balance", "Rate"],
                ["L1", 100000, 9.0],
                ["L1", 50000, 9.0],
            ]
        }
    )

    result = parse_loan_tape(content, "tape.xlsx")

    # Duplicates are kept, only reported
    assert len(result.data) == 2
    assert "Duplicate loan IDs found: L1" in result.warnings


def test_parse_loan_tape_unreadable_bytes():
    result = parse_loan_tape(b"definitely not a workbook", "tape.xlsx")

    assert result.success is False
    assert len(result.errors) == 1
    assert result.errors[0].startswith("Failed to parse file:")


def test_read_sheet_rows_prefers_matching_sheet(make_workbook):
    content = make_workbook(
        {
            "Summary": [["Deal", "Acme"]],
            "Loan Tape": [["Loan ID", "Current Balance", "Rate"], ["L1", 100000, 9.0]],
        }
    )

    sheet_name, rows, header_row = read_sheet_rows(content, ("loan", "tape"))

    assert sheet_name == "Loan Tape"
    assert rows[0] == ["Loan ID", "Current Balance", "Rate"]
    assert header_row == 1


def test_read_sheet_rows_rejects_garbage():
    with pytest.raises(WorkbookReadError):
        read_sheet_rows(b"\x00\x01\x02", ("loan",))


def test_select_sheet_falls_back_to_first():
    assert select_sheet(["Data", "Other"], ("loan", "tape")) == "Data"
    assert select_sheet(["Data", "Performance History"], ("performance", "history")) == "Performance History"


def test_parse_performance_history_sorts_by_period(make_workbook):
    content = make_workbook(
        {
            "History": [
                ["Month", "Portfolio Balance", "Loan Count", "Default %", "90+ Day %"],
                ["Mar-24", "$1,000,000", 10, 0.5, 1.0],
                ["Jan-24", "$1,100,000", 11, 0.2, 0.5],
                ["Feb-24", "$1,050,000", 10, 0.3, 0.8],
            ]
        }
    )

    result = parse_performance_history(content, "history.xlsx")

    assert result.success is True
    assert [r.period_month for r in result.data] == [date(2024, 1, 1), date(2024, 2, 1), date(2024, 3, 1)]
    assert result.data[0].portfolio_balance == 1100000.0
    assert result.data[0].default_pct == pytest.approx(0.2)
    assert result.data[0].delinquent_90_pct == pytest.approx(0.5)


def test_parse_performance_history_requires_period_and_balance(make_workbook):
    content = make_workbook({"History": [["Month", "Default %"], ["Jan-24", 0.5]]})

    result = parse_performance_history(content, "history.xlsx")

    assert result.success is False
    assert result.errors == ["Missing required columns: portfolio_balance"]


def test_parse_performance_history_skips_rows_without_period(make_workbook):
    content = make_workbook(
        {
            "History": [
                ["Period", "Balance"],
                ["not a date", 1000000],
                ["2024-01-01", 1000000],
            ]
        }
    )

    result = parse_performance_history(content, "history.xlsx")

    assert len(result.data) == 1
    assert "Row 2: Missing period or portfolio balance, skipped" in result.warnings


def test_parse_loan_tape_minimal_round_trip(make_workbook):
    content = make_workbook(
        {"Sheet1": [["Loan ID", "Current Balance", "Rate"], ["L1", "$100,000", "8%"]]}
    )

    result = parse_loan_tape(content, "minimal.xlsx")

    assert result.success is True
    assert len(result.data) == 1
    assert result.data[0].loan_id == "L1"
    assert result.data[0].current_balance == 100000
    assert result.data[0].interest_rate == pytest.approx(8)
    # No status column: left unset rather than assumed current
    assert result.data[0].payment_status is None


def test_parse_loan_tape_right_most_alias_wins(make_workbook):
    content = make_workbook(
        {"Loans": [["Loan ID", "Current Balance", "Rate", "Coupon"], ["L1", 100000, 7.0, 9.0]]}
    )

    result = parse_loan_tape(content, "tape.xlsx")

    assert result.data[0].interest_rate == pytest.approx(9.0)


def test_read_sheet_rows_reports_header_row_after_blank_rows(make_workbook):
    content = make_workbook({"Loans": [[], [], ["Loan ID", "Current Balance", "Rate"], ["L1", 100000, 9.0]]})

    _, rows, header_row = read_sheet_rows(content, ("loan",))

    assert header_row == 3
    assert rows[0] == ["Loan ID", "Current Balance", "Rate"]


def test_parse_loan_tape_row_numbers_count_leading_blank_rows(make_workbook):
    content = make_workbook(
        {
            "Loans": [
                [],
                ["Loan ID", "Current Balance", "Rate"],
                ["L1", 100, 8],
                ["L2", None, 8],
            ]
        }
    )

    result = parse_loan_tape(content, "tape.xlsx")

    assert [loan.loan_id for loan in result.data] == ["L1"]
    assert result.warnings == ["Row 4: Missing loan ID or current balance, skipped"]


def test_parse_performance_history_row_numbers_count_leading_blank_rows(make_workbook):
    content = make_workbook(
        {
            "History": [
                [],
                [],
                ["Period", "Balance"],
                ["2024-01-01", 1000000],
                ["not a date", 1000000],
            ]
        }
    )

    result = parse_performance_history(content, "history.xlsx")

    assert len(result.data) == 1
    assert result.warnings == ["Row 5: Missing period or portfolio balance, skipped"]
