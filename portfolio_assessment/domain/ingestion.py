"""Loan tape and performance history workbook parsing"""

import io
import logging
from typing import Any, Callable, Dict, List, Sequence, Tuple

import pandas as pd

from portfolio_assessment.domain.columns import (
    LOAN_DATE_FIELDS,
    LOAN_LTV_FIELDS,
    LOAN_NUMBER_FIELDS,
    LOAN_TAPE_COLUMNS,
    LOAN_TEXT_FIELDS,
    PERFORMANCE_HISTORY_COLUMNS,
    REQUIRED_LOAN_TAPE_FIELDS,
    map_headers,
    missing_fields,
)
from portfolio_assessment.domain.exceptions import WorkbookReadError
from portfolio_assessment.domain.models import LoanRecord, ParseResult, PerformanceHistoryRecord
from portfolio_assessment.domain.normalizers import (
    LTV_DECIMAL_CUTOFF,
    RATE_DECIMAL_CUTOFF,
    is_blank,
    parse_date,
    parse_ltv,
    parse_number,
    parse_payment_status,
    parse_rate,
    parse_text,
    scale_side,
)

LOAN_TAPE_SHEET_KEYWORDS = ("loan", "tape")
PERFORMANCE_SHEET_KEYWORDS = ("performance", "history")

REQUIRED_HISTORY_FIELDS = ("period_month", "portfolio_balance")

LOAN_FIELD_PARSERS: Dict[str, Callable[[Any], Any]] = {
    **{name: parse_text for name in LOAN_TEXT_FIELDS},
    **{name: parse_date for name in LOAN_DATE_FIELDS},
    **{name: parse_ltv for name in LOAN_LTV_FIELDS},
    **{name: parse_number for name in LOAN_NUMBER_FIELDS},
    "interest_rate": parse_rate,
    "payment_status": parse_payment_status,
}

# Fields whose scale is inferred per cell, with the cutoff used for the inference
SCALE_CHECKED_FIELDS = {
    "interest_rate": RATE_DECIMAL_CUTOFF,
    "current_ltv": LTV_DECIMAL_CUTOFF,
    "original_ltv": LTV_DECIMAL_CUTOFF,
}

Row = List[Any]


def select_sheet(sheet_names: Sequence[str], keywords: Sequence[str]) -> str:
    """Pick the first sheet whose name contains any keyword, else the first sheet"""
    for name in sheet_names:
        lowered = str(name).lower()
        if any(keyword in lowered for keyword in keywords):
            return name
    return sheet_names[0]


def read_sheet_rows(content: bytes, keywords: Sequence[str]) -> Tuple[str, List[Row], int]:
    """
    Open a workbook from raw bytes and return the best-matching sheet as raw rows.

    Leading blank rows are dropped; the third element is the 1-based
    spreadsheet row number of the header (the first remaining row).

    Cells are returned untyped (no header inference) so that every
    normalization rule is applied by this module rather than by pandas.

    Raises:
        WorkbookReadError: if the bytes are not a readable .xlsx/.xls workbook
    """
    try:
        workbook = pd.ExcelFile(io.BytesIO(content))
        if not workbook.sheet_names:
            raise WorkbookReadError("Workbook contains no sheets")
        sheet_name = select_sheet(workbook.sheet_names, keywords)
        frame = workbook.parse(sheet_name, header=None, dtype=object)
    except WorkbookReadError:
        raise
    except Exception as e:  # engine-specific errors (zip, xml, xlrd, missing engine)
        raise WorkbookReadError(str(e) or e.__class__.__name__) from e

    rows = frame.values.tolist()
    header_row = 1
    while rows and all(is_blank(cell) for cell in rows[0]):
        rows.pop(0)
        header_row += 1
    return sheet_name, rows, header_row


def _map_row(row: Row, mapping: Dict[int, str], parsers: Dict[str, Callable[[Any], Any]]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for index, field_name in mapping.items():
        cell = row[index] if index < len(row) else None
        values[field_name] = parsers[field_name](cell)
    return values


def parse_loan_tape(content: bytes, filename: str) -> ParseResult:
    """
    Parse a loan tape workbook into LoanRecords.

    Structural problems (unreadable file, no data rows, missing required
    columns, no valid records) are reported in `errors`; row-level problems
    are reported in `warnings` with the spreadsheet row number. Never raises.
    """
    result = ParseResult()

    try:
        sheet_name, rows, header_row = read_sheet_rows(content, LOAN_TAPE_SHEET_KEYWORDS)
    except WorkbookReadError as e:
        result.errors.append(f"Failed to parse file: {e}")
        _log_parse("loan_tape", filename, result)
        return result

    if len(rows) < 2:
        result.errors.append("File contains no data rows")
        _log_parse("loan_tape", filename, result)
        return result

    mapping, result.unmapped_columns = map_headers(rows[0], LOAN_TAPE_COLUMNS)
    missing = missing_fields(mapping, REQUIRED_LOAN_TAPE_FIELDS)
    if missing:
        result.errors.append(f"Missing required columns: {', '.join(missing)}")
        _log_parse("loan_tape", filename, result)
        return result

    scale_sides: Dict[str, set] = {name: set() for name in SCALE_CHECKED_FIELDS}
    seen_ids: set = set()
    duplicate_ids: List[str] = []

    for row_number, row in enumerate(rows[1:], start=header_row + 1):
        if all(is_blank(cell) for cell in row):
            continue

        try:
            values = _map_row(row, mapping, LOAN_FIELD_PARSERS)
        except (TypeError, ValueError, ArithmeticError) as e:
            result.warnings.append(f"Row {row_number}: {e}")
            continue

        if not values.get("loan_id") or values.get("current_balance") is None:
            result.warnings.append(f"Row {row_number}: Missing loan ID or current balance, skipped")
            continue

        for index, field_name in mapping.items():
            if field_name in SCALE_CHECKED_FIELDS and index < len(row):
                side = scale_side(row[index], SCALE_CHECKED_FIELDS[field_name])
                if side:
                    scale_sides[field_name].add(side)

        loan_id = values["loan_id"]
        if loan_id in seen_ids and loan_id not in duplicate_ids:
            duplicate_ids.append(loan_id)
        seen_ids.add(loan_id)

        result.data.append(LoanRecord(**values))

    for field_name, sides in scale_sides.items():
        if len(sides) > 1:
            result.warnings.append(
                f"Column '{field_name}' mixes decimal and percentage values; scale was inferred per row"
            )
    if duplicate_ids:
        result.warnings.append(f"Duplicate loan IDs found: {', '.join(duplicate_ids)}")

    result.success = len(result.data) > 0
    if not result.data:
        result.errors.append("No valid loan records found")

    _log_parse("loan_tape", filename, result, sheet=sheet_name)
    return result


def parse_performance_history(content: bytes, filename: str) -> ParseResult:
    """
    Parse a monthly performance history workbook into PerformanceHistoryRecords.

    Rows need a period and a portfolio balance; results are sorted by period.
    """
    result = ParseResult()

    try:
        sheet_name, rows, header_row = read_sheet_rows(content, PERFORMANCE_SHEET_KEYWORDS)
    except WorkbookReadError as e:
        result.errors.append(f"Failed to parse file: {e}")
        _log_parse("performance_history", filename, result)
        return result

    if len(rows) < 2:
        result.errors.append("File contains no data rows")
        _log_parse("performance_history", filename, result)
        return result

    mapping, result.unmapped_columns = map_headers(rows[0], PERFORMANCE_HISTORY_COLUMNS)
    missing = missing_fields(mapping, REQUIRED_HISTORY_FIELDS)
    if missing:
        result.errors.append(f"Missing required columns: {', '.join(missing)}")
        _log_parse("performance_history", filename, result)
        return result

    parsers = {name: parse_number for name in set(PERFORMANCE_HISTORY_COLUMNS.values())}
    parsers["period_month"] = parse_date

    for row_number, row in enumerate(rows[1:], start=header_row + 1):
        if all(is_blank(cell) for cell in row):
            continue

        try:
            values = _map_row(row, mapping, parsers)
        except (TypeError, ValueError, ArithmeticError) as e:
            result.warnings.append(f"Row {row_number}: {e}")
            continue

        if values.get("period_month") is None or values.get("portfolio_balance") is None:
            result.warnings.append(f"Row {row_number}: Missing period or portfolio balance, skipped")
            continue

        result.data.append(PerformanceHistoryRecord(**values))

    result.data.sort(key=lambda r: r.period_month)

    result.success = len(result.data) > 0
    if not result.data:
        result.errors.append("No valid performance history records found")

    _log_parse("performance_history", filename, result, sheet=sheet_name)
    return result


def _log_parse(kind: str, filename: str, result: ParseResult, sheet: str | None = None) -> None:
    logging.info(
        "Workbook parsed",
        extra={
            "step": "parse",
            "file_kind": kind,
            "file_name": filename,
            "sheet": sheet,
            "records": len(result.data),
            "errors": len(result.errors),
            "warnings": len(result.warnings),
            "unmapped_columns": result.unmapped_columns,
        },
    )
