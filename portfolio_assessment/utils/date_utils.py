"""Date and rounding utilities shared by ingestion and metrics"""

import math
import re
from datetime import date, datetime, timedelta
from typing import Optional

from dateutil import parser as date_parser

# Excel 1900 date system: serial 1 == 1900-01-01 (with the 1900 leap-year bug)
EXCEL_EPOCH = date(1899, 12, 30)
MAX_EXCEL_SERIAL = 2_958_465  # 9999-12-31

DAYS_PER_MONTH = 30

MONTH_TOKEN = re.compile(r"^([A-Za-z]{3})-(\d{2})$")
MONTH_ABBREVIATIONS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}
STRICT_FORMATS = ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y/%m/%d")
PARSER_DEFAULT = datetime(2000, 1, 1)


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)"""
    return int(math.floor(value + 0.5))


def months_between(start: date, end: date) -> int:
    """Whole months from start to end, using 30-day months; negative if end precedes start"""
    return round_half_up((end - start).days / DAYS_PER_MONTH)


def excel_serial_to_date(serial: float) -> Optional[date]:
    """Convert an Excel serial day number to a date; out-of-range serials give None"""
    if serial != serial or serial < 1 or serial > MAX_EXCEL_SERIAL:
        return None
    return EXCEL_EPOCH + timedelta(days=int(serial))


def parse_month_token(text: str) -> Optional[date]:
    """Parse short 'Mon-YY' tokens such as 'Jan-24' into the first day of that month"""
    match = MONTH_TOKEN.match(text)
    if not match:
        return None
    month = MONTH_ABBREVIATIONS.get(match.group(1).lower())
    if month is None:
        return None
    return date(2000 + int(match.group(2)), month, 1)


def parse_date_text(text: str) -> Optional[date]:
    """
    Parse a date string from a spreadsheet cell.

    Tries 'Mon-YY' tokens, then ISO and US layouts, then dateutil's
    free-form parser. Unparsable text returns None.
    """
    text = text.strip()
    if not text:
        return None

    month_start = parse_month_token(text)
    if month_start:
        return month_start

    for fmt in STRICT_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    try:
        return date_parser.parse(text, default=PARSER_DEFAULT).date()
    except (ValueError, OverflowError):
        return None
