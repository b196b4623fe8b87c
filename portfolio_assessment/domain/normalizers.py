"""
Cell-level parsers that coerce heterogeneous spreadsheet values into canonical types.

Every parser is tolerant: malformed input yields None (or the documented
default) instead of raising.
"""

import numbers
import re
from datetime import date, datetime
from typing import Any, Optional

import pandas as pd

from portfolio_assessment.utils.date_utils import excel_serial_to_date, parse_date_text

CURRENCY_NOISE = re.compile(r"[$,\s]")
LEADING_NUMBER = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

# Rates at or below this are read as decimals (0.085 -> 8.5%)
RATE_DECIMAL_CUTOFF = 0.3
# LTVs at or below this are read as decimals (0.75 -> 75%)
LTV_DECIMAL_CUTOFF = 1.0


def is_blank(value: Any) -> bool:
    """True for None, NaN/NaT and whitespace-only strings"""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def cell_text(value: Any) -> str:
    """Render a cell as text; integral floats drop their '.0' so 1001.0 reads as '1001'"""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_text(value: Any) -> Optional[str]:
    if is_blank(value) or value is False or value == 0:
        return None
    text = cell_text(value).strip()
    return text or None


def parse_number(value: Any) -> Optional[float]:
    """
    Parse currency and percentage values.

    Strips '$', ',' and whitespace. A '%' sign divides by 100 only when the
    number exceeds 1, so '8%' and '0.08%' both come out as 0.08.
    """
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (datetime, date)):
        return None
    if isinstance(value, numbers.Number):
        return float(value)

    text = CURRENCY_NOISE.sub("", str(value))
    is_percent = "%" in text
    match = LEADING_NUMBER.match(text.replace("%", "", 1) if is_percent else text)
    if not match:
        return None

    number = float(match.group(0))
    if is_percent and number > 1:
        return number / 100
    return number


def parse_rate(value: Any) -> Optional[float]:
    """Interest rate in percent: values <= 0.3 are decimals, larger values are already percent"""
    number = parse_number(value)
    if number is None:
        return None
    return number * 100 if number <= RATE_DECIMAL_CUTOFF else number


def parse_ltv(value: Any) -> Optional[float]:
    """Loan-to-value in percent: values > 1 are already percent, values <= 1 are decimals"""
    number = parse_number(value)
    if number is None:
        return None
    return number if number > LTV_DECIMAL_CUTOFF else number * 100


def parse_date(value: Any) -> Optional[date]:
    """Accept datetime cells, Excel serial numbers, ISO/US strings and 'Mon-YY' tokens"""
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, numbers.Number):
        return excel_serial_to_date(float(value))
    if isinstance(value, str):
        return parse_date_text(value)
    return None


def parse_payment_status(value: Any) -> str:
    """Map free-text or numeric delinquency codes onto the closed payment status set"""
    if is_blank(value) or not value:
        return "current"
    text = cell_text(value).lower().strip()

    if "current" in text or text == "0" or text == "performing":
        return "current"
    if "30" in text or text == "1":
        return "30_day"
    if "60" in text or text == "2":
        return "60_day"
    if "90" in text or text == "3":
        return "90_day"
    if "default" in text or "charge" in text or text == "4":
        return "default"
    if "paid" in text or "matured" in text:
        return "paid_off"
    return "current"


def scale_side(value: Any, cutoff: float) -> Optional[str]:
    """Classify a raw numeric cell as 'decimal' (0 < n <= cutoff) or 'percent' (n > cutoff)"""
    number = parse_number(value)
    if number is None or number <= 0:
        return None
    return "decimal" if number <= cutoff else "percent"
