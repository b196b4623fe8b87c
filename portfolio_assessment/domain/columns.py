"""Header alias tables mapping normalized spreadsheet headers to canonical fields"""

from typing import Dict, Iterable, List, Set

LOAN_TAPE_COLUMNS: Dict[str, str] = {
    "loan id": "loan_id",
    "loan_id": "loan_id",
    "loanid": "loan_id",
    "borrower name": "borrower_name",
    "borrower_name": "borrower_name",
    "borrowername": "borrower_name",
    "original balance": "original_balance",
    "original_balance": "original_balance",
    "originalbalance": "original_balance",
    "orig balance": "original_balance",
    "current balance": "current_balance",
    "current_balance": "current_balance",
    "currentbalance": "current_balance",
    "curr balance": "current_balance",
    "interest rate": "interest_rate",
    "interest_rate": "interest_rate",
    "interestrate": "interest_rate",
    "rate": "interest_rate",
    "coupon": "interest_rate",
    "origination date": "origination_date",
    "origination_date": "origination_date",
    "originationdate": "origination_date",
    "orig date": "origination_date",
    "maturity date": "maturity_date",
    "maturity_date": "maturity_date",
    "maturitydate": "maturity_date",
    "term months": "term_months",
    "term_months": "term_months",
    "termmonths": "term_months",
    "term": "term_months",
    "payment status": "payment_status",
    "payment_status": "payment_status",
    "paymentstatus": "payment_status",
    "status": "payment_status",
    "property type": "property_type",
    "property_type": "property_type",
    "propertytype": "property_type",
    "asset type": "property_type",
    "property state": "property_state",
    "property_state": "property_state",
    "propertystate": "property_state",
    "state": "property_state",
    "property city": "property_city",
    "property_city": "property_city",
    "propertycity": "property_city",
    "city": "property_city",
    "property value": "property_value",
    "property_value": "property_value",
    "propertyvalue": "property_value",
    "original ltv": "original_ltv",
    "original_ltv": "original_ltv",
    "originalltv": "original_ltv",
    "ltv at origination": "original_ltv",
    "current ltv": "current_ltv",
    "current_ltv": "current_ltv",
    "currentltv": "current_ltv",
    "ltv": "current_ltv",
    "dscr": "dscr",
    "debt service coverage": "dscr",
    "lien position": "lien_position",
    "lien_position": "lien_position",
    "lienposition": "lien_position",
    "lien": "lien_position",
    "appraisal date": "appraisal_date",
    "appraisal_date": "appraisal_date",
    "appraisaldate": "appraisal_date",
    "loan purpose": "loan_purpose",
    "loan_purpose": "loan_purpose",
    "loanpurpose": "loan_purpose",
    "purpose": "loan_purpose",
}

PERFORMANCE_HISTORY_COLUMNS: Dict[str, str] = {
    "month": "period_month",
    "period": "period_month",
    "date": "period_month",
    "portfolio balance": "portfolio_balance",
    "portfolio_balance": "portfolio_balance",
    "balance": "portfolio_balance",
    "loan count": "loan_count",
    "loan_count": "loan_count",
    "count": "loan_count",
    "current %": "current_pct",
    "current_pct": "current_pct",
    "current": "current_pct",
    "30 day %": "delinquent_30_pct",
    "30_day_pct": "delinquent_30_pct",
    "30 day": "delinquent_30_pct",
    "60 day %": "delinquent_60_pct",
    "60_day_pct": "delinquent_60_pct",
    "60 day": "delinquent_60_pct",
    "90+ day %": "delinquent_90_pct",
    "90_day_pct": "delinquent_90_pct",
    "90 day": "delinquent_90_pct",
    "90+ day": "delinquent_90_pct",
    "default %": "default_pct",
    "default_pct": "default_pct",
    "default": "default_pct",
    "prepayments": "prepayments",
    "prepayment": "prepayments",
    "new originations": "new_originations",
    "new_originations": "new_originations",
    "originations": "new_originations",
}

REQUIRED_LOAN_TAPE_FIELDS = ("loan_id", "current_balance", "interest_rate")

LOAN_TEXT_FIELDS = (
    "loan_id",
    "borrower_name",
    "property_type",
    "property_state",
    "property_city",
    "lien_position",
    "loan_purpose",
)
LOAN_DATE_FIELDS = ("origination_date", "maturity_date", "appraisal_date")
LOAN_LTV_FIELDS = ("original_ltv", "current_ltv")
LOAN_NUMBER_FIELDS = ("original_balance", "current_balance", "property_value", "term_months", "dscr")


def normalize_header(value) -> str:
    """Lowercase and trim a raw header cell; empty cells become ''"""
    if value is None or value != value:  # None or NaN
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).lower().strip()


def map_headers(headers: Iterable, aliases: Dict[str, str]) -> tuple[Dict[int, str], List[str]]:
    """
    Resolve header cells against an alias table.

    Returns:
        (column index -> canonical field, unmapped non-empty headers)
    """
    mapping: Dict[int, str] = {}
    unmapped: List[str] = []
    for index, raw in enumerate(headers):
        header = normalize_header(raw)
        field_name = aliases.get(header)
        if field_name:
            mapping[index] = field_name
        elif header:
            unmapped.append(header)
    return mapping, unmapped


def missing_fields(mapping: Dict[int, str], required: Iterable[str]) -> List[str]:
    mapped: Set[str] = set(mapping.values())
    return [f for f in required if f not in mapped]
