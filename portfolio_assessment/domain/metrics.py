"""Portfolio metrics - reduce loan records into a single PortfolioMetrics snapshot"""

from collections import Counter
from datetime import date
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from portfolio_assessment.domain.models import LoanRecord, PerformanceHistoryRecord, PortfolioMetrics
from portfolio_assessment.utils.date_utils import months_between, round_half_up

TOP_N_EXPOSURES = 10
CONCENTRATION_DECIMALS = 3


def weighted_average(items: Iterable[Tuple[float, float]]) -> float:
    """Weighted mean of (value, weight) pairs; zero total weight gives 0.0"""
    pairs = list(items)
    total_weight = sum(weight for _, weight in pairs)
    if total_weight == 0:
        return 0.0
    return sum(value * weight for value, weight in pairs) / total_weight


def balance_weighted(loans: Sequence[LoanRecord], attribute: str) -> float:
    """Average of a loan attribute weighted by current balance, skipping loans missing either"""
    return weighted_average(
        (getattr(loan, attribute), loan.current_balance)
        for loan in loans
        if getattr(loan, attribute) is not None and loan.current_balance
    )


def concentration(loans: Sequence[LoanRecord], attribute: str, portfolio_size: float) -> Dict[str, float]:
    """Share of portfolio balance per distinct attribute value, rounded to 3 decimals"""
    totals: Dict[str, float] = {}
    for loan in loans:
        key = getattr(loan, attribute)
        if key and loan.current_balance:
            totals[key] = totals.get(key, 0.0) + loan.current_balance

    if portfolio_size <= 0:
        return {key: 0.0 for key in totals}
    return {key: round(total / portfolio_size, CONCENTRATION_DECIMALS) for key, total in totals.items()}


def _average_months(values: List[int]) -> int:
    return round_half_up(sum(values) / len(values)) if values else 0


def calculate_metrics(
    loans: Sequence[LoanRecord],
    performance_history: Optional[Sequence[PerformanceHistoryRecord]] = None,
    as_of: Optional[date] = None,
) -> PortfolioMetrics:
    """
    Compute portfolio metrics from a loan tape.

    Requirements:
    - Weighted averages use current balance, only over loans with both values
    - Status rates use active (non paid-off) loans as the denominator
    - Concentration is measured against total current balance
    - Ages and remaining terms are whole months relative to `as_of` (default today)

    Empty inputs and zero denominators resolve to 0 rather than raising.
    """
    today = as_of or date.today()

    portfolio_size = sum(loan.current_balance or 0 for loan in loans)
    loan_count = len(loans)
    avg_loan_size = portfolio_size / loan_count if loan_count > 0 else 0.0

    # Missing status counts as current in the distribution
    status_counts = Counter(loan.payment_status or "current" for loan in loans)
    active_loans = loan_count - status_counts["paid_off"]

    def status_rate(status: str) -> float:
        return status_counts[status] / active_loans if active_loans > 0 else 0.0

    loan_ages = [months_between(loan.origination_date, today) for loan in loans if loan.origination_date]
    remaining_terms = [
        max(0, months_between(today, loan.maturity_date)) for loan in loans if loan.maturity_date
    ]

    by_balance = sorted(loans, key=lambda loan: loan.current_balance or 0, reverse=True)
    if portfolio_size > 0 and by_balance:
        largest_single_exposure = (by_balance[0].current_balance or 0) / portfolio_size
        top_balance = sum(loan.current_balance or 0 for loan in by_balance[:TOP_N_EXPOSURES])
        top10_concentration = top_balance / portfolio_size
    else:
        largest_single_exposure = 0.0
        top10_concentration = 0.0

    return PortfolioMetrics(
        portfolio_size=portfolio_size,
        loan_count=loan_count,
        avg_loan_size=avg_loan_size,
        weighted_avg_rate=balance_weighted(loans, "interest_rate"),
        weighted_avg_ltv=balance_weighted(loans, "current_ltv"),
        weighted_avg_dscr=balance_weighted(loans, "dscr"),
        default_rate=status_rate("default"),
        delinquency_30_rate=status_rate("30_day"),
        delinquency_60_rate=status_rate("60_day"),
        delinquency_90_rate=status_rate("90_day"),
        avg_loan_age_months=_average_months(loan_ages),
        avg_remaining_term_months=_average_months(remaining_terms),
        largest_single_exposure=largest_single_exposure,
        top10_concentration=top10_concentration,
        geographic_concentration=concentration(loans, "property_state", portfolio_size),
        property_type_concentration=concentration(loans, "property_type", portfolio_size),
    )
