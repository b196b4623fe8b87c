"""Category scoring engine - six weighted 0-100 scores over portfolio metrics"""

from datetime import date
from typing import Callable, Dict, Mapping, Optional, Sequence, Tuple

from portfolio_assessment.domain.models import (
    AssessmentOptions,
    CategoryScore,
    LoanRecord,
    PerformanceHistoryRecord,
    PortfolioMetrics,
)
from portfolio_assessment.domain.thresholds import (
    CATEGORY_WEIGHTS,
    FAILING_GRADE,
    GRADE_TABLE,
    SCORING_THRESHOLDS,
)
from portfolio_assessment.utils.date_utils import months_between

History = Optional[Sequence[PerformanceHistoryRecord]]
Scorer = Callable[[PortfolioMetrics, Sequence[LoanRecord], History, AssessmentOptions], CategoryScore]

TREND_WINDOW = 3

REQUIRED_TAPE_FIELDS = ("loan_id", "current_balance", "interest_rate", "payment_status")
OPTIONAL_TAPE_FIELDS = ("dscr", "current_ltv", "property_type", "property_state", "lien_position", "appraisal_date")


def get_grade(score: float) -> str:
    """Map a 0-100 score to a letter grade"""
    for floor, grade in GRADE_TABLE:
        if score >= floor:
            return grade
    return FAILING_GRADE


def points_at_most(value: float, cutoffs: Mapping[str, float], points: Tuple[int, int, int, int]) -> int:
    """Award A/B/C/fallback points where lower values are better"""
    for grade, award in zip(("A", "B", "C"), points):
        if value <= cutoffs[grade]:
            return award
    return points[3]


def points_at_least(value: float, cutoffs: Mapping[str, float], points: Tuple[int, int, int, int]) -> int:
    """Award A/B/C/fallback points where higher values are better"""
    for grade, award in zip(("A", "B", "C"), points):
        if value >= cutoffs[grade]:
            return award
    return points[3]


def _category_score(category: str, score: int, details: dict) -> CategoryScore:
    weight = CATEGORY_WEIGHTS[category]
    return CategoryScore(
        score=score,
        grade=get_grade(score),
        weight=weight,
        weighted_score=score * weight,
        details=details,
    )


def _reference_date(options: AssessmentOptions) -> date:
    return options.as_of or date.today()


def trend_points(history: History) -> Tuple[int, str]:
    """
    Compare average default % of the first and last three periods.

    Returns (points, label). Fewer than three periods is scored neutrally.
    """
    if not history or len(history) < TREND_WINDOW:
        return 10, "insufficient_history"

    recent = history[-TREND_WINDOW:]
    older = history[:TREND_WINDOW]
    recent_default = sum(r.default_pct or 0 for r in recent) / len(recent)
    older_default = sum(r.default_pct or 0 for r in older) / len(older)

    if recent_default < older_default:
        return 20, "improving"
    if recent_default == older_default:
        return 15, "stable"
    if recent_default < older_default * 1.5:
        return 10, "worsening"
    return 5, "deteriorating"


def score_portfolio_performance(
    metrics: PortfolioMetrics,
    loans: Sequence[LoanRecord],
    history: History,
    options: AssessmentOptions,
) -> CategoryScore:
    """
    Portfolio performance (25%).

    - 40 pts: default rate
    - 40 pts: total delinquency (30 + 60 + 90 day)
    - 20 pts: default trend across performance history
    """
    thresholds = SCORING_THRESHOLDS["portfolio_performance"]
    total_delinquency = metrics.delinquency_30_rate + metrics.delinquency_60_rate + metrics.delinquency_90_rate
    trend, trend_label = trend_points(history)

    score = (
        points_at_most(metrics.default_rate, thresholds["default_rate"], (40, 30, 20, 10))
        + points_at_most(total_delinquency, thresholds["delinquency_rate"], (40, 30, 20, 10))
        + trend
    )

    return _category_score(
        "portfolio_performance",
        score,
        {
            "default_rate": metrics.default_rate,
            "delinquency_30_rate": metrics.delinquency_30_rate,
            "delinquency_60_rate": metrics.delinquency_60_rate,
            "delinquency_90_rate": metrics.delinquency_90_rate,
            "trend": trend_label,
        },
    )


def score_cash_flow_quality(
    metrics: PortfolioMetrics,
    loans: Sequence[LoanRecord],
    history: History,
    options: AssessmentOptions,
) -> CategoryScore:
    """
    Cash flow quality (25%).

    - 50 pts: weighted average DSCR
    - 35 pts: share of loans with an explicit 'current' status
    - 15 pts: weighted rate inside the 8-12% band (6-14% partial)
    """
    thresholds = SCORING_THRESHOLDS["cash_flow_quality"]
    current_count = sum(1 for loan in loans if loan.payment_status == "current")
    current_pct = current_count / len(loans) if loans else 0.0

    rate = metrics.weighted_avg_rate
    if 8 <= rate <= 12:
        rate_points = 15
    elif 6 <= rate <= 14:
        rate_points = 10
    else:
        rate_points = 5

    score = (
        points_at_least(metrics.weighted_avg_dscr, thresholds["avg_dscr"], (50, 40, 25, 10))
        + points_at_least(current_pct, thresholds["payment_consistency"], (35, 25, 15, 5))
        + rate_points
    )

    return _category_score(
        "cash_flow_quality",
        score,
        {
            "weighted_avg_dscr": metrics.weighted_avg_dscr,
            "current_pct": current_pct,
            "weighted_avg_rate": metrics.weighted_avg_rate,
        },
    )


def score_documentation(
    metrics: PortfolioMetrics,
    loans: Sequence[LoanRecord],
    history: History,
    options: AssessmentOptions,
) -> CategoryScore:
    """
    Documentation (20%).

    - 40 pts: loan tape completeness, judged on the first record
    - 40 pts: months of performance history (5 if none)
    - 20 pts: supporting documents supplied (5 if not)
    """
    sample = loans[0] if loans else None
    has_required = sample is not None and all(getattr(sample, f) is not None for f in REQUIRED_TAPE_FIELDS)
    optional_count = (
        sum(1 for f in OPTIONAL_TAPE_FIELDS if getattr(sample, f) is not None) if sample is not None else 0
    )

    if has_required and optional_count >= 5:
        score = 40
    elif has_required and optional_count >= 3:
        score = 30
    elif has_required:
        score = 20
    else:
        score = 10

    months = len(history) if history else 0
    if months > 0:
        score += points_at_least(
            months, SCORING_THRESHOLDS["documentation"]["performance_history_months"], (40, 30, 20, 10)
        )
    else:
        score += 5

    score += 20 if options.has_supporting_docs else 5

    return _category_score(
        "documentation",
        score,
        {
            "has_loan_tape": True,
            "optional_fields_present": optional_count,
            "performance_history_months": months,
            "has_supporting_docs": options.has_supporting_docs,
        },
    )


def is_first_lien(lien_position: Optional[str]) -> bool:
    if not lien_position:
        return False
    text = lien_position.lower()
    return "1st" in text or "first" in text or text == "1"


def score_collateral_coverage(
    metrics: PortfolioMetrics,
    loans: Sequence[LoanRecord],
    history: History,
    options: AssessmentOptions,
) -> CategoryScore:
    """
    Collateral coverage (15%).

    - 50 pts: weighted average LTV (as a fraction)
    - 30 pts: share of first-lien loans
    - 20 pts: average appraisal age (5 if no appraisal dates)
    """
    avg_ltv = metrics.weighted_avg_ltv / 100
    score = points_at_most(avg_ltv, SCORING_THRESHOLDS["collateral_coverage"]["avg_ltv"], (50, 40, 25, 10))

    first_lien_pct = sum(1 for loan in loans if is_first_lien(loan.lien_position)) / len(loans) if loans else 0.0
    if first_lien_pct >= 0.95:
        score += 30
    elif first_lien_pct >= 0.80:
        score += 25
    elif first_lien_pct >= 0.50:
        score += 15
    else:
        score += 5

    today = _reference_date(options)
    appraisal_ages = [months_between(loan.appraisal_date, today) for loan in loans if loan.appraisal_date]
    avg_appraisal_age = sum(appraisal_ages) / len(appraisal_ages) if appraisal_ages else None
    if avg_appraisal_age is None:
        score += 5
    elif avg_appraisal_age <= 12:
        score += 20
    elif avg_appraisal_age <= 24:
        score += 15
    elif avg_appraisal_age <= 36:
        score += 10
    else:
        score += 5

    return _category_score(
        "collateral_coverage",
        score,
        {
            "weighted_avg_ltv": metrics.weighted_avg_ltv,
            "first_lien_pct": first_lien_pct,
            "avg_appraisal_age_months": avg_appraisal_age,
            "loans_with_appraisal_pct": len(appraisal_ages) / len(loans) if loans else 0.0,
        },
    )


def score_diversification(
    metrics: PortfolioMetrics,
    loans: Sequence[LoanRecord],
    history: History,
    options: AssessmentOptions,
) -> CategoryScore:
    """
    Diversification (10%).

    - 30 pts: largest single exposure
    - 30 pts: top-10 concentration
    - 20 pts: distinct states
    - 20 pts: distinct property types
    """
    thresholds = SCORING_THRESHOLDS["diversification"]
    state_count = len(metrics.geographic_concentration)
    type_count = len(metrics.property_type_concentration)

    score = (
        points_at_most(metrics.largest_single_exposure, thresholds["largest_exposure"], (30, 25, 15, 5))
        + points_at_most(metrics.top10_concentration, thresholds["top10_concentration"], (30, 25, 15, 5))
        + points_at_least(state_count, thresholds["geographic_spread"], (20, 15, 10, 5))
        + points_at_least(type_count, thresholds["property_type_mix"], (20, 15, 10, 5))
    )

    return _category_score(
        "diversification",
        score,
        {
            "largest_single_exposure": metrics.largest_single_exposure,
            "top10_concentration": metrics.top10_concentration,
            "state_count": state_count,
            "type_count": type_count,
        },
    )


def score_regulatory_readiness(
    metrics: PortfolioMetrics,
    loans: Sequence[LoanRecord],
    history: History,
    options: AssessmentOptions,
) -> CategoryScore:
    """Regulatory readiness (5%): coarse placeholder until structure inputs are collected"""
    score = 80 if options.has_structure_info else 60
    return _category_score(
        "regulatory_readiness",
        score,
        {
            "has_structure_info": options.has_structure_info,
            "note": "Regulatory readiness requires manual review",
        },
    )


# Iteration order is the presentation order of the categories
CATEGORY_SCORERS: Dict[str, Scorer] = {
    "portfolio_performance": score_portfolio_performance,
    "cash_flow_quality": score_cash_flow_quality,
    "documentation": score_documentation,
    "collateral_coverage": score_collateral_coverage,
    "diversification": score_diversification,
    "regulatory_readiness": score_regulatory_readiness,
}


def score_categories(
    metrics: PortfolioMetrics,
    loans: Sequence[LoanRecord],
    history: History = None,
    options: Optional[AssessmentOptions] = None,
) -> Dict[str, CategoryScore]:
    """Run every registered category scorer over one metrics snapshot"""
    options = options or AssessmentOptions()
    return {name: scorer(metrics, loans, history, options) for name, scorer in CATEGORY_SCORERS.items()}
