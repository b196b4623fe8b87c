"""Assessment aggregation - overall score, red flags and tokenization readiness"""

from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from portfolio_assessment.domain.metrics import calculate_metrics
from portfolio_assessment.domain.models import (
    AssessmentOptions,
    AssessmentResult,
    CategoryScore,
    LoanRecord,
    PerformanceHistoryRecord,
    PortfolioMetrics,
    RedFlag,
)
from portfolio_assessment.domain.scoring import get_grade, score_categories
from portfolio_assessment.domain.thresholds import (
    COMPLETE_HISTORY_MONTHS,
    ESTIMATED_TIMELINE,
    READINESS_SPLIT,
    READY_SCORE_FLOOR,
    RED_FLAG_TRIGGERS,
)
from portfolio_assessment.utils.date_utils import months_between, round_half_up

History = Optional[Sequence[PerformanceHistoryRecord]]


def overall_score(scores: Mapping[str, CategoryScore]) -> int:
    """Sum of weighted category scores, rounded half-up"""
    return round_half_up(sum(category.weighted_score for category in scores.values()))


def assessment_status(history: History) -> str:
    """'complete' with at least six months of history, else 'preliminary'"""
    return "complete" if history and len(history) >= COMPLETE_HISTORY_MONTHS else "preliminary"


def detect_red_flags(
    metrics: PortfolioMetrics,
    loans: Sequence[LoanRecord],
    history: History = None,
    as_of: Optional[date] = None,
) -> List[RedFlag]:
    """
    Evaluate every red-flag rule independently and collect the ones that fire.

    At most one flag per rule type; loan-level rules list the offending loan IDs.
    """
    today = as_of or date.today()
    flags: List[RedFlag] = []

    if metrics.default_rate > RED_FLAG_TRIGGERS["default_rate_high"]:
        flags.append(
            RedFlag(
                type="HIGH_DEFAULT_RATE",
                severity="high",
                message=f"Default rate of {metrics.default_rate * 100:.1f}% exceeds 10% threshold",
                details={"default_rate": metrics.default_rate},
            )
        )

    seriously_delinquent = [loan.loan_id for loan in loans if loan.payment_status in ("90_day", "default")]
    if seriously_delinquent:
        flags.append(
            RedFlag(
                type="LOANS_90_PLUS",
                severity="high",
                message=f"{len(seriously_delinquent)} loan(s) are 90+ days delinquent or in default",
                details={"count": len(seriously_delinquent), "loan_ids": seriously_delinquent},
            )
        )

    if metrics.largest_single_exposure > RED_FLAG_TRIGGERS["single_exposure_high"]:
        flags.append(
            RedFlag(
                type="HIGH_CONCENTRATION",
                severity="high",
                message=f"Largest single exposure is {metrics.largest_single_exposure * 100:.1f}% of portfolio",
                details={"exposure": metrics.largest_single_exposure},
            )
        )

    # weighted_avg_ltv is in percent, the trigger is a fraction
    if metrics.weighted_avg_ltv > RED_FLAG_TRIGGERS["avg_ltv_high"] * 100:
        flags.append(
            RedFlag(
                type="HIGH_LTV",
                severity="medium",
                message=f"Average LTV of {metrics.weighted_avg_ltv:.1f}% exceeds 80% threshold",
                details={"avg_ltv": metrics.weighted_avg_ltv},
            )
        )

    low_dscr = [
        loan.loan_id for loan in loans if loan.dscr is not None and loan.dscr < RED_FLAG_TRIGGERS["dscr_low"]
    ]
    if low_dscr:
        flags.append(
            RedFlag(
                type="LOW_DSCR",
                severity="medium",
                message=f"{len(low_dscr)} loan(s) have DSCR below 1.0x",
                details={"count": len(low_dscr), "loan_ids": low_dscr},
            )
        )

    stale_appraisals = [
        loan.loan_id
        for loan in loans
        if loan.appraisal_date
        and months_between(loan.appraisal_date, today) > RED_FLAG_TRIGGERS["appraisal_old_months"]
    ]
    if stale_appraisals:
        flags.append(
            RedFlag(
                type="OLD_APPRAISALS",
                severity="medium",
                message=f"{len(stale_appraisals)} loan(s) have appraisals older than 36 months",
                details={"count": len(stale_appraisals), "loan_ids": stale_appraisals},
            )
        )

    months = len(history) if history else 0
    if months < RED_FLAG_TRIGGERS["performance_history_short_months"]:
        flags.append(
            RedFlag(
                type="LIMITED_HISTORY",
                severity="low",
                message=f"Only {months} months of performance history available",
                details={"months": months},
            )
        )

    return flags


def determine_readiness(score: int, red_flags: Sequence[RedFlag]) -> str:
    """
    Tokenization readiness tier.

    - not_ready: any high-severity flag, regardless of score
    - conditional: any medium-severity flag, or overall score below 70
    - ready: otherwise
    """
    severities = {flag.severity for flag in red_flags}
    if "high" in severities:
        return "not_ready"
    if "medium" in severities or score < READY_SCORE_FLOOR:
        return "conditional"
    return "ready"


def readiness_split(tier: str) -> Tuple[int, int, int]:
    """(ready %, conditional %, not ready %) for a readiness tier"""
    return READINESS_SPLIT[tier]


def baseline_insights(
    scores: Mapping[str, CategoryScore],
    metrics: PortfolioMetrics,
    history: History,
) -> Tuple[List[str], List[str], List[str]]:
    """Rule-based strengths, concerns and recommendations that exist without any narrative service"""
    months = len(history) if history else 0
    strengths: List[str] = []
    concerns: List[str] = []
    recommendations: List[str] = []

    if scores["portfolio_performance"].score >= 80:
        strengths.append(f"Strong portfolio performance with {metrics.default_rate * 100:.1f}% default rate")
    if scores["cash_flow_quality"].score >= 80:
        strengths.append(f"Solid cash flow quality with {metrics.weighted_avg_dscr:.2f}x average DSCR")
    if scores["collateral_coverage"].score >= 80:
        strengths.append(f"Strong collateral coverage with {metrics.weighted_avg_ltv:.1f}% average LTV")

    if scores["diversification"].score < 70:
        concerns.append(
            f"Portfolio concentration risk - top 10 borrowers represent {metrics.top10_concentration * 100:.0f}%"
        )
    if months < 12:
        concerns.append(f"Limited performance history ({months} months)")

    if months < 24:
        recommendations.append("Provide additional months of performance history to improve score")
    if metrics.largest_single_exposure > 0.10:
        recommendations.append("Consider reducing largest single exposure below 10%")

    return strengths, concerns, recommendations


def calculate_assessment(
    loans: Sequence[LoanRecord],
    performance_history: History = None,
    options: Optional[AssessmentOptions] = None,
) -> AssessmentResult:
    """
    Main entry point: metrics, category scores, red flags and readiness.

    Deterministic for a fixed `options.as_of`. The narrative overlay is
    applied separately and never changes any numeric field.
    """
    options = options or AssessmentOptions()
    history = sorted(performance_history, key=lambda r: r.period_month) if performance_history else None

    metrics = calculate_metrics(loans, history, as_of=options.as_of)
    scores: Dict[str, CategoryScore] = score_categories(metrics, loans, history, options)
    score = overall_score(scores)
    red_flags = detect_red_flags(metrics, loans, history, as_of=options.as_of)

    tier = determine_readiness(score, red_flags)
    ready_pct, conditional_pct, not_ready_pct = readiness_split(tier)
    strengths, concerns, recommendations = baseline_insights(scores, metrics, history)

    return AssessmentResult(
        overall_score=score,
        letter_grade=get_grade(score),
        status=assessment_status(history),
        metrics=metrics,
        scores=scores,
        red_flags=red_flags,
        tokenization_readiness=tier,
        ready_percentage=ready_pct,
        conditional_percentage=conditional_pct,
        not_ready_percentage=not_ready_pct,
        estimated_timeline=ESTIMATED_TIMELINE[tier],
        strengths=strengths,
        concerns=concerns,
        recommendations=recommendations,
    )
