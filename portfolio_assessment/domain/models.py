"""Domain models - pure Python dataclasses representing assessment entities"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional

PAYMENT_STATUSES = ("current", "30_day", "60_day", "90_day", "default", "paid_off")
SEVERITIES = ("high", "medium", "low")
READINESS_TIERS = ("ready", "conditional", "not_ready")


@dataclass(frozen=True)
class LoanRecord:
    """One row of a lender's loan tape"""

    loan_id: str
    current_balance: float
    borrower_name: Optional[str] = None
    original_balance: Optional[float] = None
    interest_rate: Optional[float] = None  # percent, e.g. 8.5
    origination_date: Optional[date] = None
    maturity_date: Optional[date] = None
    term_months: Optional[float] = None
    payment_status: Optional[str] = None  # one of PAYMENT_STATUSES
    property_type: Optional[str] = None
    property_state: Optional[str] = None
    property_city: Optional[str] = None
    property_value: Optional[float] = None
    original_ltv: Optional[float] = None  # percent, e.g. 75.0
    current_ltv: Optional[float] = None  # percent, e.g. 75.0
    dscr: Optional[float] = None
    lien_position: Optional[str] = None
    appraisal_date: Optional[date] = None
    loan_purpose: Optional[str] = None


@dataclass(frozen=True)
class PerformanceHistoryRecord:
    """Monthly portfolio performance snapshot"""

    period_month: date
    portfolio_balance: float
    loan_count: Optional[float] = None
    current_pct: Optional[float] = None
    delinquent_30_pct: Optional[float] = None
    delinquent_60_pct: Optional[float] = None
    delinquent_90_pct: Optional[float] = None
    default_pct: Optional[float] = None
    prepayments: Optional[float] = None
    new_originations: Optional[float] = None


@dataclass(frozen=True)
class PortfolioMetrics:
    """
    Portfolio-level metrics derived from a loan tape.

    weighted_avg_rate and weighted_avg_ltv are percentages (0-100); every
    other rate, exposure and concentration is a fraction (0-1).
    """

    portfolio_size: float
    loan_count: int
    avg_loan_size: float
    weighted_avg_rate: float
    weighted_avg_ltv: float
    weighted_avg_dscr: float
    default_rate: float
    delinquency_30_rate: float
    delinquency_60_rate: float
    delinquency_90_rate: float
    avg_loan_age_months: int
    avg_remaining_term_months: int
    largest_single_exposure: float
    top10_concentration: float
    geographic_concentration: Dict[str, float] = field(default_factory=dict)
    property_type_concentration: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class CategoryScore:
    """Score for one weighted assessment category"""

    score: int  # 0-100
    grade: str
    weight: float
    weighted_score: float
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RedFlag:
    """Rule-triggered risk condition"""

    type: str
    severity: str  # one of SEVERITIES
    message: str
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AssessmentOptions:
    """Caller-supplied inputs that cannot be derived from the loan tape"""

    has_supporting_docs: bool = False
    has_structure_info: bool = False
    as_of: Optional[date] = None  # reference date for ages; defaults to today


@dataclass(frozen=True)
class AssessmentResult:
    """Output of a portfolio assessment run"""

    overall_score: int
    letter_grade: str
    status: str  # "preliminary" or "complete"
    metrics: PortfolioMetrics
    scores: Dict[str, CategoryScore]
    red_flags: List[RedFlag]
    tokenization_readiness: str  # one of READINESS_TIERS
    ready_percentage: int
    conditional_percentage: int
    not_ready_percentage: int
    estimated_timeline: str
    strengths: List[str] = field(default_factory=list)
    concerns: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    summary: Optional[str] = None


@dataclass(frozen=True)
class Narrative:
    """Qualitative analysis returned by a text-generation backend"""

    summary: Optional[str]
    strengths: List[str]
    concerns: List[str]
    recommendations: List[str]
    tokenization_assessment: Optional[str] = None


@dataclass
class ParseResult:
    """Outcome of parsing one uploaded workbook"""

    success: bool = False
    data: List[Any] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    unmapped_columns: List[str] = field(default_factory=list)
