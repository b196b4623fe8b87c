"""Pydantic schemas for API response validation"""

from pydantic import BaseModel
from typing import Any, Dict, List, Optional


class CategoryScoreSchema(BaseModel):
    """One weighted category score"""

    score: int
    grade: str
    weight: float
    weighted_score: float
    details: Dict[str, Any] = {}


class RedFlagSchema(BaseModel):
    """Rule-triggered risk condition"""

    type: str
    severity: str
    message: str
    details: Dict[str, Any] = {}


class MetricsSchema(BaseModel):
    """Portfolio metrics snapshot"""

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
    geographic_concentration: Dict[str, float]
    property_type_concentration: Dict[str, float]


class AssessmentSchema(BaseModel):
    """Full assessment result"""

    overall_score: Optional[int] = None
    letter_grade: Optional[str] = None
    status: str
    metrics: Optional[MetricsSchema] = None
    scores: Dict[str, CategoryScoreSchema] = {}
    red_flags: List[RedFlagSchema] = []
    tokenization_readiness: Optional[str] = None
    ready_percentage: Optional[int] = None
    conditional_percentage: Optional[int] = None
    not_ready_percentage: Optional[int] = None
    estimated_timeline: Optional[str] = None
    summary: Optional[str] = None
    strengths: List[str] = []
    concerns: List[str] = []
    recommendations: List[str] = []


class ParseInfo(BaseModel):
    """Ingestion diagnostics for an assessment run"""

    loans_processed: int
    performance_months: int
    unmapped_columns: List[str] = []
    warnings: List[str] = []
    errors: List[str] = []


class AssessmentResponse(BaseModel):
    """Response for POST /v1/assessments"""

    assessment_id: str
    deal_id: str
    has_narrative: bool
    assessment: AssessmentSchema
    parse_info: ParseInfo


class StoredAssessmentResponse(BaseModel):
    """Response for GET /v1/assessments/{deal_id}"""

    exists: bool
    assessment_id: Optional[str] = None
    assessment: Optional[AssessmentSchema] = None
    has_ai_analysis: bool = False
    parse_errors: List[str] = []
    parse_warnings: List[str] = []
    updated_at: Optional[str] = None


class ScoreHistoryItem(BaseModel):
    """Single score snapshot"""

    date: str
    overall_score: int
    letter_grade: str
    portfolio_performance: Optional[int] = None
    cash_flow_quality: Optional[int] = None
    documentation: Optional[int] = None
    collateral_coverage: Optional[int] = None
    diversification: Optional[int] = None
    regulatory_readiness: Optional[int] = None
    tokenization_readiness: str
    ready_percentage: int
    trigger_type: str
    trigger_description: Optional[str] = None


class ScoreHistoryResponse(BaseModel):
    """Response for GET /v1/assessments/{deal_id}/history"""

    deal_id: str
    history: List[ScoreHistoryItem]
    count: int
