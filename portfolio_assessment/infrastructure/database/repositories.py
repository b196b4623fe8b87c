"""Data access layer for stored assessments and score history"""

import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.orm import Session
from portfolio_assessment.infrastructure.database.models import PortfolioAssessment, ScoreHistory
from portfolio_assessment.domain.exceptions import AssessmentNotFoundError
from portfolio_assessment.domain.models import AssessmentResult


class AssessmentRepository:
    """Repository for the latest assessment of each deal"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_deal(self, deal_id: str) -> Optional[PortfolioAssessment]:
        """Fetch the stored assessment for a deal, if any"""
        return (
            self.db.query(PortfolioAssessment)
            .filter(PortfolioAssessment.deal_id == deal_id)
            .first()
        )

    def require_by_deal(self, deal_id: str) -> PortfolioAssessment:
        """
        Fetch the stored assessment for a deal.

        Raises:
            AssessmentNotFoundError: if the deal has never been assessed
        """
        record = self.get_by_deal(deal_id)
        if record is None:
            raise AssessmentNotFoundError(f"No assessment found for deal {deal_id}")
        return record

    def _get_or_create(self, deal_id: str) -> Tuple[PortfolioAssessment, bool]:
        record = self.get_by_deal(deal_id)
        if record is not None:
            return record, False
        record = PortfolioAssessment(deal_id=deal_id, status="processing")
        self.db.add(record)
        return record, True

    def save_result(
        self,
        deal_id: str,
        assessment: AssessmentResult,
        has_ai_analysis: bool,
        parse_errors: List[str],
        parse_warnings: List[str],
        user_inputs: Dict[str, Any],
    ) -> Tuple[PortfolioAssessment, bool]:
        """
        Create or overwrite the deal's assessment with a completed result.

        Returns:
            (stored record, True if this is the deal's first assessment)
        """
        record, created = self._get_or_create(deal_id)
        # A previous failed run leaves a row without a score
        first_scored = created or record.overall_score is None

        record.status = assessment.status
        record.overall_score = assessment.overall_score
        record.letter_grade = assessment.letter_grade
        record.metrics = asdict(assessment.metrics)
        record.scores = {name: asdict(score) for name, score in assessment.scores.items()}
        record.summary = assessment.summary
        record.strengths = list(assessment.strengths)
        record.concerns = list(assessment.concerns)
        record.recommendations = list(assessment.recommendations)
        record.red_flags = [asdict(flag) for flag in assessment.red_flags]
        record.tokenization_readiness = assessment.tokenization_readiness
        record.ready_percentage = assessment.ready_percentage
        record.conditional_percentage = assessment.conditional_percentage
        record.not_ready_percentage = assessment.not_ready_percentage
        record.estimated_timeline = assessment.estimated_timeline
        record.parse_errors = parse_errors or None
        record.parse_warnings = parse_warnings or None
        record.user_inputs = user_inputs
        record.has_ai_analysis = has_ai_analysis
        record.updated_at = datetime.now(timezone.utc)

        self.db.flush()  # Get ID without committing
        return record, first_scored

    def save_error(self, deal_id: str, parse_errors: List[str], user_inputs: Dict[str, Any]) -> PortfolioAssessment:
        """Mark the deal's assessment as failed; previous scores are kept for reference"""
        record, _ = self._get_or_create(deal_id)
        record.status = "error"
        record.parse_errors = parse_errors
        record.user_inputs = user_inputs
        record.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        return record


class ScoreHistoryRepository:
    """Repository for time-ordered score snapshots"""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        deal_id: str,
        assessment_id: uuid.UUID,
        assessment: AssessmentResult,
        trigger_type: str,
        trigger_description: str,
    ) -> ScoreHistory:
        """Append a score snapshot for a completed assessment"""
        scores = assessment.scores
        entry = ScoreHistory(
            deal_id=deal_id,
            assessment_id=assessment_id,
            overall_score=assessment.overall_score,
            letter_grade=assessment.letter_grade,
            portfolio_performance_score=scores["portfolio_performance"].score,
            cash_flow_quality_score=scores["cash_flow_quality"].score,
            documentation_score=scores["documentation"].score,
            collateral_coverage_score=scores["collateral_coverage"].score,
            diversification_score=scores["diversification"].score,
            regulatory_readiness_score=scores["regulatory_readiness"].score,
            tokenization_readiness=assessment.tokenization_readiness,
            ready_percentage=assessment.ready_percentage,
            trigger_type=trigger_type,
            trigger_description=trigger_description,
        )
        self.db.add(entry)
        return entry

    def list_for_deal(self, deal_id: str) -> List[ScoreHistory]:
        """Fetch a deal's score history, oldest first"""
        return (
            self.db.query(ScoreHistory)
            .filter(ScoreHistory.deal_id == deal_id)
            .order_by(ScoreHistory.created_at.asc())
            .all()
        )
