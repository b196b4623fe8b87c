"""GET /v1/assessments/{deal_id}/history - Fetch a deal's score history"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from portfolio_assessment.api.v1.schemas import ScoreHistoryResponse, ScoreHistoryItem
from portfolio_assessment.infrastructure.database.session import get_db
from portfolio_assessment.infrastructure.database.repositories import ScoreHistoryRepository

router = APIRouter()


@router.get("/assessments/{deal_id}/history", response_model=ScoreHistoryResponse)
def get_score_history(deal_id: str, db: Session = Depends(get_db)):
    """
    Retrieve every score snapshot recorded for a deal.

    Returns:
        Snapshots ordered oldest first, shaped for charting
    """
    entries = ScoreHistoryRepository(db).list_for_deal(deal_id)

    history_items = [
        ScoreHistoryItem(
            date=entry.created_at.isoformat(),
            overall_score=entry.overall_score,
            letter_grade=entry.letter_grade,
            portfolio_performance=entry.portfolio_performance_score,
            cash_flow_quality=entry.cash_flow_quality_score,
            documentation=entry.documentation_score,
            collateral_coverage=entry.collateral_coverage_score,
            diversification=entry.diversification_score,
            regulatory_readiness=entry.regulatory_readiness_score,
            tokenization_readiness=entry.tokenization_readiness,
            ready_percentage=entry.ready_percentage,
            trigger_type=entry.trigger_type,
            trigger_description=entry.trigger_description,
        )
        for entry in entries
    ]

    return ScoreHistoryResponse(deal_id=deal_id, history=history_items, count=len(history_items))
