"""POST /v1/assessments and GET /v1/assessments/{deal_id} - portfolio assessment endpoints"""

import time
import logging
from dataclasses import asdict
from typing import Optional
from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from portfolio_assessment.api.v1.schemas import (
    AssessmentResponse,
    AssessmentSchema,
    ParseInfo,
    StoredAssessmentResponse,
)
from portfolio_assessment.api.dependencies import get_narrative_generator, get_request_id
from portfolio_assessment.config import settings
from portfolio_assessment.infrastructure.database.session import get_db
from portfolio_assessment.infrastructure.database.models import PortfolioAssessment
from portfolio_assessment.infrastructure.database.repositories import AssessmentRepository, ScoreHistoryRepository
from portfolio_assessment.domain.assessment import calculate_assessment
from portfolio_assessment.domain.exceptions import AssessmentNotFoundError
from portfolio_assessment.domain.ingestion import parse_loan_tape, parse_performance_history
from portfolio_assessment.domain.models import AssessmentOptions
from portfolio_assessment.domain.narrative import NarrativeGenerator, apply_narrative
from portfolio_assessment.infrastructure.observability.metrics import (
    narrative_failure_counter,
    parse_failure_counter,
    record_assessment,
)
from portfolio_assessment.infrastructure.observability.logging import log_assessment

router = APIRouter()


async def _read_upload(upload: UploadFile) -> bytes:
    content = await upload.read()
    if len(content) > settings.max_upload_bytes:
        raise HTTPException(status_code=413, detail=f"File {upload.filename} exceeds upload limit")
    return content


def _count_narrative_failure(reason: str) -> None:
    narrative_failure_counter.labels(reason=reason).inc()


@router.post("/assessments", response_model=AssessmentResponse)
async def create_assessment(
    request: Request,
    deal_id: str = Form(..., min_length=1, description="Deal identifier"),
    loan_tape: UploadFile = File(..., description="Loan tape workbook (.xlsx/.xls)"),
    performance_history: Optional[UploadFile] = File(None, description="Monthly performance history workbook"),
    has_supporting_docs: bool = Form(False),
    has_structure_info: bool = Form(False),
    db: Session = Depends(get_db),
    narrative_generator: NarrativeGenerator = Depends(get_narrative_generator),
):
    """
    Score a lender's portfolio for a deal.

    Flow:
    1. Parse the loan tape (and performance history if supplied)
    2. Calculate metrics, category scores, red flags and readiness
    3. Overlay narrative commentary when a generator is configured
    4. Persist the assessment and append a score-history snapshot
    5. Return the assessment with parse diagnostics
    """
    start_time = time.time()
    request_id = get_request_id(request)
    user_inputs = {"has_supporting_docs": has_supporting_docs, "has_structure_info": has_structure_info}
    assessment_repo = AssessmentRepository(db)

    # 1. Parse uploads (workbook parsing is CPU bound, keep it off the event loop)
    tape_name = loan_tape.filename or "loan_tape"
    tape_result = await run_in_threadpool(parse_loan_tape, await _read_upload(loan_tape), tape_name)

    if not tape_result.success:
        parse_failure_counter.labels(file_kind="loan_tape").inc()
        assessment_repo.save_error(deal_id, tape_result.errors, user_inputs)
        db.commit()
        logging.warning(
            f"Loan tape rejected: {'; '.join(tape_result.errors)}",
            extra={"request_id": request_id, "deal_id": deal_id},
        )
        raise HTTPException(status_code=400, detail={"status": "error", "errors": tape_result.errors})

    parse_errors = []
    parse_warnings = list(tape_result.warnings)
    history = []
    if performance_history is not None and performance_history.filename:
        history_result = await run_in_threadpool(
            parse_performance_history, await _read_upload(performance_history), performance_history.filename
        )
        if history_result.success:
            history = history_result.data
            parse_warnings.extend(history_result.warnings)
        else:
            parse_failure_counter.labels(file_kind="performance_history").inc()
            parse_errors.extend(history_result.errors)

    try:
        # 2. Deterministic assessment
        options = AssessmentOptions(has_supporting_docs=has_supporting_docs, has_structure_info=has_structure_info)
        assessment = await run_in_threadpool(calculate_assessment, tape_result.data, history, options)

        # 3. Narrative overlay (never fails the run)
        assessment, narrative = await apply_narrative(
            assessment,
            narrative_generator,
            timeout=settings.narrative_timeout_seconds,
            on_failure=_count_narrative_failure,
        )

        # 4. Persist assessment and score history
        record, first_scored = assessment_repo.save_result(
            deal_id=deal_id,
            assessment=assessment,
            has_ai_analysis=narrative is not None,
            parse_errors=parse_errors,
            parse_warnings=parse_warnings,
            user_inputs=user_inputs,
        )
        ScoreHistoryRepository(db).record(
            deal_id=deal_id,
            assessment_id=record.id,
            assessment=assessment,
            trigger_type="initial" if first_scored else "manual_reassess",
            trigger_description=(
                "Initial portfolio assessment"
                if first_scored
                else f"Manual reassessment of {len(tape_result.data)} loans"
            ),
        )
        db.commit()

        # Record metrics and logs
        duration_ms = (time.time() - start_time) * 1000
        record_assessment(assessment)
        log_assessment(
            request_id,
            deal_id,
            assessment.overall_score,
            assessment.letter_grade,
            assessment.tokenization_readiness,
            len(assessment.red_flags),
            narrative is not None,
            duration_ms,
        )

        return AssessmentResponse(
            assessment_id=str(record.id),
            deal_id=deal_id,
            has_narrative=narrative is not None,
            assessment=AssessmentSchema.model_validate(asdict(assessment)),
            parse_info=ParseInfo(
                loans_processed=len(tape_result.data),
                performance_months=len(history),
                unmapped_columns=tape_result.unmapped_columns,
                warnings=parse_warnings,
                errors=parse_errors,
            ),
        )

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id, "deal_id": deal_id})
        raise HTTPException(status_code=500, detail="Internal server error")


def _stored_assessment(record: PortfolioAssessment) -> AssessmentSchema:
    return AssessmentSchema(
        overall_score=record.overall_score,
        letter_grade=record.letter_grade,
        status=record.status,
        metrics=record.metrics,
        scores=record.scores or {},
        red_flags=record.red_flags or [],
        tokenization_readiness=record.tokenization_readiness,
        ready_percentage=record.ready_percentage,
        conditional_percentage=record.conditional_percentage,
        not_ready_percentage=record.not_ready_percentage,
        estimated_timeline=record.estimated_timeline,
        summary=record.summary,
        strengths=record.strengths or [],
        concerns=record.concerns or [],
        recommendations=record.recommendations or [],
    )


@router.get("/assessments/{deal_id}", response_model=StoredAssessmentResponse)
def get_assessment(deal_id: str, db: Session = Depends(get_db)):
    """
    Retrieve the latest stored assessment for a deal.

    Returns:
        exists=false with no assessment when the deal has never been assessed
    """
    try:
        record = AssessmentRepository(db).require_by_deal(deal_id)
    except AssessmentNotFoundError:
        return StoredAssessmentResponse(exists=False)

    return StoredAssessmentResponse(
        exists=True,
        assessment_id=str(record.id),
        assessment=_stored_assessment(record),
        has_ai_analysis=record.has_ai_analysis,
        parse_errors=record.parse_errors or [],
        parse_warnings=record.parse_warnings or [],
        updated_at=record.updated_at.isoformat() if record.updated_at else None,
    )
