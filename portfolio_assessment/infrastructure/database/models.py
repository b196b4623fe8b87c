"""SQLAlchemy ORM models for stored assessments and score history"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, Boolean, DateTime, Integer, ForeignKey, Text, JSON, Uuid
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


class PortfolioAssessment(Base):
    """Latest assessment for a deal (one row per deal, overwritten on reassessment)"""

    __tablename__ = "portfolio_assessment"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    deal_id = Column(Text, nullable=False, unique=True, index=True)
    status = Column(String(32), nullable=False)
    overall_score = Column(Integer, nullable=True)
    letter_grade = Column(String(4), nullable=True)
    metrics = Column(JSON, nullable=True)
    scores = Column(JSON, nullable=True)
    summary = Column(Text, nullable=True)
    strengths = Column(JSON, nullable=True)
    concerns = Column(JSON, nullable=True)
    recommendations = Column(JSON, nullable=True)
    red_flags = Column(JSON, nullable=True)
    tokenization_readiness = Column(String(16), nullable=True)
    ready_percentage = Column(Integer, nullable=True)
    conditional_percentage = Column(Integer, nullable=True)
    not_ready_percentage = Column(Integer, nullable=True)
    estimated_timeline = Column(Text, nullable=True)
    parse_errors = Column(JSON, nullable=True)
    parse_warnings = Column(JSON, nullable=True)
    user_inputs = Column(JSON, nullable=True)
    has_ai_analysis = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    history = relationship("ScoreHistory", back_populates="assessment", cascade="all, delete-orphan")


class ScoreHistory(Base):
    """Point-in-time snapshot of a deal's scores, appended on every completed run"""

    __tablename__ = "score_history"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    deal_id = Column(Text, nullable=False, index=True)
    assessment_id = Column(Uuid, ForeignKey("portfolio_assessment.id", ondelete="CASCADE"), nullable=False)
    overall_score = Column(Integer, nullable=False)
    letter_grade = Column(String(4), nullable=False)
    portfolio_performance_score = Column(Integer, nullable=True)
    cash_flow_quality_score = Column(Integer, nullable=True)
    documentation_score = Column(Integer, nullable=True)
    collateral_coverage_score = Column(Integer, nullable=True)
    diversification_score = Column(Integer, nullable=True)
    regulatory_readiness_score = Column(Integer, nullable=True)
    tokenization_readiness = Column(String(16), nullable=False)
    ready_percentage = Column(Integer, nullable=False)
    trigger_type = Column(String(32), nullable=False)  # initial | manual_reassess
    trigger_description = Column(Text, nullable=True)
    # Set client-side for sub-second ordering of back-to-back runs
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    assessment = relationship("PortfolioAssessment", back_populates="history")
