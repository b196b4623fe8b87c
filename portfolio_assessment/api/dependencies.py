"""Dependency injection for FastAPI endpoints"""

from fastapi import Request
from portfolio_assessment.domain.narrative import NarrativeGenerator
from portfolio_assessment.infrastructure.clients.narrative import build_narrative_generator


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_narrative_generator() -> NarrativeGenerator:
    """Provide the configured narrative generator (no-op without an API key)"""
    return build_narrative_generator()
