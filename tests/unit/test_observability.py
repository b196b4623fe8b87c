"""Unit tests for assessment metrics and structured logging"""

import json
import logging
from prometheus_client import REGISTRY
from portfolio_assessment.domain.assessment import calculate_assessment
from portfolio_assessment.infrastructure.observability.logging import CustomJsonFormatter
from portfolio_assessment.infrastructure.observability.metrics import record_assessment


def _sample(name: str, labels: dict) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_record_assessment_counts_readiness_and_flags(sample_loans, options):
    assessment = calculate_assessment(sample_loans, None, options)
    readiness_before = _sample("portfolio_assessment_total", {"readiness": assessment.tokenization_readiness})
    flag_before = _sample("portfolio_red_flags_total", {"type": "LIMITED_HISTORY", "severity": "low"})

    record_assessment(assessment)

    assert _sample("portfolio_assessment_total", {"readiness": assessment.tokenization_readiness}) == readiness_before + 1
    assert _sample("portfolio_red_flags_total", {"type": "LIMITED_HISTORY", "severity": "low"}) == flag_before + 1


def test_json_formatter_adds_service_fields():
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
    record = logging.LogRecord("assessment", logging.INFO, __file__, 1, "Workbook parsed", None, None)
    record.file_kind = "loan_tape"

    payload = json.loads(formatter.format(record))

    assert payload["message"] == "Workbook parsed"
    assert payload["level"] == "INFO"
    assert payload["service"] == "portfolio-assessment"
    assert payload["file_kind"] == "loan_tape"
    assert "timestamp" in payload
