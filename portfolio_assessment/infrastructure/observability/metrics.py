"""Prometheus metrics for assessment outcomes, parse failures and narrative calls"""

from prometheus_client import Counter, Histogram

from portfolio_assessment.domain.models import AssessmentResult

# Assessment metrics
assessment_counter = Counter(
    "portfolio_assessment_total",
    "Total portfolio assessments completed",
    ["readiness"],  # ready | conditional | not_ready
)

assessment_grade_counter = Counter(
    "portfolio_assessment_grade",
    "Assessments by overall letter grade",
    ["grade"],
)

red_flag_counter = Counter(
    "portfolio_red_flags_total",
    "Red flags raised by assessments",
    ["type", "severity"],
)

# Ingestion metrics
parse_failure_counter = Counter(
    "workbook_parse_failures_total",
    "Uploaded workbooks that produced no usable records",
    ["file_kind"],  # loan_tape | performance_history
)

# Narrative metrics
narrative_latency_histogram = Histogram(
    "narrative_latency_seconds",
    "Narrative API response time",
    buckets=[0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0],
)

narrative_failure_counter = Counter(
    "narrative_failures_total",
    "Narrative requests that produced no narrative",
    ["reason"],  # service | unparsable | timeout | error
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_assessment(assessment: AssessmentResult) -> None:
    """Record readiness, grade and red-flag distribution for one assessment"""
    assessment_counter.labels(readiness=assessment.tokenization_readiness).inc()
    assessment_grade_counter.labels(grade=assessment.letter_grade).inc()

    for flag in assessment.red_flags:
        red_flag_counter.labels(type=flag.type, severity=flag.severity).inc()
