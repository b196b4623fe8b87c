"""
Narrative overlay - qualitative commentary merged on top of a deterministic assessment.

The text-generation backend is an injected NarrativeGenerator. Whatever it
returns (or fails to return), numeric fields of the assessment never change.
"""

import asyncio
import json
import logging
from dataclasses import replace
from typing import Callable, List, Optional, Protocol, Tuple

from portfolio_assessment.domain.models import AssessmentResult, Narrative

MAX_INSIGHTS = 6
DEDUP_PREFIX_CHARS = 20

CATEGORY_LABELS = {
    "portfolio_performance": "Portfolio Performance",
    "cash_flow_quality": "Cash Flow Quality",
    "documentation": "Documentation",
    "collateral_coverage": "Collateral Coverage",
    "diversification": "Diversification",
    "regulatory_readiness": "Regulatory Readiness",
}


class NarrativeGenerator(Protocol):
    """Produces qualitative analysis for an assessment, or None when unavailable"""

    async def analyze(self, assessment: AssessmentResult) -> Optional[Narrative]:
        ...


class NullNarrativeGenerator:
    """Generator used when no text-generation backend is configured"""

    async def analyze(self, assessment: AssessmentResult) -> Optional[Narrative]:
        return None


def build_narrative_prompt(assessment: AssessmentResult) -> str:
    """Render the assessment context and the expected JSON response shape"""
    metrics = assessment.metrics

    if assessment.red_flags:
        flag_lines = "\n".join(f"- [{flag.severity.upper()}] {flag.message}" for flag in assessment.red_flags)
    else:
        flag_lines = "None"

    score_lines = "\n".join(
        f"- {CATEGORY_LABELS.get(name, name)}: {category.score}/100" for name, category in assessment.scores.items()
    )

    return f"""You are a private credit portfolio analyst. Analyze this portfolio assessment and provide insights.

## Portfolio Overview
- Portfolio Size: ${metrics.portfolio_size:,.0f}
- Number of Loans: {metrics.loan_count}
- Average Loan Size: ${metrics.avg_loan_size:,.0f}
- Overall Score: {assessment.overall_score}/100 (Grade: {assessment.letter_grade})
- Tokenization Readiness: {assessment.tokenization_readiness}

## Key Metrics
- Weighted Avg Interest Rate: {metrics.weighted_avg_rate:.2f}%
- Weighted Avg LTV: {metrics.weighted_avg_ltv:.1f}%
- Weighted Avg DSCR: {metrics.weighted_avg_dscr:.2f}x
- Default Rate: {metrics.default_rate * 100:.2f}%
- 30-Day Delinquency: {metrics.delinquency_30_rate * 100:.2f}%
- Average Loan Age: {metrics.avg_loan_age_months} months
- Average Remaining Term: {metrics.avg_remaining_term_months} months

## Concentration
- Largest Single Exposure: {metrics.largest_single_exposure * 100:.1f}%
- Top 10 Concentration: {metrics.top10_concentration * 100:.1f}%
- Geographic Distribution: {json.dumps(metrics.geographic_concentration)}
- Property Types: {json.dumps(metrics.property_type_concentration)}

## Category Scores
{score_lines}

## Red Flags Detected
{flag_lines}

Please provide your analysis in the following JSON format:
{{
  "summary": "2-3 sentence executive summary of the portfolio",
  "strengths": ["strength 1", "strength 2", "strength 3"],
  "concerns": ["concern 1", "concern 2"],
  "recommendations": ["recommendation 1", "recommendation 2", "recommendation 3"],
  "tokenizationAssessment": "1-2 sentence assessment of tokenization readiness"
}}

Be specific and reference actual numbers from the data. Keep each point concise (1 sentence)."""


def extract_json_object(text: str) -> Optional[str]:
    """Return the first balanced top-level {...} block in text, honoring JSON string escapes"""
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue

        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _string_list(value) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value if item is not None]


def parse_narrative_response(text: str) -> Optional[Narrative]:
    """Parse a model response into a Narrative; any malformed response gives None"""
    block = extract_json_object(text or "")
    if block is None:
        return None

    try:
        parsed = json.loads(block)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None

    summary = parsed.get("summary")
    assessment_text = parsed.get("tokenizationAssessment")
    return Narrative(
        summary=summary if isinstance(summary, str) and summary else None,
        strengths=_string_list(parsed.get("strengths")),
        concerns=_string_list(parsed.get("concerns")),
        recommendations=_string_list(parsed.get("recommendations")),
        tokenization_assessment=assessment_text if isinstance(assessment_text, str) else None,
    )


def merge_insights(ai_items: List[str], baseline_items: List[str]) -> List[str]:
    """
    AI items first, then baseline items not already covered by an AI item.

    A baseline item counts as covered when its lowercased first 20
    characters appear inside any lowercased AI item. Capped at 6 entries.
    """
    lowered_ai = [item.lower() for item in ai_items]
    kept = [
        item
        for item in baseline_items
        if not any(item.lower()[:DEDUP_PREFIX_CHARS] in ai for ai in lowered_ai)
    ]
    return (list(ai_items) + kept)[:MAX_INSIGHTS]


def merge_narrative(assessment: AssessmentResult, narrative: Optional[Narrative]) -> AssessmentResult:
    """Overlay narrative text on an assessment; scores, flags and readiness are untouched"""
    if narrative is None:
        return assessment

    return replace(
        assessment,
        summary=narrative.summary or assessment.summary,
        strengths=merge_insights(narrative.strengths, assessment.strengths),
        concerns=merge_insights(narrative.concerns, assessment.concerns),
        recommendations=merge_insights(narrative.recommendations, assessment.recommendations),
    )


async def apply_narrative(
    assessment: AssessmentResult,
    generator: NarrativeGenerator,
    timeout: Optional[float] = None,
    on_failure: Optional[Callable[[str], None]] = None,
) -> Tuple[AssessmentResult, Optional[Narrative]]:
    """
    Request a narrative and merge it into the assessment.

    Any generator failure, including exceeding `timeout` seconds, leaves the
    deterministic assessment as the result. `on_failure` receives "timeout"
    or "error" for failures the generator did not handle itself.

    Returns:
        (merged assessment, narrative or None)
    """
    try:
        if timeout is not None:
            narrative = await asyncio.wait_for(generator.analyze(assessment), timeout=timeout)
        else:
            narrative = await generator.analyze(assessment)
    except asyncio.TimeoutError:
        logging.warning("Narrative generation timed out", extra={"step": "narrative", "timeout": timeout})
        narrative = None
        if on_failure:
            on_failure("timeout")
    except Exception as e:  # generators are pluggable; none may fail the assessment
        logging.warning(f"Narrative generation failed: {e}", extra={"step": "narrative"})
        narrative = None
        if on_failure:
            on_failure("error")

    return merge_narrative(assessment, narrative), narrative
