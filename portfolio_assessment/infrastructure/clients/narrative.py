"""Anthropic Messages API client backing the narrative overlay"""

import logging
from typing import Optional

import httpx

from portfolio_assessment.config import Settings, settings
from portfolio_assessment.domain.exceptions import NarrativeServiceError
from portfolio_assessment.domain.models import AssessmentResult, Narrative
from portfolio_assessment.domain.narrative import (
    NarrativeGenerator,
    NullNarrativeGenerator,
    build_narrative_prompt,
    parse_narrative_response,
)
from portfolio_assessment.infrastructure.observability.metrics import (
    narrative_failure_counter,
    narrative_latency_histogram,
)

PLACEHOLDER_API_KEYS = {"", "your-api-key-here"}


class AnthropicNarrativeClient:
    """NarrativeGenerator that asks a Claude model for portfolio commentary"""

    def __init__(
        self,
        api_key: str,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        max_tokens: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.base_url = (base_url or settings.anthropic_api_base).rstrip("/")
        self.model = model or settings.anthropic_model
        self.timeout = timeout or settings.narrative_timeout_seconds
        self.max_tokens = max_tokens or settings.narrative_max_tokens
        self.transport = transport

    async def complete(self, prompt: str) -> str:
        """
        Send one user message and return the concatenated text blocks of the reply.

        Raises:
            NarrativeServiceError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/v1/messages",
                    headers={
                        "x-api-key": self.api_key,
                        "anthropic-version": settings.anthropic_version,
                        "content-type": "application/json",
                    },
                    json={
                        "model": self.model,
                        "max_tokens": self.max_tokens,
                        "messages": [{"role": "user", "content": prompt}],
                    },
                )
                response.raise_for_status()
                data = response.json()

                return "".join(
                    block["text"] for block in data["content"] if block.get("type") == "text"
                )

            except httpx.TimeoutException as e:
                raise NarrativeServiceError(f"Narrative API timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise NarrativeServiceError(f"Narrative API error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise NarrativeServiceError(f"Narrative API unreachable: {e}") from e
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                raise NarrativeServiceError(f"Invalid response from narrative API: {e}") from e

    async def analyze(self, assessment: AssessmentResult) -> Optional[Narrative]:
        """Generate a narrative; failures are logged and reported as None"""
        prompt = build_narrative_prompt(assessment)

        try:
            with narrative_latency_histogram.time():
                text = await self.complete(prompt)
        except NarrativeServiceError as e:
            narrative_failure_counter.labels(reason="service").inc()
            logging.warning(f"Narrative analysis failed: {e}", extra={"step": "narrative"})
            return None

        narrative = parse_narrative_response(text)
        if narrative is None:
            narrative_failure_counter.labels(reason="unparsable").inc()
            logging.warning("Narrative response contained no usable JSON", extra={"step": "narrative"})
        return narrative


def narrative_configured(config: Settings | None = None) -> bool:
    """True when a usable (non-placeholder) Anthropic API key is set"""
    config = config or settings
    return (config.anthropic_api_key or "").strip() not in PLACEHOLDER_API_KEYS


def build_narrative_generator(config: Settings | None = None) -> NarrativeGenerator:
    """Pick the real client when an API key is configured, otherwise the no-op generator"""
    config = config or settings
    api_key = (config.anthropic_api_key or "").strip()

    if not narrative_configured(config):
        logging.info("Anthropic API key not configured, narrative analysis disabled")
        return NullNarrativeGenerator()

    return AnthropicNarrativeClient(
        api_key=api_key,
        base_url=config.anthropic_api_base,
        model=config.anthropic_model,
        timeout=config.narrative_timeout_seconds,
        max_tokens=config.narrative_max_tokens,
    )
