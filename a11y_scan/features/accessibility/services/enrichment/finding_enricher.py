import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from a11y_scan.features.accessibility.schemas.accessibility import (
    AIExplanation,
    Finding,
    ImpactLevel,
    Priority,
    RawFinding,
)
from a11y_scan.features.accessibility.services.enrichment.explanation_client import ExplanationClient
from a11y_scan.features.accessibility.services.enrichment.prompts import (
    build_explanation_prompt,
    build_summary_prompt,
)
from a11y_scan.platform.exceptions import EnrichmentFailure
from a11y_scan.platform.utils.deadline import Deadline, run_with_deadline

logger = logging.getLogger(__name__)

FALLBACK_EXPLANATION = "AI explanation unavailable"
FALLBACK_STEPS = ["Please consult the accessibility guideline reference"]

IMPACT_PRIORITY = {
    ImpactLevel.critical: Priority.critical,
    ImpactLevel.serious: Priority.high,
    ImpactLevel.moderate: Priority.medium,
    ImpactLevel.minor: Priority.low,
}

_FENCE_RE = re.compile(r"```(?:json|JSON)?")


def remaining_violation_count(total_violations: int, max_count: int) -> int:
    return max(0, total_violations - max_count)


def priority_for(finding: RawFinding) -> Priority:
    return IMPACT_PRIORITY.get(finding.impact, Priority.low)


def fallback_explanation(finding: RawFinding) -> AIExplanation:
    return AIExplanation(
        explanation_text=FALLBACK_EXPLANATION,
        priority=priority_for(finding),
        remediation_steps=list(FALLBACK_STEPS),
        user_impact_text=finding.description,
    )


def strip_code_fences(text: str) -> str:
    """Models like to wrap JSON in ```json fences; drop them and anything around the object."""
    cleaned = _FENCE_RE.sub("", text).strip()
    if not cleaned.startswith("{"):
        first = cleaned.find("{")
        if first >= 0:
            cleaned = cleaned[first:]
    last_brace = cleaned.rfind("}")
    if last_brace > 0:
        cleaned = cleaned[: last_brace + 1]
    return cleaned


def parse_explanation(text: str, finding: RawFinding) -> AIExplanation:
    """
    Turn the model's reply into an AIExplanation.

    Raises:
        EnrichmentFailure: reply is not a JSON object with a usable explanation
    """
    try:
        data = json.loads(strip_code_fences(text))
    except json.JSONDecodeError as e:
        raise EnrichmentFailure(details=f"Response is not JSON: {e}") from e
    if not isinstance(data, dict):
        raise EnrichmentFailure(details="Response JSON is not an object")

    explanation = data.get("explanation") or data.get("plainExplanation")
    if not isinstance(explanation, str) or not explanation.strip():
        raise EnrichmentFailure(details="Response has no explanation text")

    steps = data.get("steps", data.get("fixSuggestion"))
    if isinstance(steps, str):
        steps = [steps]
    steps = [str(s).strip() for s in steps or [] if str(s).strip()] or list(FALLBACK_STEPS)

    priority = data.get("priority")
    if isinstance(priority, str):
        priority = priority.strip().lower()
    if not isinstance(priority, str) or priority not in Priority.__members__:
        priority = priority_for(finding).value

    try:
        return AIExplanation(
            explanation_text=explanation.strip(),
            priority=priority,
            remediation_steps=steps,
            user_impact_text=str(data.get("impact") or finding.description),
        )
    except ValidationError as e:
        raise EnrichmentFailure(details=str(e)) from e


class FindingEnricher:
    """
    Attaches AI explanations to the first N findings.

    Each finding is explained independently under its own deadline; a slow or broken
    reply only degrades that finding to the fallback text.
    """

    def __init__(self, client: Optional[ExplanationClient], concurrency: int = 3):
        self.client = client
        self.concurrency = max(1, concurrency)

    async def _ask(self, finding: RawFinding) -> AIExplanation:
        text = await self.client.generate(build_explanation_prompt(finding))
        return parse_explanation(text, finding)

    async def explain(self, finding: RawFinding, timeout: float) -> AIExplanation:
        if self.client is None:
            return fallback_explanation(finding)
        try:
            return await run_with_deadline(
                self._ask(finding),
                timeout,
                on_timeout=lambda: EnrichmentFailure(details=f"No reply within {timeout:.1f}s"),
            )
        except EnrichmentFailure as e:
            logger.warning(f"Enrichment of {finding.id} degraded: {e.details}")
        except Exception as e:
            # transport/API errors from the client are per finding, never fatal
            logger.warning(f"Enrichment of {finding.id} failed: {e.__class__.__name__}: {str(e)}")
        return fallback_explanation(finding)

    async def enrich(
        self,
        findings: List[RawFinding],
        max_count: int,
        per_call_timeout: float,
        deadline: Optional[Deadline] = None,
    ) -> List[Finding]:
        """
        Returns every finding in analyzer order; the first `max_count` carry an
        ai_explanation, the rest are passed through unchanged.

        With a `deadline`, each call gets at most the time left on it when the call
        starts, so a slow model degrades findings to fallbacks instead of outliving the scan.
        """
        max_count = max(0, max_count)
        selected = findings[:max_count]
        semaphore = asyncio.Semaphore(self.concurrency)

        async def _bounded(finding: RawFinding) -> AIExplanation:
            async with semaphore:
                timeout = deadline.budget(per_call_timeout) if deadline else per_call_timeout
                return await self.explain(finding, timeout)

        explanations = await asyncio.gather(*(_bounded(f) for f in selected))

        enriched = [
            Finding(**_fields(finding), ai_explanation=explanation)
            for finding, explanation in zip(selected, explanations)
        ]
        rest = [Finding(**_fields(finding)) for finding in findings[max_count:]]

        degraded = sum(1 for e in explanations if e.explanation_text == FALLBACK_EXPLANATION)
        logger.info(
            f"Enriched {len(enriched)} of {len(findings)} findings ({degraded} with fallback text)"
        )
        return enriched + rest

    async def summarize(
        self,
        url: str,
        total_violations: int,
        findings: List[RawFinding],
        timeout: float,
    ) -> Optional[str]:
        """Best effort one-paragraph summary of the whole scan; None on any failure."""
        if self.client is None or not findings or timeout <= 0:
            return None
        try:
            text = await run_with_deadline(
                self.client.generate(build_summary_prompt(url, total_violations, findings)),
                timeout,
                on_timeout=lambda: EnrichmentFailure(details="summary timed out"),
            )
        except EnrichmentFailure as e:
            logger.warning(f"AI summary skipped: {e.details}")
            return None
        except Exception as e:
            logger.warning(f"AI summary failed: {e.__class__.__name__}: {str(e)}")
            return None

        text = _FENCE_RE.sub("", text or "").strip()
        return text or None


def _fields(finding: RawFinding) -> Dict[str, Any]:
    return finding.model_dump(exclude={"ai_explanation"})
