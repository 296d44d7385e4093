from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImpactLevel(str, Enum):
    minor = "minor"
    moderate = "moderate"
    serious = "serious"
    critical = "critical"


class Priority(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"


class AnalysisStatus(str, Enum):
    completed = "completed"
    timed_out = "timed_out"
    failed = "failed"


# ── Request ─────────────────────────────────────


class ScanOptions(CamelModel):
    tags: Optional[List[str]] = None
    wcag_level: Optional[Literal["A", "AA", "AAA"]] = None


class ScanRequest(CamelModel):
    # Optional so a missing url reaches our own validation and gets a 400
    url: Optional[str] = None
    options: Optional[ScanOptions] = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={"example": {"url": "https://example.com"}},
    )


# ── Findings ────────────────────────────────────


class FindingNode(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    html: str = ""
    target: List[str] = Field(default_factory=list)
    failure_summary: str = ""


class RawFinding(CamelModel):
    """One axe rule violation. Never modified after the analyzer builds it."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    impact: Optional[ImpactLevel] = None
    description: str = ""
    help: str = ""
    help_url: str = ""
    tags: List[str] = Field(default_factory=list)
    nodes: List[FindingNode] = Field(default_factory=list)


class AIExplanation(CamelModel):
    explanation_text: str
    priority: Priority
    remediation_steps: List[str] = Field(default_factory=list)
    user_impact_text: str = ""


class Finding(RawFinding):
    ai_explanation: Optional[AIExplanation] = None


class AnalysisResult(BaseModel):
    violations: List[RawFinding] = Field(default_factory=list)
    passes: List[dict] = Field(default_factory=list)
    incomplete: List[dict] = Field(default_factory=list)


# ── Report ──────────────────────────────────────


class ScanSummary(CamelModel):
    total_violations: int = 0
    total_passes: int = 0
    total_incomplete: int = 0
    critical_count: int = 0
    serious_count: int = 0
    moderate_count: int = 0
    minor_count: int = 0
    analysis_status: AnalysisStatus = AnalysisStatus.completed


class AccessibilityScore(CamelModel):
    overall: int
    grade: Literal["A+", "A", "B", "C", "D", "F"]


class ScanReport(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    url: str
    timestamp: str
    processing_time_ms: int
    summary: ScanSummary
    score: Optional[AccessibilityScore] = None
    findings: List[Finding] = Field(default_factory=list)
    remaining_violation_count: int = 0
    ai_summary_text: Optional[str] = None
    partial: bool = False
