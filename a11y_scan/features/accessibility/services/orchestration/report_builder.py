from datetime import datetime, timezone
from typing import List, Optional

from a11y_scan.features.accessibility.schemas.accessibility import (
    AccessibilityScore,
    AnalysisResult,
    AnalysisStatus,
    Finding,
    ImpactLevel,
    RawFinding,
    ScanReport,
    ScanSummary,
)

# Points taken off the score per violated rule
IMPACT_DEDUCTIONS = {
    ImpactLevel.critical: 10,
    ImpactLevel.serious: 5,
    ImpactLevel.moderate: 3,
    ImpactLevel.minor: 1,
}


def calculate_accessibility_score(findings: List[RawFinding]) -> AccessibilityScore:
    """
    0-100 score from the violated rules' impact, with a letter grade.
    Rules with an unknown impact count as minor.
    """
    deduction = sum(IMPACT_DEDUCTIONS.get(f.impact, 1) for f in findings)
    overall = max(0, 100 - deduction)
    return AccessibilityScore(overall=overall, grade=grade_for(overall))


def grade_for(score: int) -> str:
    if score >= 97:
        return "A+"
    elif score >= 90:
        return "A"
    elif score >= 80:
        return "B"
    elif score >= 70:
        return "C"
    elif score >= 60:
        return "D"
    else:
        return "F"


def build_summary(analysis: AnalysisResult, status: AnalysisStatus) -> ScanSummary:
    counts = {level: 0 for level in ImpactLevel}
    for finding in analysis.violations:
        if finding.impact is not None:
            counts[finding.impact] += 1

    return ScanSummary(
        total_violations=len(analysis.violations),
        total_passes=len(analysis.passes),
        total_incomplete=len(analysis.incomplete),
        critical_count=counts[ImpactLevel.critical],
        serious_count=counts[ImpactLevel.serious],
        moderate_count=counts[ImpactLevel.moderate],
        minor_count=counts[ImpactLevel.minor],
        analysis_status=status,
    )


def build_report(
    *,
    url: str,
    analysis: AnalysisResult,
    status: AnalysisStatus,
    findings: List[Finding],
    remaining_violation_count: int,
    processing_time_ms: int,
    ai_summary_text: Optional[str] = None,
) -> ScanReport:
    return ScanReport(
        url=url,
        timestamp=datetime.now(timezone.utc).isoformat(),
        processing_time_ms=max(1, processing_time_ms),
        summary=build_summary(analysis, status),
        # an unfinished analysis says nothing about the page, so no score
        score=calculate_accessibility_score(analysis.violations) if status == AnalysisStatus.completed else None,
        findings=findings,
        remaining_violation_count=remaining_violation_count,
        ai_summary_text=ai_summary_text,
        partial=status != AnalysisStatus.completed,
    )
