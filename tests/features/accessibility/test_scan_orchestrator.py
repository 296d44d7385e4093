import asyncio
import json
import time

import pytest

from conftest import FakeAnalyzer, FakeExplanationClient, FakeSessionManager, make_finding

from a11y_scan.features.accessibility.schemas.accessibility import (
    AnalysisResult,
    AnalysisStatus,
    ScanOptions,
    ScanRequest,
)
from a11y_scan.features.accessibility.services.enrichment.finding_enricher import FALLBACK_EXPLANATION
from a11y_scan.features.accessibility.services.orchestration.scan_orchestrator import ScanState
from a11y_scan.platform.exceptions import (
    AnalysisError,
    AnalysisTimeout,
    InvalidInputError,
    LaunchError,
    NavigationConnectionError,
    NavigationTimeout,
    ScanTimeoutError,
)

GOOD_REPLY = json.dumps(
    {"explanation": "Explained.", "priority": "high", "steps": ["Fix it"], "impact": "Users suffer."}
)


def violations(count):
    return AnalysisResult(
        violations=[make_finding(f"rule-{i}") for i in range(count)],
        passes=[{"id": "document-title"}, {"id": "html-has-lang"}],
        incomplete=[],
    )


class TestInputValidation:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("url", ["not-a-url", "", None, "ftp://example.com", "example.com"])
    async def test_bad_urls_never_launch_a_browser(self, build_orchestrator, url):
        sessions = FakeSessionManager()
        orchestrator = build_orchestrator(session_manager=sessions)

        with pytest.raises(InvalidInputError) as excinfo:
            await orchestrator.scan(ScanRequest(url=url))

        assert sessions.launch_count == 0
        assert excinfo.value.status_code == 400
        assert orchestrator.state == ScanState.failed

    @pytest.mark.asyncio
    async def test_not_a_url_message(self, build_orchestrator):
        with pytest.raises(InvalidInputError) as excinfo:
            await build_orchestrator().scan(ScanRequest(url="not-a-url"))
        assert "Invalid URL format" in excinfo.value.message

    @pytest.mark.asyncio
    async def test_bad_options_never_launch_a_browser(self, build_orchestrator):
        sessions = FakeSessionManager()
        request = ScanRequest(url="https://example.com", options=ScanOptions(tags=["nope"]))
        with pytest.raises(InvalidInputError):
            await build_orchestrator(session_manager=sessions).scan(request)
        assert sessions.launch_count == 0


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_clean_page(self, build_orchestrator):
        sessions = FakeSessionManager()
        orchestrator = build_orchestrator(session_manager=sessions, analyzer=FakeAnalyzer(violations(0)))

        report = await orchestrator.scan(ScanRequest(url="https://example.com"))

        assert report.summary.total_violations == 0
        assert report.summary.total_passes == 2
        assert report.findings == []
        assert report.processing_time_ms > 0
        assert report.remaining_violation_count == 0
        assert report.partial is False
        assert report.score.overall == 100
        assert sessions.navigated == ["https://example.com"]
        assert len(sessions.released) == 1
        assert orchestrator.state == ScanState.completed

    @pytest.mark.asyncio
    async def test_top_n_enriched_and_rest_counted(self, build_orchestrator):
        client = FakeExplanationClient(reply=GOOD_REPLY)
        analyzer = FakeAnalyzer(violations(5))
        orchestrator = build_orchestrator(analyzer=analyzer, client=client)

        report = await orchestrator.scan(ScanRequest(url="https://example.com"))

        assert [f.id for f in report.findings] == [f"rule-{i}" for i in range(5)]
        assert [f.ai_explanation is not None for f in report.findings] == [True, True, True, False, False]
        assert report.findings[0].ai_explanation.explanation_text == "Explained."
        assert report.remaining_violation_count == 2
        assert analyzer.calls == [["wcag2a", "wcag2aa", "wcag21a", "wcag21aa"]]

    @pytest.mark.asyncio
    async def test_ai_summary_included_when_enabled(self, build_orchestrator, test_settings):
        settings = test_settings.model_copy(update={"AI_SUMMARY_ENABLED": True})
        client = FakeExplanationClient(
            reply=lambda prompt: "Start with the images." if "summary" in prompt else GOOD_REPLY
        )
        orchestrator = build_orchestrator(analyzer=FakeAnalyzer(violations(1)), client=client, settings=settings)

        report = await orchestrator.scan(ScanRequest(url="https://example.com"))

        assert report.ai_summary_text == "Start with the images."

    @pytest.mark.asyncio
    async def test_same_page_twice_same_counts(self, build_orchestrator):
        analyzer = FakeAnalyzer(violations(4))
        first = await build_orchestrator(analyzer=analyzer).scan(ScanRequest(url="https://example.com"))
        second = await build_orchestrator(analyzer=analyzer).scan(ScanRequest(url="https://example.com"))

        assert first.summary.total_violations == second.summary.total_violations == 4
        assert first.summary.total_passes == second.summary.total_passes


class TestFailurePaths:
    @pytest.mark.asyncio
    async def test_launch_failure_propagates(self, build_orchestrator):
        sessions = FakeSessionManager(launch_error=LaunchError(details="no chrome"))
        with pytest.raises(LaunchError):
            await build_orchestrator(session_manager=sessions).scan(ScanRequest(url="https://example.com"))
        assert sessions.released == []

    @pytest.mark.asyncio
    async def test_navigation_failure_releases_session(self, build_orchestrator):
        sessions = FakeSessionManager(
            navigation_error=NavigationConnectionError(details="net::ERR_NAME_NOT_RESOLVED")
        )
        orchestrator = build_orchestrator(session_manager=sessions)

        with pytest.raises(NavigationConnectionError) as excinfo:
            await orchestrator.scan(ScanRequest(url="https://nowhere.invalid"))

        assert excinfo.value.status_code == 400
        assert len(sessions.released) == 1
        assert orchestrator.state == ScanState.failed

    @pytest.mark.asyncio
    async def test_navigation_timeout_is_400_while_budget_remains(self, build_orchestrator):
        sessions = FakeSessionManager(navigation_error=NavigationTimeout(details="slow"))
        with pytest.raises(NavigationTimeout):
            await build_orchestrator(session_manager=sessions).scan(ScanRequest(url="https://example.com"))
        assert len(sessions.released) == 1

    @pytest.mark.asyncio
    async def test_analysis_timeout_degrades_to_partial_report(self, build_orchestrator):
        sessions = FakeSessionManager()
        analyzer = FakeAnalyzer(error=AnalysisTimeout(details="axe too slow"))

        report = await build_orchestrator(session_manager=sessions, analyzer=analyzer).scan(
            ScanRequest(url="https://example.com")
        )

        assert report.findings == []
        assert report.summary.total_violations == 0
        assert report.summary.analysis_status == AnalysisStatus.timed_out
        assert report.partial is True
        assert len(sessions.released) == 1

    @pytest.mark.asyncio
    async def test_analysis_error_degrades_to_partial_report(self, build_orchestrator):
        sessions = FakeSessionManager()
        analyzer = FakeAnalyzer(error=AnalysisError(details="CSP blocked axe"))

        report = await build_orchestrator(session_manager=sessions, analyzer=analyzer).scan(
            ScanRequest(url="https://example.com")
        )

        assert report.summary.analysis_status == AnalysisStatus.failed
        assert len(sessions.released) == 1

    @pytest.mark.asyncio
    async def test_unexpected_analyzer_crash_still_releases(self, build_orchestrator):
        sessions = FakeSessionManager()
        analyzer = FakeAnalyzer(error=RuntimeError("driver went away"))

        with pytest.raises(RuntimeError):
            await build_orchestrator(session_manager=sessions, analyzer=analyzer).scan(
                ScanRequest(url="https://example.com")
            )
        assert len(sessions.released) == 1

    @pytest.mark.asyncio
    async def test_enrichment_failures_never_fail_the_scan(self, build_orchestrator):
        sessions = FakeSessionManager()
        client = FakeExplanationClient(reply=RuntimeError("model overloaded"))

        report = await build_orchestrator(
            session_manager=sessions, analyzer=FakeAnalyzer(violations(2)), client=client
        ).scan(ScanRequest(url="https://example.com"))

        assert len(report.findings) == 2
        assert all(f.ai_explanation.explanation_text == FALLBACK_EXPLANATION for f in report.findings)
        assert len(sessions.released) == 1

    @pytest.mark.asyncio
    async def test_overall_deadline_returns_typed_timeout(self, build_orchestrator, test_settings):
        settings = test_settings.model_copy(
            update={"SCAN_DEADLINE_SECONDS": 0.2, "ANALYSIS_TIMEOUT_SECONDS": 5}
        )

        class HangingAnalyzer:
            async def analyze(self, session, ruleset, timeout):
                # honours its budget the way AxeAnalyzer does
                await asyncio.sleep(timeout + 0.01)
                raise AnalysisTimeout(details="budget spent")

        sessions = FakeSessionManager()
        orchestrator = build_orchestrator(
            session_manager=sessions, analyzer=HangingAnalyzer(), settings=settings
        )

        started = time.monotonic()
        with pytest.raises(ScanTimeoutError) as excinfo:
            await orchestrator.scan(ScanRequest(url="https://example.com"))

        assert time.monotonic() - started < 1
        assert excinfo.value.status_code == 500
        assert len(sessions.released) == 1


class TestDeadlineAccounting:
    @pytest.mark.asyncio
    async def test_slow_model_degrades_to_fallbacks_within_the_deadline(self, build_orchestrator, test_settings):
        settings = test_settings.model_copy(
            update={
                "SCAN_DEADLINE_SECONDS": 1.0,
                "ENRICHMENT_CALL_TIMEOUT_SECONDS": 0.6,
                "ENRICHMENT_MAX_FINDINGS": 3,
                "ENRICHMENT_CONCURRENCY": 1,
            }
        )
        sessions = FakeSessionManager()
        client = FakeExplanationClient(reply=GOOD_REPLY, delay=5)
        orchestrator = build_orchestrator(
            session_manager=sessions, analyzer=FakeAnalyzer(violations(3)), client=client, settings=settings
        )

        started = time.monotonic()
        report = await orchestrator.scan(ScanRequest(url="https://example.com"))

        assert time.monotonic() - started < 1.5
        assert len(report.findings) == 3
        assert all(f.ai_explanation.explanation_text == FALLBACK_EXPLANATION for f in report.findings)
        assert report.partial is False
        assert len(sessions.released) == 1
        assert orchestrator.state == ScanState.completed

    @pytest.mark.asyncio
    async def test_step_timing_out_just_before_the_deadline_is_a_scan_timeout(
        self, build_orchestrator, test_settings
    ):
        settings = test_settings.model_copy(
            update={"SCAN_DEADLINE_SECONDS": 0.3, "ANALYSIS_TIMEOUT_SECONDS": 5}
        )

        class EarlyTimerAnalyzer:
            async def analyze(self, session, ruleset, timeout):
                # the step's own timer fires a hair before the scan deadline
                await asyncio.sleep(max(0.0, timeout - 0.02))
                raise AnalysisTimeout(details="budget spent")

        sessions = FakeSessionManager()
        orchestrator = build_orchestrator(
            session_manager=sessions, analyzer=EarlyTimerAnalyzer(), settings=settings
        )

        with pytest.raises(ScanTimeoutError):
            await orchestrator.scan(ScanRequest(url="https://example.com"))
        assert len(sessions.released) == 1

    @pytest.mark.asyncio
    async def test_own_step_timeout_with_budget_left_only_degrades(self, build_orchestrator, test_settings):
        settings = test_settings.model_copy(
            update={"SCAN_DEADLINE_SECONDS": 5, "ANALYSIS_TIMEOUT_SECONDS": 0.1}
        )

        class SlowAnalyzer:
            async def analyze(self, session, ruleset, timeout):
                await asyncio.sleep(timeout)
                raise AnalysisTimeout(details="axe too slow")

        report = await build_orchestrator(analyzer=SlowAnalyzer(), settings=settings).scan(
            ScanRequest(url="https://example.com")
        )

        assert report.summary.analysis_status == AnalysisStatus.timed_out
        assert report.partial is True

    @pytest.mark.asyncio
    async def test_fast_launch_failure_stays_a_launch_error(self, build_orchestrator, test_settings):
        settings = test_settings.model_copy(
            update={"SCAN_DEADLINE_SECONDS": 1, "BROWSER_LAUNCH_TIMEOUT_SECONDS": 5}
        )
        sessions = FakeSessionManager(launch_error=LaunchError(details="chrome binary missing"))

        with pytest.raises(LaunchError):
            await build_orchestrator(session_manager=sessions, settings=settings).scan(
                ScanRequest(url="https://example.com")
            )
