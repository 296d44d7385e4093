from enum import Enum
from typing import List, Optional

from a11y_scan.features.accessibility.schemas.accessibility import (
    AnalysisResult,
    AnalysisStatus,
    ScanReport,
    ScanRequest,
)
from a11y_scan.features.accessibility.services.analysis.axe_analyzer import (
    AxeAnalyzer,
    resolve_ruleset,
)
from a11y_scan.features.accessibility.services.enrichment.explanation_client import (
    build_explanation_client,
)
from a11y_scan.features.accessibility.services.enrichment.finding_enricher import (
    FindingEnricher,
    remaining_violation_count,
)
from a11y_scan.features.accessibility.services.orchestration.report_builder import build_report
from a11y_scan.features.accessibility.services.session.browser_session import (
    BrowserSessionManager,
    NavigationSession,
)
from a11y_scan.platform.config import Settings, settings as default_settings
from a11y_scan.platform.exceptions import (
    AnalysisError,
    AnalysisTimeout,
    InvalidInputError,
    LaunchError,
    NavigationTimeout,
    ScanTimeoutError,
)
from a11y_scan.platform.logger import get_logger
from a11y_scan.platform.utils.deadline import Deadline
from a11y_scan.platform.utils.url_validator import validate_url

logger = get_logger(__name__)

# a step that times out this close to the scan deadline lost to the deadline
DEADLINE_SLACK_SECONDS = 0.05


class ScanState(str, Enum):
    idle = "idle"
    validating_input = "validating_input"
    session_acquired = "session_acquired"
    navigated = "navigated"
    analyzed = "analyzed"
    enriched = "enriched"
    releasing_session = "releasing_session"
    completed = "completed"
    failed = "failed"


class ScanOrchestrator:
    """
    Runs one scan end to end: validate, launch, navigate, analyze, enrich, report.

    The whole path up to enrichment shares one deadline. Launch and navigation
    failures end the scan; analysis and enrichment problems only degrade the report.
    The browser session is released on every exit path.
    """

    def __init__(
        self,
        session_manager: BrowserSessionManager,
        analyzer: AxeAnalyzer,
        enricher: FindingEnricher,
        settings: Settings = default_settings,
    ):
        self.session_manager = session_manager
        self.analyzer = analyzer
        self.enricher = enricher
        self.settings = settings
        self.state = ScanState.idle

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "ScanOrchestrator":
        return cls(
            session_manager=BrowserSessionManager.from_settings(settings),
            analyzer=AxeAnalyzer(),
            enricher=FindingEnricher(
                build_explanation_client(settings),
                concurrency=settings.ENRICHMENT_CONCURRENCY,
            ),
            settings=settings,
        )

    def _transition(self, state: ScanState) -> None:
        logger.debug(f"Scan state {self.state.value} -> {state.value}")
        self.state = state

    def _timed_out(self, deadline: Deadline, step: str) -> ScanTimeoutError:
        return ScanTimeoutError(
            details=f"Scan exceeded {deadline.seconds:.0f}s while {step}"
        )

    async def scan(self, request: ScanRequest) -> ScanReport:
        """
        Raises:
            InvalidInputError: missing/malformed URL or unsupported options (before any launch)
            LaunchError: the browser could not be started
            NavigationError: the target could not be loaded
            ScanTimeoutError: the overall deadline ran out
        """
        deadline = Deadline(self.settings.SCAN_DEADLINE_SECONDS)

        self._transition(ScanState.validating_input)
        is_valid, url, error = validate_url(request.url)
        if not is_valid:
            self._transition(ScanState.failed)
            logger.warning(f"Rejected scan request: {error}")
            raise InvalidInputError(message=error)
        try:
            ruleset = resolve_ruleset(request.options)
        except InvalidInputError:
            self._transition(ScanState.failed)
            raise

        logger.info(f"Starting accessibility scan for {url}")
        session: Optional[NavigationSession] = None
        succeeded = False
        try:
            session = await self._acquire(deadline)
            self._transition(ScanState.session_acquired)

            await self._navigate(session, url, deadline)
            self._transition(ScanState.navigated)

            analysis, status = await self._analyze(session, ruleset, deadline)
            self._transition(ScanState.analyzed)

            max_count = self.settings.ENRICHMENT_MAX_FINDINGS
            # per-call budgets come out of the scan deadline; enrichment never fails the scan
            findings = await self.enricher.enrich(
                analysis.violations,
                max_count,
                self.settings.ENRICHMENT_CALL_TIMEOUT_SECONDS,
                deadline=deadline,
            )
            self._transition(ScanState.enriched)

            ai_summary = None
            if self.settings.AI_SUMMARY_ENABLED:
                ai_summary = await self.enricher.summarize(
                    url,
                    len(analysis.violations),
                    analysis.violations,
                    deadline.budget(self.settings.ENRICHMENT_CALL_TIMEOUT_SECONDS),
                )

            report = build_report(
                url=url,
                analysis=analysis,
                status=status,
                findings=findings,
                remaining_violation_count=remaining_violation_count(len(analysis.violations), max_count),
                processing_time_ms=deadline.elapsed_ms(),
                ai_summary_text=ai_summary,
            )
            succeeded = True
        finally:
            if session is not None:
                self._transition(ScanState.releasing_session)
                await self.session_manager.release(session)
            if not succeeded:
                self._transition(ScanState.failed)

        self._transition(ScanState.completed)
        logger.info(
            f"Scan of {url} finished in {report.processing_time_ms}ms: "
            f"{report.summary.total_violations} violations, {report.summary.total_passes} passes"
        )
        return report

    def _lost_to_deadline(self, deadline: Deadline, binding: bool) -> bool:
        # timers may fire slightly before the deadline itself
        return binding and deadline.remaining() <= DEADLINE_SLACK_SECONDS

    async def _acquire(self, deadline: Deadline) -> NavigationSession:
        launch_timeout = self.settings.BROWSER_LAUNCH_TIMEOUT_SECONDS
        binding = deadline.is_binding(launch_timeout)
        try:
            return await self.session_manager.acquire(deadline.budget(launch_timeout))
        except LaunchError as e:
            if self._lost_to_deadline(deadline, binding):
                raise self._timed_out(deadline, "starting the browser") from e
            raise

    async def _navigate(self, session: NavigationSession, url: str, deadline: Deadline) -> None:
        nav_timeout = self.settings.NAVIGATION_TIMEOUT_SECONDS
        binding = deadline.is_binding(nav_timeout)
        try:
            await self.session_manager.navigate(session, url, deadline.budget(nav_timeout))
        except NavigationTimeout as e:
            if self._lost_to_deadline(deadline, binding):
                raise self._timed_out(deadline, "loading the page") from e
            raise

    async def _analyze(self, session: NavigationSession, ruleset: List[str], deadline: Deadline):
        analysis_timeout = self.settings.ANALYSIS_TIMEOUT_SECONDS
        binding = deadline.is_binding(analysis_timeout)
        try:
            analysis = await self.analyzer.analyze(session, ruleset, deadline.budget(analysis_timeout))
            return analysis, AnalysisStatus.completed
        except AnalysisTimeout as e:
            if self._lost_to_deadline(deadline, binding):
                raise self._timed_out(deadline, "analyzing the page") from e
            logger.warning(f"Analysis timed out, continuing with no findings: {e.details}")
            return AnalysisResult(), AnalysisStatus.timed_out
        except AnalysisError as e:
            logger.warning(f"Analysis failed, continuing with no findings: {e.details}")
            return AnalysisResult(), AnalysisStatus.failed


def get_scan_orchestrator() -> ScanOrchestrator:
    """Request scoped: each scan gets its own orchestrator and collaborators."""
    return ScanOrchestrator.from_settings(default_settings)
