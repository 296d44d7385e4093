"""
Test configuration and fixtures for the accessibility scan API.

No test starts a real browser or talks to a model: the session manager, analyzer
and explanation client are replaced with in-memory fakes that record what was
called, so resource handling can be asserted directly.
"""

import asyncio
import os
from typing import Generator, List, Optional

from dotenv import load_dotenv

import pytest
from fastapi.testclient import TestClient

load_dotenv()

# keep tests offline and fast regardless of the local .env
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["SCAN_DEADLINE_SECONDS"] = "5"

from a11y_scan.features.accessibility.schemas.accessibility import (  # noqa: E402
    AnalysisResult,
    FindingNode,
    ImpactLevel,
    RawFinding,
)
from a11y_scan.features.accessibility.services.enrichment.finding_enricher import (  # noqa: E402
    FindingEnricher,
)
from a11y_scan.features.accessibility.services.orchestration.scan_orchestrator import (  # noqa: E402
    ScanOrchestrator,
)
from a11y_scan.features.accessibility.services.session.browser_session import (  # noqa: E402
    NavigationSession,
)
from a11y_scan.platform.config import Settings  # noqa: E402


def make_finding(
    rule_id: str = "image-alt",
    impact: Optional[ImpactLevel] = ImpactLevel.critical,
    description: str = "Ensures <img> elements have alternate text",
) -> RawFinding:
    return RawFinding(
        id=rule_id,
        impact=impact,
        description=description,
        help="Images must have alternate text",
        help_url=f"https://dequeuniversity.com/rules/axe/4.8/{rule_id}",
        tags=["wcag2a", "wcag111"],
        nodes=[
            FindingNode(
                html='<img src="logo.png">',
                target=["img"],
                failure_summary="Fix any of the following: Element does not have an alt attribute",
            )
        ],
    )


class FakeSessionManager:
    """Stands in for BrowserSessionManager and counts every lifecycle call."""

    def __init__(self, launch_error=None, navigation_error=None):
        self.launch_error = launch_error
        self.navigation_error = navigation_error
        self.launch_count = 0
        self.navigated: List[str] = []
        self.released: List[NavigationSession] = []

    async def acquire(self, timeout=None) -> NavigationSession:
        self.launch_count += 1
        if self.launch_error is not None:
            raise self.launch_error
        return NavigationSession(driver=object())

    async def navigate(self, session, url, timeout) -> None:
        if self.navigation_error is not None:
            raise self.navigation_error
        self.navigated.append(url)
        session.current_url = url

    async def release(self, session) -> None:
        self.released.append(session)
        session.released = True
        session.driver = None


class FakeAnalyzer:
    def __init__(self, result: Optional[AnalysisResult] = None, error: Optional[Exception] = None):
        self.result = result or AnalysisResult()
        self.error = error
        self.calls = []

    async def analyze(self, session, ruleset, timeout) -> AnalysisResult:
        self.calls.append(list(ruleset))
        if self.error is not None:
            raise self.error
        return self.result


class FakeExplanationClient:
    """Returns canned replies; a reply that is an Exception is raised instead."""

    def __init__(self, reply="", delay: float = 0.0):
        self.reply = reply
        self.delay = delay
        self.prompts: List[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.reply(prompt) if callable(self.reply) else self.reply
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        OPENROUTER_API_KEY=None,
        SCAN_DEADLINE_SECONDS=5,
        BROWSER_LAUNCH_TIMEOUT_SECONDS=2,
        NAVIGATION_TIMEOUT_SECONDS=2,
        ANALYSIS_TIMEOUT_SECONDS=2,
        ENRICHMENT_CALL_TIMEOUT_SECONDS=0.5,
        ENRICHMENT_MAX_FINDINGS=3,
        ENRICHMENT_CONCURRENCY=2,
        AI_SUMMARY_ENABLED=False,
    )


@pytest.fixture
def build_orchestrator(test_settings):
    def _build(session_manager=None, analyzer=None, client=None, settings=None):
        settings = settings or test_settings
        return ScanOrchestrator(
            session_manager=session_manager or FakeSessionManager(),
            analyzer=analyzer or FakeAnalyzer(),
            enricher=FindingEnricher(client, concurrency=settings.ENRICHMENT_CONCURRENCY),
            settings=settings,
        )

    return _build


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from a11y_scan.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    This fixture provides a clean TestClient instance for each test function,
    ensuring proper isolation between tests.
    """
    with TestClient(test_app) as test_client:
        yield test_client
    test_app.dependency_overrides.clear()
