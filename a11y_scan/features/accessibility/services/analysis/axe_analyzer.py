import logging
from typing import Any, Dict, Iterable, List, Optional

from axe_selenium_python import Axe
from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException

from a11y_scan.features.accessibility.schemas.accessibility import (
    AnalysisResult,
    FindingNode,
    ImpactLevel,
    RawFinding,
    ScanOptions,
)
from a11y_scan.features.accessibility.services.session.browser_session import NavigationSession
from a11y_scan.platform.exceptions import AnalysisError, AnalysisTimeout, InvalidInputError
from a11y_scan.platform.utils.deadline import run_blocking_with_deadline

logger = logging.getLogger(__name__)

# A reduced slice of the axe catalog keeps the audit fast on large pages
DEFAULT_RULESET = ["wcag2a", "wcag2aa", "wcag21a", "wcag21aa"]

ALLOWED_TAGS = {"wcag2a", "wcag2aa", "wcag2aaa", "wcag21a", "wcag21aa", "wcag22aa", "best-practice"}

WCAG_LEVEL_TAGS = {
    "A": ["wcag2a", "wcag21a"],
    "AA": ["wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "wcag22aa"],
    "AAA": ["wcag2a", "wcag2aa", "wcag2aaa", "wcag21a", "wcag21aa", "wcag22aa"],
}

# A rejected axe.run reports back as {"error": ...} instead of hanging until the script timeout
AXE_RUN_SCRIPT = """
var callback = arguments[arguments.length - 1];
axe.run(document, arguments[0]).then(
    function (results) { callback(results); },
    function (err) { callback({error: String((err && err.message) || err)}); }
);
"""


def resolve_ruleset(options: Optional[ScanOptions]) -> List[str]:
    """Pick the axe tags to run. Explicit tags win over a WCAG level."""
    if options is None:
        return list(DEFAULT_RULESET)

    if options.tags:
        unknown = sorted(set(options.tags) - ALLOWED_TAGS)
        if unknown:
            raise InvalidInputError(
                message="Unsupported accessibility rule tags",
                details=f"Unknown tags: {', '.join(unknown)}. Allowed: {', '.join(sorted(ALLOWED_TAGS))}",
            )
        # keep caller order, drop duplicates
        return list(dict.fromkeys(options.tags))

    if options.wcag_level:
        return list(WCAG_LEVEL_TAGS[options.wcag_level])

    return list(DEFAULT_RULESET)


def _flatten_targets(target: Any) -> List[str]:
    """axe nests selectors for iframes and shadow roots; keep only the strings."""
    if isinstance(target, str):
        return [target]
    if isinstance(target, (list, tuple)):
        flattened = []
        for item in target:
            flattened.extend(_flatten_targets(item))
        return flattened
    return []


def _parse_impact(value: Any) -> Optional[ImpactLevel]:
    try:
        return ImpactLevel(value)
    except ValueError:
        return None


def parse_violation(violation: Dict[str, Any]) -> RawFinding:
    return RawFinding(
        id=violation.get("id", "unknown"),
        impact=_parse_impact(violation.get("impact")),
        description=violation.get("description") or "",
        help=violation.get("help") or "",
        help_url=violation.get("helpUrl") or "",
        tags=list(violation.get("tags") or []),
        nodes=[
            FindingNode(
                html=node.get("html") or "",
                target=_flatten_targets(node.get("target")),
                failure_summary=node.get("failureSummary") or "",
            )
            for node in violation.get("nodes") or []
        ],
    )


def parse_results(raw: Dict[str, Any]) -> AnalysisResult:
    if not isinstance(raw, dict):
        raise ValueError(f"Unexpected axe result type: {type(raw).__name__}")
    if raw.get("error"):
        raise ValueError(f"axe.run failed: {raw['error']}")

    return AnalysisResult(
        violations=[parse_violation(v) for v in raw.get("violations") or []],
        passes=list(raw.get("passes") or []),
        incomplete=list(raw.get("incomplete") or []),
    )


class AxeAnalyzer:
    """Runs axe-core inside the session's page and returns categorized results."""

    def _run_axe(self, driver: webdriver.Chrome, ruleset: Iterable[str], timeout: float) -> Dict[str, Any]:
        driver.set_script_timeout(timeout)
        # only the bundled axe-core comes from Axe; the run goes through AXE_RUN_SCRIPT
        Axe(driver).inject()
        options = {
            "runOnly": {"type": "tag", "values": list(ruleset)},
            # inapplicable rules are never reported, skip serializing them
            "resultTypes": ["violations", "passes", "incomplete"],
        }
        return driver.execute_async_script(AXE_RUN_SCRIPT, options)

    async def analyze(
        self,
        session: NavigationSession,
        ruleset: Iterable[str],
        timeout: float,
    ) -> AnalysisResult:
        """
        Raises:
            AnalysisTimeout: axe did not finish within `timeout`
            AnalysisError: axe could not be injected or returned garbage
        """
        driver = session.require_driver()
        ruleset = list(ruleset)

        try:
            raw = await run_blocking_with_deadline(
                self._run_axe,
                driver,
                ruleset,
                timeout,
                timeout=timeout,
                on_timeout=lambda: AnalysisTimeout(details=f"axe did not finish within {timeout:.1f}s"),
            )
            result = parse_results(raw)
        except AnalysisTimeout:
            raise
        except TimeoutException as e:
            # the webdriver script timeout fired before our own timer
            raise AnalysisTimeout(details=str(e.msg or e)) from e
        except (WebDriverException, ValueError) as e:
            raise AnalysisError(details=str(e)) from e

        logger.info(
            f"Analysis of {session.current_url} complete: {len(result.violations)} violations, "
            f"{len(result.passes)} passes, {len(result.incomplete)} incomplete"
        )
        return result
