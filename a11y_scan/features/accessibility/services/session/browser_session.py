import logging
import os
import shutil
import tempfile
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from selenium import webdriver
from selenium.common.exceptions import TimeoutException, WebDriverException
from selenium.webdriver.chrome.options import Options
from selenium.webdriver.chrome.service import Service
from webdriver_manager.chrome import ChromeDriverManager

from a11y_scan.features.accessibility.services.session.request_filter import (
    RequestFilter,
    blocked_url_patterns,
    blocks_images,
    should_allow,
)
from a11y_scan.platform.config import Settings, settings as default_settings
from a11y_scan.platform.exceptions import (
    LaunchError,
    NavigationConnectionError,
    NavigationError,
    NavigationTimeout,
    TeardownError,
)
from a11y_scan.platform.utils.deadline import run_blocking_with_deadline

logger = logging.getLogger(__name__)

# Chrome network error codes that mean the target could not be reached at all
CONNECTION_ERROR_CODES = (
    "ERR_NAME_NOT_RESOLVED",
    "ERR_NAME_RESOLUTION_FAILED",
    "ERR_CONNECTION_REFUSED",
    "ERR_CONNECTION_RESET",
    "ERR_CONNECTION_CLOSED",
    "ERR_CONNECTION_FAILED",
    "ERR_CONNECTION_TIMED_OUT",
    "ERR_ADDRESS_UNREACHABLE",
    "ERR_ADDRESS_INVALID",
    "ERR_INTERNET_DISCONNECTED",
    "ERR_CERT_",
    "ERR_SSL_",
)

MANAGED_CHROME_BINARY = "/opt/chrome/chrome"
MANAGED_CHROMEDRIVER = "/opt/chromedriver"
TEARDOWN_TIMEOUT_SECONDS = 5.0


@dataclass
class SessionConfig:
    runtime: str = "local"
    chrome_binary_path: Optional[str] = None
    chromedriver_path: Optional[str] = None
    viewport_width: int = 1280
    viewport_height: int = 800
    user_agent: Optional[str] = None
    launch_timeout: float = 8.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SessionConfig":
        return cls(
            runtime=resolve_runtime(settings.BROWSER_RUNTIME),
            chrome_binary_path=settings.CHROME_BINARY_PATH,
            chromedriver_path=settings.CHROMEDRIVER_PATH,
            viewport_width=settings.VIEWPORT_WIDTH,
            viewport_height=settings.VIEWPORT_HEIGHT,
            user_agent=settings.BROWSER_USER_AGENT,
            launch_timeout=settings.BROWSER_LAUNCH_TIMEOUT_SECONDS,
        )


def resolve_runtime(configured: str) -> str:
    if configured != "auto":
        return configured
    return "managed" if os.environ.get("AWS_LAMBDA_FUNCTION_NAME") else "local"


@dataclass
class NavigationSession:
    """One browser process and its single tab, owned by exactly one scan."""

    driver: Optional[webdriver.Chrome]
    profile_dir: Optional[str] = None
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    current_url: Optional[str] = None
    released: bool = False

    def require_driver(self) -> webdriver.Chrome:
        if self.released or self.driver is None:
            raise RuntimeError(f"Session {self.id} has already been released")
        return self.driver


def classify_navigation_error(url: str, exc: Exception) -> NavigationError:
    message = str(getattr(exc, "msg", None) or exc)
    if isinstance(exc, TimeoutException):
        return NavigationTimeout(details=f"Timed out loading {url}")
    if any(code in message for code in CONNECTION_ERROR_CODES):
        return NavigationConnectionError(details=message.strip())
    return NavigationError(details=message.strip() or exc.__class__.__name__)


class BrowserSessionManager:
    """
    Owns the lifecycle of scan sessions: launch, network filtering, navigation and
    teardown. Every acquire gets a brand new Chrome with its own throwaway profile;
    nothing is pooled or reused between scans.
    """

    def __init__(self, config: SessionConfig, request_filter: RequestFilter = should_allow):
        self.config = config
        self.request_filter = request_filter

    @classmethod
    def from_settings(cls, settings: Settings = default_settings) -> "BrowserSessionManager":
        return cls(SessionConfig.from_settings(settings))

    # ── Launch ──────────────────────────────────

    def build_options(self, profile_dir: str) -> Options:
        chrome_options = Options()
        chrome_options.add_argument("--headless=new")
        chrome_options.add_argument("--no-sandbox")
        chrome_options.add_argument("--disable-setuid-sandbox")
        chrome_options.add_argument("--disable-dev-shm-usage")
        chrome_options.add_argument("--disable-gpu")
        chrome_options.add_argument("--disable-extensions")
        chrome_options.add_argument(f"--user-data-dir={profile_dir}")
        chrome_options.add_argument(
            f"--window-size={self.config.viewport_width},{self.config.viewport_height}"
        )
        if self.config.user_agent:
            chrome_options.add_argument(f"--user-agent={self.config.user_agent}")

        # stop waiting at DOMContentLoaded instead of the full load event
        chrome_options.page_load_strategy = "eager"

        if blocks_images(self.request_filter):
            chrome_options.add_experimental_option(
                "prefs", {"profile.managed_default_content_settings.images": 2}
            )

        if self.config.runtime == "managed":
            chrome_options.add_argument("--single-process")
            chrome_options.add_argument("--no-zygote")
            chrome_options.binary_location = self.config.chrome_binary_path or MANAGED_CHROME_BINARY
        elif self.config.chrome_binary_path:
            chrome_options.binary_location = self.config.chrome_binary_path

        return chrome_options

    def build_service(self) -> Service:
        if self.config.runtime == "managed":
            return Service(executable_path=self.config.chromedriver_path or MANAGED_CHROMEDRIVER)
        if self.config.chromedriver_path:
            return Service(executable_path=self.config.chromedriver_path)
        return Service(ChromeDriverManager().install())

    def _launch_driver(self, profile_dir: str) -> webdriver.Chrome:
        return webdriver.Chrome(service=self.build_service(), options=self.build_options(profile_dir))

    async def acquire(self, timeout: Optional[float] = None) -> NavigationSession:
        """Start a fresh headless Chrome. Raises LaunchError when it cannot start in time."""
        timeout = self.config.launch_timeout if timeout is None else timeout
        if timeout <= 0:
            raise LaunchError(details="No time left to start the browser")
        profile_dir = tempfile.mkdtemp(prefix="a11y-scan-")

        def _quit_late_driver(driver: webdriver.Chrome) -> None:
            logger.warning("Browser finished launching after its deadline, shutting it down")
            _teardown_driver(driver)

        def _remove_profile() -> None:
            shutil.rmtree(profile_dir, ignore_errors=True)

        try:
            driver = await run_blocking_with_deadline(
                self._launch_driver,
                profile_dir,
                timeout=timeout,
                on_timeout=lambda: LaunchError(details=f"Browser did not start within {timeout:.1f}s"),
                on_late_result=_quit_late_driver,
                on_late_settled=_remove_profile,
            )
        except LaunchError:
            raise
        except Exception as e:
            _remove_profile()
            logger.error(f"Browser launch failed: {str(e)}")
            raise LaunchError(details=str(e)) from e

        session = NavigationSession(driver=driver, profile_dir=profile_dir)
        logger.info(f"Session {session.id} acquired ({self.config.runtime} runtime)")
        return session

    # ── Navigation ──────────────────────────────

    def _prepare_network(self, driver: webdriver.Chrome) -> None:
        patterns = blocked_url_patterns(self.request_filter)
        if not patterns:
            return
        driver.execute_cdp_cmd("Network.enable", {})
        driver.execute_cdp_cmd("Network.setBlockedURLs", {"urls": patterns})

    def _load(self, driver: webdriver.Chrome, url: str, timeout: float) -> None:
        self._prepare_network(driver)
        # selenium only accepts whole seconds here; the race below enforces the exact budget
        driver.set_page_load_timeout(max(1, int(timeout + 0.999)))
        driver.get(url)

    async def navigate(self, session: NavigationSession, url: str, timeout: float) -> None:
        """
        Load `url` in the session's tab, waiting only for DOM-ready.

        Raises:
            NavigationConnectionError: DNS/connection failure
            NavigationTimeout: DOM-ready not reached within `timeout`
            NavigationError: anything else the browser reports
        """
        driver = session.require_driver()
        try:
            await run_blocking_with_deadline(
                self._load,
                driver,
                url,
                timeout,
                timeout=timeout,
                on_timeout=lambda: NavigationTimeout(details=f"Timed out loading {url}"),
            )
        except NavigationError:
            logger.warning(f"Navigation to {url} timed out in session {session.id}")
            raise
        except WebDriverException as e:
            error = classify_navigation_error(url, e)
            logger.warning(f"Navigation to {url} failed: {error.__class__.__name__}: {error.details}")
            raise error from e

        session.current_url = url
        logger.info(f"Session {session.id} reached DOM-ready for {url}")

    # ── Teardown ────────────────────────────────

    async def release(self, session: NavigationSession) -> None:
        """Close the tab, then the browser. Never raises; teardown problems are only logged."""
        if session.released:
            return
        session.released = True
        driver, session.driver = session.driver, None

        try:
            if driver is not None:
                await run_blocking_with_deadline(
                    _teardown_driver,
                    driver,
                    timeout=TEARDOWN_TIMEOUT_SECONDS,
                    on_timeout=lambda: TeardownError(details="Browser did not shut down in time"),
                )
        except TeardownError as e:
            logger.warning(f"Session {session.id}: {e.message} {e.details or ''}")
        except Exception as e:
            logger.warning(f"Session {session.id}: teardown failed: {str(e)}")
        finally:
            if session.profile_dir:
                shutil.rmtree(session.profile_dir, ignore_errors=True)

        logger.info(f"Session {session.id} released")

    @asynccontextmanager
    async def session(self, timeout: Optional[float] = None) -> AsyncIterator[NavigationSession]:
        session = await self.acquire(timeout)
        try:
            yield session
        finally:
            await self.release(session)


def _teardown_driver(driver: webdriver.Chrome) -> None:
    """Page first, then the process. A failed close still quits."""
    try:
        driver.close()
    except Exception as e:
        logger.warning(f"Closing page failed: {str(e)}")
    try:
        driver.quit()
    except Exception as e:
        raise TeardownError(details=str(e)) from e
