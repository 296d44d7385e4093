from functools import lru_cache
from pathlib import Path
from typing import List, Literal, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── App ─────────────────────────────────────
    APP_NAME: str = "Accessibility Scan API"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: Literal["local", "staging", "production"] = "local"
    DEBUG: bool = False
    API_V1_PREFIX: str = "/api/v1"
    CORS_ORIGINS: List[str] = ["*"]

    # ── Logging ─────────────────────────────────
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"
    LOG_FILE_NAME: str = "accessibility_scan.log"

    # ── Browser ─────────────────────────────────
    # "managed" is a constrained serverless runtime with a bundled chrome build,
    # "local" is a full install, "auto" picks managed when running inside Lambda.
    BROWSER_RUNTIME: Literal["auto", "local", "managed"] = "auto"
    CHROME_BINARY_PATH: Optional[str] = None
    CHROMEDRIVER_PATH: Optional[str] = None
    VIEWPORT_WIDTH: int = 1280
    VIEWPORT_HEIGHT: int = 800
    BROWSER_USER_AGENT: Optional[str] = None

    # ── Deadlines (seconds) ─────────────────────
    SCAN_DEADLINE_SECONDS: float = 20.0
    BROWSER_LAUNCH_TIMEOUT_SECONDS: float = 8.0
    NAVIGATION_TIMEOUT_SECONDS: float = 12.0
    ANALYSIS_TIMEOUT_SECONDS: float = 8.0
    ENRICHMENT_CALL_TIMEOUT_SECONDS: float = 6.0

    # ── Enrichment ──────────────────────────────
    ENRICHMENT_MAX_FINDINGS: int = 5
    ENRICHMENT_CONCURRENCY: int = 3
    AI_SUMMARY_ENABLED: bool = True

    OPENROUTER_API_KEY: Optional[str] = None
    AI_BASE_URL: str = "https://openrouter.ai/api/v1"
    AI_MODEL: str = "google/gemini-2.0-flash-001"
    AI_TEMPERATURE: float = 0.3

    class Config:
        env_file = str(Path(__file__).parent.parent.parent / ".env")
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
