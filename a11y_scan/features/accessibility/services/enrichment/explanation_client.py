import logging
from typing import Optional, Protocol

from openai import AsyncOpenAI

from a11y_scan.platform.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert in web accessibility and a clear communicator. "
    "Always respond with valid JSON only when JSON is requested."
)


class ExplanationClient(Protocol):
    async def generate(self, prompt: str) -> str:
        ...


class OpenRouterExplanationClient:
    """
    Chat completion client for finding explanations.

    Talks to any OpenAI compatible endpoint; by default OpenRouter in front of a
    Gemini model. Retries are disabled because every call already runs against a
    short deadline owned by the caller.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str,
        model: str,
        temperature: float = 0.3,
        timeout: Optional[float] = None,
    ):
        self.model = model
        self.temperature = temperature
        self.client = AsyncOpenAI(
            base_url=base_url,
            api_key=api_key,
            timeout=timeout,
            max_retries=0,
        )

    async def generate(self, prompt: str) -> str:
        completion = await self.client.chat.completions.create(
            extra_headers={
                "X-Title": "Accessibility Scan",
            },
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
        )
        return completion.choices[0].message.content or ""


def build_explanation_client(settings: Settings = default_settings) -> Optional[ExplanationClient]:
    """None when no key is configured; the enricher then serves fallbacks only."""
    if not settings.OPENROUTER_API_KEY:
        logger.warning("OPENROUTER_API_KEY is not set, AI explanations are disabled")
        return None
    return OpenRouterExplanationClient(
        api_key=settings.OPENROUTER_API_KEY,
        base_url=settings.AI_BASE_URL,
        model=settings.AI_MODEL,
        temperature=settings.AI_TEMPERATURE,
        timeout=settings.ENRICHMENT_CALL_TIMEOUT_SECONDS,
    )
