"""Service configuration — loads environment variables into a typed, immutable object.

Nothing here is required: a missing credential is represented as ``None``
and simply switches the corresponding stage off (search returns no
results, generation falls back to templates, the webhook is skipped).

Usage:
    from devi.config import load_config
    config = load_config()
    print(config.generation_model)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

DEFAULT_INCLUDE_DOMAINS: tuple[str, ...] = (
    "aiims.edu",
    "icmr.gov.in",
    "nbe.edu.in",
    "who.int",
    "uptodate.com",
    "ncbi.nlm.nih.gov",
    "pubmed.ncbi.nlm.nih.gov",
    "radiopaedia.org",
    "rcem.ac.uk",
    "acep.org",
)

MAX_SEARCH_RESULTS = 10


def _find_env_file() -> Path | None:
    """Search for .env file starting from this file's directory, then up."""
    current = Path(__file__).resolve().parent.parent  # src/api/
    candidates = [
        current / ".env",
        current.parent.parent / ".env",  # repo root
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    # Tavily web search
    tavily_api_key: str | None = None
    tavily_endpoint: str = "https://api.tavily.com/search"
    search_depth: str = "advanced"
    max_results: int = MAX_SEARCH_RESULTS
    include_domains: tuple[str, ...] = DEFAULT_INCLUDE_DOMAINS
    search_timeout: float = 20.0

    # Generation (any OpenAI-compatible chat completions endpoint)
    gemini_api_key: str | None = None
    generation_base_url: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    generation_model: str = "gemini-1.5-flash"
    generation_temperature: float = 0.2
    generation_max_tokens: int = 1800
    structured_output: bool = True
    generation_timeout: float = 45.0

    # Answer/feedback logging webhook
    feedback_webhook_url: str | None = None
    feedback_timeout: float = 10.0

    @property
    def search_configured(self) -> bool:
        return self.tavily_api_key is not None

    @property
    def generation_configured(self) -> bool:
        return self.gemini_api_key is not None


def _optional(name: str) -> str | None:
    """Return the stripped value of *name*, or ``None`` when unset or blank."""
    value = os.environ.get(name, "").strip()
    return value or None


def _number(name: str, default, cast=float):
    raw = _optional(name)
    if raw is None:
        return default
    try:
        return cast(raw)
    except ValueError:
        logger.warning("Ignoring malformed %s=%r, using %r", name, raw, default)
        return default


def _flag(name: str, default: bool) -> bool:
    raw = _optional(name)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _domains(name: str) -> tuple[str, ...]:
    raw = _optional(name)
    if raw is None:
        return DEFAULT_INCLUDE_DOMAINS
    return tuple(d.strip().lower() for d in raw.split(",") if d.strip())


def load_config() -> Config:
    """Load configuration from the environment (and a ``.env`` file if present)."""
    env_file = _find_env_file()
    if env_file:
        load_dotenv(env_file, override=False)

    defaults = Config()
    max_results = _number("SEARCH_MAX_RESULTS", defaults.max_results, int)

    return Config(
        tavily_api_key=_optional("TAVILY_API_KEY"),
        tavily_endpoint=_optional("TAVILY_ENDPOINT") or defaults.tavily_endpoint,
        search_depth=_optional("SEARCH_DEPTH") or defaults.search_depth,
        max_results=max(1, min(max_results, MAX_SEARCH_RESULTS)),
        include_domains=_domains("SEARCH_INCLUDE_DOMAINS"),
        search_timeout=_number("SEARCH_TIMEOUT", defaults.search_timeout),
        gemini_api_key=_optional("GEMINI_API_KEY"),
        generation_base_url=_optional("GENERATION_BASE_URL") or defaults.generation_base_url,
        generation_model=_optional("GENERATION_MODEL") or defaults.generation_model,
        generation_temperature=_number("GENERATION_TEMPERATURE", defaults.generation_temperature),
        generation_max_tokens=_number("GENERATION_MAX_TOKENS", defaults.generation_max_tokens, int),
        structured_output=_flag("GENERATION_STRUCTURED_OUTPUT", defaults.structured_output),
        generation_timeout=_number("GENERATION_TIMEOUT", defaults.generation_timeout),
        feedback_webhook_url=_optional("FEEDBACK_WEBHOOK_URL"),
        feedback_timeout=_number("FEEDBACK_TIMEOUT", defaults.feedback_timeout),
    )
