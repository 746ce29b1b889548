"""LLM generation via an OpenAI-compatible chat completions endpoint.

Defaults to Gemini's OpenAI-compatible API.  ``generate`` never raises:
a missing key, an API error, a timeout or an empty completion all come
back as ``None`` and the pipeline switches to fallback templates.
"""

from __future__ import annotations

import logging

import openai
from openai import AsyncOpenAI

from devi.config import Config

logger = logging.getLogger(__name__)


class GenerationClient:
    """Handles making calls to the generation API and returning raw text."""

    def __init__(self, config: Config, async_client: AsyncOpenAI | None = None):
        self._config = config
        self._client = async_client
        if self._client is None and config.generation_configured:
            self._client = AsyncOpenAI(
                api_key=config.gemini_api_key,
                base_url=config.generation_base_url,
                timeout=config.generation_timeout,
                max_retries=1,
            )

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def generate(self, prompt: str, *, force_json: bool = False) -> str | None:
        """Return the model's raw text for *prompt*, or ``None`` if unusable."""
        if self._client is None:
            logger.info("Generation skipped — GEMINI_API_KEY not configured")
            return None

        params = {
            "model": self._config.generation_model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": self._config.generation_temperature,
            "max_tokens": self._config.generation_max_tokens,
        }
        if force_json:
            params["response_format"] = {"type": "json_object"}

        try:
            logger.debug(
                "Calling LLM (model=%s, json=%s, prompt=%d chars)",
                self._config.generation_model,
                force_json,
                len(prompt),
            )
            response = await self._client.chat.completions.create(**params)
        except openai.OpenAIError:
            logger.warning("Generation call failed", exc_info=True)
            return None

        if not response.choices:
            logger.warning("Generation returned no choices")
            return None

        text = response.choices[0].message.content or ""
        if not text.strip():
            logger.warning("Generation returned empty content")
            return None
        return text
