"""Answer/feedback logging webhook (e.g. a Make or Sheets hook).

Delivery is fire-and-forget: ``main.py`` schedules ``deliver`` as a
background task after the response is sent, and any failure here is
logged and dropped.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone

import httpx

from devi.config import Config
from devi.models import AnswerResult

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def answer_log_payload(question: str, result: AnswerResult) -> dict:
    """Row logged for every answered question (rating filled in later by the UI)."""
    return {
        "ts": _now(),
        "mode": result.mode.value,
        "question": question,
        "answer_html": result.answer,
        "sources_json": json.dumps(result.sources, ensure_ascii=False),
        "rating": None,
        "confidence_band": result.confidence.band,
        "confidence_pct": result.confidence.pct,
    }


def feedback_payload(feedback: dict) -> dict:
    """Manual thumbs-up/down feedback, stamped with the receive time."""
    return {"ts": _now(), **feedback}


class FeedbackClient:
    """Posts JSON payloads to the configured webhook."""

    def __init__(self, config: Config, http_client: httpx.AsyncClient | None = None):
        self._url = config.feedback_webhook_url
        self._timeout = config.feedback_timeout
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return self._url is not None

    async def deliver(self, payload: dict) -> bool:
        if self._url is None:
            return False
        try:
            if self._http_client is not None:
                response = await self._http_client.post(self._url, json=payload)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._url, json=payload)
            response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Webhook delivery failed: %s", e)
            return False
        logger.debug("Webhook delivered (HTTP %d)", response.status_code)
        return True
