"""Tests for the answer/feedback webhook client."""

from __future__ import annotations

import dataclasses
import json

import httpx
import pytest

from devi.assembler import assemble
from devi.config import Config
from devi.fallback import fallback
from devi.feedback import FeedbackClient, answer_log_payload, feedback_payload
from devi.modes import Mode


class TestPayloads:
    def test_answer_log_payload(self, sources) -> None:
        result = assemble(fallback(Mode.ORTHO, sources), sources, Mode.ORTHO)
        payload = answer_log_payload("Gartland II?", result)

        assert payload["mode"] == "ortho"
        assert payload["question"] == "Gartland II?"
        assert payload["answer_html"] == result.answer
        assert json.loads(payload["sources_json"]) == result.sources
        assert payload["rating"] is None
        assert payload["confidence_band"] == "Moderate"
        assert payload["confidence_pct"] == 36
        assert payload["ts"].endswith("+00:00")

    def test_feedback_payload_keeps_fields(self) -> None:
        payload = feedback_payload({"question": "q", "rating": "down"})
        assert payload["rating"] == "down"
        assert payload["question"] == "q"
        assert "ts" in payload


class TestFeedbackClient:
    """Test FeedbackClient.deliver()."""

    @pytest.mark.asyncio
    async def test_unconfigured_is_noop(self, mock_http) -> None:
        http, requests = mock_http(lambda r: httpx.Response(200))
        client = FeedbackClient(Config(), http_client=http)
        assert client.configured is False
        assert await client.deliver({"a": 1}) is False
        assert requests == []

    @pytest.mark.asyncio
    async def test_posts_json(self, config, mock_http) -> None:
        http, requests = mock_http(lambda r: httpx.Response(200))
        assert await FeedbackClient(config, http_client=http).deliver({"rating": "up"}) is True
        assert str(requests[0].url) == "https://hooks.test/devi"
        assert json.loads(requests[0].content) == {"rating": "up"}

    @pytest.mark.asyncio
    async def test_http_error_status_is_swallowed(self, config, mock_http) -> None:
        http, _ = mock_http(lambda r: httpx.Response(503))
        assert await FeedbackClient(config, http_client=http).deliver({"rating": "up"}) is False

    @pytest.mark.asyncio
    async def test_connection_error_is_swallowed(self, config, mock_http, caplog) -> None:
        def _fail(request):
            raise httpx.ConnectError("refused", request=request)

        http, _ = mock_http(_fail)
        assert await FeedbackClient(config, http_client=http).deliver({"rating": "up"}) is False
        assert "Webhook delivery failed" in caplog.text

    @pytest.mark.asyncio
    async def test_malformed_url_is_swallowed(self, config, mock_http, caplog) -> None:
        bad = dataclasses.replace(config, feedback_webhook_url="https://\x00hooks.test/devi")
        http, requests = mock_http(lambda r: httpx.Response(200))
        assert await FeedbackClient(bad, http_client=http).deliver({"rating": "up"}) is False
        assert requests == []
        assert "Webhook delivery failed" in caplog.text
