"""Tests for the Tavily web search client."""

from __future__ import annotations

import dataclasses
import json

import httpx
import pytest

from devi.config import Config
from devi.search_tool import (
    SNIPPET_CHARS,
    SearchClient,
    SearchResult,
    authority_score,
    dedupe_results,
    default_title,
    rank_results,
    strip_url,
    to_sources,
)


def _tavily(results: list[dict]):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"results": results})

    return handler


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


class TestUrlHelpers:
    """Test URL stripping and fallback titles."""

    def test_strip_url_drops_query_and_fragment(self) -> None:
        assert strip_url("https://who.int/a/b?utm=x#top") == "https://who.int/a/b"

    def test_strip_url_keeps_plain_url(self) -> None:
        assert strip_url("https://who.int/a") == "https://who.int/a"

    def test_default_title(self) -> None:
        assert default_title("https://www.Radiopaedia.org/articles/x/") == "radiopaedia.org/articles/x"


class TestDedupeResults:
    """Test URL-based de-duplication."""

    def test_first_seen_wins(self) -> None:
        results = [
            SearchResult(url="https://a.org/x?ref=1", title="first"),
            SearchResult(url="https://b.org/y", title="other"),
            SearchResult(url="https://a.org/x#frag", title="dup"),
        ]
        unique = dedupe_results(results)
        assert [r.title for r in unique] == ["first", "other"]

    def test_empty(self) -> None:
        assert dedupe_results([]) == []


class TestRanking:
    """Test authority scoring and stable ranking."""

    def test_known_domains_score_high(self) -> None:
        assert authority_score("https://www.who.int/news") == 100
        assert authority_score("https://pubmed.ncbi.nlm.nih.gov/123") == 90

    def test_parent_domain_match(self) -> None:
        assert authority_score("https://www.cdc.gov/x") == 95
        assert authority_score("https://health.nih.gov/x") == 90

    def test_generic_gov_and_academic(self) -> None:
        assert authority_score("https://health.state.gov/x") == 70
        assert authority_score("https://med.stanford.edu/x") == 60
        assert authority_score("https://www.ucl.ac.uk/x") == 60

    def test_unknown_domain_scores_zero(self) -> None:
        assert authority_score("https://someblog.example.com/post") == 0

    def test_rank_is_stable(self) -> None:
        results = [
            SearchResult(url="https://blog-a.com/1", title="a"),
            SearchResult(url="https://who.int/1", title="who"),
            SearchResult(url="https://blog-b.com/1", title="b"),
            SearchResult(url="https://radiopaedia.org/1", title="rp"),
        ]
        ranked = rank_results(results)
        assert [r.title for r in ranked] == ["who", "rp", "a", "b"]


class TestToSources:
    def test_ids_are_one_based_in_order(self) -> None:
        sources = to_sources([
            SearchResult(url="https://a.org", title="A", snippet="sa"),
            SearchResult(url="https://b.org", title="B"),
        ])
        assert [s.id for s in sources] == [1, 2]
        assert sources[0].snippet == "sa"
        assert sources[1].public() == {"id": 2, "title": "B", "url": "https://b.org"}


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TestSearchClient:
    """Test SearchClient.search() against a mocked Tavily endpoint."""

    @pytest.mark.asyncio
    async def test_missing_key_returns_empty_without_request(self, mock_http) -> None:
        client, requests = mock_http(_tavily([{"url": "https://a.org"}]))
        search = SearchClient(Config(), http_client=client)
        assert await search.search("supracondylar fracture") == []
        assert requests == []

    @pytest.mark.asyncio
    async def test_request_payload(self, config, mock_http) -> None:
        client, requests = mock_http(_tavily([]))
        await SearchClient(config, http_client=client).search("supracondylar fracture")

        assert len(requests) == 1
        assert str(requests[0].url) == "https://search.test/search"
        body = json.loads(requests[0].content)
        assert body["api_key"] == "tvly-test"
        assert body["query"] == "supracondylar fracture"
        assert body["search_depth"] == "advanced"
        assert body["max_results"] == 10
        assert body["include_answer"] is False
        assert "radiopaedia.org" in body["include_domains"]

    @pytest.mark.asyncio
    async def test_options_override_config(self, config, mock_http) -> None:
        client, requests = mock_http(_tavily([]))
        await SearchClient(config, http_client=client).search(
            "q q q", max_results=50, include_domains=[], search_depth="basic"
        )
        body = json.loads(requests[0].content)
        assert body["max_results"] == 10
        assert body["search_depth"] == "basic"
        assert "include_domains" not in body

    @pytest.mark.asyncio
    async def test_parses_dedupes_and_ranks(self, config, mock_http) -> None:
        client, _ = mock_http(_tavily([
            {"url": "https://blog.example.com/a", "title": "Blog", "content": "x" * 5000},
            {"url": "https://who.int/page?x=1", "title": "WHO", "content": "guideline"},
            {"url": "https://who.int/page#again", "title": "WHO dup"},
            {"url": "https://radiopaedia.org/case", "content": "no title"},
            {"title": "missing url"},
        ]))
        results = await SearchClient(config, http_client=client).search("elbow")

        assert [r.title for r in results] == ["WHO", "radiopaedia.org/case", "Blog"]
        blog = results[-1]
        assert len(blog.snippet) == SNIPPET_CHARS

    @pytest.mark.asyncio
    async def test_rank_disabled_keeps_order(self, config, mock_http) -> None:
        client, _ = mock_http(_tavily([
            {"url": "https://blog.example.com/a", "title": "Blog"},
            {"url": "https://who.int/page", "title": "WHO"},
        ]))
        results = await SearchClient(config, http_client=client).search("elbow", rank=False)
        assert [r.title for r in results] == ["Blog", "WHO"]

    @pytest.mark.asyncio
    async def test_http_error_status_returns_empty(self, config, mock_http) -> None:
        client, _ = mock_http(lambda request: httpx.Response(500, text="boom"))
        assert await SearchClient(config, http_client=client).search("elbow") == []

    @pytest.mark.asyncio
    async def test_network_error_returns_empty(self, config, mock_http) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        client, _ = mock_http(handler)
        assert await SearchClient(config, http_client=client).search("elbow") == []

    @pytest.mark.asyncio
    async def test_non_json_body_returns_empty(self, config, mock_http) -> None:
        client, _ = mock_http(lambda request: httpx.Response(200, text="<html>"))
        assert await SearchClient(config, http_client=client).search("elbow") == []

    @pytest.mark.asyncio
    async def test_malformed_endpoint_returns_empty(self, config, mock_http) -> None:
        bad = dataclasses.replace(config, tavily_endpoint="https://\x00search.test/search")
        client, requests = mock_http(_tavily([]))
        assert await SearchClient(bad, http_client=client).search("elbow") == []
        assert requests == []

    @pytest.mark.asyncio
    async def test_blank_query_returns_empty(self, config, mock_http) -> None:
        client, requests = mock_http(_tavily([]))
        assert await SearchClient(config, http_client=client).search("   ") == []
        assert requests == []


class TestProbe:
    """Test the diagnostics probe."""

    @pytest.mark.asyncio
    async def test_missing_key(self) -> None:
        assert await SearchClient(Config()).probe() == {"ok": False, "error": "TAVILY_API_KEY missing"}

    @pytest.mark.asyncio
    async def test_reports_titles(self, config, mock_http) -> None:
        client, requests = mock_http(_tavily([{"url": "https://a.org", "title": "A"}]))
        report = await SearchClient(config, http_client=client).probe()

        assert report["ok"] is True
        assert report["status"] == 200
        assert report["sample_titles"] == ["A"]
        body = json.loads(requests[0].content)
        assert body["search_depth"] == "basic"
        assert body["max_results"] == 3

    @pytest.mark.asyncio
    async def test_reports_failure_status(self, config, mock_http) -> None:
        client, _ = mock_http(lambda request: httpx.Response(401, text="unauthorized"))
        report = await SearchClient(config, http_client=client).probe()
        assert report["ok"] is False
        assert report["status"] == 401
        assert report["sample_titles"] is None
        assert report["raw_snippet"] == "unauthorized"

    @pytest.mark.asyncio
    async def test_malformed_endpoint_reported(self, config, mock_http) -> None:
        bad = dataclasses.replace(config, tavily_endpoint="https://\x00search.test/search")
        client, _ = mock_http(_tavily([]))
        report = await SearchClient(bad, http_client=client).probe()
        assert report["ok"] is False
        assert report["error"]
