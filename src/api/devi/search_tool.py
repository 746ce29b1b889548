"""Tavily web search — the only source of grounding for answers.

Posts the question to the Tavily search API, biased towards a list of
trusted medical domains, and returns de-duplicated results ordered so
that guideline bodies and major indexes come first.

Every failure (no API key, non-2xx status, network error, unreadable
body) yields an empty list; the caller treats that as "no sources".
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlsplit, urlunsplit

import httpx

from devi.config import Config
from devi.models import Source

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 1400

PROBE_QUERY = "Gartland type II supracondylar humerus fracture"

# Exact (or parent) domain → authority score.  Higher sorts first.
AUTHORITY_DOMAINS: dict[str, int] = {
    "who.int": 100,
    "nice.org.uk": 95,
    "cdc.gov": 95,
    "nih.gov": 90,
    "ncbi.nlm.nih.gov": 90,
    "pubmed.ncbi.nlm.nih.gov": 90,
    "cochranelibrary.com": 90,
    "icmr.gov.in": 90,
    "aiims.edu": 85,
    "uptodate.com": 85,
    "nbe.edu.in": 80,
    "radiopaedia.org": 80,
    "rcem.ac.uk": 80,
    "acep.org": 80,
    "acr.org": 80,
    "aaos.org": 80,
    "orthobullets.com": 70,
}


@dataclass
class SearchResult:
    """A single web search hit."""

    url: str
    title: str
    snippet: str = ""


# ---------------------------------------------------------------------------
# Pure helpers
# ---------------------------------------------------------------------------


def strip_url(url: str) -> str:
    """Drop the query string and fragment — the de-duplication key."""
    parts = urlsplit(url.strip())
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def default_title(url: str) -> str:
    """Readable stand-in title: host and path without scheme or ``www.``."""
    parts = urlsplit(url.strip())
    host = parts.netloc.lower().removeprefix("www.")
    return f"{host}{parts.path}".rstrip("/") or url


def dedupe_results(results: list[SearchResult]) -> list[SearchResult]:
    """Keep the first result for each stripped URL, preserving order."""
    seen: set[str] = set()
    unique: list[SearchResult] = []
    for result in results:
        key = strip_url(result.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)
    return unique


def authority_score(url: str) -> int:
    """Heuristic trust score for the URL's domain (0 when unknown)."""
    host = (urlsplit(url).hostname or "").lower().removeprefix("www.")
    labels = host.split(".")
    # Try the host itself, then each parent domain.
    for i in range(len(labels) - 1):
        candidate = ".".join(labels[i:])
        if candidate in AUTHORITY_DOMAINS:
            return AUTHORITY_DOMAINS[candidate]
    if "gov" in labels:
        return 70
    if "edu" in labels or "ac" in labels:
        return 60
    return 0


def rank_results(results: list[SearchResult]) -> list[SearchResult]:
    """Stable sort by descending authority — ties keep search order."""
    return sorted(results, key=lambda r: -authority_score(r.url))


def to_sources(results: list[SearchResult]) -> list[Source]:
    """Assign 1-based citation ids in discovery order."""
    return [
        Source(id=idx, title=r.title, url=r.url, snippet=r.snippet)
        for idx, r in enumerate(results, start=1)
    ]


def _parse_item(item: dict) -> SearchResult | None:
    url = (item.get("url") or "").strip()
    if not url:
        return None
    title = (item.get("title") or "").strip() or default_title(url)
    snippet = (item.get("content") or "").strip()[:SNIPPET_CHARS]
    return SearchResult(url=url, title=title, snippet=snippet)


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class SearchClient:
    """Thin async wrapper over the Tavily search endpoint."""

    def __init__(self, config: Config, http_client: httpx.AsyncClient | None = None):
        self._config = config
        self._http_client = http_client

    @property
    def configured(self) -> bool:
        return self._config.search_configured

    async def _post(self, payload: dict) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.post(self._config.tavily_endpoint, json=payload)
        async with httpx.AsyncClient(timeout=self._config.search_timeout) as client:
            return await client.post(self._config.tavily_endpoint, json=payload)

    def _payload(
        self,
        query: str,
        max_results: int,
        search_depth: str,
        include_domains: tuple[str, ...] | list[str],
    ) -> dict:
        payload = {
            "api_key": self._config.tavily_api_key,
            "query": query,
            "search_depth": search_depth,
            "include_answer": False,
            "max_results": max_results,
        }
        if include_domains:
            payload["include_domains"] = list(include_domains)
        return payload

    async def search(
        self,
        query: str,
        *,
        max_results: int | None = None,
        include_domains: tuple[str, ...] | list[str] | None = None,
        search_depth: str | None = None,
        rank: bool = True,
    ) -> list[SearchResult]:
        """Search the web for *query*.

        Parameters
        ----------
        query:
            The user's question, used verbatim as the search query.
        max_results:
            Upper bound on results (clamped to 1..10; config default).
        include_domains:
            Domain allow-list; ``None`` uses the configured list, an empty
            sequence disables the bias.
        search_depth:
            ``"basic"`` or ``"advanced"`` (config default).
        rank:
            Reorder results by domain authority.

        Returns
        -------
        list[SearchResult]
            Possibly empty; never raises for provider problems.
        """
        if not self.configured:
            logger.info("Search skipped — TAVILY_API_KEY not configured")
            return []
        if not query.strip():
            return []

        limit = max(1, min(max_results or self._config.max_results, 10))
        domains = self._config.include_domains if include_domains is None else include_domains
        payload = self._payload(
            query,
            limit,
            search_depth or self._config.search_depth,
            domains,
        )

        try:
            response = await self._post(payload)
        except (httpx.HTTPError, httpx.InvalidURL):
            logger.warning("Search request failed for '%s'", query[:80], exc_info=True)
            return []

        if not response.is_success:
            logger.warning("Search returned HTTP %d for '%s'", response.status_code, query[:80])
            return []

        try:
            data = response.json()
        except ValueError:
            logger.warning("Search returned a non-JSON body for '%s'", query[:80])
            return []

        items = data.get("results") if isinstance(data, dict) else None
        results = [
            parsed
            for parsed in (_parse_item(item) for item in items or [] if isinstance(item, dict))
            if parsed is not None
        ]
        results = dedupe_results(results)[:limit]
        if rank:
            results = rank_results(results)

        logger.info("Search for '%s' → %d results (max=%d)", query[:80], len(results), limit)
        return results

    async def probe(self, query: str = PROBE_QUERY) -> dict:
        """Connectivity check: run a small basic-depth search and report raw status."""
        if not self.configured:
            return {"ok": False, "error": "TAVILY_API_KEY missing"}

        payload = self._payload(query, 3, "basic", ())
        try:
            response = await self._post(payload)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Search probe failed: %s", e)
            return {"ok": False, "error": str(e) or type(e).__name__}

        try:
            data = response.json()
        except ValueError:
            data = None

        titles = None
        if isinstance(data, dict) and isinstance(data.get("results"), list):
            titles = [item.get("title") for item in data["results"][:3] if isinstance(item, dict)]

        return {
            "ok": response.is_success,
            "status": response.status_code,
            "sample_titles": titles,
            "raw_snippet": response.text[:400],
        }
