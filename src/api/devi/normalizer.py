"""Output normaliser — turns whatever the model returned into canonical sections.

The model is asked for one of two shapes but routinely deviates, so the
raw text goes through a chain of small, independently testable steps:

1. ``strip_code_fences`` removes a leading ```` ```lang ```` / trailing
   ```` ``` ```` wrapper.
2. Parsers are tried in order and the first that yields a usable section wins:

   - **JSON** — ``{"sections": [{"title": ..., "bullets": [...]}]}`` (or a
     bare list of such objects); bullets may be strings or
     ``{"text": ..., "cites": [...]}`` objects.
   - **Markup** — a heading-like element (bold ``div``, ``h1``-``h6``,
     ``strong``/``b``, or a plain paragraph) followed by a ``ul``/``ol``.
   - **Plain text** — a title line followed by one bullet per line.

3. Every bullet is cleaned: repeated citation clusters collapsed
   (``dedupe_citations``), citations split off the text, out-of-range
   citation numbers dropped, placeholder bullets ("Not specified", ...)
   removed.

Section titles are matched case-insensitively against the mode's fixed
list; anything else is discarded.  Sections come back in canonical
order and empty ones are omitted, so an empty result means "unusable".
"""

from __future__ import annotations

import json
import logging
import re

from bs4 import BeautifulSoup, NavigableString, Tag

from devi.models import Bullet, Section

logger = logging.getLogger(__name__)

RawBullet = tuple[str, list[int]]

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------
_FENCE_OPEN_RE = re.compile(r"^\s*```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE_RE = re.compile(r"\n?[ \t]*```\s*$")

_CLUSTER = r"\[\d+(?:\s*,\s*\d+)*\]"
# "[3]. [3]", "[1, 2] [1, 2] [1, 2]" → one cluster
_DUP_CLUSTER_RE = re.compile(rf"({_CLUSTER})(?:(?:\s*\.)?\s*\1)+")
_CLUSTER_RE = re.compile(r"\s*\[(\d+(?:\s*,\s*\d+)*)\]")

_BULLET_MARKER_RE = re.compile(r"^(?:[-*•·–]|\d{1,2}[.)])\s+")
_TITLE_NOISE_RE = re.compile(r"^[#*_\s]*(?:\d{1,2}[.)]\s*)?|[*_:\s]*$")
_INLINE_TITLE_RE = re.compile(r"^(?:[#*_\s]*)([^:]{2,60}?)[*_]*:[*_]*\s*(.+)$")
_LIST_TAG_RE = re.compile(r"<\s*(?:ul|ol|li)\b", re.IGNORECASE)

# Whole-bullet filler only; "No evidence of benefit for X" is real content.
_PLACEHOLDER_RE = re.compile(
    r"(?:"
    r"no\s+(?:\w+\s+){0,2}(?:information|data|details|mention)"
    r"|(?:information|data|details)\s+(?:is\s+|are\s+)?not\s+(?:available|provided|specified|found)"
    r"|not\s+(?:applicable|specified|mentioned|available|reported|provided|stated|described)"
    r"|n/?a"
    r"|none"
    r")"
    r"(?:\s+(?:is\s+|was\s+)?(?:available|provided|found|given|specified))?"
    r"(?:\s+(?:in|from|by)\s+(?:the\s+)?(?:provided\s+|available\s+|given\s+)?"
    r"(?:sources?|context|references?))?"
    r"\W*",
    re.IGNORECASE,
)

_HEADING_TAGS = ("h1", "h2", "h3", "h4", "h5", "h6", "strong", "b")


# ---------------------------------------------------------------------------
# Text-level repair steps
# ---------------------------------------------------------------------------


def strip_code_fences(text: str) -> str:
    """Remove a wrapping ```` ``` ```` / ```` ```html ```` fence if present."""
    text = _FENCE_OPEN_RE.sub("", text, count=1)
    text = _FENCE_CLOSE_RE.sub("", text, count=1)
    return text.strip()


def dedupe_citations(text: str) -> str:
    """Collapse immediately repeated identical citation clusters.

    Idempotent: ``dedupe_citations(dedupe_citations(x)) == dedupe_citations(x)``.
    """
    return _DUP_CLUSTER_RE.sub(r"\1", text)


def split_citations(text: str) -> tuple[str, list[int]]:
    """Pull every ``[n]`` / ``[n, m]`` cluster out of *text*.

    Returns the cleaned text and the cited numbers in first-seen order.
    A cited bullet loses its trailing period: rendered bullets end with the
    citation cluster (``Type II [1]``), matching the fallback template.
    """
    numbers: list[int] = []
    for m in _CLUSTER_RE.finditer(text):
        for n in re.findall(r"\d+", m.group(1)):
            value = int(n)
            if value not in numbers:
                numbers.append(value)

    clean = _CLUSTER_RE.sub("", text)
    clean = re.sub(r"\s+([.,;:])", r"\1", clean)
    clean = re.sub(r"\s{2,}", " ", clean).strip()
    if numbers:
        clean = clean.rstrip(" ,;").removesuffix(".").rstrip()
    return clean, numbers


def is_placeholder(text: str) -> bool:
    """True for filler bullets such as "Not specified in sources"."""
    return _PLACEHOLDER_RE.fullmatch(text.strip(" -•*.\t")) is not None


def _title_key(text: str) -> str:
    return _TITLE_NOISE_RE.sub("", text.strip()).strip().casefold()


def _coerce_cites(value) -> list[int]:
    if value is None:
        return []
    if isinstance(value, (int, str)):
        value = [value]
    cites: list[int] = []
    if isinstance(value, list):
        for item in value:
            if isinstance(item, bool):
                continue
            if isinstance(item, int):
                cites.append(item)
            elif isinstance(item, str):
                cites.extend(int(n) for n in re.findall(r"\d+", item))
    return cites


def _clean_bullet(raw: RawBullet, source_count: int) -> Bullet | None:
    text, extra_cites = raw
    text = re.sub(r"\s+", " ", text).strip()
    text = _BULLET_MARKER_RE.sub("", text)
    text, inline_cites = split_citations(dedupe_citations(text))
    if not text or is_placeholder(text):
        return None

    citations: list[int] = []
    for n in [*inline_cites, *extra_cites]:
        if n in citations:
            continue
        if 1 <= n <= source_count:
            citations.append(n)
        else:
            logger.debug("Dropping out-of-range citation [%d] (sources=%d)", n, source_count)
    return Bullet(text=text, citations=citations)


# ---------------------------------------------------------------------------
# Shape parsers — each returns {canonical title: [raw bullets]}
# ---------------------------------------------------------------------------


def _collect(
    found: dict[str, list[RawBullet]],
    titles: dict[str, str],
    heading: str,
    bullets: list[RawBullet],
) -> None:
    title = titles.get(_title_key(heading))
    if title is None:
        logger.debug("Dropping unrecognised section %r", heading[:60])
        return
    found.setdefault(title, []).extend(bullets)


def _load_json(text: str):
    # Deeply nested output exhausts the decoder rather than raising ValueError.
    try:
        return json.loads(text)
    except (ValueError, RecursionError):
        pass
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end <= start:
        return None
    try:
        return json.loads(text[start:end + 1])
    except (ValueError, RecursionError):
        return None


def parse_json_sections(text: str, titles: dict[str, str]) -> dict[str, list[RawBullet]]:
    data = _load_json(text)
    if isinstance(data, dict):
        if isinstance(data.get("sections"), list):
            data = data["sections"]
        else:
            # {"Classification": [...], ...}
            data = [{"title": k, "bullets": v} for k, v in data.items() if isinstance(v, list)]
    if not isinstance(data, list):
        return {}

    found: dict[str, list[RawBullet]] = {}
    for entry in data:
        if not isinstance(entry, dict):
            continue
        heading = entry.get("title") or entry.get("heading") or ""
        items = entry.get("bullets") or entry.get("items") or []
        if not isinstance(heading, str) or not isinstance(items, list):
            continue
        bullets: list[RawBullet] = []
        for item in items:
            if isinstance(item, str):
                bullets.append((item, []))
            elif isinstance(item, dict) and isinstance(item.get("text"), str):
                cites = item.get("cites", item.get("citations", item.get("refs")))
                bullets.append((item["text"], _coerce_cites(cites)))
        _collect(found, titles, heading, bullets)
    return found


def _is_heading_tag(tag: Tag) -> bool:
    if tag.name in _HEADING_TAGS:
        return True
    style = (tag.get("style") or "").replace(" ", "").lower()
    return tag.name in ("div", "p", "span") and ("font-weight:700" in style or "font-weight:bold" in style)


def _heading_for(list_tag: Tag) -> str:
    """Find the title text that introduces *list_tag*."""
    for sibling in list_tag.previous_siblings:
        if isinstance(sibling, NavigableString):
            if sibling.strip():
                return sibling.strip()
            continue
        if isinstance(sibling, Tag):
            if sibling.name in ("ul", "ol"):
                # Second list under the same heading — keep looking back.
                continue
            text = sibling.get_text(" ", strip=True)
            if text:
                return text
    previous = list_tag.find_previous(_is_heading_tag)
    return previous.get_text(" ", strip=True) if previous is not None else ""


def parse_markup_sections(text: str, titles: dict[str, str]) -> dict[str, list[RawBullet]]:
    soup = BeautifulSoup(text, "html.parser")
    found: dict[str, list[RawBullet]] = {}
    for list_tag in soup.find_all(["ul", "ol"]):
        if list_tag.find_parent("li") is not None:
            continue
        heading = _heading_for(list_tag)
        if not heading:
            continue
        bullets = [
            (li.get_text(" ", strip=True), [])
            for li in list_tag.find_all("li", recursive=False)
        ]
        _collect(found, titles, heading, bullets)
    return found


def parse_plain_sections(text: str, titles: dict[str, str]) -> dict[str, list[RawBullet]]:
    if "<" in text:
        text = BeautifulSoup(text, "html.parser").get_text("\n")

    found: dict[str, list[RawBullet]] = {}
    current: str | None = None
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue

        title = titles.get(_title_key(line))
        if title is not None:
            current = title
            found.setdefault(current, [])
            continue

        inline = _INLINE_TITLE_RE.match(line)
        if inline and titles.get(_title_key(inline.group(1))):
            current = titles[_title_key(inline.group(1))]
            found.setdefault(current, []).append((inline.group(2), []))
            continue

        if current is not None:
            found[current].append((line, []))
    return found


_PARSERS = (
    ("json", parse_json_sections),
    ("markup", parse_markup_sections),
    ("plain", parse_plain_sections),
)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def _build_sections(
    found: dict[str, list[RawBullet]],
    expected_titles: tuple[str, ...] | list[str],
    source_count: int,
) -> list[Section]:
    sections: list[Section] = []
    for title in expected_titles:
        bullets: list[Bullet] = []
        seen: set[str] = set()
        for raw in found.get(title, []):
            bullet = _clean_bullet(raw, source_count)
            if bullet is None or bullet.text.casefold() in seen:
                continue
            seen.add(bullet.text.casefold())
            bullets.append(bullet)
        if bullets:
            sections.append(Section(title=title, bullets=bullets))
    return sections


def normalize(
    raw: str | None,
    expected_titles: tuple[str, ...] | list[str],
    source_count: int,
) -> list[Section]:
    """Parse and repair a model response into canonical sections.

    Returns an empty list when nothing usable was found — the caller
    must then fall back to templated content.
    """
    text = strip_code_fences(raw or "")
    if not text:
        return []

    titles = {t.casefold(): t for t in expected_titles}
    for name, parser in _PARSERS:
        if name == "json" and "{" not in text and not text.startswith("["):
            continue
        if name == "markup" and not _LIST_TAG_RE.search(text):
            continue
        sections = _build_sections(parser(text, titles), expected_titles, source_count)
        if sections:
            logger.info(
                "Normalised %s output → %d section(s), %d bullet(s)",
                name,
                len(sections),
                sum(len(s.bullets) for s in sections),
            )
            return sections

    logger.warning("Model output unusable after all repair attempts (%d chars)", len(text))
    return []
