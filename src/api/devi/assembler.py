"""Render normalised sections to the HTML fragment the browser displays."""

from __future__ import annotations

from html import escape

from devi.models import AnswerResult, Bullet, Confidence, Section, Source
from devi.modes import FOLLOW_UPS, Mode

NO_SOURCES_TITLE = "No Sources"
NO_SOURCES_MESSAGE = (
    "No reliable sources found for this query. "
    "Try rephrasing or asking a narrower question."
)

_SECTION_HTML = (
    '<div style="margin-bottom:14px">'
    '<div style="font-weight:700">{title}</div>'
    '<ul style="margin:6px 0 0; padding-left: 20px">{items}</ul>'
    "</div>"
)


def render_bullet(bullet: Bullet) -> str:
    text = escape(bullet.text)
    if bullet.citations:
        text += " [" + ", ".join(str(n) for n in bullet.citations) + "]"
    return f"<li>{text}</li>"


def render_section(section: Section) -> str:
    if not section.bullets:
        return ""
    items = "".join(render_bullet(b) for b in section.bullets)
    return _SECTION_HTML.format(title=escape(section.title), items=items)


def render_sections(sections: list[Section]) -> str:
    return "".join(render_section(s) for s in sections)


def estimate_confidence(source_count: int) -> Confidence:
    """Coarse confidence from how much grounding was retrieved."""
    if source_count >= 6:
        band = "High"
    elif source_count >= 3:
        band = "Moderate"
    else:
        band = "Preliminary"
    return Confidence(band=band, pct=min(95, source_count * 12))


def assemble(sections: list[Section], sources: list[Source], mode: Mode) -> AnswerResult:
    """Package rendered sections with the public source list."""
    return AnswerResult(
        answer=render_sections(sections),
        sources=[s.public() for s in sources],
        mode=mode,
        confidence=estimate_confidence(len(sources)),
        follow_ups=list(FOLLOW_UPS[mode]),
    )


def no_sources_result(mode: Mode) -> AnswerResult:
    """Successful answer explaining that nothing could be retrieved."""
    section = Section(title=NO_SOURCES_TITLE, bullets=[Bullet(text=NO_SOURCES_MESSAGE)])
    return AnswerResult(
        answer=render_section(section),
        sources=[],
        mode=mode,
        confidence=estimate_confidence(0),
        follow_ups=list(FOLLOW_UPS[mode]),
    )
