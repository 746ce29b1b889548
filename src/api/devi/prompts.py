"""Grounding context and instruction text for the generation call."""

from __future__ import annotations

from devi.models import Source
from devi.modes import AUDIENCE, Mode

MIN_BULLETS = 3
MAX_BULLETS = 6

_PROMPT = """\
You are a clinical summarizer. Use ONLY the SOURCES block. Never invent facts. \
If a fact is absent from the sources, omit it; if a whole section is unsupported, omit the section.

Audience: {audience}.
Tone: confident, guideline-like (avoid "may/might/often" unless the source itself hedges).

TASK: Produce concise, exam-ready bullets under these exact sections, in this order:
{section_list}

Rules:
- {min_bullets}-{max_bullets} bullets per section (never fewer than {min_bullets} if information exists).
- Each bullet ends with inline numeric citations like [1] or [2, 5] mapped ONLY to source numbers 1-{source_count}.
- Prioritize guideline/consensus and high-quality reviews.
- Never write placeholder bullets such as "No information", "Not applicable" or "Not specified".
- Do NOT include any extra headings, preambles, conclusions, notes about these instructions, or a "Sources" list.
- Do NOT include sections for other modes.
{output_rules}

QUESTION:
{question}

SOURCES:
{context}
"""

_HTML_RULES = """\
- Output VALID HTML only. For each section use exactly:
  <div style="font-weight:700">Section Title</div>
  <ul><li>bullet [n]</li>...</ul>"""

_JSON_RULES = """\
- Output a single JSON object only, no code fences, shaped exactly as:
  {"sections": [{"title": "Section Title", "bullets": [{"text": "bullet", "cites": [1, 2]}]}]}
- "title" must be copied verbatim from the section list; "cites" holds source numbers only."""


def build_context(sources: list[Source]) -> str:
    """Render sources as the numbered reference block the prompt cites into."""
    return "\n\n".join(
        f"[{s.id}] {s.title}\nURL: {s.url}\nSNIPPET: {s.snippet}"
        for s in sources
    )


def build_prompt(
    mode: Mode,
    section_titles: tuple[str, ...] | list[str],
    context: str,
    question: str,
    *,
    source_count: int,
    structured: bool = True,
) -> str:
    """Assemble the single instruction text sent to the model."""
    section_list = "\n".join(f"{i}) {t}" for i, t in enumerate(section_titles, start=1))
    return _PROMPT.format(
        audience=AUDIENCE[mode],
        section_list=section_list,
        min_bullets=MIN_BULLETS,
        max_bullets=MAX_BULLETS,
        source_count=source_count,
        output_rules=_JSON_RULES if structured else _HTML_RULES,
        question=question.strip(),
        context=context,
    ).strip()
