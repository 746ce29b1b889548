"""Shared data models for the answer pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field

from devi.modes import Mode


@dataclass
class Source:
    """A retrieved reference with its 1-based citation id."""

    id: int
    title: str
    url: str
    snippet: str = ""

    def public(self) -> dict:
        """Caller-facing form — the snippet is never exposed."""
        return {"id": self.id, "title": self.title, "url": self.url}


@dataclass
class Bullet:
    """One line of an answer section and the source ids it cites."""

    text: str
    citations: list[int] = field(default_factory=list)


@dataclass
class Section:
    title: str
    bullets: list[Bullet] = field(default_factory=list)


@dataclass
class Confidence:
    band: str
    pct: int


@dataclass
class AnswerResult:
    """The terminal artifact returned to the caller for one question."""

    answer: str
    sources: list[dict]
    mode: Mode
    confidence: Confidence
    follow_ups: list[str] = field(default_factory=list)
