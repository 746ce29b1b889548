"""Answer modes and everything that varies by mode.

A mode selects the fixed, ordered list of section titles an answer is
built from, the audience line used in the prompt, the canned fallback
bullets and the suggested follow-up questions.  All of that lives in the
lookup tables below so the pipeline itself never branches on mode.
"""

from __future__ import annotations

import logging
import re
from enum import Enum

logger = logging.getLogger(__name__)


class Mode(str, Enum):
    RADIOLOGY = "radiology"
    EMERGENCY = "emergency"
    ORTHO = "ortho"


AUTO = "auto"

SECTION_TITLES: dict[Mode, tuple[str, ...]] = {
    Mode.RADIOLOGY: (
        "Clinical Question",
        "Key Imaging Findings",
        "Differential Diagnosis",
        "What to Look For",
        "Suggested Report Impression",
    ),
    Mode.EMERGENCY: (
        "Triage/Red Flags",
        "Initial Stabilization",
        "Focused Assessment",
        "Immediate Management",
        "Disposition/Follow-up",
    ),
    Mode.ORTHO: (
        "Classification",
        "Risk Factors",
        "Associated Injuries",
        "Initial Management",
        "Definitive/Follow-up",
    ),
}

AUDIENCE: dict[Mode, str] = {
    Mode.RADIOLOGY: "Radiology viva style for Indian JR/consultant use",
    Mode.EMERGENCY: "Emergency medicine guideline style for Indian JR/consultant use",
    Mode.ORTHO: "Orthopaedics viva/ward-round style for Indian JR/consultant use",
}

FOLLOW_UPS: dict[Mode, tuple[str, ...]] = {
    Mode.RADIOLOGY: (
        "Key signs & measurements to report?",
        "One-line impression with urgency/next step.",
        "Top differentials and how to distinguish?",
        "Report format (Indication, Technique, Findings, Impression)?",
    ),
    Mode.EMERGENCY: (
        "Immediate red flags & resus indications?",
        "ABCDE steps with examples (drugs/doses)?",
        "When to reduce/splint and call ortho?",
        "Disposition criteria & review window?",
    ),
    Mode.ORTHO: (
        "Full classification with radiographic criteria?",
        "Nerve/artery injuries to document and follow?",
        "Non-op vs pinning—clear indications?",
        "Rehab milestones and clinic follow-up timing?",
    ),
}

# ---------------------------------------------------------------------------
# Intent classification
# ---------------------------------------------------------------------------

IMAGING_TERMS = (
    "xray", "x-ray", "xr", "radiograph", "ap view", "lateral view",
    "ct", "computed tomography", "mri", "mr imaging", "ultrasound", "usg",
    "report", "impression", "findings", "sequence", "t1", "t2", "stir",
)

EMERGENCY_TERMS = (
    "ed", "emergency", "triage", "resus", "resuscitation", "abcde",
    "primary survey", "secondary survey", "hypotension", "shock",
    "er approach", "initial stabilization",
)


# Short or ambiguous terms only match as whole words (plus a plural "s"),
# which keeps "ct" out of "fracture" and "ed" out of "displaced".
WHOLE_WORD_TERMS = frozenset({"ct", "xr", "ed", "t1", "t2", "usg", "mri", "er approach"})


def _inflected(term: str) -> str:
    if term.endswith("y"):
        return re.escape(term[:-1]) + "(?:y|ies)"
    return re.escape(term)


def _term_pattern(terms: tuple[str, ...]) -> re.Pattern[str]:
    ordered = sorted(terms, key=len, reverse=True)
    whole = "|".join(re.escape(t) for t in ordered if t in WHOLE_WORD_TERMS)
    partial = "|".join(_inflected(t) for t in ordered if t not in WHOLE_WORD_TERMS)
    alternatives = [f"(?:{partial})"] if partial else []
    if whole:
        alternatives.append(rf"(?<![a-z0-9])(?:{whole})s?(?![a-z0-9])")
    return re.compile("|".join(alternatives), re.IGNORECASE)


_IMAGING_RE = _term_pattern(IMAGING_TERMS)
_EMERGENCY_RE = _term_pattern(EMERGENCY_TERMS)


def classify(question: str) -> Mode:
    """Map a free-text question to a mode by keyword matching.

    Emergency terms win over imaging terms; anything else is ortho.
    """
    imaging = _IMAGING_RE.search(question) is not None
    emergency = _EMERGENCY_RE.search(question) is not None

    if imaging and not emergency:
        return Mode.RADIOLOGY
    if emergency:
        return Mode.EMERGENCY
    return Mode.ORTHO


def resolve_mode(question: str, requested: str | None = None) -> Mode:
    """Honour an explicitly requested mode, otherwise classify the question."""
    if requested and requested.lower() != AUTO:
        try:
            return Mode(requested.lower())
        except ValueError:
            logger.warning("Ignoring unknown mode %r, auto-detecting", requested)
    return classify(question)
