"""Deterministic fallback answers used when generation is unavailable or unusable.

Every section of the mode is always emitted with three generic,
citation-decorated bullets.  Citation numbers are clipped to the
sources actually retrieved, so they always point at a real source.
"""

from __future__ import annotations

import logging

from devi.models import Bullet, Section, Source
from devi.modes import SECTION_TITLES, Mode

logger = logging.getLogger(__name__)

# title → ((bullet text, preferred citation number), ...)
FALLBACK_BULLETS: dict[str, tuple[tuple[str, int], ...]] = {
    # Radiology
    "Clinical Question": (
        ("What the study needs to answer", 1),
        ("Clinical context that narrows differentials", 2),
        ("Urgency/next study implications", 3),
    ),
    "Key Imaging Findings": (
        ("Primary signs and key measurements", 1),
        ("Ancillary findings that shift probability", 2),
        ("Complications to mention explicitly", 3),
    ),
    "Differential Diagnosis": (
        ("Top 2–4 entities with discriminators", 2),
        ("Mention classic signs and traps", 3),
        ("State which is most consistent given data", 1),
    ),
    "What to Look For": (
        ("Checklist of must-see structures", 3),
        ("Technique pitfalls and fixes", 2),
        ("Key measurements/angles to include", 1),
    ),
    "Suggested Report Impression": (
        ("One-liner diagnosis with certainty qualifier", 1),
        ("Immediate actionable next step (if any)", 2),
        ("Red flags to escalate now", 3),
    ),
    # Emergency
    "Triage/Red Flags": (
        ("Threats to airway/breathing/circulation requiring immediate action", 1),
        ("Physiologic triggers (SBP, GCS, RR, SpO2) for red room", 2),
        ("Time-critical differentials not to miss", 3),
    ),
    "Initial Stabilization": (
        ("ABCDE with analgesia/antibiotics/tetanus where indicated", 1),
        ("Early resuscitation targets and fluids/blood", 2),
        ("Spine/limb immobilization and hemorrhage control", 3),
    ),
    "Focused Assessment": (
        ("Key exam points (neurovascular, compartments, special tests)", 2),
        ("Bedside imaging/labs that change management now", 1),
        ("Risk scores or rules if applicable", 3),
    ),
    "Immediate Management": (
        ("Definitive temporizing steps (reduction, splint, meds)", 1),
        ("Consult triggers and time windows", 2),
        ("Contraindications/avoid common errors", 3),
    ),
    "Disposition/Follow-up": (
        ("Admit vs discharge criteria", 2),
        ("Follow-up timing and return precautions", 3),
        ("Patient education pearls", 1),
    ),
    # Ortho
    "Classification": (
        ("Standard classification and defining features", 1),
        ("Radiographic criteria that separate types", 2),
        ("Implications for treatment pathway", 3),
    ),
    "Risk Factors": (
        ("Mechanism and age patterns", 1),
        ("Comorbids/contexts that change management", 2),
        ("Injury patterns that co-travel", 3),
    ),
    "Associated Injuries": (
        ("Nerve/artery at risk and how to document", 1),
        ("Joint/soft tissue injuries to consider", 2),
        ("Compartment or skin risks", 3),
    ),
    "Initial Management": (
        ("ABCDE, analgesia, immobilization, ortho consult", 1),
        ("Imaging/labs immediately needed", 2),
        ("Indications for reduction in ED", 3),
    ),
    "Definitive/Follow-up": (
        ("Clear indications for operative vs non-operative", 1),
        ("Rehab and clinic follow-up timing", 2),
        ("Complication surveillance (malunion, NV compromise)", 3),
    ),
}


def fallback(mode: Mode, sources: list[Source]) -> list[Section]:
    """Templated sections for *mode*; never empty, never fails."""
    source_count = len(sources)
    sections: list[Section] = []
    for title in SECTION_TITLES[mode]:
        bullets = [
            Bullet(text=text, citations=[min(cite, source_count)] if source_count else [])
            for text, cite in FALLBACK_BULLETS[title]
        ]
        sections.append(Section(title=title, bullets=bullets))

    logger.info("Using fallback template for mode=%s (%d sources)", mode.value, source_count)
    return sections
