"""Answer pipeline — one question in, one rendered answer out.

Stages run strictly in sequence::

    validate → resolve mode → search → (generate | skip) → normalise | fallback → assemble

Only an invalid question raises (``InvalidQuestionError``).  Search and
generation problems degrade silently: no results produce a "no sources"
answer, no usable generation produces the fallback template.

Exports a ``create_pipeline()`` factory used by the HTTP layer (``main.py``).
"""

from __future__ import annotations

import logging

from devi.assembler import assemble, no_sources_result
from devi.config import Config
from devi.fallback import fallback
from devi.generation import GenerationClient
from devi.models import AnswerResult, Section
from devi.modes import SECTION_TITLES, resolve_mode
from devi.normalizer import normalize
from devi.prompts import build_context, build_prompt
from devi.search_tool import SearchClient, to_sources

logger = logging.getLogger(__name__)

MIN_QUESTION_CHARS = 3


class InvalidQuestionError(ValueError):
    """The question is missing or shorter than ``MIN_QUESTION_CHARS``."""


def validate_question(question: object) -> str:
    if not isinstance(question, str) or len(question.strip()) < MIN_QUESTION_CHARS:
        raise InvalidQuestionError("Ask a valid question.")
    return question.strip()


class AnswerPipeline:
    """Orchestrates search, generation and rendering for a single question."""

    def __init__(
        self,
        search_client: SearchClient,
        generation_client: GenerationClient,
        *,
        structured_output: bool = True,
    ):
        self.search_client = search_client
        self.generation_client = generation_client
        self.structured_output = structured_output

    async def _generate_sections(self, prompt: str, titles: tuple[str, ...], source_count: int) -> list[Section]:
        if not self.generation_client.configured:
            logger.info("Generation skipped — no credentials")
            return []
        raw = await self.generation_client.generate(prompt, force_json=self.structured_output)
        if raw is None:
            return []
        return normalize(raw, titles, source_count)

    async def answer(self, question: str, mode: str | None = None) -> AnswerResult:
        """Answer *question*, optionally forcing *mode* (``"auto"`` or ``None`` detects it)."""
        question = validate_question(question)
        resolved = resolve_mode(question, mode)
        titles = SECTION_TITLES[resolved]
        logger.info("Question '%s' → mode=%s (requested=%s)", question[:80], resolved.value, mode)

        results = await self.search_client.search(question)
        if not results:
            logger.info("No sources for '%s'", question[:80])
            return no_sources_result(resolved)
        sources = to_sources(results)

        prompt = build_prompt(
            resolved,
            titles,
            build_context(sources),
            question,
            source_count=len(sources),
            structured=self.structured_output,
        )
        sections = await self._generate_sections(prompt, titles, len(sources))
        if not sections:
            sections = fallback(resolved, sources)

        result = assemble(sections, sources, resolved)
        logger.info(
            "Answered '%s' with %d section(s) and %d source(s)",
            question[:80],
            len(sections),
            len(sources),
        )
        return result


def create_pipeline(config: Config) -> AnswerPipeline:
    """Create an ``AnswerPipeline`` wired to the configured providers."""
    pipeline = AnswerPipeline(
        SearchClient(config),
        GenerationClient(config),
        structured_output=config.structured_output,
    )
    logger.info(
        "Created AnswerPipeline (search=%s, generation=%s, model=%s)",
        config.search_configured,
        config.generation_configured,
        config.generation_model,
    )
    return pipeline
