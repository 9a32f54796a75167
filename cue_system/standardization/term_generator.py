"""Generative fallback for labels the vocabulary cannot resolve."""

from typing import Any, Optional, Protocol, Sequence, runtime_checkable

from loguru import logger
from pydantic import ValidationError

from cue_system.config.prompts.term_generation_prompts import (
    TERM_GENERATION_SYSTEM_PROMPT,
    TERM_GENERATION_USER_PROMPT,
)
from cue_system.data_management.schemas.vocabulary_schema import GeneratedTerm, LabelContext


@runtime_checkable
class TermGenerator(Protocol):
    """External generative fallback."""

    async def generate(
        self,
        raw_label: str,
        category: str,
        context: LabelContext,
        existing_terms: Sequence[str],
    ) -> Optional[GeneratedTerm]:
        ...


class GeminiTermGenerator:
    """Asks Gemini to map a label onto (or propose) a vocabulary term."""

    def __init__(self, gemini_client: Optional[Any] = None, model_name: Optional[str] = None):
        self._gemini_client = gemini_client
        self.model_name = model_name
        self.logger = logger.bind(component="GeminiTermGenerator")

    @property
    def gemini_client(self):
        """Lazy-load Gemini client on first access."""
        if self._gemini_client is None:
            from cue_system.llm.gemini_client import GeminiClient

            self._gemini_client = GeminiClient(model_name=self.model_name)
        return self._gemini_client

    async def generate(
        self,
        raw_label: str,
        category: str,
        context: LabelContext,
        existing_terms: Sequence[str],
    ) -> Optional[GeneratedTerm]:
        prompt = TERM_GENERATION_USER_PROMPT.format(
            category=category,
            raw_label=raw_label,
            film_type=context.film_type or "unknown",
            primary_emotion=context.primary_emotion or "unknown",
            terms="\n".join(f"- {t}" for t in existing_terms) or "(none)",
        )
        payload = await self.gemini_client.generate_json(
            prompt,
            system_instruction=TERM_GENERATION_SYSTEM_PROMPT,
            temperature=0.0,
        )
        if not payload or not str(payload.get("term") or "").strip():
            self.logger.debug(f"No term generated for '{raw_label}'", category=category)
            return None

        try:
            return GeneratedTerm(
                term=str(payload["term"]).strip(),
                confidence=float(payload.get("confidence", 0.6)),
                reason=payload.get("reason"),
            )
        except (ValidationError, TypeError, ValueError) as e:
            self.logger.warning(f"Discarding malformed generated term: {e}")
            return None
