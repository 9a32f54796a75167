"""Vocabulary standardization of free-text classifier labels.

Resolution order for one raw label in one category:
1. Exact      - label equals a canonical term
2. Alias      - bidirectional substring test against the entry's aliases
                (the canonical term counts as an alias)
3. Context    - matched entry checked against the film type; a mismatch is
                kept with reduced confidence (lenient) or discarded (strict)
4. Inferred   - (film_type, primary_emotion) linkage table
5. Generated  - external generative fallback, then the catch-all term
6. Candidates - plausible labels the vocabulary could not absorb go to the
                human review queue

Steps 1-4 are pure and synchronous given one vocabulary snapshot. Step 5
suspends on the generator, bounded by a timeout. A successful answer for a
(category, label) pair is memoized so repeated calls agree; a timeout or
error is not, so the next call asks again.
"""

import asyncio
from typing import Optional

from loguru import logger

from cue_system.config.settings import settings
from cue_system.data_management.candidate_queue import CandidateReviewQueue
from cue_system.data_management.schemas.record_schema import LabelResolution
from cue_system.data_management.schemas.vocabulary_schema import (
    EMOTION,
    FILM_TYPE,
    CandidateTerm,
    GeneratedTerm,
    LabelContext,
    MatchKind,
    StandardizedTerm,
    VocabularyEntry,
    normalize_label,
)
from cue_system.data_management.vocabulary_registry import (
    VocabularyRegistry,
    VocabularySnapshot,
)
from cue_system.standardization.term_generator import TermGenerator


EXACT_CONFIDENCE = 1.0
ALIAS_EQUAL_CONFIDENCE = 0.95
ALIAS_SUBSTRING_CONFIDENCE = 0.9


class VocabularyStandardizer:
    """
    Maps raw labels onto the controlled vocabulary.

    Usage:
        standardizer = VocabularyStandardizer(registry, generator, queue)
        term = await standardizer.standardize(
            "追击戏", "scenario", LabelContext(film_type="警匪片")
        )
        # term.canonical_term == "追逐", term.match_kind == MatchKind.ALIAS

    Attributes:
        registry: Source of vocabulary snapshots
        generator: Optional generative fallback
        candidate_queue: Optional review queue for harvested terms
        context_mismatch_policy: "lenient" or "strict"
    """

    def __init__(
        self,
        registry: VocabularyRegistry,
        generator: Optional[TermGenerator] = None,
        candidate_queue: Optional[CandidateReviewQueue] = None,
        alias_substring_matching: Optional[bool] = None,
        min_alias_match_length: Optional[int] = None,
        context_mismatch_policy: Optional[str] = None,
        context_mismatch_confidence: Optional[float] = None,
        linkage_confidence: Optional[float] = None,
        catch_all_term: Optional[str] = None,
        generator_timeout: Optional[float] = None,
        candidate_min_length: Optional[int] = None,
        candidate_max_length: Optional[int] = None,
    ):
        self.registry = registry
        self.generator = generator
        self.candidate_queue = candidate_queue

        def pick(value, default):
            return default if value is None else value

        self.alias_substring_matching = pick(alias_substring_matching, settings.alias_substring_matching)
        self.min_alias_match_length = pick(min_alias_match_length, settings.min_alias_match_length)
        self.context_mismatch_policy = pick(context_mismatch_policy, settings.context_mismatch_policy)
        self.context_mismatch_confidence = pick(context_mismatch_confidence, settings.context_mismatch_confidence)
        self.linkage_confidence = pick(linkage_confidence, settings.linkage_confidence)
        self.catch_all_term = pick(catch_all_term, settings.catch_all_term)
        self.generator_timeout = pick(generator_timeout, settings.generator_timeout_seconds)
        self.candidate_min_length = pick(candidate_min_length, settings.candidate_min_length)
        self.candidate_max_length = pick(candidate_max_length, settings.candidate_max_length)

        self._placeholders = {normalize_label(p) for p in settings.placeholder_terms}
        self._placeholder_markers = [normalize_label(m) for m in settings.placeholder_markers]

        # (category, normalized label) -> first successful generator answer
        self._generated: dict[tuple[str, str], GeneratedTerm] = {}
        self._generation_locks: dict[tuple[str, str], asyncio.Lock] = {}

        self.logger = logger.bind(component="VocabularyStandardizer")

    # ── Label screening ───────────────────────────────────────────────────

    def is_placeholder(self, label: str) -> bool:
        """Labels like 未识别 / unknown that mean 'nothing recognised'."""
        text = normalize_label(label)
        if text in self._placeholders:
            return True
        return any(marker and marker in text for marker in self._placeholder_markers)

    def is_plausible_candidate(self, label: str) -> bool:
        """Whether an unresolved label is worth a curator's attention."""
        text = " ".join(label.split())
        if not text or self.is_placeholder(text):
            return False
        if not self.candidate_min_length <= len(text) <= self.candidate_max_length:
            return False
        return any(ch.isalpha() for ch in text)

    # ── Steps 1-4 (pure) ──────────────────────────────────────────────────

    def resolve(
        self,
        raw_label: str,
        category: str,
        context: Optional[LabelContext] = None,
        snapshot: Optional[VocabularySnapshot] = None,
    ) -> StandardizedTerm:
        """
        Resolve a label with exact, alias, context and linkage strategies.

        Args:
            raw_label: Label as emitted by the classifier.
            category: Label category.
            context: Film type / primary emotion of the asset.
            snapshot: Vocabulary snapshot; the registry's current one if None.

        Returns:
            StandardizedTerm; match_kind UNRESOLVED when nothing matched.
        """
        snapshot = snapshot or self.registry.snapshot()
        context = context or LabelContext()
        label = normalize_label(raw_label)

        unresolved = StandardizedTerm(raw_label=raw_label, category=category)
        if not label:
            return unresolved.model_copy(update={"note": "empty label"})

        note = None
        if not self.is_placeholder(label):
            entries = snapshot.entries_for(category)
            matched = self._match_exact(label, entries) or self._match_alias(label, entries)

            if matched is not None:
                entry, kind, confidence = matched
                compatible = entry.accepts_context(context.film_type)

                if compatible is not False:
                    return StandardizedTerm(
                        raw_label=raw_label,
                        category=category,
                        canonical_term=entry.canonical_term,
                        match_kind=kind,
                        confidence=confidence,
                        context_compatible=compatible,
                    )

                note = f"'{entry.canonical_term}' is not expected in {context.film_type}"
                if self.context_mismatch_policy != "strict":
                    self.logger.warning(
                        f"Context mismatch kept: {note}",
                        raw_label=raw_label,
                        category=category,
                    )
                    return StandardizedTerm(
                        raw_label=raw_label,
                        category=category,
                        canonical_term=entry.canonical_term,
                        match_kind=kind,
                        confidence=min(confidence, self.context_mismatch_confidence),
                        context_compatible=False,
                        note=f"context mismatch: {note}",
                    )

                self.logger.info(f"Context mismatch discarded: {note}", raw_label=raw_label)
                note = f"discarded on context mismatch: {note}"

        linked = snapshot.linked_terms(category, context.film_type, context.primary_emotion)
        if linked:
            return StandardizedTerm(
                raw_label=raw_label,
                category=category,
                canonical_term=linked[0],
                match_kind=MatchKind.CONTEXT_INFERRED,
                confidence=self.linkage_confidence,
                context_compatible=True,
                note=note or f"inferred from {context.film_type}/{context.primary_emotion}",
            )

        return unresolved.model_copy(update={"note": note})

    def _match_exact(
        self,
        label: str,
        entries: tuple[VocabularyEntry, ...],
    ) -> Optional[tuple[VocabularyEntry, MatchKind, float]]:
        for entry in entries:
            if normalize_label(entry.canonical_term) == label:
                return entry, MatchKind.EXACT, EXACT_CONFIDENCE
        return None

    def _match_alias(
        self,
        label: str,
        entries: tuple[VocabularyEntry, ...],
    ) -> Optional[tuple[VocabularyEntry, MatchKind, float]]:
        """
        Best alias match: equality beats substring, then the longest alias,
        then the earliest entry in the snapshot.
        """
        best: Optional[tuple[VocabularyEntry, MatchKind, float]] = None
        best_rank: Optional[tuple[int, int, int]] = None
        min_len = self.min_alias_match_length

        for index, entry in enumerate(entries):
            for alias in entry.match_terms():
                if alias == label:
                    rank = (2, len(alias), -index)
                    confidence = ALIAS_EQUAL_CONFIDENCE
                elif (
                    self.alias_substring_matching
                    and len(alias) >= min_len
                    and len(label) >= min_len
                    and (alias in label or label in alias)
                ):
                    rank = (1, len(alias), -index)
                    confidence = ALIAS_SUBSTRING_CONFIDENCE
                else:
                    continue

                if best_rank is None or rank > best_rank:
                    best_rank = rank
                    best = (entry, MatchKind.ALIAS, confidence)

        return best

    def canonical_context(self, context: Optional[LabelContext]) -> LabelContext:
        """Map raw film type / emotion onto canonical terms where possible."""
        context = context or LabelContext()
        snapshot = self.registry.snapshot()
        empty = LabelContext()

        def canonical(value: Optional[str], category: str) -> Optional[str]:
            if not value:
                return None
            term = self.resolve(value, category, empty, snapshot)
            if term.match_kind in (MatchKind.EXACT, MatchKind.ALIAS):
                return term.canonical_term
            return value.strip() or None

        return LabelContext(
            film_type=canonical(context.film_type, FILM_TYPE),
            primary_emotion=canonical(context.primary_emotion, EMOTION),
        )

    # ── Steps 5-6 ─────────────────────────────────────────────────────────

    async def standardize(
        self,
        raw_label: str,
        category: str,
        context: Optional[LabelContext] = None,
    ) -> StandardizedTerm:
        """
        Standardize one label with every strategy, including the fallback.

        Returns:
            StandardizedTerm. When all strategies fail, canonical_term is the
            catch-all term (None only for empty labels). Placeholders skip
            the generator and are never harvested.
        """
        context = context or LabelContext()
        snapshot = self.registry.snapshot()
        result = self.resolve(raw_label, category, context, snapshot)
        if result.match_kind != MatchKind.UNRESOLVED:
            return result

        label = " ".join((raw_label or "").split())
        if not label:
            return result
        if self.is_placeholder(label):
            return result.model_copy(update={
                "canonical_term": self.catch_all_term or None,
                "note": "placeholder label; catch-all assigned",
            })

        generated = await self._generate(label, category, context, snapshot)
        if generated is not None:
            entry = snapshot.find(category, generated.term)
            if entry is None:
                await self._submit_candidate(
                    generated.term,
                    category,
                    context,
                    aliases={label},
                    confidence=generated.confidence,
                    source="generated",
                )
                canonical = generated.term
                compatible = None
            else:
                if self.is_plausible_candidate(label):
                    await self._submit_candidate(
                        label,
                        category,
                        context,
                        confidence=generated.confidence,
                        notes=f"generator mapped to '{entry.canonical_term}'",
                    )
                canonical = entry.canonical_term
                compatible = entry.accepts_context(context.film_type)

            return StandardizedTerm(
                raw_label=raw_label,
                category=category,
                canonical_term=canonical,
                match_kind=MatchKind.GENERATED,
                confidence=generated.confidence,
                context_compatible=compatible,
                note=generated.reason,
            )

        if self.is_plausible_candidate(label):
            await self._submit_candidate(label, category, context)

        return result.model_copy(update={
            "canonical_term": self.catch_all_term or None,
            "note": "no strategy matched; catch-all assigned",
        })

    async def standardize_labels(
        self,
        raw_labels: dict[str, list[str]],
        context: Optional[LabelContext] = None,
    ) -> tuple[dict[str, list[str]], list[LabelResolution]]:
        """
        Standardize every label of a classifier output.

        Returns:
            (category -> ordered, de-duplicated canonical terms, resolutions)
        """
        standardized: dict[str, list[str]] = {}
        resolutions: list[LabelResolution] = []

        for category, labels in raw_labels.items():
            terms: list[str] = []
            for raw in labels:
                term = await self.standardize(raw, category, context)
                resolutions.append(LabelResolution(
                    category=category,
                    raw_label=raw,
                    canonical_term=term.canonical_term,
                    match_kind=term.match_kind,
                    confidence=term.confidence,
                    context_compatible=term.context_compatible,
                    note=term.note,
                ))
                if term.canonical_term and term.canonical_term not in terms:
                    terms.append(term.canonical_term)
            if terms:
                standardized[category] = terms

        return standardized, resolutions

    async def _generate(
        self,
        label: str,
        category: str,
        context: LabelContext,
        snapshot: VocabularySnapshot,
    ) -> Optional[GeneratedTerm]:
        if self.generator is None:
            return None

        key = (category, normalize_label(label))
        if key in self._generated:
            return self._generated[key]

        lock = self._generation_locks.setdefault(key, asyncio.Lock())
        try:
            async with lock:
                if key in self._generated:
                    return self._generated[key]

                existing = [e.canonical_term for e in snapshot.entries_for(category)]
                answer: Optional[GeneratedTerm] = None
                try:
                    answer = await asyncio.wait_for(
                        self.generator.generate(label, category, context, existing),
                        self.generator_timeout,
                    )
                except asyncio.TimeoutError:
                    self.logger.warning(
                        f"Term generation timed out after {self.generator_timeout}s",
                        raw_label=label,
                        category=category,
                    )
                except Exception as e:
                    self.logger.warning(f"Term generation failed: {e}", raw_label=label, category=category)

                if answer is not None and (not answer.term.strip() or self.is_placeholder(answer.term)):
                    answer = None

                if answer is not None:
                    self._generated[key] = answer
                return answer
        finally:
            # Waiters already hold a reference to this lock
            if not lock.locked() and self._generation_locks.get(key) is lock:
                del self._generation_locks[key]

    async def _submit_candidate(
        self,
        term: str,
        category: str,
        context: LabelContext,
        aliases: Optional[set[str]] = None,
        confidence: float = 0.0,
        source: str = "unresolved",
        notes: Optional[str] = None,
    ) -> None:
        if self.candidate_queue is None:
            return

        candidate = CandidateTerm(
            term=term,
            category=category,
            suggested_aliases={a for a in (aliases or set()) if a != term},
            suggested_contexts={context.film_type} if context.film_type else set(),
            confidence=confidence,
            source=source,
            review_notes=notes,
        )
        try:
            await self.candidate_queue.submit(candidate)
        except Exception as e:
            self.logger.warning(f"Failed to submit candidate '{term}': {e}", category=category)
