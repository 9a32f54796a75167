"""Tests for VocabularyStandardizer.

Tests cover:
- Exact and alias resolution (bidirectional substring, deterministic ties)
- Context check (lenient keep, strict discard)
- Context-inferred terms from the linkage table
- Generative fallback, memoization, retry after failure and catch-all
- Placeholder labels falling back to the catch-all term
- Candidate harvesting without duplicates
- Whole-output standardization and canonical context
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from cue_system.data_management.candidate_queue import CandidateReviewQueue
from cue_system.data_management.schemas import (
    GeneratedTerm,
    LabelContext,
    LinkageRule,
    MatchKind,
    VocabularyEntry,
)
from cue_system.data_management.vocabulary_registry import InMemoryVocabularyRegistry
from cue_system.standardization.standardizer import VocabularyStandardizer


# ── Fixtures ──────────────────────────────────────────────────────────────


@pytest.fixture
def registry() -> InMemoryVocabularyRegistry:
    return InMemoryVocabularyRegistry.from_seed()


@pytest.fixture
def queue() -> CandidateReviewQueue:
    return CandidateReviewQueue()


@pytest.fixture
def standardizer(registry, queue) -> VocabularyStandardizer:
    return VocabularyStandardizer(
        registry,
        generator=None,
        candidate_queue=queue,
        context_mismatch_policy="lenient",
        catch_all_term="其他",
    )


@pytest.fixture
def police() -> LabelContext:
    return LabelContext(film_type="警匪片", primary_emotion="紧张")


# ── Exact / Alias Tests ──────────────────────────────────────────────────


class TestExactAndAlias:
    def test_exact_match(self, standardizer, police) -> None:
        term = standardizer.resolve("追逐", "scenario", police)
        assert term.canonical_term == "追逐"
        assert term.match_kind == MatchKind.EXACT
        assert term.confidence == 1.0
        assert term.context_compatible is True

    def test_exact_match_ignores_whitespace(self, standardizer, police) -> None:
        term = standardizer.resolve("  追逐 ", "scenario", police)
        assert term.match_kind == MatchKind.EXACT

    def test_alias_substring(self, standardizer, police) -> None:
        term = standardizer.resolve("追击戏", "scenario", police)
        assert term.canonical_term == "追逐"
        assert term.match_kind == MatchKind.ALIAS

    def test_canonical_is_implicit_alias(self, standardizer, police) -> None:
        term = standardizer.resolve("潜入行动", "scenario", police)
        assert term.canonical_term == "潜入"
        assert term.match_kind == MatchKind.ALIAS

    def test_label_inside_alias(self, standardizer) -> None:
        term = standardizer.resolve("闪回", "scenario", LabelContext())
        assert term.canonical_term == "回忆闪回"

    def test_alias_equality_is_case_insensitive(self, standardizer) -> None:
        term = standardizer.resolve("Chase", "scenario", LabelContext(film_type="动作片"))
        assert term.canonical_term == "追逐"
        assert term.confidence == 0.95

    def test_longest_alias_wins(self) -> None:
        registry = InMemoryVocabularyRegistry([
            VocabularyEntry(category="scenario", canonical_term="追逐", aliases={"追"}),
            VocabularyEntry(category="scenario", canonical_term="飞车追逐", aliases={"飞车追"}),
        ])
        standardizer = VocabularyStandardizer(registry, min_alias_match_length=1)
        term = standardizer.resolve("高速飞车追击", "scenario", LabelContext())
        assert term.canonical_term == "飞车追逐"

    def test_substring_matching_can_be_disabled(self, registry) -> None:
        standardizer = VocabularyStandardizer(registry, alias_substring_matching=False)
        term = standardizer.resolve("追击戏", "scenario", LabelContext(film_type="警匪片"))
        assert term.match_kind != MatchKind.ALIAS

    def test_other_category_not_matched(self, standardizer) -> None:
        term = standardizer.resolve("钢琴", "scenario", LabelContext())
        assert term.match_kind == MatchKind.UNRESOLVED

    def test_resolution_is_deterministic(self, standardizer, police) -> None:
        results = {standardizer.resolve("追击对峙", "scenario", police).canonical_term for _ in range(20)}
        assert len(results) == 1


# ── Context Tests ────────────────────────────────────────────────────────


class TestContextCheck:
    def test_lenient_keeps_mismatch_with_lower_confidence(self, standardizer) -> None:
        term = standardizer.resolve("追逐", "scenario", LabelContext(film_type="校园剧"))
        assert term.canonical_term == "追逐"
        assert term.match_kind == MatchKind.EXACT
        assert term.context_compatible is False
        assert term.confidence == 0.75
        assert "context mismatch" in term.note

    def test_strict_discards_and_falls_back_to_linkage(self, registry) -> None:
        standardizer = VocabularyStandardizer(registry, context_mismatch_policy="strict")
        term = standardizer.resolve(
            "追逐", "scenario", LabelContext(film_type="校园剧", primary_emotion="浪漫")
        )
        assert term.canonical_term == "回忆闪回"
        assert term.match_kind == MatchKind.CONTEXT_INFERRED

    def test_strict_without_linkage_is_unresolved(self, registry) -> None:
        standardizer = VocabularyStandardizer(registry, context_mismatch_policy="strict")
        term = standardizer.resolve("追逐", "scenario", LabelContext(film_type="校园剧"))
        assert term.match_kind == MatchKind.UNRESOLVED
        assert "discarded" in term.note

    def test_unknown_film_type_is_not_a_mismatch(self, standardizer) -> None:
        term = standardizer.resolve("追逐", "scenario", LabelContext())
        assert term.context_compatible is None
        assert term.confidence == 1.0

    def test_entry_without_contexts_fits_any(self, standardizer) -> None:
        term = standardizer.resolve("回忆", "scenario", LabelContext(film_type="警匪片"))
        assert term.context_compatible is True


class TestContextInferred:
    def test_placeholder_uses_linkage(self, standardizer, police) -> None:
        term = standardizer.resolve("未识别", "scenario", police)
        assert term.canonical_term == "追逐"
        assert term.match_kind == MatchKind.CONTEXT_INFERRED
        assert term.confidence == 0.85

    def test_unknown_label_uses_linkage(self, standardizer) -> None:
        context = LabelContext(film_type="推理剧", primary_emotion="冷静")
        term = standardizer.resolve("雨夜独白", "scenario", context)
        assert term.canonical_term == "调查"

    def test_no_linkage_for_partial_context(self, standardizer) -> None:
        term = standardizer.resolve("雨夜独白", "scenario", LabelContext(film_type="推理剧"))
        assert term.match_kind == MatchKind.UNRESOLVED


# ── Generation / Catch-all Tests ─────────────────────────────────────────


class TestGeneration:
    @pytest.mark.asyncio
    async def test_generated_existing_term(self, registry, queue) -> None:
        generator = AsyncMock()
        generator.generate = AsyncMock(return_value=GeneratedTerm(term="对峙", confidence=0.7))
        standardizer = VocabularyStandardizer(registry, generator=generator, candidate_queue=queue)

        term = await standardizer.standardize("天台谈判", "scenario", LabelContext(film_type="警匪片"))
        assert term.canonical_term == "对峙"
        assert term.match_kind == MatchKind.GENERATED
        assert term.confidence == 0.7

        candidate = await queue.get("scenario", "天台谈判")
        assert candidate is not None
        assert "对峙" in candidate.review_notes

    @pytest.mark.asyncio
    async def test_generated_new_term_becomes_candidate(self, registry, queue) -> None:
        generator = AsyncMock()
        generator.generate = AsyncMock(return_value=GeneratedTerm(term="营救", confidence=0.6))
        standardizer = VocabularyStandardizer(registry, generator=generator, candidate_queue=queue)

        term = await standardizer.standardize("解救人质", "scenario", LabelContext(film_type="警匪片"))
        assert term.canonical_term == "营救"

        candidate = await queue.get("scenario", "营救")
        assert candidate.source == "generated"
        assert candidate.suggested_aliases == {"解救人质"}
        assert candidate.suggested_contexts == {"警匪片"}

    @pytest.mark.asyncio
    async def test_generation_is_memoized(self, registry, queue) -> None:
        generator = AsyncMock()
        generator.generate = AsyncMock(return_value=GeneratedTerm(term="营救"))
        standardizer = VocabularyStandardizer(registry, generator=generator, candidate_queue=queue)

        first = await standardizer.standardize("解救人质", "scenario")
        second = await standardizer.standardize("解救人质", "scenario")

        assert first == second
        assert generator.generate.await_count == 1
        pending = await queue.list_pending("scenario")
        assert len(pending) == 1
        assert pending[0].occurrence_count == 2

    @pytest.mark.asyncio
    async def test_concurrent_generation_calls_generator_once(self, registry) -> None:
        calls = 0

        class SlowGenerator:
            async def generate(self, raw_label, category, context, existing_terms):
                nonlocal calls
                calls += 1
                await asyncio.sleep(0.01)
                return GeneratedTerm(term="营救")

        standardizer = VocabularyStandardizer(registry, generator=SlowGenerator())
        results = await asyncio.gather(
            *[standardizer.standardize("解救人质", "scenario") for _ in range(5)]
        )
        assert calls == 1
        assert {r.canonical_term for r in results} == {"营救"}

    @pytest.mark.asyncio
    async def test_generator_timeout_assigns_catch_all(self, registry, queue) -> None:
        class HangingGenerator:
            async def generate(self, raw_label, category, context, existing_terms):
                await asyncio.sleep(5)

        standardizer = VocabularyStandardizer(
            registry,
            generator=HangingGenerator(),
            candidate_queue=queue,
            generator_timeout=0.05,
            catch_all_term="其他",
        )
        term = await standardizer.standardize("解救人质", "scenario")
        assert term.canonical_term == "其他"
        assert term.match_kind == MatchKind.UNRESOLVED
        assert await queue.get("scenario", "解救人质") is not None

    @pytest.mark.asyncio
    async def test_generator_error_assigns_catch_all(self, registry) -> None:
        generator = AsyncMock()
        generator.generate = AsyncMock(side_effect=RuntimeError("quota"))
        standardizer = VocabularyStandardizer(registry, generator=generator, catch_all_term="其他")
        term = await standardizer.standardize("解救人质", "scenario")
        assert term.canonical_term == "其他"

    @pytest.mark.asyncio
    async def test_placeholder_answer_is_ignored(self, registry) -> None:
        generator = AsyncMock()
        generator.generate = AsyncMock(return_value=GeneratedTerm(term="未识别"))
        standardizer = VocabularyStandardizer(registry, generator=generator, catch_all_term="其他")
        term = await standardizer.standardize("解救人质", "scenario")
        assert term.canonical_term == "其他"

    @pytest.mark.asyncio
    async def test_timeout_is_retried_on_next_call(self, registry) -> None:
        generator = AsyncMock()
        generator.generate = AsyncMock(
            side_effect=[asyncio.TimeoutError(), GeneratedTerm(term="追逐", confidence=0.7)]
        )
        standardizer = VocabularyStandardizer(registry, generator=generator, catch_all_term="其他")

        first = await standardizer.standardize("飙车戏码", "scenario")
        second = await standardizer.standardize("飙车戏码", "scenario")

        assert first.canonical_term == "其他"
        assert second.canonical_term == "追逐"
        assert second.match_kind == MatchKind.GENERATED
        assert generator.generate.await_count == 2
        assert standardizer._generation_locks == {}

    @pytest.mark.asyncio
    async def test_placeholder_skips_generator(self, registry, queue) -> None:
        generator = AsyncMock()
        generator.generate = AsyncMock(return_value=GeneratedTerm(term="营救"))
        standardizer = VocabularyStandardizer(
            registry, generator=generator, candidate_queue=queue, catch_all_term="其他"
        )

        term = await standardizer.standardize("未识别", "scenario", LabelContext(film_type="爱情片"))

        assert term.canonical_term == "其他"
        assert term.match_kind == MatchKind.UNRESOLVED
        generator.generate.assert_not_awaited()
        assert await queue.list_pending() == []


# ── Idempotence / Candidate Tests ────────────────────────────────────────


class TestIdempotenceAndCandidates:
    @pytest.mark.asyncio
    async def test_standardize_twice_identical(self, standardizer, police) -> None:
        for label in ("追击戏", "潜入行动", "未识别", "完全陌生的标签"):
            first = await standardizer.standardize(label, "scenario", police)
            second = await standardizer.standardize(label, "scenario", police)
            assert first == second

    @pytest.mark.asyncio
    async def test_placeholder_not_harvested(self, standardizer, queue) -> None:
        term = await standardizer.standardize("未识别场景", "scenario", LabelContext())
        assert term.canonical_term == "其他"
        assert await queue.list_pending() == []

    @pytest.mark.asyncio
    async def test_implausible_labels_not_harvested(self, standardizer, queue) -> None:
        await standardizer.standardize("123", "style")
        await standardizer.standardize("这是一个非常非常长的完全不像术语的描述性句子内容", "style")
        assert await queue.list_pending() == []

    @pytest.mark.asyncio
    async def test_unresolved_label_harvested_once(self, standardizer, queue) -> None:
        await standardizer.standardize("蒸汽波", "style")
        await standardizer.standardize("蒸汽波", "style")
        pending = await queue.list_pending("style")
        assert len(pending) == 1
        assert pending[0].term == "蒸汽波"
        assert pending[0].occurrence_count == 2

    @pytest.mark.asyncio
    async def test_candidate_length_limits_are_configurable(self, registry, queue) -> None:
        standardizer = VocabularyStandardizer(
            registry, candidate_queue=queue, candidate_max_length=3
        )
        term = await standardizer.standardize("蒸汽波音乐", "style")
        assert term.canonical_term == "其他"
        assert not standardizer.is_plausible_candidate("蒸汽波音乐")
        assert await queue.list_pending() == []

    @pytest.mark.asyncio
    async def test_empty_label(self, standardizer) -> None:
        term = await standardizer.standardize("   ", "scenario")
        assert term.canonical_term is None
        assert term.match_kind == MatchKind.UNRESOLVED


class TestStandardizeLabels:
    @pytest.mark.asyncio
    async def test_ordered_deduplicated_output(self, standardizer, police) -> None:
        standardized, resolutions = await standardizer.standardize_labels(
            {
                "scenario": ["追击戏", "追逐", "潜入行动"],
                "emotion": ["紧张感", "悬疑"],
            },
            police,
        )
        assert standardized["scenario"] == ["追逐", "潜入"]
        assert standardized["emotion"] == ["紧张", "悬疑"]
        assert len(resolutions) == 5
        assert resolutions[0].raw_label == "追击戏"
        assert resolutions[0].match_kind == MatchKind.ALIAS

    @pytest.mark.asyncio
    async def test_empty_categories_omitted(self, standardizer) -> None:
        standardized, _ = await standardizer.standardize_labels(
            {"scenario": ["   "], "emotion": []}, LabelContext()
        )
        assert standardized == {}

    @pytest.mark.asyncio
    async def test_placeholder_category_keeps_catch_all(self, standardizer, queue) -> None:
        standardized, resolutions = await standardizer.standardize_labels(
            {"scenario": ["未识别"]}, LabelContext(film_type="爱情片")
        )
        assert standardized == {"scenario": ["其他"]}
        assert resolutions[0].match_kind == MatchKind.UNRESOLVED
        assert await queue.list_pending() == []

    def test_canonical_context(self, standardizer) -> None:
        context = standardizer.canonical_context(
            LabelContext(film_type="犯罪片", primary_emotion="紧张感")
        )
        assert context.film_type == "警匪片"
        assert context.primary_emotion == "紧张"

    def test_canonical_context_keeps_unknown_values(self, standardizer) -> None:
        context = standardizer.canonical_context(LabelContext(film_type="武侠片"))
        assert context.film_type == "武侠片"
        assert context.primary_emotion is None


class TestRuntimeRefresh:
    def test_replaced_vocabulary_used_immediately(self, registry, standardizer) -> None:
        registry.replace(
            [VocabularyEntry(category="scenario", canonical_term="营救", aliases={"解救"})],
            [LinkageRule(film_type="警匪片", primary_emotion="紧张", terms=["营救"])],
        )
        assert standardizer.resolve("解救人质", "scenario").canonical_term == "营救"
        assert standardizer.resolve("追逐", "scenario").match_kind == MatchKind.UNRESOLVED
