"""Tests for LocalRecordStore and CandidateReviewQueue persistence and merging."""

import pytest

from cue_system.data_management.candidate_queue import CandidateReviewQueue
from cue_system.data_management.local_store import LocalRecordStore
from cue_system.data_management.schemas import AnalysisRecord, CandidateStatus, CandidateTerm


# ── Local Store Tests ────────────────────────────────────────────────────


class TestLocalRecordStore:
    @pytest.mark.asyncio
    async def test_put_and_get(self) -> None:
        store = LocalRecordStore()
        record = AnalysisRecord(identity="abc123", fingerprint="abc123", name="a.mp3")

        first = await store.put("abc123", record)
        second = await store.put("abc123", record)

        assert first["action"] == "created"
        assert second["action"] == "updated"
        assert (await store.get("abc123")).name == "a.mp3"
        assert await store.get("missing") is None
        assert await store.count() == 1

    @pytest.mark.asyncio
    async def test_persistence_reload(self, tmp_path) -> None:
        path = str(tmp_path / "local" / "records.json")
        store = LocalRecordStore(path)
        await store.put(
            "abc123",
            AnalysisRecord(
                identity="abc123",
                fingerprint="abc123",
                name="a.mp3",
                standardized_labels={"scenario": ["潜入"]},
            ),
        )

        reloaded = LocalRecordStore(path)
        record = await reloaded.get("abc123")
        assert record.standardized_labels == {"scenario": ["潜入"]}

    def test_corrupt_file_starts_empty(self, tmp_path) -> None:
        path = tmp_path / "records.json"
        path.write_text("{not json", encoding="utf-8")
        store = LocalRecordStore(str(path))
        assert store._records == {}


# ── Candidate Queue Tests ────────────────────────────────────────────────


class TestCandidateReviewQueue:
    @pytest.mark.asyncio
    async def test_resubmission_merges(self) -> None:
        queue = CandidateReviewQueue()
        await queue.submit(CandidateTerm(
            term="营救", category="scenario", suggested_aliases={"解救人质"},
            suggested_contexts={"警匪片"}, confidence=0.5,
        ))
        merged = await queue.submit(CandidateTerm(
            term=" 营救 ", category="scenario", suggested_aliases={"救援"},
            suggested_contexts={"动作片"}, confidence=0.8,
        ))

        assert merged.occurrence_count == 2
        assert merged.suggested_aliases == {"解救人质", "救援"}
        assert merged.suggested_contexts == {"警匪片", "动作片"}
        assert merged.confidence == 0.8
        assert merged.last_seen_at >= merged.first_seen_at
        assert len(await queue.list_pending()) == 1

    @pytest.mark.asyncio
    async def test_same_term_other_category_kept_apart(self) -> None:
        queue = CandidateReviewQueue()
        await queue.submit(CandidateTerm(term="电子", category="style"))
        await queue.submit(CandidateTerm(term="电子", category="instrument"))
        assert len(await queue.list_pending()) == 2
        assert len(await queue.list_pending("style")) == 1

    @pytest.mark.asyncio
    async def test_pending_sorted_by_frequency(self) -> None:
        queue = CandidateReviewQueue()
        await queue.submit(CandidateTerm(term="蒸汽波", category="style"))
        await queue.submit(CandidateTerm(term="营救", category="scenario"))
        await queue.submit(CandidateTerm(term="营救", category="scenario"))

        pending = await queue.list_pending()
        assert [c.term for c in pending] == ["营救", "蒸汽波"]

    @pytest.mark.asyncio
    async def test_set_status_removes_from_pending(self) -> None:
        queue = CandidateReviewQueue()
        await queue.submit(CandidateTerm(term="营救", category="scenario"))

        assert await queue.set_status("scenario", "营救", CandidateStatus.APPROVED, "looks good")
        assert not await queue.set_status("scenario", "missing", CandidateStatus.REJECTED)
        assert await queue.list_pending() == []

        stats = await queue.get_stats()
        assert stats == {"total": 1, "by_status": {"approved": 1}}
        assert (await queue.get("scenario", "营救")).review_notes == "looks good"

    @pytest.mark.asyncio
    async def test_persistence_reload(self, tmp_path) -> None:
        path = str(tmp_path / "candidates.json")
        queue = CandidateReviewQueue(path)
        await queue.submit(CandidateTerm(term="营救", category="scenario", suggested_aliases={"解救"}))
        await queue.submit(CandidateTerm(term="营救", category="scenario"))

        reloaded = CandidateReviewQueue(path)
        candidate = await reloaded.get("scenario", "营救")
        assert candidate.occurrence_count == 2
        assert candidate.suggested_aliases == {"解救"}
