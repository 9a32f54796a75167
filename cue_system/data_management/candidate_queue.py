"""Human review queue for candidate vocabulary terms.

Standardization submits labels the vocabulary could not absorb. The queue
keeps exactly one CandidateTerm per (category, normalized term): repeated
submissions bump occurrence_count and merge suggested aliases/contexts
instead of creating duplicates. Approval and promotion into the vocabulary
happen outside this subsystem; set_status only records the decision.
"""

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from cue_system.data_management.schemas.vocabulary_schema import (
    CandidateStatus,
    CandidateTerm,
    normalize_label,
)


class CandidateReviewQueue:
    """Deduplicating sink for CandidateTerms with optional JSON persistence."""

    def __init__(self, persistence_path: Optional[str] = None):
        """
        Initialize review queue.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._candidates: dict[tuple[str, str], CandidateTerm] = {}
        self._lock = asyncio.Lock()
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self.logger = logger.bind(component="CandidateReviewQueue")

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

    async def submit(self, candidate: CandidateTerm) -> CandidateTerm:
        """
        Submit a candidate, merging with an existing one for the same term.

        Args:
            candidate: Proposed term.

        Returns:
            The stored CandidateTerm after merging.
        """
        async with self._lock:
            key = candidate.key
            existing = self._candidates.get(key)

            if existing is None:
                stored = candidate.model_copy(deep=True)
                action = "created"
            else:
                stored = existing.model_copy(update={
                    "suggested_aliases": existing.suggested_aliases | candidate.suggested_aliases,
                    "suggested_contexts": existing.suggested_contexts | candidate.suggested_contexts,
                    "confidence": max(existing.confidence, candidate.confidence),
                    "occurrence_count": existing.occurrence_count + 1,
                    "last_seen_at": datetime.now(timezone.utc),
                })
                action = "updated"

            self._candidates[key] = stored

            if self.persistence_path:
                self._save_to_file()

            self.logger.debug(
                f"Candidate term {action}",
                term=stored.term,
                category=stored.category,
                occurrences=stored.occurrence_count,
            )
            return stored

    async def get(self, category: str, term: str) -> Optional[CandidateTerm]:
        async with self._lock:
            return self._candidates.get((category, normalize_label(term)))

    async def list_pending(self, category: Optional[str] = None) -> list[CandidateTerm]:
        """Pending candidates, most frequently proposed first."""
        async with self._lock:
            pending = [
                c for c in self._candidates.values()
                if c.status == CandidateStatus.PENDING_REVIEW
                and (category is None or c.category == category)
            ]
        return sorted(pending, key=lambda c: (-c.occurrence_count, c.category, c.term))

    async def set_status(
        self,
        category: str,
        term: str,
        status: CandidateStatus,
        notes: Optional[str] = None,
    ) -> bool:
        """
        Record an external review decision.

        Returns:
            True if the candidate exists and was updated.
        """
        async with self._lock:
            key = (category, normalize_label(term))
            candidate = self._candidates.get(key)
            if candidate is None:
                return False

            self._candidates[key] = candidate.model_copy(update={
                "status": status,
                "review_notes": notes or candidate.review_notes,
            })

            if self.persistence_path:
                self._save_to_file()

            self.logger.info(f"Candidate '{term}' marked {status.value}", category=category)
            return True

    async def get_stats(self) -> dict[str, Any]:
        async with self._lock:
            by_status: dict[str, int] = {}
            for c in self._candidates.values():
                by_status[c.status.value] = by_status.get(c.status.value, 0) + 1
            return {"total": len(self._candidates), "by_status": by_status}

    def _save_to_file(self) -> None:
        """Save candidates to JSON file (synchronous)."""
        if not self.persistence_path:
            return

        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data = [c.model_dump(mode="json") for c in self._candidates.values()]
            with open(self.persistence_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            self.logger.error(f"Failed to persist to file: {e}")

    def _load_from_file(self) -> None:
        """Load candidates from JSON file (synchronous)."""
        try:
            with open(self.persistence_path, "r", encoding="utf-8") as f:
                data = json.load(f)
            for raw in data:
                candidate = CandidateTerm.model_validate(raw)
                self._candidates[candidate.key] = candidate
            self.logger.info(f"Loaded {len(self._candidates)} candidate terms")
        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to load from file: {e}")
            self._candidates = {}
