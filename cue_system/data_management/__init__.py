"""Data management package for the cue analysis system.

Storage adapters:
- LocalRecordStore: fingerprint-keyed local durable store (cache tier 1)
- RecordStore implementations: shared store (cache tiers 2-3, commit target)
- CandidateReviewQueue: harvested terms awaiting curator review
- InMemoryVocabularyRegistry: controlled vocabulary snapshots
- UpsertCoordinator: atomic per-identity commit
"""

from cue_system.data_management.candidate_queue import CandidateReviewQueue
from cue_system.data_management.http_store import HttpRecordStore
from cue_system.data_management.local_store import LocalRecordStore
from cue_system.data_management.record_store import (
    InMemoryRecordStore,
    RecordStore,
    StoreConflictError,
    UpsertResult,
)
from cue_system.data_management.sqlite_store import SQLiteRecordStore
from cue_system.data_management.upsert_coordinator import (
    CommitConflictError,
    CommitError,
    UpsertCoordinator,
)
from cue_system.data_management.vocabulary_registry import (
    InMemoryVocabularyRegistry,
    VocabularyConflictError,
    VocabularyRegistry,
    VocabularySnapshot,
)

__all__ = [
    "CandidateReviewQueue",
    "HttpRecordStore",
    "LocalRecordStore",
    "InMemoryRecordStore",
    "RecordStore",
    "StoreConflictError",
    "UpsertResult",
    "SQLiteRecordStore",
    "CommitConflictError",
    "CommitError",
    "UpsertCoordinator",
    "InMemoryVocabularyRegistry",
    "VocabularyConflictError",
    "VocabularyRegistry",
    "VocabularySnapshot",
]
