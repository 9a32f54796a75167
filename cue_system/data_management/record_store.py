"""Shared record store contract and in-memory implementation.

Every shared store exposes ONE conditional insert-or-update primitive,
upsert(identity, record). Callers never check-then-insert: two concurrent
upserts for the same identity always end in a single row, the first one
creating it and the second updating it in place.

Implementations:
- InMemoryRecordStore: dict guarded by an asyncio lock (tests, single process)
- SQLiteRecordStore: INSERT ... ON CONFLICT DO UPDATE (sqlite_store.py)
- HttpRecordStore: PUT /records/{identity} against the catalogue API (http_store.py)
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional

from loguru import logger
from pydantic import BaseModel

from cue_system.data_management.schemas.record_schema import AnalysisRecord


class StoreConflictError(Exception):
    """A write violated a store constraint other than the identity key."""

    def __init__(self, identity: str, detail: str):
        self.identity = identity
        self.detail = detail
        super().__init__(f"Store conflict for {identity}: {detail}")


class UpsertResult(BaseModel):
    """What the store reports back from an upsert."""

    record_id: str
    created: bool
    record: AnalysisRecord


class RecordStore(ABC):
    """Remote shared store of AnalysisRecords."""

    @abstractmethod
    async def get_by_fingerprint(self, fingerprint: str) -> Optional[AnalysisRecord]:
        """Record whose fingerprint matches, or None."""

    @abstractmethod
    async def get_by_name(self, name: str) -> Optional[AnalysisRecord]:
        """Most recently updated record with this display name, or None."""

    @abstractmethod
    async def upsert(self, identity: str, record: AnalysisRecord) -> UpsertResult:
        """
        Atomically insert or update the record keyed by identity.

        Raises:
            StoreConflictError: On a constraint violation unrelated to identity.
        """

    async def close(self) -> None:
        """Release connections held by the store."""


def _merge_existing(
    existing: Optional[AnalysisRecord],
    record: AnalysisRecord,
    identity: str,
) -> AnalysisRecord:
    """Apply identity, record_id and timestamps for an insert or an update."""
    now = datetime.now(timezone.utc)
    if existing is None:
        return record.model_copy(update={
            "identity": identity,
            "record_id": uuid.uuid4().hex,
            "created_at": now,
            "updated_at": now,
        })
    return record.model_copy(update={
        "identity": identity,
        "record_id": existing.record_id,
        "created_at": existing.created_at,
        "updated_at": now,
    })


class InMemoryRecordStore(RecordStore):
    """
    Process-local shared store.

    Fingerprints are unique across identities, mirroring the unique index
    the SQL stores carry.
    """

    def __init__(self) -> None:
        self._records: dict[str, AnalysisRecord] = {}
        self._fingerprint_index: dict[str, str] = {}
        self._lock = asyncio.Lock()
        self.logger = logger.bind(component="InMemoryRecordStore")

    async def get_by_fingerprint(self, fingerprint: str) -> Optional[AnalysisRecord]:
        async with self._lock:
            identity = self._fingerprint_index.get(fingerprint)
            return self._records.get(identity) if identity else None

    async def get_by_name(self, name: str) -> Optional[AnalysisRecord]:
        async with self._lock:
            matches = [r for r in self._records.values() if r.name == name]
            if not matches:
                return None
            return max(matches, key=lambda r: r.updated_at or datetime.min.replace(tzinfo=timezone.utc))

    async def upsert(self, identity: str, record: AnalysisRecord) -> UpsertResult:
        async with self._lock:
            fingerprint = record.fingerprint
            if fingerprint:
                holder = self._fingerprint_index.get(fingerprint)
                if holder is not None and holder != identity:
                    raise StoreConflictError(
                        identity, f"fingerprint {fingerprint} already stored under {holder}"
                    )

            existing = self._records.get(identity)
            stored = _merge_existing(existing, record, identity)

            if existing is not None and existing.fingerprint and existing.fingerprint != fingerprint:
                self._fingerprint_index.pop(existing.fingerprint, None)
            self._records[identity] = stored
            if fingerprint:
                self._fingerprint_index[fingerprint] = identity

            self.logger.debug(
                "Record upserted",
                identity=identity,
                action="updated" if existing else "created",
            )
            return UpsertResult(
                record_id=stored.record_id,
                created=existing is None,
                record=stored,
            )

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)
