"""Atomic per-identity commit of analysis records.

The coordinator is the only writer to the shared store. It relies on the
store's single conditional upsert, never on a lookup followed by an insert,
so any number of concurrent commits for one identity leave exactly one row.
"""

import asyncio
from typing import Optional

from cue_system.config.settings import settings
from cue_system.data_management.record_store import RecordStore, StoreConflictError
from cue_system.data_management.schemas.record_schema import (
    AnalysisRecord,
    CommittedRecord,
    Identity,
)
from cue_system.utils.logging import get_structured_logger


class CommitError(Exception):
    """The record could not be committed; nothing was written."""

    def __init__(self, identity: Identity, detail: str):
        self.identity = identity
        self.detail = detail
        super().__init__(f"Commit failed for {identity.key}: {detail}")


class CommitConflictError(CommitError):
    """The store rejected the write on a constraint unrelated to identity."""


class UpsertCoordinator:
    """
    Commits AnalysisRecords through the shared store's upsert primitive.

    Usage:
        coordinator = UpsertCoordinator(store)
        committed = await coordinator.commit(identity, record)
        print(committed.record_id, committed.created)
    """

    def __init__(self, store: RecordStore, timeout: Optional[float] = None):
        self.store = store
        self.timeout = timeout or settings.commit_timeout_seconds
        self._logger = get_structured_logger(__name__, component="UpsertCoordinator")

    async def commit(self, identity: Identity, record: AnalysisRecord) -> CommittedRecord:
        """
        Insert or update the record for this identity.

        Args:
            identity: Resolved identity; its key is the uniqueness key.
            record: Record to persist. Identity fields are overwritten.

        Returns:
            CommittedRecord with the store-assigned record_id and whether
            this call created the row.

        Raises:
            CommitConflictError: Store reported a non-identity constraint violation.
            CommitError: Store unreachable, timed out or failed otherwise.
        """
        key = identity.key
        record = record.model_copy(update={
            "identity": key,
            "fingerprint": identity.fingerprint,
            "name": identity.name,
        })

        try:
            result = await asyncio.wait_for(self.store.upsert(key, record), self.timeout)
        except StoreConflictError as e:
            self._logger.warning("commit_conflict", identity=key, detail=e.detail)
            raise CommitConflictError(identity, e.detail) from e
        except asyncio.TimeoutError as e:
            self._logger.error("commit_timeout", identity=key, timeout=self.timeout)
            raise CommitError(identity, f"timed out after {self.timeout}s") from e
        except Exception as e:
            self._logger.error("commit_failed", identity=key, error=str(e))
            raise CommitError(identity, str(e)) from e

        self._logger.info(
            "record_committed",
            identity=key,
            record_id=result.record_id,
            created=result.created,
        )
        return CommittedRecord(
            record_id=result.record_id,
            identity=key,
            created=result.created,
            record=result.record,
        )
