"""SQLite-backed shared record store.

SQLite calls run synchronously under an asyncio lock rather than in worker
threads; a single connection in autocommit mode is shared by all tasks.

Schema:
    records(identity PK, record_id UNIQUE, fingerprint UNIQUE, name, payload JSON,
            created_at, updated_at)

The upsert is one statement:
    INSERT ... ON CONFLICT(identity) DO UPDATE SET ... RETURNING record_id, created_at
so concurrent commits for one identity can never produce two rows. A unique
violation on any other column (e.g. the same fingerprint under a second
identity) surfaces as StoreConflictError.
"""

import asyncio
import json
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog

from cue_system.data_management.record_store import (
    RecordStore,
    StoreConflictError,
    UpsertResult,
)
from cue_system.data_management.schemas.record_schema import AnalysisRecord


_SCHEMA = """
CREATE TABLE IF NOT EXISTS records (
    identity    TEXT PRIMARY KEY,
    record_id   TEXT NOT NULL UNIQUE,
    fingerprint TEXT UNIQUE,
    name        TEXT NOT NULL,
    payload     TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_records_name ON records(name, updated_at);
"""

_UPSERT = """
INSERT INTO records(identity, record_id, fingerprint, name, payload, created_at, updated_at)
VALUES(?, ?, ?, ?, ?, ?, ?)
ON CONFLICT(identity) DO UPDATE SET
    fingerprint=excluded.fingerprint,
    name=excluded.name,
    payload=excluded.payload,
    updated_at=excluded.updated_at
RETURNING record_id, created_at
"""


class SQLiteRecordStore(RecordStore):
    """
    Shared store on a SQLite database file.

    Usage:
        store = SQLiteRecordStore("data/records.sqlite3")
        result = await store.upsert("abc123", record)
        again = await store.get_by_fingerprint("abc123")
        await store.close()
    """

    def __init__(self, path: str = ":memory:") -> None:
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self.path = path
        self._conn = sqlite3.connect(
            path,
            check_same_thread=False,
            isolation_level=None,
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.executescript(_SCHEMA)
        self._lock = asyncio.Lock()
        self._logger = structlog.get_logger().bind(component="SQLiteRecordStore")

    async def get_by_fingerprint(self, fingerprint: str) -> Optional[AnalysisRecord]:
        async with self._lock:
            row = self._conn.execute(
                "SELECT * FROM records WHERE fingerprint = ?", (fingerprint,)
            ).fetchone()
        return self._row_to_record(row) if row else None

    async def get_by_name(self, name: str) -> Optional[AnalysisRecord]:
        async with self._lock:
            row = self._conn.execute(
                "SELECT * FROM records WHERE name = ? ORDER BY updated_at DESC LIMIT 1",
                (name,),
            ).fetchone()
        return self._row_to_record(row) if row else None

    async def upsert(self, identity: str, record: AnalysisRecord) -> UpsertResult:
        proposed_id = uuid.uuid4().hex
        now = datetime.now(timezone.utc).isoformat()
        payload = record.model_dump_json(
            exclude={"record_id", "identity", "created_at", "updated_at"}
        )

        async with self._lock:
            try:
                rows = self._conn.execute(
                    _UPSERT,
                    (identity, proposed_id, record.fingerprint, record.name, payload, now, now),
                ).fetchall()
            except sqlite3.IntegrityError as e:
                self._logger.warning("upsert_conflict", identity=identity, error=str(e))
                raise StoreConflictError(identity, str(e)) from e

        row = rows[0]
        created = row["record_id"] == proposed_id
        stored = record.model_copy(update={
            "identity": identity,
            "record_id": row["record_id"],
            "created_at": datetime.fromisoformat(row["created_at"]),
            "updated_at": datetime.fromisoformat(now),
        })

        self._logger.debug(
            "record_upserted",
            identity=identity,
            action="created" if created else "updated",
        )
        return UpsertResult(record_id=row["record_id"], created=created, record=stored)

    async def count(self) -> int:
        async with self._lock:
            row = self._conn.execute("SELECT COUNT(*) AS n FROM records").fetchone()
        return int(row["n"])

    async def close(self) -> None:
        async with self._lock:
            self._conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> AnalysisRecord:
        data = json.loads(row["payload"])
        data.update({
            "identity": row["identity"],
            "record_id": row["record_id"],
            "created_at": row["created_at"],
            "updated_at": row["updated_at"],
        })
        return AnalysisRecord.model_validate(data)
