"""Local durable record store keyed by content fingerprint.

First tier of the cache cascade. Lives on the analysis host, so lookups
never leave the process; records are mirrored to a JSON file when a
persistence path is given.

Usage:
    from cue_system.data_management.local_store import LocalRecordStore

    store = LocalRecordStore("data/local_records.json")
    await store.put("abc123", record)
    record = await store.get("abc123")
"""

import asyncio
import json
from pathlib import Path
from typing import Optional

from loguru import logger

from cue_system.data_management.schemas.record_schema import AnalysisRecord


class LocalRecordStore:
    """
    Fingerprint -> AnalysisRecord map with optional JSON persistence.

    Data structure:
    {
        fingerprint: AnalysisRecord,
        ...
    }
    """

    def __init__(self, persistence_path: Optional[str] = None):
        """
        Initialize local store.

        Args:
            persistence_path: Optional path to JSON file for persistence.
                            If None, storage is memory-only.
        """
        self._records: dict[str, AnalysisRecord] = {}
        self._lock = asyncio.Lock()
        self.persistence_path = Path(persistence_path) if persistence_path else None
        self.logger = logger.bind(component="LocalRecordStore")

        if self.persistence_path and self.persistence_path.exists():
            self._load_from_file()

        self.logger.info(
            "LocalRecordStore initialized",
            persistence_enabled=self.persistence_path is not None,
            records=len(self._records),
        )

    async def get(self, fingerprint: str) -> Optional[AnalysisRecord]:
        async with self._lock:
            return self._records.get(fingerprint)

    async def put(self, fingerprint: str, record: AnalysisRecord) -> dict[str, str]:
        """
        Store a record under its fingerprint, replacing any previous one.

        Returns:
            {"action": "created" | "updated", "fingerprint": ...}
        """
        async with self._lock:
            action = "updated" if fingerprint in self._records else "created"
            self._records[fingerprint] = record

            if self.persistence_path:
                self._save_to_file()

            self.logger.debug(f"Local record {action}", fingerprint=fingerprint)
            return {"action": action, "fingerprint": fingerprint}

    async def count(self) -> int:
        async with self._lock:
            return len(self._records)

    def _save_to_file(self) -> None:
        """Save current records to JSON file (synchronous)."""
        if not self.persistence_path:
            return

        try:
            self.persistence_path.parent.mkdir(parents=True, exist_ok=True)
            data = {
                fp: record.model_dump(mode="json")
                for fp, record in self._records.items()
            }
            with open(self.persistence_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)

            self.logger.debug(f"Persisted to {self.persistence_path}")

        except OSError as e:
            self.logger.error(f"Failed to persist to file: {e}")

    def _load_from_file(self) -> None:
        """Load records from JSON file (synchronous)."""
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            with open(self.persistence_path, "r", encoding="utf-8") as f:
                data = json.load(f)

            self._records = {
                fp: AnalysisRecord.model_validate(raw) for fp, raw in data.items()
            }
            self.logger.info(f"Loaded {len(self._records)} records from {self.persistence_path}")

        except (OSError, ValueError) as e:
            self.logger.error(f"Failed to load from file: {e}")
            self._records = {}
