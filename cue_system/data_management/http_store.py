"""HTTP client for the shared catalogue record service.

Endpoints:
    GET /records/by-fingerprint/{fingerprint}  -> 200 record | 404
    GET /records/by-name?name=...              -> 200 record | 404
    PUT /records/{identity}                    -> 200 {record_id, created, record}
                                                  409 on a non-identity constraint

The service implements PUT as a single conditional upsert, so this client
never issues a lookup before writing.
"""

from typing import Optional
from urllib.parse import quote

import httpx
from loguru import logger

from cue_system.data_management.record_store import (
    RecordStore,
    StoreConflictError,
    UpsertResult,
)
from cue_system.data_management.schemas.record_schema import AnalysisRecord


class HttpRecordStore(RecordStore):
    """
    Shared store reached over HTTP.

    Transport errors and timeouts propagate as httpx exceptions; callers
    (the cache and the upsert coordinator) decide how to treat them.

    Attributes:
        base_url: Service root URL
        timeout: Per-request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self.logger = logger.bind(component="HttpRecordStore")

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def get_by_fingerprint(self, fingerprint: str) -> Optional[AnalysisRecord]:
        return await self._get_record(f"/records/by-fingerprint/{quote(fingerprint, safe='')}")

    async def get_by_name(self, name: str) -> Optional[AnalysisRecord]:
        return await self._get_record("/records/by-name", params={"name": name})

    async def _get_record(self, path: str, params: Optional[dict] = None) -> Optional[AnalysisRecord]:
        client = await self._get_client()
        response = await client.get(path, params=params)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return AnalysisRecord.model_validate(response.json())

    async def upsert(self, identity: str, record: AnalysisRecord) -> UpsertResult:
        client = await self._get_client()
        response = await client.put(
            f"/records/{quote(identity, safe='')}",
            json=record.model_dump(mode="json"),
        )

        if response.status_code == 409:
            detail = _error_detail(response)
            self.logger.warning(f"Upsert conflict for {identity}: {detail}")
            raise StoreConflictError(identity, detail)

        response.raise_for_status()
        result = UpsertResult.model_validate(response.json())
        self.logger.debug(
            "Record upserted",
            identity=identity,
            action="created" if result.created else "updated",
        )
        return result

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("error") or body)
    return str(body)
