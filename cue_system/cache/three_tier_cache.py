"""Three-tier cache cascade in front of the classifier.

Lookup order, first hit wins:
1. Local durable store by fingerprint (skipped when identity is name-only)
2. Remote shared store by fingerprint (bounded timeout)
3. Remote shared store by display name (bounded timeout)

Tier 3 runs even after tiers 1-2 miss so that a curator-corrected record
stored under the same name is reused instead of re-classifying. A tier
that times out or errors counts as a miss; lookup itself never raises.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from loguru import logger

from cue_system.config.settings import settings
from cue_system.data_management.local_store import LocalRecordStore
from cue_system.data_management.record_store import RecordStore
from cue_system.data_management.schemas.record_schema import AnalysisRecord, Identity


class CacheTier(str, Enum):
    LOCAL = "local"
    REMOTE_FINGERPRINT = "remote_fingerprint"
    REMOTE_NAME = "remote_name"


class TierOutcome(str, Enum):
    HIT = "hit"
    MISS = "miss"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass
class TierAttempt:
    tier: CacheTier
    outcome: TierOutcome
    detail: Optional[str] = None


@dataclass
class CacheLookup:
    """Result of a cascade lookup."""

    record: Optional[AnalysisRecord] = None
    tier: Optional[CacheTier] = None
    attempts: List[TierAttempt] = field(default_factory=list)

    @property
    def hit(self) -> bool:
        return self.record is not None


@dataclass
class CacheStats:
    """Per-tier outcome counters."""

    lookups: int = 0
    misses: int = 0
    tiers: Dict[str, Dict[str, int]] = field(default_factory=dict)

    def record(self, attempt: TierAttempt) -> None:
        counts = self.tiers.setdefault(attempt.tier.value, {})
        counts[attempt.outcome.value] = counts.get(attempt.outcome.value, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lookups": self.lookups,
            "misses": self.misses,
            "tiers": {k: dict(v) for k, v in self.tiers.items()},
        }


class ThreeTierCache:
    """
    Cascade over the local and remote stores.

    Usage:
        cache = ThreeTierCache(local_store, remote_store)
        lookup = await cache.lookup(identity)
        if lookup.hit:
            return lookup.record

    Attributes:
        local: Local durable store (tier 1)
        remote: Shared record store (tiers 2 and 3)
        remote_timeout: Seconds allowed per remote tier
        warm_local: Copy remote fingerprint hits into the local store
    """

    def __init__(
        self,
        local: LocalRecordStore,
        remote: RecordStore,
        remote_timeout: Optional[float] = None,
        warm_local: Optional[bool] = None,
    ):
        self.local = local
        self.remote = remote
        self.remote_timeout = remote_timeout or settings.remote_timeout_seconds
        self.warm_local = settings.warm_local_on_remote_hit if warm_local is None else warm_local
        self.stats = CacheStats()
        self.logger = logger.bind(component="ThreeTierCache")

    async def lookup(self, identity: Identity, name: Optional[str] = None) -> CacheLookup:
        """
        Find a prior record for this identity.

        Args:
            identity: Resolved identity of the asset.
            name: Display name for tier 3; defaults to identity.name.

        Returns:
            CacheLookup; record is None on a full miss.
        """
        self.stats.lookups += 1
        result = CacheLookup()
        fingerprint = identity.fingerprint
        display_name = name or identity.name

        tiers: list[tuple[CacheTier, Optional[Callable[[], Awaitable[Optional[AnalysisRecord]]]], Optional[float]]] = [
            (
                CacheTier.LOCAL,
                (lambda: self.local.get(fingerprint)) if fingerprint else None,
                None,
            ),
            (
                CacheTier.REMOTE_FINGERPRINT,
                (lambda: self.remote.get_by_fingerprint(fingerprint)) if fingerprint else None,
                self.remote_timeout,
            ),
            (
                CacheTier.REMOTE_NAME,
                (lambda: self.remote.get_by_name(display_name)) if display_name else None,
                self.remote_timeout,
            ),
        ]

        for tier, fetch, timeout in tiers:
            if fetch is None:
                attempt = TierAttempt(tier, TierOutcome.SKIPPED, "no key for tier")
                result.attempts.append(attempt)
                self.stats.record(attempt)
                continue

            record, attempt = await self._try_tier(tier, fetch, timeout)
            result.attempts.append(attempt)
            self.stats.record(attempt)

            if record is not None:
                result.record = record
                result.tier = tier
                self.logger.debug(f"Cache hit on {tier.value}", identity=identity.key)
                if tier != CacheTier.LOCAL:
                    await self._warm_local(identity, record)
                return result

        self.stats.misses += 1
        self.logger.debug("Cache miss on all tiers", identity=identity.key)
        return result

    async def _try_tier(
        self,
        tier: CacheTier,
        fetch: Callable[[], Awaitable[Optional[AnalysisRecord]]],
        timeout: Optional[float],
    ) -> tuple[Optional[AnalysisRecord], TierAttempt]:
        try:
            if timeout is None:
                record = await fetch()
            else:
                record = await asyncio.wait_for(fetch(), timeout)
        except asyncio.TimeoutError:
            self.logger.warning(f"Tier {tier.value} timed out after {timeout}s")
            return None, TierAttempt(tier, TierOutcome.ERROR, "timeout")
        except Exception as e:
            self.logger.warning(f"Tier {tier.value} failed: {e}")
            return None, TierAttempt(tier, TierOutcome.ERROR, str(e))

        if record is None:
            return None, TierAttempt(tier, TierOutcome.MISS)
        return record, TierAttempt(tier, TierOutcome.HIT)

    async def _warm_local(self, identity: Identity, record: AnalysisRecord) -> None:
        # Only content-matching records go under the fingerprint key.
        if not self.warm_local or not identity.fingerprint:
            return
        if record.fingerprint != identity.fingerprint:
            return
        try:
            await self.local.put(identity.fingerprint, record)
        except Exception as e:
            self.logger.warning(f"Failed to warm local store: {e}")
