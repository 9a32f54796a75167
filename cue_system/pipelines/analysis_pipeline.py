"""Analysis pipeline: identity -> cache -> classify -> standardize -> reconcile -> commit.

Per asset:
1. Resolve identity (fingerprint, or name when degraded)
2. Three-tier cache lookup; a hit is returned without classifying
   (skipped when re-analyzing, so the stored record is updated in place)
3. External classifier (bounded timeout)
4. Vocabulary standardization of every raw label
5. Provenance reconciliation
6. Atomic commit through the UpsertCoordinator, then mirror to the local store

Batches run assets concurrently under aiometer with a bounded pool. Each
asset is isolated: one failure becomes that asset's PipelineResult and
never aborts its siblings. abandon() stops dispatching new assets; assets
already past the cache lookup finish and commit.

Features:
- Degraded, uncommitted records when the classifier fails or times out
- Per-outcome statistics and error tracking
- Lazily constructed default components
"""

import asyncio
import functools
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

import aiometer
from loguru import logger
from structlog.contextvars import bound_contextvars

from cue_system.config.settings import settings
from cue_system.data_management.schemas.provenance_schema import ConfidenceTier, ProvenanceInfo
from cue_system.data_management.schemas.record_schema import (
    AnalysisRecord,
    Asset,
    Identity,
)
from cue_system.data_management.upsert_coordinator import CommitError
from cue_system.utils.logging import new_batch_id


class PipelineOutcome(str, Enum):
    CACHED = "cached"  # Prior record reused, classifier skipped
    COMMITTED = "committed"  # Classified and committed
    DEGRADED = "degraded"  # Classifier failed, record not committed
    FAILED = "failed"  # Commit or unexpected failure
    DROPPED = "dropped"  # Batch abandoned before dispatch


@dataclass
class PipelineResult:
    """Outcome of one asset."""

    asset_name: str
    outcome: PipelineOutcome
    record: Optional[AnalysisRecord] = None
    identity: Optional[Identity] = None
    cache_tier: Optional[str] = None
    created: Optional[bool] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "asset_name": self.asset_name,
            "outcome": self.outcome.value,
            "identity": self.identity.key if self.identity else None,
            "record_id": self.record.record_id if self.record else None,
            "cache_tier": self.cache_tier,
            "created": self.created,
            "error": self.error,
        }


@dataclass
class PipelineStats:
    """Statistics tracking for pipeline execution."""

    assets_processed: int = 0
    cache_hits: int = 0
    classified: int = 0
    committed: int = 0
    degraded: int = 0
    failed: int = 0
    dropped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "assets_processed": self.assets_processed,
            "cache_hits": self.cache_hits,
            "classified": self.classified,
            "committed": self.committed,
            "degraded": self.degraded,
            "failed": self.failed,
            "dropped": self.dropped,
            "error_count": len(self.errors),
        }


class AnalysisPipeline:
    """
    End-to-end analysis of music cue assets.

    Usage:
        pipeline = AnalysisPipeline(classifier=my_classifier)
        result = await pipeline.process_asset(asset)

    Or for a batch:
        results = await pipeline.process_batch(assets)

    Attributes:
        resolver: FingerprintResolver
        cache: ThreeTierCache over local_store and remote_store
        classifier: External AssetClassifier
        standardizer: VocabularyStandardizer
        reconciler: ProvenanceReconciler
        coordinator: UpsertCoordinator over remote_store
        concurrency: Maximum assets in flight per batch
    """

    def __init__(
        self,
        classifier: Optional[Any] = None,
        resolver: Optional["FingerprintResolver"] = None,  # noqa: F821
        local_store: Optional["LocalRecordStore"] = None,  # noqa: F821
        remote_store: Optional["RecordStore"] = None,  # noqa: F821
        cache: Optional["ThreeTierCache"] = None,  # noqa: F821
        standardizer: Optional["VocabularyStandardizer"] = None,  # noqa: F821
        reconciler: Optional["ProvenanceReconciler"] = None,  # noqa: F821
        coordinator: Optional["UpsertCoordinator"] = None,  # noqa: F821
        concurrency: Optional[int] = None,
        max_per_second: Optional[float] = None,
        classifier_timeout: Optional[float] = None,
    ):
        self._classifier = classifier
        self._resolver = resolver
        self._local_store = local_store
        self._remote_store = remote_store
        self._cache = cache
        self._standardizer = standardizer
        self._reconciler = reconciler
        self._coordinator = coordinator

        self.concurrency = concurrency or settings.pipeline_concurrency
        self.max_per_second = max_per_second or settings.pipeline_max_per_second
        self.classifier_timeout = classifier_timeout or settings.classifier_timeout_seconds

        self._abandoned = asyncio.Event()
        self.logger = logger.bind(component="AnalysisPipeline")
        self.stats = PipelineStats()

        self.logger.info(
            "AnalysisPipeline initialized",
            concurrency=self.concurrency,
            classifier_provided=classifier is not None,
            remote_store_provided=remote_store is not None,
        )

    # ── Lazily constructed components ─────────────────────────────────────

    @property
    def classifier(self):
        """Lazy-load GeminiClassifier on first access."""
        if self._classifier is None:
            from cue_system.classification.gemini_classifier import GeminiClassifier
            self._classifier = GeminiClassifier()
        return self._classifier

    @property
    def resolver(self):
        if self._resolver is None:
            from cue_system.identity.fingerprint import FingerprintResolver
            self._resolver = FingerprintResolver()
        return self._resolver

    @property
    def local_store(self):
        if self._local_store is None:
            from cue_system.data_management.local_store import LocalRecordStore
            self._local_store = LocalRecordStore(settings.local_store_path)
        return self._local_store

    @property
    def remote_store(self):
        """Lazy-load the shared store: HTTP when a URL is configured, else SQLite."""
        if self._remote_store is None:
            if settings.remote_store_url:
                from cue_system.data_management.http_store import HttpRecordStore
                self._remote_store = HttpRecordStore(
                    settings.remote_store_url, timeout=settings.remote_timeout_seconds
                )
            else:
                from cue_system.data_management.sqlite_store import SQLiteRecordStore
                self._remote_store = SQLiteRecordStore(settings.remote_store_sqlite_path)
        return self._remote_store

    @property
    def cache(self):
        if self._cache is None:
            from cue_system.cache.three_tier_cache import ThreeTierCache
            self._cache = ThreeTierCache(self.local_store, self.remote_store)
        return self._cache

    @property
    def standardizer(self):
        if self._standardizer is None:
            from cue_system.data_management.candidate_queue import CandidateReviewQueue
            from cue_system.data_management.vocabulary_registry import InMemoryVocabularyRegistry
            from cue_system.standardization.standardizer import VocabularyStandardizer
            from cue_system.standardization.term_generator import GeminiTermGenerator

            if settings.vocabulary_path:
                registry = InMemoryVocabularyRegistry.from_json(settings.vocabulary_path)
            else:
                registry = InMemoryVocabularyRegistry.from_seed()
            generator = GeminiTermGenerator() if settings.gemini_api_key else None
            self._standardizer = VocabularyStandardizer(
                registry,
                generator=generator,
                candidate_queue=CandidateReviewQueue(settings.candidate_queue_path),
            )
        return self._standardizer

    @property
    def reconciler(self):
        if self._reconciler is None:
            from cue_system.reconciliation.provenance_reconciler import ProvenanceReconciler
            self._reconciler = ProvenanceReconciler()
        return self._reconciler

    @property
    def coordinator(self):
        if self._coordinator is None:
            from cue_system.data_management.upsert_coordinator import UpsertCoordinator
            self._coordinator = UpsertCoordinator(self.remote_store)
        return self._coordinator

    # ── Single asset ──────────────────────────────────────────────────────

    async def process_asset(self, asset: Asset, reanalyze: bool = False) -> PipelineResult:
        """
        Analyze one asset.

        Never raises for asset-level problems; the outcome and error are
        reported on the PipelineResult.

        Args:
            asset: Asset to analyze.
            reanalyze: Skip the cache and analyze again; the stored record
                is updated in place.
        """
        self.stats.assets_processed += 1
        try:
            result = await self._process(asset, reanalyze)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.logger.warning(f"Asset '{asset.name}' failed: {e}")
            self.stats.errors.append(f"{asset.name}: {e}")
            result = PipelineResult(asset_name=asset.name, outcome=PipelineOutcome.FAILED, error=str(e))

        self._count(result)
        return result

    async def _process(self, asset: Asset, reanalyze: bool = False) -> PipelineResult:
        if asset.path is not None and asset.data is None:
            identity = self.resolver.resolve_path(asset.path, asset.name)
        else:
            identity = self.resolver.resolve(asset.data, asset.name)

        lookup = None if reanalyze else await self.cache.lookup(identity, asset.name)
        if lookup is not None and lookup.hit:
            self.logger.debug(f"Reusing cached record for '{asset.name}'", tier=lookup.tier.value)
            return PipelineResult(
                asset_name=asset.name,
                outcome=PipelineOutcome.CACHED,
                record=lookup.record,
                identity=identity,
                cache_tier=lookup.tier.value,
            )

        # Past the lookup the asset always runs to completion.
        return await asyncio.shield(self._analyze_and_commit(asset, identity))

    async def _analyze_and_commit(self, asset: Asset, identity: Identity) -> PipelineResult:
        try:
            output = await asyncio.wait_for(
                self.classifier.classify(
                    asset.features,
                    {
                        "file_name": asset.name,
                        "metadata": asset.metadata.model_dump() if asset.metadata else None,
                    },
                ),
                self.classifier_timeout,
            )
        except asyncio.TimeoutError:
            return self._degraded(asset, identity, f"classifier timed out after {self.classifier_timeout}s")
        except Exception as e:
            return self._degraded(asset, identity, f"classifier failed: {e}")

        self.stats.classified += 1

        context = self.standardizer.canonical_context(output.context)
        standardized, resolutions = await self.standardizer.standardize_labels(
            output.raw_labels, context
        )
        reconciliation = self.reconciler.reconcile(output.provenance, asset.metadata)

        record = AnalysisRecord(
            identity=identity.key,
            fingerprint=identity.fingerprint,
            name=asset.name,
            raw_labels=output.raw_labels,
            standardized_labels=standardized,
            resolutions=resolutions,
            provenance=reconciliation.provenance,
            confidence_tier=reconciliation.confidence_tier,
        )

        try:
            committed = await self.coordinator.commit(identity, record)
        except CommitError as e:
            self.logger.error(f"Commit failed for '{asset.name}': {e.detail}")
            self.stats.errors.append(f"{asset.name}: {e}")
            return PipelineResult(
                asset_name=asset.name,
                outcome=PipelineOutcome.FAILED,
                record=record,
                identity=identity,
                error=str(e),
            )

        if identity.fingerprint:
            try:
                await self.local_store.put(identity.fingerprint, committed.record)
            except Exception as e:
                self.logger.warning(f"Local store update failed for '{asset.name}': {e}")

        return PipelineResult(
            asset_name=asset.name,
            outcome=PipelineOutcome.COMMITTED,
            record=committed.record,
            identity=identity,
            created=committed.created,
        )

    def _degraded(self, asset: Asset, identity: Identity, reason: str) -> PipelineResult:
        self.logger.warning(f"Degraded record for '{asset.name}': {reason}")
        self.stats.errors.append(f"{asset.name}: {reason}")
        now = datetime.now(timezone.utc)
        record = AnalysisRecord(
            identity=identity.key,
            fingerprint=identity.fingerprint,
            name=asset.name,
            provenance=ProvenanceInfo(confidence_reason=f"not classified: {reason}"),
            confidence_tier=ConfidenceTier.LOW,
            degraded=True,
            created_at=now,
            updated_at=now,
        )
        return PipelineResult(
            asset_name=asset.name,
            outcome=PipelineOutcome.DEGRADED,
            record=record,
            identity=identity,
            error=reason,
        )

    def _count(self, result: PipelineResult) -> None:
        if result.outcome == PipelineOutcome.CACHED:
            self.stats.cache_hits += 1
        elif result.outcome == PipelineOutcome.COMMITTED:
            self.stats.committed += 1
        elif result.outcome == PipelineOutcome.DEGRADED:
            self.stats.degraded += 1
        elif result.outcome == PipelineOutcome.FAILED:
            self.stats.failed += 1

    # ── Batches ───────────────────────────────────────────────────────────

    async def process_batch(self, assets: List[Asset], reanalyze: bool = False) -> List[PipelineResult]:
        """
        Analyze assets concurrently with a bounded pool.

        Args:
            assets: Assets to analyze.
            reanalyze: Bypass the cache for every asset.

        Returns:
            One PipelineResult per asset, in input order.
        """
        if not assets:
            return []

        start_time = datetime.now(timezone.utc)
        self.stats = PipelineStats()
        self._abandoned = asyncio.Event()
        batch_id = new_batch_id()

        self.logger.info(
            f"Starting batch of {len(assets)} assets",
            batch_id=batch_id,
            concurrency=self.concurrency,
            max_per_second=self.max_per_second,
            reanalyze=reanalyze,
        )

        with bound_contextvars(batch_id=batch_id):
            results = await aiometer.run_all(
                [functools.partial(self._dispatch, asset, reanalyze) for asset in assets],
                max_at_once=self.concurrency,
                max_per_second=self.max_per_second,
            )

        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
        self.logger.info(
            "Batch complete",
            batch_id=batch_id,
            duration_seconds=round(duration, 2),
            **self.stats.to_dict(),
        )
        return list(results)

    async def _dispatch(self, asset: Asset, reanalyze: bool = False) -> PipelineResult:
        if self._abandoned.is_set():
            self.stats.dropped += 1
            return PipelineResult(
                asset_name=asset.name,
                outcome=PipelineOutcome.DROPPED,
                error="batch abandoned before dispatch",
            )
        return await self.process_asset(asset, reanalyze)

    def abandon(self) -> None:
        """Stop dispatching the rest of the current batch."""
        if not self._abandoned.is_set():
            self.logger.warning("Batch abandoned; undispatched assets will be dropped")
        self._abandoned.set()

    def get_pipeline_status(self) -> Dict[str, Any]:
        """Get pipeline configuration and last-run statistics."""
        status = {
            "concurrency": self.concurrency,
            "max_per_second": self.max_per_second,
            "classifier_timeout": self.classifier_timeout,
            "abandoned": self._abandoned.is_set(),
            "stats": self.stats.to_dict(),
        }
        if self._cache is not None:
            status["cache"] = self._cache.stats.to_dict()
        return status

    def get_errors(self) -> List[str]:
        """Get list of errors from last run."""
        return self.stats.errors.copy()
