"""Asset, identity and analysis record schemas.

An Asset is the unit submitted for analysis. Its Identity is a SHA-256
fingerprint of the content when one could be computed, otherwise its
display name. The AnalysisRecord is what gets persisted: at most one per
identity in the shared store.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field

from cue_system.data_management.schemas.provenance_schema import (
    ConfidenceTier,
    FileMetadata,
    ProvenanceInfo,
)
from cue_system.data_management.schemas.vocabulary_schema import MatchKind


class Asset(BaseModel):
    """An audio asset submitted to the pipeline.

    Either inline bytes or a path may carry the content; features are the
    opaque vector produced by the upstream feature extractor.
    """

    name: str = Field(..., min_length=1)
    data: Optional[bytes] = None
    path: Optional[Path] = None
    features: dict[str, Any] = Field(default_factory=dict)
    metadata: Optional[FileMetadata] = None


class Identity(BaseModel):
    """Resolved identity of an asset.

    Attributes:
        name: Display / file name, always present.
        fingerprint: Hex content digest, None when hashing was skipped or failed.
        degraded_reason: Why identity fell back to the name, if it did.
    """

    name: str
    fingerprint: Optional[str] = None
    degraded_reason: Optional[str] = None

    model_config = {"frozen": True}

    @property
    def key(self) -> str:
        """Uniqueness key in the shared store."""
        return self.fingerprint or self.name

    @property
    def is_fingerprint(self) -> bool:
        return self.fingerprint is not None


class LabelResolution(BaseModel):
    """Audit of how one raw label was standardized."""

    category: str
    raw_label: str
    canonical_term: Optional[str] = None
    match_kind: MatchKind
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    context_compatible: Optional[bool] = None
    note: Optional[str] = None


class AnalysisRecord(BaseModel):
    """Persisted result of analyzing one asset.

    Attributes:
        record_id: Store-assigned id, stable across updates.
        identity: Uniqueness key (fingerprint, or name when degraded).
        fingerprint: Content fingerprint if known.
        name: Display name of the asset.
        raw_labels: Category -> labels as emitted by the classifier.
        standardized_labels: Category -> ordered, de-duplicated canonical terms.
        resolutions: Per-label standardization audit.
        provenance: Reconciled provenance.
        confidence_tier: Overall provenance confidence.
        degraded: True when classification failed and labels are absent.
    """

    record_id: Optional[str] = None
    identity: str
    fingerprint: Optional[str] = None
    name: str
    raw_labels: dict[str, list[str]] = Field(default_factory=dict)
    standardized_labels: dict[str, list[str]] = Field(default_factory=dict)
    resolutions: list[LabelResolution] = Field(default_factory=list)
    provenance: ProvenanceInfo = Field(default_factory=ProvenanceInfo)
    confidence_tier: ConfidenceTier = ConfidenceTier.LOW
    degraded: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "identity": "abc123",
                    "fingerprint": "abc123",
                    "name": "night_raid.mp3",
                    "raw_labels": {"scenario": ["潜入行动"]},
                    "standardized_labels": {"scenario": ["潜入"]},
                    "confidence_tier": "medium",
                }
            ]
        }
    }


class CommittedRecord(BaseModel):
    """Outcome of an atomic commit."""

    record_id: str
    identity: str
    created: bool
    record: AnalysisRecord
