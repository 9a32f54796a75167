"""Pydantic schemas for assets, records, vocabulary and provenance."""

from cue_system.data_management.schemas.provenance_schema import (
    ClassifierProvenance,
    ConfidenceTier,
    FieldOrigin,
    FileMetadata,
    ProvenanceInfo,
    SourceType,
)
from cue_system.data_management.schemas.vocabulary_schema import (
    EMOTION,
    FILM_TYPE,
    INSTRUMENT,
    KNOWN_CATEGORIES,
    SCENARIO,
    STYLE,
    CandidateStatus,
    CandidateTerm,
    ConflictType,
    GeneratedTerm,
    LabelContext,
    LinkageRule,
    MatchKind,
    StandardizedTerm,
    VocabularyConflict,
    VocabularyEntry,
    normalize_label,
)
from cue_system.data_management.schemas.record_schema import (
    AnalysisRecord,
    Asset,
    CommittedRecord,
    Identity,
    LabelResolution,
)

__all__ = [
    # Provenance
    "ClassifierProvenance",
    "ConfidenceTier",
    "FieldOrigin",
    "FileMetadata",
    "ProvenanceInfo",
    "SourceType",
    # Vocabulary
    "EMOTION",
    "FILM_TYPE",
    "INSTRUMENT",
    "KNOWN_CATEGORIES",
    "SCENARIO",
    "STYLE",
    "CandidateStatus",
    "CandidateTerm",
    "ConflictType",
    "GeneratedTerm",
    "LabelContext",
    "LinkageRule",
    "MatchKind",
    "StandardizedTerm",
    "VocabularyConflict",
    "VocabularyEntry",
    "normalize_label",
    # Records
    "AnalysisRecord",
    "Asset",
    "CommittedRecord",
    "Identity",
    "LabelResolution",
]
