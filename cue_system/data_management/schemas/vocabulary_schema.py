"""Controlled vocabulary schemas.

A VocabularyEntry is one canonical term in a label category (emotion,
film_type, scenario, instrument, style) with the aliases that resolve to
it and the film types it is compatible with. CandidateTerms are harvested
from classifier output that the vocabulary could not absorb; they wait in
the review queue until a curator approves or rejects them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


# Label categories produced by the classifier
EMOTION = "emotion"
FILM_TYPE = "film_type"
SCENARIO = "scenario"
INSTRUMENT = "instrument"
STYLE = "style"

KNOWN_CATEGORIES = (EMOTION, FILM_TYPE, SCENARIO, INSTRUMENT, STYLE)


def normalize_label(label: Optional[str]) -> str:
    """Trim, collapse inner whitespace and casefold a raw label."""
    if not label:
        return ""
    return " ".join(label.split()).casefold()


class MatchKind(str, Enum):
    """How a raw label was mapped onto the vocabulary."""

    EXACT = "exact"
    ALIAS = "alias"
    CONTEXT_INFERRED = "context_inferred"
    GENERATED = "generated"
    UNRESOLVED = "unresolved"


class VocabularyEntry(BaseModel):
    """One canonical term of a category.

    An empty compatible_contexts set means the term fits any film type.
    """

    category: str
    canonical_term: str = Field(..., min_length=1)
    aliases: set[str] = Field(default_factory=set)
    compatible_contexts: set[str] = Field(default_factory=set)

    def match_terms(self) -> set[str]:
        """Canonical term plus aliases, all normalized."""
        terms = {normalize_label(a) for a in self.aliases}
        terms.add(normalize_label(self.canonical_term))
        terms.discard("")
        return terms

    def accepts_context(self, film_type: Optional[str]) -> Optional[bool]:
        """Whether the film type is compatible; None when it cannot be judged."""
        if not film_type:
            return None
        if not self.compatible_contexts:
            return True
        return film_type in self.compatible_contexts

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "category": "scenario",
                    "canonical_term": "追逐",
                    "aliases": ["追击", "追赶"],
                    "compatible_contexts": ["警匪片", "动作片"],
                }
            ]
        }
    }


class LinkageRule(BaseModel):
    """(film_type, primary_emotion) -> terms typically present in that context."""

    category: str = SCENARIO
    film_type: str
    primary_emotion: str
    terms: list[str] = Field(..., min_length=1)


class LabelContext(BaseModel):
    """Surrounding classification used to judge and infer labels."""

    film_type: Optional[str] = None
    primary_emotion: Optional[str] = None


class StandardizedTerm(BaseModel):
    """Result of standardizing one raw label."""

    raw_label: str
    category: str
    canonical_term: Optional[str] = None
    match_kind: MatchKind = MatchKind.UNRESOLVED
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    context_compatible: Optional[bool] = None
    note: Optional[str] = None


class GeneratedTerm(BaseModel):
    """Answer from the generative fallback."""

    term: str
    confidence: float = Field(default=0.6, ge=0.0, le=1.0)
    reason: Optional[str] = None


class CandidateStatus(str, Enum):
    """Review state of a harvested term."""

    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class CandidateTerm(BaseModel):
    """A term proposed for inclusion in the vocabulary.

    Attributes:
        term: Proposed canonical term.
        category: Label category it belongs to.
        suggested_aliases: Raw labels that should resolve to it.
        suggested_contexts: Film types it was observed in.
        confidence: Highest proposer confidence seen.
        status: Review state; only an external curator moves it on.
        occurrence_count: How many times the term was proposed.
        source: "unresolved" for raw labels, "generated" for fallback answers.
    """

    term: str = Field(..., min_length=1)
    category: str
    suggested_aliases: set[str] = Field(default_factory=set)
    suggested_contexts: set[str] = Field(default_factory=set)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    status: CandidateStatus = CandidateStatus.PENDING_REVIEW
    occurrence_count: int = Field(default=1, ge=1)
    first_seen_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    last_seen_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    source: str = "unresolved"
    review_notes: Optional[str] = None

    @property
    def key(self) -> tuple[str, str]:
        return (self.category, normalize_label(self.term))


class ConflictType(str, Enum):
    """Kinds of collision between a proposed term and the vocabulary."""

    EXACT_MATCH = "exact_match"  # Same as an existing canonical term
    SYNONYM = "synonym"  # Collides with an existing alias
    PARTIAL_MATCH = "partial_match"  # Substring overlap either way

    @property
    def blocking(self) -> bool:
        return self in (ConflictType.EXACT_MATCH, ConflictType.SYNONYM)


class VocabularyConflict(BaseModel):
    """One collision reported by the admin-time conflict check."""

    category: str
    term: str
    conflicting_term: str
    conflict_type: ConflictType
    detail: str
