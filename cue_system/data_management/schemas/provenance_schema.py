"""Provenance schemas for music cue origin tracking.

Two independent signals describe where a cue comes from:
- The classifier's provenance guess (with its own confidence tier)
- Embedded file metadata (album, title, artist tags)

ProvenanceInfo is the reconciled, persisted form. Every populated field
carries an origin tag so curators can see which signal supplied it.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class SourceType(str, Enum):
    """What kind of work the cue was released with."""

    FILM = "film"  # Film / TV original soundtrack
    ALBUM = "album"  # Regular album release
    CREATOR = "creator"  # Standalone single, known only by its creators
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "SourceType":
        """Map classifier wording (English or Chinese) onto a SourceType."""
        if not value:
            return cls.UNKNOWN
        text = value.strip().lower()
        aliases = {
            "film": cls.FILM,
            "tv": cls.FILM,
            "soundtrack": cls.FILM,
            "影视原声": cls.FILM,
            "album": cls.ALBUM,
            "专辑": cls.ALBUM,
            "creator": cls.CREATOR,
            "single": cls.CREATOR,
            "独立单曲": cls.CREATOR,
        }
        return aliases.get(text, cls.UNKNOWN)


class ConfidenceTier(str, Enum):
    """Ordinal confidence attached to provenance and records."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["ConfidenceTier"]:
        """Map 高/中/低 or high/medium/low onto a tier; None when absent."""
        if not value:
            return None
        text = value.strip().lower()
        mapping = {
            "high": cls.HIGH,
            "高": cls.HIGH,
            "medium": cls.MEDIUM,
            "中": cls.MEDIUM,
            "low": cls.LOW,
            "低": cls.LOW,
        }
        return mapping.get(text)


class FieldOrigin(str, Enum):
    """Which signal a reconciled provenance field came from."""

    CLASSIFIER = "classifier"
    FILE_METADATA = "file_metadata"


class FileMetadata(BaseModel):
    """Tags embedded in the audio file (ID3 / Vorbis comments)."""

    title: Optional[str] = None
    album: Optional[str] = None
    artist: Optional[str] = None
    year: Optional[int] = None
    duration_seconds: Optional[float] = Field(default=None, ge=0.0)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "title": "Night Raid",
                    "album": "Infernal Affairs Original Soundtrack",
                    "artist": "Chan Kwong-wing",
                    "year": 2002,
                }
            ]
        }
    }


class ClassifierProvenance(BaseModel):
    """Provenance as guessed by the external classifier."""

    source_type: SourceType = SourceType.UNKNOWN
    title_or_album: Optional[str] = None
    scene: Optional[str] = None
    creators: list[str] = Field(default_factory=list)
    confidence: Optional[ConfidenceTier] = None
    reasoning: Optional[str] = None
    uncertainty_reason: Optional[str] = None


class ProvenanceInfo(BaseModel):
    """Reconciled provenance persisted on an AnalysisRecord.

    Attributes:
        source_type: Kind of work the cue belongs to.
        title_or_album: Work title (film / series) or album name.
        scene: Scene description within the work, if known.
        creators: Composer / performer names.
        confidence_reason: Human-readable justification of the tier.
        field_origins: Field name -> signal that supplied it.
    """

    source_type: SourceType = SourceType.UNKNOWN
    title_or_album: Optional[str] = None
    scene: Optional[str] = None
    creators: list[str] = Field(default_factory=list)
    confidence_reason: Optional[str] = None
    field_origins: dict[str, FieldOrigin] = Field(default_factory=dict)

    def is_empty(self) -> bool:
        """True when no provenance field is known."""
        return (
            self.source_type == SourceType.UNKNOWN
            and not self.title_or_album
            and not self.scene
            and not self.creators
        )
