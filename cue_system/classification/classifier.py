"""External classifier contract and payload parsing.

The classifier is an external collaborator: features in, free-text labels
and a provenance guess out. parse_classifier_payload() turns the JSON reply
shape used by the Gemini prompt into a ClassifierOutput, tolerating the
variations models produce (strings vs lists, missing sections, 未识别).
"""

from typing import Any, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from cue_system.data_management.schemas.provenance_schema import (
    ClassifierProvenance,
    ConfidenceTier,
    SourceType,
)
from cue_system.data_management.schemas.vocabulary_schema import (
    EMOTION,
    FILM_TYPE,
    INSTRUMENT,
    SCENARIO,
    STYLE,
    LabelContext,
)


class ClassifierOutput(BaseModel):
    """Raw classifier answer for one asset."""

    raw_labels: dict[str, list[str]] = Field(default_factory=dict)
    provenance: ClassifierProvenance = Field(default_factory=ClassifierProvenance)
    context: LabelContext = Field(default_factory=LabelContext)


@runtime_checkable
class AssetClassifier(Protocol):
    """Anything that can classify an asset's feature vector."""

    async def classify(
        self,
        features: dict[str, Any],
        context: Optional[dict[str, Any]] = None,
    ) -> ClassifierOutput:
        ...


_CREATOR_ROLES = ("composer", "singer", "arranger", "lyricist", "producer")


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if isinstance(value, dict):
        items: list[str] = []
        for key in ("primary", "secondary", "main", "other"):
            items.extend(_as_list(value.get(key)))
        return items
    if isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if isinstance(item, dict):
                items.extend(_as_list(item.get("type") or item.get("name")))
            else:
                items.extend(_as_list(item))
        return items
    return [str(value)]


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _dedupe(items: list[str]) -> list[str]:
    seen: set[str] = set()
    return [x for x in items if not (x in seen or seen.add(x))]


def _creators(value: Any) -> list[str]:
    if isinstance(value, dict):
        names: list[str] = []
        for role in _CREATOR_ROLES:
            names.extend(_as_list(value.get(role)))
        return _dedupe(names)
    return _dedupe(_as_list(value))


def parse_classifier_payload(payload: dict[str, Any]) -> ClassifierOutput:
    """
    Convert a classifier JSON reply into a ClassifierOutput.

    Args:
        payload: Parsed JSON object (mood / filmMusic / instruments / style /
                 musicOrigin sections, all optional).

    Returns:
        ClassifierOutput with raw labels per category, provenance and context.
    """
    mood = payload.get("mood") or {}
    film_music = _as_dict(payload.get("filmMusic"))
    origin = _as_dict(payload.get("musicOrigin"))

    raw_labels: dict[str, list[str]] = {}
    emotions = _as_list(mood)
    if emotions:
        raw_labels[EMOTION] = _dedupe(emotions)
    film_types = _as_list(film_music.get("filmType"))
    if film_types:
        raw_labels[FILM_TYPE] = _dedupe(film_types)
    scenes = _as_list(film_music.get("scenes"))
    if scenes:
        raw_labels[SCENARIO] = _dedupe(scenes)
    instruments = _as_list(payload.get("instruments"))
    if instruments:
        raw_labels[INSTRUMENT] = _dedupe(instruments)
    styles = _as_list(payload.get("style"))
    if styles:
        raw_labels[STYLE] = _dedupe(styles)

    film_or_tv = _as_dict(origin.get("filmOrTV"))
    album = _as_dict(origin.get("album"))
    title = film_or_tv.get("name") or album.get("name")

    provenance = ClassifierProvenance(
        source_type=SourceType.parse(origin.get("sourceType")),
        title_or_album=title or None,
        scene=film_or_tv.get("scene") or None,
        creators=_creators(origin.get("creators")),
        confidence=ConfidenceTier.parse(origin.get("confidenceLevel")),
        reasoning=origin.get("reasoning") or None,
        uncertainty_reason=origin.get("uncertaintyReason") or None,
    )

    context = LabelContext(
        film_type=film_types[0] if film_types else None,
        primary_emotion=emotions[0] if emotions else None,
    )

    return ClassifierOutput(raw_labels=raw_labels, provenance=provenance, context=context)
