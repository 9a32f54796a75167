"""Confidence-weighted reconciliation of classifier provenance and file metadata.

Rules:
- Classifier confidence high: classifier fields win; empty fields may be
  filled from metadata and the tier stays high.
- Classifier medium/low/absent and metadata names a concrete album or title:
  the work title is derived from metadata with soundtrack suffixes stripped
  ("X Original Soundtrack" -> "X") and the tier becomes medium.
- Classifier medium without usable metadata: classifier fields, medium.
- Neither usable: low, fields unknown.

reconcile() never raises; an unexpected failure yields a low-tier result.
"""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from cue_system.config.settings import settings
from cue_system.data_management.schemas.provenance_schema import (
    ClassifierProvenance,
    ConfidenceTier,
    FieldOrigin,
    FileMetadata,
    ProvenanceInfo,
    SourceType,
)
from cue_system.data_management.schemas.vocabulary_schema import normalize_label


_LATIN_SUFFIX = (
    r"(?:original\s+(?:motion\s+picture\s+|television\s+|tv\s+|game\s+|series\s+)?soundtrack"
    r"|music\s+from\s+the\s+(?:motion\s+picture|film|series)"
    r"|o\.s\.t\.?|ost|soundtrack)"
)
_CJK_SUFFIX = r"(?:(?:电视剧|电影|影视|网剧)?原声(?:带|大碟|专辑|音乐)?|影视原声)"

_BRACKETED_SUFFIX = re.compile(
    rf"\s*[\(\[（【〔]\s*(?:{_LATIN_SUFFIX}|{_CJK_SUFFIX})\s*[\)\]）】〕]\s*$",
    re.IGNORECASE,
)
_TRAILING_LATIN_SUFFIX = re.compile(
    rf"(?:^|(?<=[\s\-–—:：_]))[\s\-–—:：_]*{_LATIN_SUFFIX}\s*$",
    re.IGNORECASE,
)
_TRAILING_CJK_SUFFIX = re.compile(rf"[\s\-–—:：_]*{_CJK_SUFFIX}\s*$")
_BOOK_TITLE = re.compile(r"^《(.+?)》")

_EXTRA_PLACEHOLDERS = {"未知", "未知专辑", "unknown album", "untitled", "various artists"}
_CREATOR_SPLIT = re.compile(r"\s*(?:/|、|,|，|;|；|&| feat\. )\s*")


def strip_soundtrack_suffix(title: str) -> tuple[str, bool]:
    """
    Remove soundtrack markers from an album title.

    Returns:
        (work title, whether a marker was removed)
    """
    text = " ".join((title or "").split())
    stripped = False

    changed = True
    while changed and text:
        changed = False
        for pattern in (_BRACKETED_SUFFIX, _TRAILING_LATIN_SUFFIX, _TRAILING_CJK_SUFFIX):
            new_text = pattern.sub("", text).strip(" -–—:：_")
            if new_text != text and new_text:
                text = new_text
                stripped = changed = True

    book = _BOOK_TITLE.match(text)
    if book:
        text = book.group(1).strip()

    return text, stripped


@dataclass
class ReconciliationResult:
    provenance: ProvenanceInfo
    confidence_tier: ConfidenceTier


class ProvenanceReconciler:
    """Merges the classifier's provenance guess with embedded file metadata."""

    def __init__(self) -> None:
        self._placeholders = {normalize_label(p) for p in settings.placeholder_terms}
        self._placeholders |= _EXTRA_PLACEHOLDERS
        self._logger = structlog.get_logger().bind(component="ProvenanceReconciler")

    def reconcile(
        self,
        classifier: Optional[ClassifierProvenance],
        metadata: Optional[FileMetadata],
    ) -> ReconciliationResult:
        """
        Reconcile the two provenance signals.

        Args:
            classifier: Classifier provenance, None when classification failed.
            metadata: Embedded file tags, None when absent.

        Returns:
            ReconciliationResult with provenance and tier. Never raises.
        """
        try:
            return self._reconcile(classifier, metadata)
        except Exception as e:
            self._logger.error("reconciliation_failed", error=str(e))
            return ReconciliationResult(
                provenance=ProvenanceInfo(confidence_reason="reconciliation failed"),
                confidence_tier=ConfidenceTier.LOW,
            )

    def _reconcile(
        self,
        classifier: Optional[ClassifierProvenance],
        metadata: Optional[FileMetadata],
    ) -> ReconciliationResult:
        classifier = classifier or ClassifierProvenance()
        tier = classifier.confidence
        work_source = self._concrete(metadata.album) if metadata else None
        work_field = "album"
        if work_source is None and metadata:
            work_source = self._concrete(metadata.title)
            work_field = "title"

        if tier == ConfidenceTier.HIGH:
            provenance = self._from_classifier(classifier)
            if metadata:
                self._fill_gaps(provenance, metadata, work_source)
            self._logger.debug("provenance_reconciled", rule="classifier_high")
            return ReconciliationResult(provenance, ConfidenceTier.HIGH)

        if work_source is not None:
            title, stripped = strip_soundtrack_suffix(work_source)
            if classifier.source_type != SourceType.UNKNOWN and not stripped:
                source_type = classifier.source_type
            else:
                source_type = SourceType.FILM if stripped else SourceType.ALBUM

            origins = {
                "title_or_album": FieldOrigin.FILE_METADATA,
                "source_type": FieldOrigin.FILE_METADATA,
            }
            creators = self._split_creators(metadata.artist)
            if creators:
                origins["creators"] = FieldOrigin.FILE_METADATA
            elif classifier.creators:
                creators = list(classifier.creators)
                origins["creators"] = FieldOrigin.CLASSIFIER
            if classifier.scene:
                origins["scene"] = FieldOrigin.CLASSIFIER

            previous = tier.value if tier else "absent"
            provenance = ProvenanceInfo(
                source_type=source_type,
                title_or_album=title,
                scene=classifier.scene,
                creators=creators,
                confidence_reason=(
                    f"Based on file metadata ({work_field}: {work_source}); "
                    f"classifier confidence {previous} upgraded to medium"
                ),
                field_origins=origins,
            )
            self._logger.info(
                "provenance_reconciled",
                rule="metadata_upgrade",
                title=title,
                suffix_stripped=stripped,
            )
            return ReconciliationResult(provenance, ConfidenceTier.MEDIUM)

        if tier == ConfidenceTier.MEDIUM:
            self._logger.debug("provenance_reconciled", rule="classifier_medium")
            return ReconciliationResult(self._from_classifier(classifier), ConfidenceTier.MEDIUM)

        self._logger.debug("provenance_reconciled", rule="insufficient_data")
        return ReconciliationResult(
            ProvenanceInfo(confidence_reason="insufficient provenance data"),
            ConfidenceTier.LOW,
        )

    def _concrete(self, value: Optional[str]) -> Optional[str]:
        text = " ".join((value or "").split())
        if not text or normalize_label(text) in self._placeholders:
            return None
        return text

    @staticmethod
    def _split_creators(artist: Optional[str]) -> list[str]:
        if not artist:
            return []
        names = [n.strip() for n in _CREATOR_SPLIT.split(artist)]
        seen: set[str] = set()
        return [n for n in names if n and not (n in seen or seen.add(n))]

    @staticmethod
    def _from_classifier(classifier: ClassifierProvenance) -> ProvenanceInfo:
        reason = classifier.reasoning or None
        if classifier.uncertainty_reason:
            reason = f"{reason or ''} Uncertain: {classifier.uncertainty_reason}".strip()

        origins: dict[str, FieldOrigin] = {}
        if classifier.source_type != SourceType.UNKNOWN:
            origins["source_type"] = FieldOrigin.CLASSIFIER
        for name in ("title_or_album", "scene", "creators"):
            if getattr(classifier, name):
                origins[name] = FieldOrigin.CLASSIFIER

        return ProvenanceInfo(
            source_type=classifier.source_type,
            title_or_album=classifier.title_or_album,
            scene=classifier.scene,
            creators=list(classifier.creators),
            confidence_reason=reason,
            field_origins=origins,
        )

    def _fill_gaps(
        self,
        provenance: ProvenanceInfo,
        metadata: FileMetadata,
        work_source: Optional[str],
    ) -> None:
        if not provenance.title_or_album and work_source:
            title, stripped = strip_soundtrack_suffix(work_source)
            provenance.title_or_album = title
            provenance.field_origins["title_or_album"] = FieldOrigin.FILE_METADATA
            if provenance.source_type == SourceType.UNKNOWN:
                provenance.source_type = SourceType.FILM if stripped else SourceType.ALBUM
                provenance.field_origins["source_type"] = FieldOrigin.FILE_METADATA
        if not provenance.creators:
            creators = self._split_creators(metadata.artist)
            if creators:
                provenance.creators = creators
                provenance.field_origins["creators"] = FieldOrigin.FILE_METADATA
