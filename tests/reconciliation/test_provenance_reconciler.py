"""Tests for ProvenanceReconciler and soundtrack suffix stripping.

Tests cover:
- High classifier confidence kept verbatim, gaps filled from metadata
- Metadata album upgrade to medium with suffix stripping
- Medium classifier without metadata
- Low tier when neither signal is usable
- Latin, CJK and bracketed soundtrack suffixes
"""

import pytest

from cue_system.data_management.schemas import (
    ClassifierProvenance,
    ConfidenceTier,
    FieldOrigin,
    FileMetadata,
    SourceType,
)
from cue_system.reconciliation.provenance_reconciler import (
    ProvenanceReconciler,
    strip_soundtrack_suffix,
)


@pytest.fixture
def reconciler() -> ProvenanceReconciler:
    return ProvenanceReconciler()


# ── Suffix Tests ─────────────────────────────────────────────────────────


class TestStripSoundtrackSuffix:
    @pytest.mark.parametrize(
        "album, expected",
        [
            ("Infernal Affairs Original Soundtrack", "Infernal Affairs"),
            ("Night Raid (Original Motion Picture Soundtrack)", "Night Raid"),
            ("Inception - Music From The Motion Picture", "Inception"),
            ("Cowboy Bebop OST", "Cowboy Bebop"),
            ("无间道 电影原声带", "无间道"),
            ("《隐秘的角落》电视剧原声大碟", "隐秘的角落"),
            ("漫长的季节【影视原声】", "漫长的季节"),
        ],
    )
    def test_suffix_removed(self, album: str, expected: str) -> None:
        title, stripped = strip_soundtrack_suffix(album)
        assert title == expected
        assert stripped is True

    @pytest.mark.parametrize("album", ["Ghost", "Host Club", "Lost Highway", "Soundtrack"])
    def test_plain_titles_untouched(self, album: str) -> None:
        title, stripped = strip_soundtrack_suffix(album)
        assert title == album
        assert stripped is False


# ── Reconciliation Tests ─────────────────────────────────────────────────


class TestReconcile:
    def test_metadata_upgrades_to_medium(self, reconciler) -> None:
        result = reconciler.reconcile(
            ClassifierProvenance(confidence=ConfidenceTier.LOW),
            FileMetadata(album="Infernal Affairs Original Soundtrack", artist="Chan Kwong-wing"),
        )
        prov = result.provenance

        assert result.confidence_tier == ConfidenceTier.MEDIUM
        assert prov.title_or_album == "Infernal Affairs"
        assert prov.source_type == SourceType.FILM
        assert prov.creators == ["Chan Kwong-wing"]
        assert "album: Infernal Affairs Original Soundtrack" in prov.confidence_reason
        assert prov.field_origins["title_or_album"] == FieldOrigin.FILE_METADATA

    def test_high_classifier_kept_verbatim(self, reconciler) -> None:
        classifier = ClassifierProvenance(
            source_type=SourceType.FILM,
            title_or_album="无间道",
            scene="天台对峙",
            confidence=ConfidenceTier.HIGH,
            reasoning="Iconic rooftop theme",
        )
        result = reconciler.reconcile(
            classifier,
            FileMetadata(album="Some Compilation", artist="Chan Kwong-wing / Ronald Ng"),
        )
        prov = result.provenance

        assert result.confidence_tier == ConfidenceTier.HIGH
        assert prov.title_or_album == "无间道"
        assert prov.scene == "天台对峙"
        assert prov.confidence_reason == "Iconic rooftop theme"
        # Empty creators filled from metadata
        assert prov.creators == ["Chan Kwong-wing", "Ronald Ng"]
        assert prov.field_origins["creators"] == FieldOrigin.FILE_METADATA
        assert prov.field_origins["title_or_album"] == FieldOrigin.CLASSIFIER

    def test_high_classifier_fills_missing_title(self, reconciler) -> None:
        result = reconciler.reconcile(
            ClassifierProvenance(confidence=ConfidenceTier.HIGH, creators=["Joe Hisaishi"]),
            FileMetadata(album="Spirited Away Soundtrack"),
        )
        assert result.provenance.title_or_album == "Spirited Away"
        assert result.provenance.source_type == SourceType.FILM
        assert result.provenance.creators == ["Joe Hisaishi"]

    def test_medium_without_metadata(self, reconciler) -> None:
        classifier = ClassifierProvenance(
            source_type=SourceType.ALBUM,
            title_or_album="Ambient Works",
            confidence=ConfidenceTier.MEDIUM,
            reasoning="style match",
            uncertainty_reason="no tags",
        )
        result = reconciler.reconcile(classifier, None)

        assert result.confidence_tier == ConfidenceTier.MEDIUM
        assert result.provenance.title_or_album == "Ambient Works"
        assert result.provenance.confidence_reason == "style match Uncertain: no tags"

    def test_title_used_when_album_missing(self, reconciler) -> None:
        result = reconciler.reconcile(None, FileMetadata(title="Night Raid"))
        assert result.confidence_tier == ConfidenceTier.MEDIUM
        assert result.provenance.title_or_album == "Night Raid"
        assert result.provenance.source_type == SourceType.ALBUM
        assert "title: Night Raid" in result.provenance.confidence_reason

    def test_classifier_source_type_kept_without_suffix(self, reconciler) -> None:
        result = reconciler.reconcile(
            ClassifierProvenance(source_type=SourceType.CREATOR, creators=["Kenji Ito"]),
            FileMetadata(album="Night Raid"),
        )
        assert result.provenance.source_type == SourceType.CREATOR
        assert result.provenance.creators == ["Kenji Ito"]
        assert result.provenance.field_origins["creators"] == FieldOrigin.CLASSIFIER

    def test_placeholder_metadata_ignored(self, reconciler) -> None:
        result = reconciler.reconcile(
            ClassifierProvenance(confidence=ConfidenceTier.LOW),
            FileMetadata(album="Unknown Album", title="  "),
        )
        assert result.confidence_tier == ConfidenceTier.LOW
        assert result.provenance.confidence_reason == "insufficient provenance data"

    def test_nothing_usable_is_low(self, reconciler) -> None:
        result = reconciler.reconcile(None, None)
        assert result.confidence_tier == ConfidenceTier.LOW
        assert result.provenance.is_empty()

    def test_creator_split_dedupes(self, reconciler) -> None:
        result = reconciler.reconcile(
            None, FileMetadata(album="X", artist="A、B, A feat. C")
        )
        assert result.provenance.creators == ["A", "B", "C"]
