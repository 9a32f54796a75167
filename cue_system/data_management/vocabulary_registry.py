"""Vocabulary registry: the injected, read-mostly controlled vocabulary.

The registry hands out immutable snapshots. A standardization call reads
one snapshot from start to finish, so resolution stays deterministic even
while an operator swaps the vocabulary at runtime with replace().

Admin-time operations (add_entry, check_conflicts) guard the invariants:
- canonical_term is unique within a category
- an alias never collides with another entry's canonical term or aliases
"""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from loguru import logger

from cue_system.data_management.schemas.vocabulary_schema import (
    ConflictType,
    LinkageRule,
    VocabularyConflict,
    VocabularyEntry,
    normalize_label,
)


class VocabularyConflictError(ValueError):
    """Raised when an entry would break vocabulary uniqueness."""

    def __init__(self, conflicts: list[VocabularyConflict]):
        self.conflicts = conflicts
        terms = ", ".join(sorted({c.conflicting_term for c in conflicts}))
        super().__init__(f"Vocabulary conflict with existing terms: {terms}")


@dataclass(frozen=True)
class VocabularySnapshot:
    """Immutable view of the vocabulary at one point in time."""

    version: int
    entries: dict[str, tuple[VocabularyEntry, ...]] = field(default_factory=dict)
    linkage: dict[tuple[str, str, str], tuple[str, ...]] = field(default_factory=dict)

    def entries_for(self, category: str) -> tuple[VocabularyEntry, ...]:
        return self.entries.get(category, ())

    def find(self, category: str, term: str) -> Optional[VocabularyEntry]:
        """Entry whose canonical term equals the (normalized) term."""
        wanted = normalize_label(term)
        for entry in self.entries_for(category):
            if normalize_label(entry.canonical_term) == wanted:
                return entry
        return None

    def linked_terms(
        self,
        category: str,
        film_type: Optional[str],
        primary_emotion: Optional[str],
    ) -> tuple[str, ...]:
        if not film_type or not primary_emotion:
            return ()
        return self.linkage.get((category, film_type, primary_emotion), ())

    def categories(self) -> list[str]:
        return sorted(self.entries)

    def size(self) -> int:
        return sum(len(e) for e in self.entries.values())


def find_conflicts(
    entries: Iterable[VocabularyEntry],
    category: str,
    term: str,
    aliases: Iterable[str] = (),
    min_partial_length: int = 2,
) -> list[VocabularyConflict]:
    """
    Compare a proposed term and its aliases against existing entries.

    Conflict types:
    - exact_match: term equals an existing canonical term
    - synonym: term or one of its aliases equals an existing alias,
      or an alias equals an existing canonical term
    - partial_match: term and an existing canonical term contain one another

    Args:
        entries: Existing entries (any category; others are ignored).
        category: Category of the proposed term.
        term: Proposed canonical term.
        aliases: Proposed aliases.
        min_partial_length: Shortest string considered for substring overlap.

    Returns:
        All conflicts found, blocking ones first.
    """
    wanted = normalize_label(term)
    wanted_aliases = {normalize_label(a) for a in aliases} - {"", wanted}
    conflicts: list[VocabularyConflict] = []

    for entry in entries:
        if entry.category != category:
            continue
        canonical = normalize_label(entry.canonical_term)
        existing_aliases = {normalize_label(a) for a in entry.aliases} - {canonical}

        if wanted == canonical:
            conflicts.append(VocabularyConflict(
                category=category,
                term=term,
                conflicting_term=entry.canonical_term,
                conflict_type=ConflictType.EXACT_MATCH,
                detail=f"'{term}' is already a canonical term",
            ))
            continue

        if wanted in existing_aliases:
            conflicts.append(VocabularyConflict(
                category=category,
                term=term,
                conflicting_term=entry.canonical_term,
                conflict_type=ConflictType.SYNONYM,
                detail=f"'{term}' is an alias of '{entry.canonical_term}'",
            ))

        for alias in sorted(wanted_aliases & (existing_aliases | {canonical})):
            conflicts.append(VocabularyConflict(
                category=category,
                term=term,
                conflicting_term=entry.canonical_term,
                conflict_type=ConflictType.SYNONYM,
                detail=f"alias '{alias}' already resolves to '{entry.canonical_term}'",
            ))

        if (
            len(wanted) >= min_partial_length
            and len(canonical) >= min_partial_length
            and (wanted in canonical or canonical in wanted)
        ):
            conflicts.append(VocabularyConflict(
                category=category,
                term=term,
                conflicting_term=entry.canonical_term,
                conflict_type=ConflictType.PARTIAL_MATCH,
                detail=f"'{term}' overlaps '{entry.canonical_term}'",
            ))

    conflicts.sort(key=lambda c: not c.conflict_type.blocking)
    return conflicts


class VocabularyRegistry(ABC):
    """Read-mostly source of vocabulary snapshots."""

    @abstractmethod
    def snapshot(self) -> VocabularySnapshot:
        """Current immutable snapshot."""


class InMemoryVocabularyRegistry(VocabularyRegistry):
    """
    Vocabulary held in memory, swappable at runtime.

    Usage:
        registry = InMemoryVocabularyRegistry.from_seed()
        snap = registry.snapshot()
        entry = snap.find("scenario", "追逐")

        registry.add_entry(VocabularyEntry(category="scenario", canonical_term="营救"))
    """

    def __init__(
        self,
        entries: Iterable[VocabularyEntry] = (),
        linkage: Iterable[LinkageRule] = (),
    ):
        self.logger = logger.bind(component="VocabularyRegistry")
        self._snapshot = VocabularySnapshot(version=0)
        self.replace(entries, linkage)

    @classmethod
    def from_seed(cls) -> "InMemoryVocabularyRegistry":
        """Registry preloaded with the built-in seed vocabulary."""
        from cue_system.config.vocabulary_seed import SEED_ENTRIES, SEED_LINKAGE

        return cls(SEED_ENTRIES, SEED_LINKAGE)

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryVocabularyRegistry":
        """
        Load a registry from a JSON file.

        Expected shape:
            {"entries": [VocabularyEntry, ...], "linkage": [LinkageRule, ...]}
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        entries = [VocabularyEntry.model_validate(e) for e in data.get("entries", [])]
        linkage = [LinkageRule.model_validate(r) for r in data.get("linkage", [])]
        return cls(entries, linkage)

    def snapshot(self) -> VocabularySnapshot:
        return self._snapshot

    def replace(
        self,
        entries: Iterable[VocabularyEntry],
        linkage: Iterable[LinkageRule] = (),
    ) -> VocabularySnapshot:
        """
        Atomically swap in a new vocabulary.

        Raises:
            VocabularyConflictError: If the new entries collide with each other.
        """
        by_category: dict[str, list[VocabularyEntry]] = {}
        accepted: list[VocabularyEntry] = []
        for entry in entries:
            blocking = [
                c for c in find_conflicts(
                    accepted, entry.category, entry.canonical_term, entry.aliases
                )
                if c.conflict_type.blocking
            ]
            if blocking:
                raise VocabularyConflictError(blocking)
            accepted.append(entry)
            by_category.setdefault(entry.category, []).append(entry)

        links: dict[tuple[str, str, str], tuple[str, ...]] = {}
        for rule in linkage:
            key = (rule.category, rule.film_type, rule.primary_emotion)
            merged = list(links.get(key, ()))
            merged.extend(t for t in rule.terms if t not in merged)
            links[key] = tuple(merged)

        self._snapshot = VocabularySnapshot(
            version=self._snapshot.version + 1,
            entries={k: tuple(v) for k, v in by_category.items()},
            linkage=links,
        )

        self.logger.info(
            "Vocabulary loaded",
            version=self._snapshot.version,
            entries=self._snapshot.size(),
            linkage_rules=len(links),
        )
        return self._snapshot

    def check_conflicts(
        self,
        category: str,
        term: str,
        aliases: Iterable[str] = (),
    ) -> list[VocabularyConflict]:
        """Report how a proposed term would collide with the current vocabulary."""
        snap = self._snapshot
        return find_conflicts(snap.entries_for(category), category, term, aliases)

    def add_entry(self, entry: VocabularyEntry) -> VocabularySnapshot:
        """
        Add one entry, rejecting collisions.

        Partial matches are logged but do not block.

        Raises:
            VocabularyConflictError: On exact or synonym collisions.
        """
        conflicts = self.check_conflicts(entry.category, entry.canonical_term, entry.aliases)
        blocking = [c for c in conflicts if c.conflict_type.blocking]
        if blocking:
            self.logger.warning(
                f"Rejected vocabulary entry '{entry.canonical_term}'",
                category=entry.category,
                conflicts=len(blocking),
            )
            raise VocabularyConflictError(blocking)

        for conflict in conflicts:
            self.logger.info(f"Partial overlap: {conflict.detail}", category=entry.category)

        snap = self._snapshot
        current = [e for cat in snap.categories() for e in snap.entries_for(cat)]
        rules = [
            LinkageRule(category=c, film_type=f, primary_emotion=m, terms=list(terms))
            for (c, f, m), terms in snap.linkage.items()
        ]
        return self.replace([*current, entry], rules)
