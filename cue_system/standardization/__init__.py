"""Label standardization against the controlled vocabulary."""

from cue_system.standardization.standardizer import VocabularyStandardizer
from cue_system.standardization.term_generator import GeminiTermGenerator, TermGenerator

__all__ = [
    "VocabularyStandardizer",
    "GeminiTermGenerator",
    "TermGenerator",
]
