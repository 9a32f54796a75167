"""External classifier contract and its Gemini implementation."""

from cue_system.classification.classifier import (
    AssetClassifier,
    ClassifierOutput,
    parse_classifier_payload,
)
from cue_system.classification.gemini_classifier import (
    ClassificationFailedError,
    GeminiClassifier,
)

__all__ = [
    "AssetClassifier",
    "ClassifierOutput",
    "parse_classifier_payload",
    "ClassificationFailedError",
    "GeminiClassifier",
]
