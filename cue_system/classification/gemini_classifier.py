"""Gemini-backed implementation of the external classifier."""

import json
from typing import Any, Optional

from loguru import logger

from cue_system.classification.classifier import ClassifierOutput, parse_classifier_payload
from cue_system.config.prompts.classification_prompts import (
    CUE_CLASSIFICATION_SYSTEM_PROMPT,
    CUE_CLASSIFICATION_USER_PROMPT,
)


class ClassificationFailedError(RuntimeError):
    """The model answered, but not with a usable JSON object."""


class GeminiClassifier:
    """
    Classifies music cues by prompting Gemini with their features.

    The Gemini client is created lazily so that constructing a pipeline
    does not require an API key until the classifier is actually needed.

    Attributes:
        model_name: Gemini model override (None = settings)
        temperature: Sampling temperature for classification
    """

    def __init__(
        self,
        gemini_client: Optional[Any] = None,
        model_name: Optional[str] = None,
        temperature: float = 0.2,
    ):
        self._gemini_client = gemini_client
        self.model_name = model_name
        self.temperature = temperature
        self.logger = logger.bind(component="GeminiClassifier")

    @property
    def gemini_client(self):
        """Lazy-load Gemini client on first access."""
        if self._gemini_client is None:
            from cue_system.llm.gemini_client import GeminiClient

            self._gemini_client = GeminiClient(model_name=self.model_name)
        return self._gemini_client

    async def classify(
        self,
        features: dict[str, Any],
        context: Optional[dict[str, Any]] = None,
    ) -> ClassifierOutput:
        """
        Classify one asset.

        Args:
            features: Opaque feature vector from the upstream extractor.
            context: Optional extra context (file_name, metadata dict).

        Returns:
            ClassifierOutput parsed from the model's JSON.

        Raises:
            ClassificationFailedError: The reply held no JSON object.
        """
        context = context or {}
        prompt = CUE_CLASSIFICATION_USER_PROMPT.format(
            file_name=context.get("file_name", "unknown"),
            features=json.dumps(features, ensure_ascii=False, default=str),
            metadata=json.dumps(context.get("metadata") or {}, ensure_ascii=False, default=str),
        )

        payload = await self.gemini_client.generate_json(
            prompt,
            system_instruction=CUE_CLASSIFICATION_SYSTEM_PROMPT,
            temperature=self.temperature,
        )
        if not payload:
            self.logger.warning("No valid JSON in classifier response")
            raise ClassificationFailedError("classifier returned no JSON object")

        output = parse_classifier_payload(payload)
        self.logger.info(
            "Cue classified",
            file_name=context.get("file_name"),
            categories=sorted(output.raw_labels),
            provenance_confidence=output.provenance.confidence,
        )
        return output
