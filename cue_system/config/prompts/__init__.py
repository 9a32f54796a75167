"""Prompt templates for Gemini-backed classification and term generation."""

from cue_system.config.prompts.classification_prompts import (
    CUE_CLASSIFICATION_SYSTEM_PROMPT,
    CUE_CLASSIFICATION_USER_PROMPT,
)
from cue_system.config.prompts.term_generation_prompts import (
    TERM_GENERATION_SYSTEM_PROMPT,
    TERM_GENERATION_USER_PROMPT,
)

__all__ = [
    "CUE_CLASSIFICATION_SYSTEM_PROMPT",
    "CUE_CLASSIFICATION_USER_PROMPT",
    "TERM_GENERATION_SYSTEM_PROMPT",
    "TERM_GENERATION_USER_PROMPT",
]
