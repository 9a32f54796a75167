"""Prompt templates for the generative vocabulary fallback.

Used only when exact, alias and context-linkage resolution all failed.
The model is steered towards existing canonical terms; inventing a new
term is allowed but becomes a review candidate, never a vocabulary entry.
"""

TERM_GENERATION_SYSTEM_PROMPT = '''You maintain a controlled vocabulary for
film-music labels. Map free-text labels onto the closest existing term.
Prefer existing terms. Propose a new short term (2-6 characters) only when
nothing fits.'''


TERM_GENERATION_USER_PROMPT = '''CATEGORY: {category}
RAW LABEL: {raw_label}
FILM TYPE: {film_type}
PRIMARY EMOTION: {primary_emotion}

EXISTING TERMS:
{terms}

Return JSON:
{{
    "term": "existing or proposed term",
    "confidence": 0.0-1.0,
    "reason": "brief explanation"
}}'''
