"""Prompt templates for music cue classification.

The classifier receives the extracted audio features plus whatever the
file tags say, and answers with free-text labels and a provenance guess.
Labels are deliberately unconstrained; the vocabulary standardizer maps
them onto controlled terms afterwards.
"""

CUE_CLASSIFICATION_SYSTEM_PROMPT = '''You are a film and TV music supervisor.
You analyse music cues from their audio features and identify how they are
used on screen and where they come from. Answer in Chinese for labels.
Only claim a specific film, series or album when you are confident.'''


CUE_CLASSIFICATION_USER_PROMPT = '''Analyse this music cue.

FILE NAME: {file_name}

AUDIO FEATURES:
{features}

FILE METADATA:
{metadata}

Return JSON:
{{
    "mood": {{"primary": "紧张", "secondary": ["悬疑"]}},
    "filmMusic": {{
        "filmType": "警匪片",
        "scenes": [{{"type": "追逐", "description": "..."}}]
    }},
    "instruments": ["弦乐", "鼓"],
    "style": ["管弦乐"],
    "musicOrigin": {{
        "confidenceLevel": "高|中|低",
        "sourceType": "影视原声|专辑|独立单曲|未知",
        "filmOrTV": {{"name": "...", "scene": "...", "platform": "..."}},
        "album": {{"name": "...", "releaseYear": 2002}},
        "creators": {{"composer": ["..."], "singer": ["..."]}},
        "reasoning": "why you believe this origin",
        "uncertaintyReason": "what makes you unsure"
    }}
}}

Use "未识别" for any label you cannot determine.'''
