"""Shared utility functions for the surgical report service.

The ``sanitize_*`` helpers are the boundary contract for every text value
that leaves the service (webhooks, LLM prompts): control characters are
stripped and lengths are capped.
"""

import re

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")
_ALL_CONTROL_CHARS = re.compile(r"[\x00-\x1F\x7F]")
_PROMPT_BREAKERS = re.compile(r"[<>{}\[\]]")
_REPEATED_PUNCTUATION = re.compile(r"([!?.]){3,}")
_CODE_DISALLOWED = re.compile(r"[^a-zA-Z0-9\-_\s]")

NOT_SPECIFIED = "No especificado"


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences wrapping JSON from LLM responses."""
    text = text.strip()
    if text.startswith("```"):
        text = re.sub(r"^```\w*\n?", "", text)
        text = re.sub(r"\n?```$", "", text)
    return text.strip()


def sanitize_input(value: str | None, max_length: int = 5000) -> str:
    """Single-line cleanup: control chars removed, whitespace collapsed."""
    if not value:
        return ""
    sanitized = _CONTROL_CHARS.sub("", value)
    sanitized = re.sub(r"\s+", " ", sanitized).strip()
    return sanitized[:max_length]


def sanitize_medical_text(value: str | None, max_length: int = 5000) -> str:
    """Cleanup for free clinical text that keeps meaningful line breaks.

    Tabs and newlines survive the control-character pass; runs of spaces/tabs
    collapse to one space and at most two consecutive newlines are kept.
    """
    if not value:
        return ""
    sanitized = _CONTROL_CHARS.sub("", value)
    sanitized = re.sub(r"[ \t]+", " ", sanitized)
    sanitized = re.sub(r"\n{3,}", "\n\n", sanitized)
    return sanitized.strip()[:max_length]


def sanitize_for_ai_prompt(value: str | None, max_length: int = 500) -> str:
    """Neutralize text before it is interpolated into an LLM prompt."""
    if not value:
        return NOT_SPECIFIED
    sanitized = _ALL_CONTROL_CHARS.sub("", value)
    sanitized = _PROMPT_BREAKERS.sub("", sanitized)
    sanitized = _REPEATED_PUNCTUATION.sub(r"\1\1", sanitized)
    sanitized = re.sub(r"\s+", " ", sanitized).strip()
    return sanitized[:max_length] or NOT_SPECIFIED


def sanitize_code(value: str | None, max_length: int = 50) -> str:
    """Keep only alphanumerics, hyphens, underscores and spaces."""
    if not value:
        return ""
    return _CODE_DISALLOWED.sub("", value).strip()[:max_length]
