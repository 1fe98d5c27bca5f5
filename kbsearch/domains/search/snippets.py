"""
Snippet Extraction - Pick the most relevant excerpt of a chunk.
"""

from __future__ import annotations

import re

__all__ = ["ELLIPSIS", "extract_snippet"]

ELLIPSIS = "…"
FALLBACK_SENTENCES = 2

_WHITESPACE = re.compile(r"\s+")
_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+")
_CLEAN_START = re.compile(r"^[A-Z0-9]")
_CLEAN_END = re.compile(r"[.!?]$")


def extract_snippet(content: str, key_terms: list[str]) -> str:
    """
    Extract the best-matching sentence window from content.

    The sentence containing the most key terms is returned together with
    its neighbours on either side. Without any match the first two
    sentences are used. Ellipsis markers flag a window that starts or
    ends mid-sentence.

    Args:
        content: Full chunk text
        key_terms: Lowercase terms from extract_key_terms

    Returns:
        Snippet text; empty or whitespace-only content is returned as is
    """
    if not content or not content.strip():
        return content

    text = _WHITESPACE.sub(" ", content).strip()
    sentences = _SENTENCE_BOUNDARY.split(text)

    best_index = 0
    best_score = 0
    for index, sentence in enumerate(sentences):
        lower = sentence.lower()
        score = sum(1 for term in key_terms if term in lower)
        if score > best_score:
            best_index, best_score = index, score

    if best_score > 0:
        start = max(0, best_index - 1)
        end = min(len(sentences), best_index + 2)
        window = sentences[start:end]
    else:
        window = sentences[:FALLBACK_SENTENCES]

    return _mark_boundaries(" ".join(window))


def _mark_boundaries(snippet: str) -> str:
    prefix = "" if _CLEAN_START.match(snippet) else f"{ELLIPSIS} "
    suffix = "" if _CLEAN_END.search(snippet) else f" {ELLIPSIS}"
    return f"{prefix}{snippet}{suffix}"
