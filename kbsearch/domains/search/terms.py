"""
Key Terms - Lexical term extraction and keyword scoring.
"""

from __future__ import annotations

import re

__all__ = ["STOPWORDS", "MAX_KEY_TERMS", "extract_key_terms", "score_keyword_match"]

STOPWORDS = frozenset(
    {
        "the", "and", "or", "to", "of", "in", "on", "for", "with", "at", "by",
        "a", "an", "is", "are", "was", "were", "be", "been", "being", "as", "from",
    }
)

MAX_KEY_TERMS = 10
MIN_TERM_LENGTH = 4
OCCURRENCE_WEIGHT = 0.1

_TOKEN_SPLIT = re.compile(r"[^a-z0-9]+")


def extract_key_terms(query: str) -> list[str]:
    """
    Extract salient lowercase terms from a query.

    Returns up to 10 unique terms in first-seen order, each longer than
    three characters and not a stopword. An empty list means the query
    carries no lexical signal.
    """
    terms: list[str] = []
    for token in _TOKEN_SPLIT.split(query.lower()):
        if len(token) < MIN_TERM_LENGTH or token in STOPWORDS or token in terms:
            continue
        terms.append(token)
        if len(terms) == MAX_KEY_TERMS:
            break
    return terms


def score_keyword_match(content: str, key_terms: list[str]) -> float:
    """Score 0.1 per term occurrence in content, capped at 1.0."""
    lower = content.lower()
    occurrences = sum(lower.count(term) for term in key_terms)
    return min(occurrences * OCCURRENCE_WEIGHT, 1.0)
