"""
Hybrid Reranker - Recombine semantic, keyword and title signals.
"""

from __future__ import annotations

from .models import SearchHit, sort_hits
from .terms import score_keyword_match

__all__ = ["HybridReranker"]


class HybridReranker:
    """
    Weighted combination of semantic score, keyword density and title match.

    relevance = 0.6 * semantic + 0.3 * keyword + 0.1 * title_bonus

    Example:
        >>> reranker = HybridReranker()
        >>> ranked = reranker.rerank(hits, ["crowd", "surge"])
    """

    def __init__(
        self,
        semantic_weight: float = 0.6,
        keyword_weight: float = 0.3,
        title_weight: float = 0.1,
        title_bonus: float = 0.1,
    ) -> None:
        self.semantic_weight = semantic_weight
        self.keyword_weight = keyword_weight
        self.title_weight = title_weight
        self.title_bonus = title_bonus

    def score(self, hit: SearchHit, key_terms: list[str]) -> float:
        """Combined relevance of one hit; content must be the full chunk text."""
        title = hit.title.lower()
        bonus = self.title_bonus if any(term in title for term in key_terms) else 0.0
        return (
            self.semantic_weight * hit.score
            + self.keyword_weight * score_keyword_match(hit.content, key_terms)
            + self.title_weight * bonus
        )

    def rerank(self, hits: list[SearchHit], key_terms: list[str]) -> list[SearchHit]:
        """Rescore hits and sort by descending relevance."""
        rescored = [
            hit.model_copy(update={"score": self.score(hit, key_terms)}) for hit in hits
        ]
        return sort_hits(rescored)
