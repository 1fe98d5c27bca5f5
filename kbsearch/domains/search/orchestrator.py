"""
Search Orchestrator - Entry point of the retrieval engine.

Walks an explicit degradation path, one attempt per tier:

    TRY_FAST_SEMANTIC      embed query, indexed vector query
        |  embedding failed ---------------------------> TRY_KEYWORD
        |  index failed or empty --> TRY_FALLBACK_SEMANTIC
        v
    TRY_FALLBACK_SEMANTIC  in-memory cosine scan
        |  scan failed or empty -----------------------> TRY_KEYWORD
        v
    DONE  <---- keyword succeeded ---- TRY_KEYWORD ---- keyword failed --> FAILED

Semantic hits are reranked in hybrid mode, snippeted and truncated.
A keyword failure is the final error of the request.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from kbsearch.config.errors import (
    ConfigurationError,
    EmbeddingUnavailable,
    FastPathQueryUnavailable,
    KeywordQueryFailure,
)

from .keyword import KeywordSearchEngine
from .models import SearchHit, SearchMethod, SearchReport, SearchRequest, SearchState
from .reranker import HybridReranker
from .semantic import SemanticSearchEngine
from .snippets import extract_snippet
from .terms import extract_key_terms

if TYPE_CHECKING:
    from .contracts import Embedder

logger = logging.getLogger(__name__)

__all__ = ["SearchOrchestrator", "calculate_confidence"]

METHOD_CONFIDENCE = {
    SearchMethod.SEMANTIC: 1.0,
    SearchMethod.HYBRID: 0.95,
    SearchMethod.KEYWORD: 0.7,
}
CLEAR_WINNER_MARGIN = 0.2
CLEAR_WINNER_BONUS = 0.1


def calculate_confidence(hits: list[SearchHit], method: SearchMethod) -> float:
    """Mean score scaled by method, plus a bonus for a clear top hit."""
    if not hits:
        return 0.0

    mean_score = sum(hit.score for hit in hits) / len(hits)
    top = hits[0].score
    second = hits[1].score if len(hits) > 1 else 0.0
    bonus = CLEAR_WINNER_BONUS if top - second > CLEAR_WINNER_MARGIN else 0.0

    return max(0.0, min(mean_score * METHOD_CONFIDENCE[method] + bonus, 1.0))


@dataclass
class _SearchRun:
    """Mutable per-request state carried between tiers."""

    request: SearchRequest
    key_terms: list[str]
    state: SearchState = SearchState.TRY_FAST_SEMANTIC
    query_embedding: Sequence[float] | None = None
    hits: list[SearchHit] = field(default_factory=list)
    method: SearchMethod = SearchMethod.SEMANTIC
    tiers: list[SearchState] = field(default_factory=list)
    error: Exception | None = None


class SearchOrchestrator:
    """
    Hybrid knowledge search with tiered fallback.

    Example:
        >>> orchestrator = SearchOrchestrator(
        ...     embedder=EmbeddingClient(api_key="..."),
        ...     semantic=SemanticSearchEngine(repository),
        ...     keyword=KeywordSearchEngine(repository),
        ... )
        >>> hits = await orchestrator.search(SearchRequest(query="crowd surge at gate 4"))
    """

    def __init__(
        self,
        embedder: Embedder,
        semantic: SemanticSearchEngine,
        keyword: KeywordSearchEngine,
        reranker: HybridReranker | None = None,
    ) -> None:
        """
        Initialize orchestrator.

        Args:
            embedder: Query embedding provider
            semantic: Vector similarity engine
            keyword: Lexical fallback engine
            reranker: Hybrid reranker (default weights if None)
        """
        self._embedder = embedder
        self._semantic = semantic
        self._keyword = keyword
        self._reranker = reranker or HybridReranker()

    async def search(self, request: SearchRequest) -> list[SearchHit]:
        """Return at most top_k hits sorted by descending score."""
        report = await self.search_with_report(request)
        return report.hits

    async def search_with_report(self, request: SearchRequest) -> SearchReport:
        """
        Execute search and describe how the result was produced.

        Raises:
            KeywordQueryFailure: All semantic tiers were exhausted and the
                keyword tier failed as well
        """
        run = _SearchRun(request=request, key_terms=extract_key_terms(request.query))

        while run.state not in (SearchState.DONE, SearchState.FAILED):
            run.tiers.append(run.state)
            if run.state is SearchState.TRY_FAST_SEMANTIC:
                await self._try_fast_semantic(run)
            elif run.state is SearchState.TRY_FALLBACK_SEMANTIC:
                await self._try_fallback_semantic(run)
            else:
                await self._try_keyword(run)

        if run.state is SearchState.FAILED:
            assert run.error is not None
            logger.error(
                "Search failed: query='%s' tiers=%s error=%s",
                request.query[:50],
                [tier.value for tier in run.tiers],
                run.error,
            )
            raise run.error

        report = SearchReport(
            hits=run.hits,
            method=run.method,
            confidence=calculate_confidence(run.hits, run.method),
            tiers=run.tiers,
        )

        logger.info(
            "Search: query='%s' -> %d hits (method=%s, tiers=%s)",
            request.query[:50],
            len(report.hits),
            report.method.value,
            [tier.value for tier in report.tiers],
        )

        return report

    async def _try_fast_semantic(self, run: _SearchRun) -> None:
        try:
            run.query_embedding = await self._embedder.embed(run.request.query)
        except (EmbeddingUnavailable, ConfigurationError) as e:
            logger.warning("Semantic search unavailable, falling back to keyword search: %s", e)
            run.state = SearchState.TRY_KEYWORD
            return

        try:
            hits = await self._semantic.search_indexed(run.query_embedding, run.request)
        except FastPathQueryUnavailable as e:
            logger.warning("Indexed vector query failed, ranking in memory: %s", e)
            run.state = SearchState.TRY_FALLBACK_SEMANTIC
            return

        if not hits:
            run.state = SearchState.TRY_FALLBACK_SEMANTIC
            return

        self._finish_semantic(run, hits)

    async def _try_fallback_semantic(self, run: _SearchRun) -> None:
        assert run.query_embedding is not None
        try:
            hits = await self._semantic.search_scan(run.query_embedding, run.request)
        except Exception as e:
            logger.warning("In-memory ranking failed, falling back to keyword search: %s", e)
            run.state = SearchState.TRY_KEYWORD
            return

        if not hits:
            run.state = SearchState.TRY_KEYWORD
            return

        self._finish_semantic(run, hits)

    async def _try_keyword(self, run: _SearchRun) -> None:
        try:
            run.hits = await self._keyword.search(run.request)
        except KeywordQueryFailure as e:
            run.error = e
            run.state = SearchState.FAILED
            return

        run.method = SearchMethod.KEYWORD
        run.state = SearchState.DONE

    def _finish_semantic(self, run: _SearchRun, hits: list[SearchHit]) -> None:
        if run.request.use_hybrid:
            hits = self._reranker.rerank(hits, run.key_terms)
            run.method = SearchMethod.HYBRID
        else:
            run.method = SearchMethod.SEMANTIC

        run.hits = [
            hit.model_copy(update={"content": extract_snippet(hit.content, run.key_terms)})
            for hit in hits[: run.request.top_k]
        ]
        run.state = SearchState.DONE
