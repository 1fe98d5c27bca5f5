"""
Keyword Search Engine - Lexical fallback ranking.

Used when no query vector can be produced. Matches the caller's literal
vocabulary only; domain expansion is never applied here.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from kbsearch.config.errors import KeywordQueryFailure

from .models import (
    RETRIEVABLE_STATUSES,
    Provenance,
    SearchHit,
    SearchRequest,
    build_hit_metadata,
    sort_hits,
)
from .snippets import extract_snippet
from .terms import extract_key_terms, score_keyword_match

if TYPE_CHECKING:
    from .contracts import KnowledgeStore

logger = logging.getLogger(__name__)

__all__ = ["KeywordSearchEngine"]

DEFAULT_CANDIDATE_LIMIT = 500
FILTER_TERM_COUNT = 3


class KeywordSearchEngine:
    """
    Substring-match search scored by term occurrences.

    Example:
        >>> engine = KeywordSearchEngine(repository)
        >>> hits = await engine.search(SearchRequest(query="accessible entrance"))
    """

    def __init__(
        self,
        store: KnowledgeStore,
        candidate_limit: int = DEFAULT_CANDIDATE_LIMIT,
    ) -> None:
        self._store = store
        self._candidate_limit = candidate_limit

    async def search(self, request: SearchRequest) -> list[SearchHit]:
        """
        Execute keyword search.

        Returns:
            Up to top_k hits with snippets, sorted by descending score

        Raises:
            KeywordQueryFailure: Lexical datastore query failed
        """
        key_terms = extract_key_terms(request.query)
        if not key_terms:
            logger.debug("No key terms in query, skipping keyword search")
            return []

        try:
            chunks = await self._store.search_content(
                key_terms[:FILTER_TERM_COUNT], self._candidate_limit
            )
            if not chunks:
                return []
            documents = await self._store.fetch_documents(
                sorted({chunk.knowledge_id for chunk in chunks}),
                statuses=RETRIEVABLE_STATUSES,
            )
        except KeywordQueryFailure:
            raise
        except Exception as e:
            raise KeywordQueryFailure(
                "Keyword search failed", {"error": str(e), "terms": key_terms}
            ) from e

        by_id = {document.id: document for document in documents}

        hits = []
        for chunk in chunks:
            document = by_id.get(chunk.knowledge_id)
            if document is None or not document.is_eligible(
                request.organization_id, request.event_id
            ):
                continue
            hits.append(
                SearchHit(
                    knowledge_id=chunk.knowledge_id,
                    title=document.title,
                    content=chunk.content,
                    score=score_keyword_match(chunk.content, key_terms),
                    metadata=build_hit_metadata(document, chunk.chunk_index, chunk.metadata),
                    provenance=Provenance.KEYWORD,
                )
            )

        ranked = sort_hits(hits)[: request.top_k]

        logger.debug(
            "Keyword search: terms=%s candidates=%d -> %d hits",
            key_terms[:FILTER_TERM_COUNT],
            len(chunks),
            len(ranked),
        )

        return [
            hit.model_copy(update={"content": extract_snippet(hit.content, key_terms)})
            for hit in ranked
        ]
