"""
Semantic Search Engine - Vector similarity ranking over knowledge chunks.

Two tiers:
- Indexed query through the datastore (fast path)
- Bounded linear scan with in-memory cosine similarity (fallback)
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from kbsearch.config.errors import FastPathQueryUnavailable, StorageError

from .models import (
    RETRIEVABLE_STATUSES,
    KnowledgeDocument,
    Provenance,
    SearchHit,
    SearchRequest,
    build_hit_metadata,
    sort_hits,
)

if TYPE_CHECKING:
    from .contracts import KnowledgeStore

logger = logging.getLogger(__name__)

__all__ = ["SemanticSearchEngine", "cosine_similarity"]

DEFAULT_DIMENSION = 1536
DEFAULT_SCAN_LIMIT = 2000


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine similarity in [-1, 1].

    A zero norm is treated as 1 so that zero vectors score 0 instead of
    dividing by zero.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = float(np.linalg.norm(va)) or 1.0
    norm_b = float(np.linalg.norm(vb)) or 1.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


class SemanticSearchEngine:
    """
    Vector similarity search tiers. The orchestrator decides when to fall
    back from `search_indexed` to `search_scan`.

    Example:
        >>> engine = SemanticSearchEngine(repository, dimension=1536)
        >>> hits = await engine.search_indexed(query_vector, SearchRequest(query="crowd surge"))
    """

    def __init__(
        self,
        store: KnowledgeStore,
        dimension: int = DEFAULT_DIMENSION,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
    ) -> None:
        """
        Initialize semantic search engine.

        Args:
            store: Datastore providing indexed and bulk chunk access
            dimension: Expected embedding dimension; other vectors are skipped
            scan_limit: Maximum rows fetched by the in-memory fallback
        """
        self._store = store
        self._dimension = dimension
        self._scan_limit = scan_limit

    async def search_indexed(
        self,
        query_embedding: Sequence[float],
        request: SearchRequest,
    ) -> list[SearchHit]:
        """
        Fast path: one indexed vector query against the datastore.

        Raises:
            FastPathQueryUnavailable: Query missing or failed
        """
        try:
            rows = await self._store.match_embeddings(
                query_embedding,
                request.match_count,
                request.organization_id,
                request.event_id,
            )
            if not rows:
                return []
            documents = await self._documents_by_id({row.knowledge_id for row in rows})
        except FastPathQueryUnavailable:
            raise
        except Exception as e:
            raise FastPathQueryUnavailable(
                "Indexed vector query failed", {"error": str(e)}
            ) from e

        hits = []
        for row in rows:
            document = documents.get(row.knowledge_id)
            if document is None or not document.is_eligible(
                request.organization_id, request.event_id
            ):
                continue
            hits.append(
                SearchHit(
                    knowledge_id=row.knowledge_id,
                    title=document.title,
                    content=row.content,
                    score=row.similarity,
                    metadata=build_hit_metadata(document, row.chunk_index, row.metadata),
                    provenance=Provenance.KNOWLEDGE_BASE,
                )
            )

        logger.debug("Indexed vector query: %d rows -> %d hits", len(rows), len(hits))
        return sort_hits(hits)[: request.match_count]

    async def search_scan(
        self,
        query_embedding: Sequence[float],
        request: SearchRequest,
    ) -> list[SearchHit]:
        """
        Fallback: rank a bounded chunk scan by cosine similarity.

        Raises:
            StorageError: The bulk scan itself failed
        """
        try:
            chunks = await self._store.scan_embeddings(self._scan_limit)
            if not chunks:
                return []
            documents = await self._documents_by_id({chunk.knowledge_id for chunk in chunks})
        except StorageError:
            raise
        except Exception as e:
            raise StorageError("Failed to fetch embeddings", {"error": str(e)}) from e

        hits = []
        skipped = 0
        for chunk in chunks:
            document = documents.get(chunk.knowledge_id)
            if document is None or not document.is_eligible(
                request.organization_id, request.event_id
            ):
                continue

            vector = self._as_vector(chunk.embedding)
            if vector is None:
                skipped += 1
                continue

            hits.append(
                SearchHit(
                    knowledge_id=chunk.knowledge_id,
                    title=document.title,
                    content=chunk.content,
                    score=cosine_similarity(query_embedding, vector),
                    metadata=build_hit_metadata(document, chunk.chunk_index, chunk.metadata),
                    provenance=Provenance.KNOWLEDGE_BASE_SCAN,
                )
            )

        if skipped:
            logger.debug("Skipped %d chunks with unusable vectors", skipped)

        logger.debug("In-memory scan: %d chunks -> %d hits", len(chunks), len(hits))
        return sort_hits(hits)[: request.match_count]

    def _as_vector(self, embedding: Sequence[float] | None) -> np.ndarray | None:
        """Numeric vector of the expected dimension, else None."""
        if embedding is None or len(embedding) != self._dimension:
            return None
        try:
            vector = np.asarray(embedding, dtype=np.float64)
        except (TypeError, ValueError):
            return None
        if vector.ndim != 1 or not np.all(np.isfinite(vector)):
            return None
        return vector

    async def _documents_by_id(self, ids: set[str]) -> dict[str, KnowledgeDocument]:
        documents = await self._store.fetch_documents(
            sorted(ids), statuses=RETRIEVABLE_STATUSES
        )
        return {document.id: document for document in documents}
