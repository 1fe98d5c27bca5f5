"""
Search Contracts - Interfaces for the retrieval domain.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol, runtime_checkable

from .models import (
    ChunkMatch,
    DocumentStatus,
    EmbeddingChunk,
    KnowledgeDocument,
    SearchHit,
    SearchRequest,
)


@runtime_checkable
class Embedder(Protocol):
    """Contract for query embedding providers."""

    dimension: int

    async def embed(self, text: str) -> list[float]:
        """Return a vector of length `dimension` for the text."""
        ...


@runtime_checkable
class KnowledgeStore(Protocol):
    """Contract for the datastore holding documents and chunks."""

    async def match_embeddings(
        self,
        query_embedding: Sequence[float],
        match_count: int,
        organization_filter: str | None,
        event_filter: str | None,
    ) -> list[ChunkMatch]:
        """Indexed vector query. Raises FastPathQueryUnavailable when absent."""
        ...

    async def scan_embeddings(self, limit: int) -> list[EmbeddingChunk]:
        """Return up to `limit` chunks with their vectors."""
        ...

    async def fetch_documents(
        self,
        ids: Sequence[str],
        statuses: Sequence[DocumentStatus] | None = None,
    ) -> list[KnowledgeDocument]:
        """Look up parent documents by id, optionally by status."""
        ...

    async def search_content(
        self,
        terms: Sequence[str],
        limit: int,
    ) -> list[EmbeddingChunk]:
        """Chunks whose content contains every term, case-insensitively."""
        ...


@runtime_checkable
class SearchEngine(Protocol):
    """Contract for search entry points."""

    async def search(self, request: SearchRequest) -> list[SearchHit]:
        """Execute search and return hits sorted by descending score."""
        ...
