"""
Service Wiring - Build the search stack from settings.

Every collaborator is constructed here and handed to the orchestrator
explicitly; nothing in the search domain reaches for a global client.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from kbsearch.adapters.embeddings import EmbeddingClient
from kbsearch.adapters.faiss import load_index
from kbsearch.adapters.sqlite import KnowledgeRepository
from kbsearch.config import Settings, get_settings
from kbsearch.domains.search import (
    KeywordSearchEngine,
    SearchOrchestrator,
    SemanticSearchEngine,
)

logger = logging.getLogger(__name__)

__all__ = ["SearchServices", "open_services"]


@dataclass
class SearchServices:
    """Open resources backing one orchestrator."""

    repository: KnowledgeRepository
    embedder: EmbeddingClient
    orchestrator: SearchOrchestrator

    async def close(self) -> None:
        await self.embedder.close()
        await self.repository.close()


async def open_services(settings: Settings | None = None) -> SearchServices:
    """
    Open the repository, load the fast-path index and build the orchestrator.

    Raises:
        ConfigurationError: No embedding provider credential configured
    """
    settings = settings or get_settings()

    embedder = EmbeddingClient(
        api_key=settings.embedding_api_key,
        base_url=settings.embedding_base_url,
        model=settings.embedding_model,
        dimension=settings.embedding_dimension,
        timeout=settings.embedding_timeout_seconds,
    )

    repository = KnowledgeRepository(settings.db_path, oversample=settings.fast_path_oversample)
    await repository.initialize()

    chunk_count = await repository.get_chunk_count()
    index = await load_index(
        settings.faiss_index_path,
        model=settings.embedding_model,
        dimension=settings.embedding_dimension,
        source_chunk_count=chunk_count,
    )
    repository.attach_index(index, indexed_chunk_count=chunk_count)

    orchestrator = SearchOrchestrator(
        embedder=embedder,
        semantic=SemanticSearchEngine(
            repository,
            dimension=settings.embedding_dimension,
            scan_limit=settings.bulk_scan_limit,
        ),
        keyword=KeywordSearchEngine(
            repository,
            candidate_limit=settings.keyword_candidate_limit,
        ),
    )

    logger.info(
        "Search services ready: db=%s index=%s",
        settings.db_path,
        f"{index.size} vectors" if index else "none",
    )

    return SearchServices(repository=repository, embedder=embedder, orchestrator=orchestrator)
