"""
Tests for the search engines and the tiered orchestrator.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Sequence
from unittest.mock import AsyncMock

import pytest

from kbsearch.config.errors import (
    EmbeddingUnavailable,
    FastPathQueryUnavailable,
    KeywordQueryFailure,
    StorageError,
)

from .keyword import KeywordSearchEngine
from .models import (
    ChunkMatch,
    DocumentStatus,
    EmbeddingChunk,
    KnowledgeDocument,
    Provenance,
    SearchMethod,
    SearchRequest,
    SearchState,
)
from .orchestrator import SearchOrchestrator
from .semantic import SemanticSearchEngine

DIM = 3
QUERY_VECTOR = [1.0, 0.0, 0.0]


def _unit(cos: float) -> list[float]:
    """Unit vector at the given cosine to QUERY_VECTOR."""
    return [cos, math.sqrt(1.0 - cos * cos), 0.0]


DOCUMENTS = [
    KnowledgeDocument(id="doc-a", title="Accessible Entrance Guide", status=DocumentStatus.PUBLISHED),
    KnowledgeDocument(id="doc-b", title="Site Plan", status=DocumentStatus.INGESTED),
    KnowledgeDocument(id="doc-draft", title="Draft Notes", status=DocumentStatus.DRAFT),
    KnowledgeDocument(
        id="doc-org-b",
        title="Other Organization",
        organization_id="org-b",
        status=DocumentStatus.PUBLISHED,
    ),
]

CHUNKS = [
    EmbeddingChunk(
        id="c1",
        knowledge_id="doc-a",
        chunk_index=0,
        content="The accessible entrance is at Gate B. Staff check status hourly.",
        embedding=_unit(0.9),
    ),
    EmbeddingChunk(
        id="c2",
        knowledge_id="doc-b",
        chunk_index=0,
        content="Parking opens at noon.",
        embedding=_unit(0.5),
    ),
    EmbeddingChunk(
        id="c3",
        knowledge_id="doc-draft",
        chunk_index=0,
        content="Unreviewed accessible entrance notes.",
        embedding=_unit(1.0),
    ),
    EmbeddingChunk(
        id="c4",
        knowledge_id="doc-org-b",
        chunk_index=0,
        content="Private accessible entrance for organization B.",
        embedding=_unit(0.95),
    ),
    EmbeddingChunk(
        id="c5",
        knowledge_id="doc-b",
        chunk_index=1,
        content="Broken vector.",
        embedding=[0.1, 0.2],
    ),
]


def _fetch_documents(ids: Sequence[str], statuses: Sequence[DocumentStatus] | None = None):
    return [d for d in DOCUMENTS if d.id in ids and (statuses is None or d.status in statuses)]


def _search_content(terms: Sequence[str], limit: int):
    return [
        chunk.model_copy(update={"embedding": None})
        for chunk in CHUNKS
        if all(term in chunk.content.lower() for term in terms)
    ][:limit]


@pytest.fixture
def store() -> AsyncMock:
    """Mock datastore over the fixture corpus; no fast-path index."""
    mock = AsyncMock()
    mock.match_embeddings.side_effect = FastPathQueryUnavailable("No vector index attached")
    mock.scan_embeddings.return_value = list(CHUNKS)
    mock.fetch_documents.side_effect = _fetch_documents
    mock.search_content.side_effect = _search_content
    return mock


@pytest.fixture
def embedder() -> AsyncMock:
    mock = AsyncMock()
    mock.dimension = DIM
    mock.embed.return_value = list(QUERY_VECTOR)
    return mock


@pytest.fixture
def orchestrator(store: AsyncMock, embedder: AsyncMock) -> SearchOrchestrator:
    return SearchOrchestrator(
        embedder=embedder,
        semantic=SemanticSearchEngine(store, dimension=DIM),
        keyword=KeywordSearchEngine(store),
    )


# --- Semantic Tier Tests ---


async def test_top_k_one_returns_best_chunk(orchestrator: SearchOrchestrator) -> None:
    """Test top_k=1 returns only the 0.9 similarity chunk."""
    request = SearchRequest(
        query="accessible entrance", top_k=1, use_hybrid=False, organization_id="org-a"
    )
    hits = await orchestrator.search(request)

    assert len(hits) == 1
    assert hits[0].knowledge_id == "doc-a"
    assert hits[0].score == pytest.approx(0.9)
    assert hits[0].provenance is Provenance.KNOWLEDGE_BASE_SCAN


async def test_draft_and_out_of_scope_excluded(orchestrator: SearchOrchestrator) -> None:
    """Test draft documents and other organizations' documents never appear."""
    request = SearchRequest(query="accessible entrance", top_k=10, organization_id="org-a")
    hits = await orchestrator.search(request)

    ids = {hit.knowledge_id for hit in hits}
    assert "doc-draft" not in ids
    assert "doc-org-b" not in ids
    assert ids == {"doc-a", "doc-b"}


async def test_unscoped_request_sees_scoped_documents(orchestrator: SearchOrchestrator) -> None:
    request = SearchRequest(query="accessible entrance", top_k=10, use_hybrid=False)
    hits = await orchestrator.search(request)

    assert [hit.knowledge_id for hit in hits] == ["doc-org-b", "doc-a", "doc-b"]


async def test_unusable_vectors_are_skipped(orchestrator: SearchOrchestrator) -> None:
    request = SearchRequest(query="accessible entrance", top_k=10, use_hybrid=False)
    hits = await orchestrator.search(request)

    assert all(hit.content != "Broken vector." for hit in hits)


async def test_fast_path_used_when_available(
    orchestrator: SearchOrchestrator, store: AsyncMock
) -> None:
    """Test indexed matches are returned without a scan."""
    store.match_embeddings.side_effect = None
    store.match_embeddings.return_value = [
        ChunkMatch(knowledge_id="doc-a", content=CHUNKS[0].content, similarity=0.88),
    ]

    report = await orchestrator.search_with_report(
        SearchRequest(query="accessible entrance", use_hybrid=False)
    )

    assert report.tiers == [SearchState.TRY_FAST_SEMANTIC]
    assert report.method is SearchMethod.SEMANTIC
    assert report.hits[0].provenance is Provenance.KNOWLEDGE_BASE
    assert report.hits[0].score == pytest.approx(0.88)
    store.match_embeddings.assert_awaited_once_with(QUERY_VECTOR, 5, None, None)
    store.scan_embeddings.assert_not_awaited()


async def test_fast_path_drops_ineligible_rows(
    orchestrator: SearchOrchestrator, store: AsyncMock
) -> None:
    """Test a draft row slipping through the index query is still filtered out."""
    store.match_embeddings.side_effect = None
    store.match_embeddings.return_value = [
        ChunkMatch(knowledge_id="doc-draft", content="Draft.", similarity=0.99),
        ChunkMatch(knowledge_id="doc-a", content="Accessible.", similarity=0.8),
    ]

    hits = await orchestrator.search(SearchRequest(query="accessible", use_hybrid=False))
    assert [hit.knowledge_id for hit in hits] == ["doc-a"]


async def test_fast_path_failure_falls_back_to_scan(
    orchestrator: SearchOrchestrator, store: AsyncMock
) -> None:
    report = await orchestrator.search_with_report(SearchRequest(query="accessible entrance"))

    assert report.tiers == [SearchState.TRY_FAST_SEMANTIC, SearchState.TRY_FALLBACK_SEMANTIC]
    store.scan_embeddings.assert_awaited_once()
    assert all(hit.provenance is Provenance.KNOWLEDGE_BASE_SCAN for hit in report.hits)


async def test_fast_path_empty_falls_back_to_scan(
    orchestrator: SearchOrchestrator, store: AsyncMock
) -> None:
    store.match_embeddings.side_effect = None
    store.match_embeddings.return_value = []

    report = await orchestrator.search_with_report(SearchRequest(query="accessible entrance"))
    assert SearchState.TRY_FALLBACK_SEMANTIC in report.tiers
    assert report.hits


async def test_fast_path_unexpected_error_is_wrapped(store: AsyncMock) -> None:
    store.match_embeddings.side_effect = RuntimeError("rpc missing")
    engine = SemanticSearchEngine(store, dimension=DIM)

    with pytest.raises(FastPathQueryUnavailable):
        await engine.search_indexed(QUERY_VECTOR, SearchRequest(query="gate"))


async def test_scan_failure_is_storage_error(store: AsyncMock) -> None:
    store.scan_embeddings.side_effect = RuntimeError("connection reset")
    engine = SemanticSearchEngine(store, dimension=DIM)

    with pytest.raises(StorageError):
        await engine.search_scan(QUERY_VECTOR, SearchRequest(query="gate"))


async def test_scan_storage_error_uses_keyword(
    orchestrator: SearchOrchestrator, store: AsyncMock
) -> None:
    """Test a failed bulk scan degrades to keyword search instead of raising."""
    store.scan_embeddings.side_effect = RuntimeError("connection reset")

    report = await orchestrator.search_with_report(SearchRequest(query="parking opens"))

    assert report.method is SearchMethod.KEYWORD
    assert report.tiers == [
        SearchState.TRY_FAST_SEMANTIC,
        SearchState.TRY_FALLBACK_SEMANTIC,
        SearchState.TRY_KEYWORD,
    ]
    assert [hit.knowledge_id for hit in report.hits] == ["doc-b"]


async def test_hybrid_mode_reranks(orchestrator: SearchOrchestrator) -> None:
    """Test hybrid scores combine similarity, keyword density and title."""
    report = await orchestrator.search_with_report(
        SearchRequest(query="accessible entrance", top_k=1)
    )

    assert report.method is SearchMethod.HYBRID
    hit = report.hits[0]
    assert hit.knowledge_id == "doc-org-b"
    # 0.6 * 0.95 + 0.3 * (2 occurrences * 0.1), no title match
    assert hit.score == pytest.approx(0.6 * 0.95 + 0.3 * 0.2)


async def test_semantic_snippet_keeps_short_chunk_whole(orchestrator: SearchOrchestrator) -> None:
    request = SearchRequest(query="staff check", top_k=1, use_hybrid=False, organization_id="x")
    hits = await orchestrator.search(request)

    assert hits[0].knowledge_id == "doc-a"
    assert hits[0].content == CHUNKS[0].content


# --- Keyword Tier Tests ---


async def test_embedding_failure_uses_keyword(
    orchestrator: SearchOrchestrator, embedder: AsyncMock
) -> None:
    """Test an unavailable embedding provider degrades to keyword search."""
    embedder.embed.side_effect = EmbeddingUnavailable("provider down")

    report = await orchestrator.search_with_report(
        SearchRequest(query="check accessible entrance status")
    )

    assert report.method is SearchMethod.KEYWORD
    assert report.tiers == [SearchState.TRY_FAST_SEMANTIC, SearchState.TRY_KEYWORD]
    assert len(report.hits) == 1
    hit = report.hits[0]
    assert hit.knowledge_id == "doc-a"
    assert hit.provenance is Provenance.KEYWORD
    assert hit.score == pytest.approx(0.4)


async def test_empty_scan_uses_keyword(
    orchestrator: SearchOrchestrator, store: AsyncMock
) -> None:
    store.scan_embeddings.return_value = []

    report = await orchestrator.search_with_report(SearchRequest(query="parking opens"))
    assert report.tiers[-1] is SearchState.TRY_KEYWORD
    assert [hit.knowledge_id for hit in report.hits] == ["doc-b"]


async def test_keyword_failure_propagates(
    orchestrator: SearchOrchestrator, store: AsyncMock, embedder: AsyncMock
) -> None:
    """Test a keyword failure after exhausted semantic tiers is raised."""
    embedder.embed.side_effect = EmbeddingUnavailable("provider down")
    store.search_content.side_effect = RuntimeError("database is locked")

    with pytest.raises(KeywordQueryFailure):
        await orchestrator.search(SearchRequest(query="accessible entrance"))


async def test_keyword_without_terms_is_empty(store: AsyncMock) -> None:
    engine = KeywordSearchEngine(store)
    assert await engine.search(SearchRequest(query="is it on")) == []
    store.search_content.assert_not_awaited()


async def test_keyword_filters_on_first_three_terms(store: AsyncMock) -> None:
    engine = KeywordSearchEngine(store, candidate_limit=50)
    await engine.search(SearchRequest(query="check accessible entrance status"))

    store.search_content.assert_awaited_once_with(["check", "accessible", "entrance"], 50)


async def test_keyword_excludes_ineligible(store: AsyncMock) -> None:
    engine = KeywordSearchEngine(store)
    hits = await engine.search(SearchRequest(query="accessible entrance", organization_id="org-a"))

    assert [hit.knowledge_id for hit in hits] == ["doc-a"]


# --- Determinism ---


async def test_identical_requests_identical_results(orchestrator: SearchOrchestrator) -> None:
    request = SearchRequest(query="accessible entrance", top_k=3)
    first = await orchestrator.search(request)
    second = await orchestrator.search(request)

    assert [h.model_dump() for h in first] == [h.model_dump() for h in second]


async def test_results_sorted_and_bounded(orchestrator: SearchOrchestrator) -> None:
    hits = await orchestrator.search(SearchRequest(query="accessible entrance", top_k=2))

    assert len(hits) <= 2
    scores = [hit.score for hit in hits]
    assert scores == sorted(scores, reverse=True)


def test_engines_satisfy_search_contract(
    orchestrator: SearchOrchestrator, store: AsyncMock
) -> None:
    from .contracts import SearchEngine

    assert isinstance(orchestrator, SearchEngine)
    assert isinstance(KeywordSearchEngine(store), SearchEngine)


async def test_cancellation_is_not_a_provider_failure(
    orchestrator: SearchOrchestrator, embedder: AsyncMock, store: AsyncMock
) -> None:
    """Test cancellation propagates instead of degrading to keyword search."""
    embedder.embed.side_effect = asyncio.CancelledError()

    with pytest.raises(asyncio.CancelledError):
        await orchestrator.search(SearchRequest(query="accessible entrance"))
    store.search_content.assert_not_awaited()
