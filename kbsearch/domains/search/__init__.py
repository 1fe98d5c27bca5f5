"""
Search Domain - Hybrid knowledge retrieval.

This domain handles:
- Key-term extraction and domain query expansion
- Vector similarity search (indexed query + in-memory fallback)
- Keyword search fallback
- Hybrid reranking
- Snippet extraction
"""

from .contracts import Embedder, KnowledgeStore, SearchEngine
from .expansion import expand_query
from .keyword import KeywordSearchEngine
from .models import (
    ChunkMatch,
    DocumentStatus,
    EmbeddingChunk,
    KnowledgeDocument,
    Provenance,
    SearchHit,
    SearchMethod,
    SearchReport,
    SearchRequest,
    SearchState,
)
from .orchestrator import SearchOrchestrator, calculate_confidence
from .reranker import HybridReranker
from .semantic import SemanticSearchEngine, cosine_similarity
from .snippets import extract_snippet
from .terms import extract_key_terms, score_keyword_match

__all__ = [
    # Contracts
    "Embedder",
    "KnowledgeStore",
    "SearchEngine",
    # Models
    "ChunkMatch",
    "DocumentStatus",
    "EmbeddingChunk",
    "KnowledgeDocument",
    "Provenance",
    "SearchHit",
    "SearchMethod",
    "SearchReport",
    "SearchRequest",
    "SearchState",
    # Engines
    "SearchOrchestrator",
    "SemanticSearchEngine",
    "KeywordSearchEngine",
    "HybridReranker",
    # Text utilities
    "expand_query",
    "extract_key_terms",
    "extract_snippet",
    "score_keyword_match",
    "cosine_similarity",
    "calculate_confidence",
]
