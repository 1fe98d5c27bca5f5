"""
Search Models - Data types for the retrieval domain.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator

DEFAULT_TOP_K = 5
MAX_TOP_K = 20


class DocumentStatus(str, Enum):
    """Lifecycle status of a knowledge document."""

    DRAFT = "draft"
    INGESTED = "ingested"
    PUBLISHED = "published"


RETRIEVABLE_STATUSES: tuple[DocumentStatus, ...] = (
    DocumentStatus.INGESTED,
    DocumentStatus.PUBLISHED,
)


class Provenance(str, Enum):
    """Ranking strategy that produced a hit."""

    KNOWLEDGE_BASE = "knowledge-base"  # indexed vector query
    KNOWLEDGE_BASE_SCAN = "knowledge-base-scan"  # in-memory cosine scan
    KEYWORD = "keyword"  # lexical fallback


class SearchMethod(str, Enum):
    """How the final ordering of a response was produced."""

    SEMANTIC = "semantic"
    HYBRID = "hybrid"
    KEYWORD = "keyword"


class SearchState(str, Enum):
    """States of the degradation path walked by the orchestrator."""

    TRY_FAST_SEMANTIC = "try_fast_semantic"
    TRY_FALLBACK_SEMANTIC = "try_fallback_semantic"
    TRY_KEYWORD = "try_keyword"
    DONE = "done"
    FAILED = "failed"


class KnowledgeDocument(BaseModel):
    """Parent document of a set of chunks. Read-only to the search core."""

    id: str
    title: str
    organization_id: str | None = None  # None = visible to all organizations
    event_id: str | None = None  # None = visible to all events
    status: DocumentStatus = DocumentStatus.DRAFT

    model_config = {"frozen": True}

    @property
    def is_retrievable(self) -> bool:
        return self.status in RETRIEVABLE_STATUSES

    def is_visible_to(
        self,
        organization_id: str | None = None,
        event_id: str | None = None,
    ) -> bool:
        """
        Check the document falls inside a request's scope.

        An absent filter places no restriction; a document with a null
        scope value is visible to every request.
        """
        if organization_id is not None and self.organization_id not in (None, organization_id):
            return False
        if event_id is not None and self.event_id not in (None, event_id):
            return False
        return True

    def is_eligible(
        self,
        organization_id: str | None = None,
        event_id: str | None = None,
    ) -> bool:
        """Retrievable status and inside the request scope."""
        return self.is_retrievable and self.is_visible_to(organization_id, event_id)


class EmbeddingChunk(BaseModel):
    """A slice of a document with its embedding vector."""

    id: str
    knowledge_id: str
    chunk_index: int = 0
    content: str = ""
    embedding: list[float] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ChunkMatch(BaseModel):
    """Row returned by the indexed vector query."""

    knowledge_id: str
    content: str
    chunk_index: int = 0
    similarity: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)


class SearchRequest(BaseModel):
    """Search request."""

    query: str = Field(..., min_length=1)
    top_k: int = Field(default=DEFAULT_TOP_K, ge=1)
    organization_id: str | None = None
    event_id: str | None = None
    use_hybrid: bool = True

    model_config = {"frozen": True}

    @field_validator("top_k")
    @classmethod
    def _cap_top_k(cls, value: int) -> int:
        return min(value, MAX_TOP_K)

    @property
    def match_count(self) -> int:
        """Candidate count requested from the semantic tiers."""
        return self.top_k * 2 if self.use_hybrid else self.top_k


class SearchHit(BaseModel):
    """Single ranked passage."""

    knowledge_id: str
    title: str
    content: str
    score: float = 0.0
    metadata: dict[str, Any] = Field(default_factory=dict)
    provenance: Provenance = Provenance.KNOWLEDGE_BASE

    @property
    def chunk_index(self) -> int:
        return int(self.metadata.get("chunk_index", 0))


class SearchReport(BaseModel):
    """Hits plus a summary of how they were produced."""

    hits: list[SearchHit] = Field(default_factory=list)
    method: SearchMethod = SearchMethod.SEMANTIC
    confidence: float = 0.0
    tiers: list[SearchState] = Field(default_factory=list)


def build_hit_metadata(
    document: KnowledgeDocument | None,
    chunk_index: int,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Metadata carried on every hit: chunk position and document scope."""
    title = document.title if document else "Unknown"
    metadata: dict[str, Any] = {
        "chunk_index": chunk_index,
        "document_title": title,
        "organization_id": document.organization_id if document else None,
        "event_id": document.event_id if document else None,
    }
    metadata.update(extra or {})
    return metadata


def sort_hits(hits: list[SearchHit]) -> list[SearchHit]:
    """Order by descending score; ties by document id, then chunk index."""
    return sorted(hits, key=lambda h: (-h.score, h.knowledge_id, h.chunk_index))
