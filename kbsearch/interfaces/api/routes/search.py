"""
Search Routes - Knowledge base search endpoint.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from kbsearch.domains.search import (
    SearchHit,
    SearchMethod,
    SearchOrchestrator,
    SearchRequest,
    SearchState,
)
from kbsearch.domains.search.models import DEFAULT_TOP_K
from kbsearch.interfaces.api.deps import get_orchestrator

router = APIRouter()


class SearchRequestBody(BaseModel):
    """Search request body. Accepts snake_case or camelCase keys."""

    query: str = Field(..., min_length=1, description="Search query")
    top_k: int = Field(default=DEFAULT_TOP_K, ge=1, description="Result count, capped at 20")
    organization_id: str | None = None
    event_id: str | None = None
    use_hybrid: bool = True

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SearchResponse(BaseModel):
    """Search response."""

    query: str
    results: list[SearchHit]
    total: int
    method: SearchMethod
    confidence: float
    tiers: list[SearchState]


@router.post("", response_model=SearchResponse)
async def search(
    body: SearchRequestBody,
    orchestrator: SearchOrchestrator = Depends(get_orchestrator),
) -> SearchResponse:
    """
    Search the knowledge base.

    - **query**: Search query text
    - **top_k**: Maximum results (1-20; larger values are capped)
    - **organization_id** / **event_id**: Scope filters
    - **use_hybrid**: Rerank semantic hits with keyword and title signals
    """
    request = SearchRequest(**body.model_dump())
    report = await orchestrator.search_with_report(request)

    return SearchResponse(
        query=request.query,
        results=report.hits,
        total=len(report.hits),
        method=report.method,
        confidence=report.confidence,
        tiers=report.tiers,
    )
