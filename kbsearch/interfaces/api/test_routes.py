"""Tests for API Routes."""

from collections.abc import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from kbsearch.config.errors import ErrorCode, KeywordQueryFailure
from kbsearch.domains.search import (
    Provenance,
    SearchHit,
    SearchMethod,
    SearchReport,
    SearchState,
)

from .deps import get_orchestrator
from .main import create_app
from .middleware import error_code_to_status


@pytest.fixture
def mock_orchestrator() -> AsyncMock:
    """Create a mock search orchestrator."""
    mock = AsyncMock()
    mock.search_with_report.return_value = SearchReport(
        hits=[
            SearchHit(
                knowledge_id="doc-1",
                title="Accessible Entrance Guide",
                content="The accessible entrance is at Gate B.",
                score=0.61,
                metadata={"chunk_index": 0, "document_title": "Accessible Entrance Guide"},
                provenance=Provenance.KNOWLEDGE_BASE,
            )
        ],
        method=SearchMethod.HYBRID,
        confidence=0.68,
        tiers=[SearchState.TRY_FAST_SEMANTIC],
    )
    return mock


@pytest.fixture
def client(mock_orchestrator: AsyncMock) -> Generator[TestClient, None, None]:
    """Create a test client with mocked dependencies."""
    app = create_app()

    # Override dependencies with mocks
    app.dependency_overrides[get_orchestrator] = lambda: mock_orchestrator

    yield TestClient(app)

    # Cleanup
    app.dependency_overrides.clear()


def test_health_endpoint(client: TestClient) -> None:
    """Test health check endpoint."""
    response = client.get("/health")
    assert response.status_code == 200

    data = response.json()
    assert data["status"] == "healthy"
    assert data["service"] == "kbsearch"


def test_api_info_endpoint(client: TestClient) -> None:
    response = client.get("/api")
    assert response.status_code == 200
    assert response.json()["name"] == "KBSearch API"


def test_search_endpoint_basic(client: TestClient, mock_orchestrator: AsyncMock) -> None:
    """Test a search returns hits with provenance and a report summary."""
    response = client.post("/api/search", json={"query": "accessible entrance"})
    assert response.status_code == 200

    data = response.json()
    assert data["query"] == "accessible entrance"
    assert data["total"] == 1
    assert data["method"] == "hybrid"
    assert data["tiers"] == ["try_fast_semantic"]
    assert data["results"][0]["knowledge_id"] == "doc-1"
    assert data["results"][0]["provenance"] == "knowledge-base"

    request = mock_orchestrator.search_with_report.call_args.args[0]
    assert request.top_k == 5
    assert request.use_hybrid is True


def test_search_endpoint_accepts_camel_case(
    client: TestClient, mock_orchestrator: AsyncMock
) -> None:
    """Test camelCase request keys map onto the search request."""
    response = client.post(
        "/api/search",
        json={
            "query": "gate",
            "topK": 50,
            "organizationId": "org-1",
            "eventId": "ev-1",
            "useHybrid": False,
        },
    )
    assert response.status_code == 200

    request = mock_orchestrator.search_with_report.call_args.args[0]
    assert request.top_k == 20
    assert request.organization_id == "org-1"
    assert request.event_id == "ev-1"
    assert request.use_hybrid is False


def test_search_endpoint_validation(client: TestClient) -> None:
    """Test empty queries and non-positive top_k are rejected."""
    assert client.post("/api/search", json={"query": ""}).status_code == 422
    assert client.post("/api/search", json={"query": "gate", "top_k": 0}).status_code == 422
    assert client.post("/api/search", json={}).status_code == 422


def test_search_endpoint_keyword_failure(
    client: TestClient, mock_orchestrator: AsyncMock
) -> None:
    """Test a final keyword failure maps to a structured 503."""
    mock_orchestrator.search_with_report.side_effect = KeywordQueryFailure(
        "Keyword search failed", {"error": "database is locked"}
    )

    response = client.post(
        "/api/search", json={"query": "gate"}, headers={"X-Request-ID": "req-123"}
    )
    assert response.status_code == 503

    data = response.json()
    assert data["error"]["code"] == "KEYWORD_QUERY_FAILED"
    assert data["request_id"] == "req-123"


def test_search_endpoint_unexpected_error(
    client: TestClient, mock_orchestrator: AsyncMock
) -> None:
    mock_orchestrator.search_with_report.side_effect = RuntimeError("boom")

    response = client.post("/api/search", json={"query": "gate"})
    assert response.status_code == 500
    assert response.json()["error"]["code"] == "INTERNAL_ERROR"


def test_response_headers(client: TestClient) -> None:
    """Test request ID and latency headers are attached."""
    response = client.get("/health", headers={"X-Request-ID": "abc"})
    assert response.headers["X-Request-ID"] == "abc"
    assert "X-Response-Time-Ms" in response.headers


def test_error_code_to_status() -> None:
    assert error_code_to_status(ErrorCode.KEYWORD_QUERY_FAILED) == 503
    assert error_code_to_status(ErrorCode.EMBEDDING_UNAVAILABLE) == 503
    assert error_code_to_status(ErrorCode.INTERNAL_ERROR) == 500
