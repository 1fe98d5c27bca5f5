"""
Embedding Client - Remote query embeddings.

Features:
- Async HTTP client (OpenAI-compatible /embeddings endpoint)
- Domain query expansion before embedding
- Dimension and type validation of the returned vector
"""

from __future__ import annotations

import logging
from numbers import Real
from typing import Any

import httpx

from kbsearch.config.errors import ConfigurationError, EmbeddingUnavailable
from kbsearch.domains.search.expansion import expand_query

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingClient"]


class EmbeddingClient:
    """
    Embedding provider client.

    One request per call; no caching, batching or retry.

    Example:
        >>> client = EmbeddingClient(api_key="sk-...")
        >>> vector = await client.embed("crowd surge near gate 4")
        >>> len(vector)
        1536
    """

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        model: str = "text-embedding-3-large",
        dimension: int = 1536,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize embedding client.

        Args:
            api_key: Provider credential
            base_url: Provider API base URL
            model: Embedding model identifier
            dimension: Expected vector dimension
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests)

        Raises:
            ConfigurationError: No credential configured
        """
        if not api_key:
            raise ConfigurationError(
                "Embedding provider credential not configured",
                {"setting": "EMBEDDING_API_KEY"},
            )

        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dimension = dimension
        self.timeout = timeout
        self._api_key = api_key
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self._api_key}"},
                transport=self._transport,
            )
        return self._client

    async def embed(self, text: str) -> list[float]:
        """
        Embed a search query.

        The query is expanded with domain synonyms before it is sent.

        Args:
            text: Raw query text

        Returns:
            Vector of length `dimension`

        Raises:
            EmbeddingUnavailable: Provider unreachable, non-success status,
                or malformed/wrong-dimension vector
        """
        client = await self._get_client()
        payload = {"model": self.model, "input": expand_query(text)}

        try:
            response = await client.post("/embeddings", json=payload)
        except httpx.HTTPError as e:
            raise EmbeddingUnavailable(
                "Embedding provider unreachable", {"error": str(e)}
            ) from e

        if response.is_error:
            raise EmbeddingUnavailable(
                f"Embedding failed: {response.status_code}",
                {"status": response.status_code, "body": response.text[:500]},
            )

        try:
            data = response.json()
        except ValueError as e:
            raise EmbeddingUnavailable("Invalid embedding response") from e

        return self._parse_vector(data)

    def _parse_vector(self, data: Any) -> list[float]:
        try:
            embedding = data["data"][0]["embedding"]
        except (KeyError, IndexError, TypeError) as e:
            raise EmbeddingUnavailable("Invalid embedding response") from e

        if not isinstance(embedding, list) or not all(
            isinstance(x, Real) and not isinstance(x, bool) for x in embedding
        ):
            raise EmbeddingUnavailable("Invalid embedding response")

        if len(embedding) != self.dimension:
            raise EmbeddingUnavailable(
                f"Invalid embedding dimension: {len(embedding)}, expected {self.dimension}",
                {"dimension": len(embedding), "expected": self.dimension},
            )

        return [float(x) for x in embedding]

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
