"""
Embeddings Adapter - Remote query embedding provider.

This is the ONLY place that calls the embedding API.
"""

from .client import EmbeddingClient

__all__ = ["EmbeddingClient"]
