"""
Adapters - External service integrations.

All external calls are wrapped here to isolate the search domain from
third-party changes.
"""

from .embeddings import EmbeddingClient
from .faiss import FAISSIndex
from .sqlite import KnowledgeRepository

__all__ = [
    "EmbeddingClient",
    "FAISSIndex",
    "KnowledgeRepository",
]
