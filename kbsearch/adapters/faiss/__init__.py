"""
FAISS Adapter - Fast-path vector index.
"""

from .builder import build_index_from_repository, load_index
from .index import FAISSIndex

__all__ = ["FAISSIndex", "build_index_from_repository", "load_index"]
