"""
SQLite Adapter - Knowledge document and chunk storage.
"""

from .loader import import_jsonl
from .repository import KnowledgeRepository

__all__ = ["KnowledgeRepository", "import_jsonl"]
