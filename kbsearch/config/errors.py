"""
Error Taxonomy - Machine-readable failure kinds for the retrieval engine.

Each subclass fixes its `ErrorCode`; raise it with a message and optional
details:

    raise KeywordQueryFailure("Lexical query failed", {"terms": terms})

How each kind is handled during a search:
    ConfigurationError        fatal, raised at construction time
    EmbeddingUnavailable      recovered by the keyword-only fallback
    FastPathQueryUnavailable  recovered by the in-memory semantic scan
    StorageError              bulk scan failed; recovered by the keyword-only fallback
    KeywordQueryFailure       not recovered, surfaces to the caller
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar


class ErrorCode(str, Enum):
    """Codes carried in API error bodies."""

    CONFIGURATION_MISSING = "CONFIGURATION_MISSING"
    EMBEDDING_UNAVAILABLE = "EMBEDDING_UNAVAILABLE"
    SEARCH_INDEX_UNAVAILABLE = "SEARCH_INDEX_UNAVAILABLE"
    KEYWORD_QUERY_FAILED = "KEYWORD_QUERY_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class KBSearchError(Exception):
    """Base for every error the engine raises on purpose."""

    code: ClassVar[ErrorCode] = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(f"[{self.code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code.value, "message": self.message, "details": self.details}


class ConfigurationError(KBSearchError):
    """A required setting, such as the provider credential, is missing."""

    code = ErrorCode.CONFIGURATION_MISSING


class EmbeddingUnavailable(KBSearchError):
    """Embedding provider unreachable or returned an unusable vector."""

    code = ErrorCode.EMBEDDING_UNAVAILABLE


class FastPathQueryUnavailable(KBSearchError):
    """Indexed vector query is missing or failed."""

    code = ErrorCode.SEARCH_INDEX_UNAVAILABLE


class KeywordQueryFailure(KBSearchError):
    """Lexical datastore query failed."""

    code = ErrorCode.KEYWORD_QUERY_FAILED


class StorageError(KBSearchError):
    code = ErrorCode.STORAGE_READ_FAILED
