"""
Configuration - Application settings, error taxonomy, and index manifests.
"""

from .errors import (
    ConfigurationError,
    EmbeddingUnavailable,
    ErrorCode,
    FastPathQueryUnavailable,
    KBSearchError,
    KeywordQueryFailure,
    StorageError,
)
from .manifest import IndexFile, IndexManifest, file_sha256
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    # Errors
    "ErrorCode",
    "KBSearchError",
    "ConfigurationError",
    "EmbeddingUnavailable",
    "FastPathQueryUnavailable",
    "KeywordQueryFailure",
    "StorageError",
    # Manifests
    "IndexManifest",
    "IndexFile",
    "file_sha256",
]
