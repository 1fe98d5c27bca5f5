"""
CLI Interface - Command-line tools for KBSearch.

Provides commands for:
- Search queries
- Corpus import and index builds
- Serving the API
"""

from .main import app, main

__all__ = ["app", "main"]
