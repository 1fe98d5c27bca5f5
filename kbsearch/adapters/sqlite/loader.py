"""
Corpus Loader - Import pre-chunked documents into the repository.

Reads JSON Lines produced by the ingestion pipeline, one document per line:

    {"document": {"id": "...", "title": "...", "organization_id": null,
                  "event_id": null, "status": "published"},
     "chunks": [{"chunk_index": 0, "content": "...", "embedding": [...],
                 "metadata": {...}}]}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from kbsearch.domains.search.models import DocumentStatus

from .repository import KnowledgeRepository

logger = logging.getLogger(__name__)

__all__ = ["import_jsonl"]


async def import_jsonl(repo: KnowledgeRepository, path: str | Path) -> tuple[int, int]:
    """
    Load documents and chunks from a JSONL file.

    Each line is imported as a unit. Malformed lines, and lines whose
    document or chunk id already exists, are logged and skipped.

    Returns:
        (documents imported, chunks imported)
    """
    path = Path(path)
    doc_count = 0
    chunk_count = 0

    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue

            try:
                record = json.loads(line)
                document = record["document"]
                status = DocumentStatus(document.get("status", DocumentStatus.DRAFT))
                chunks = [
                    _chunk_fields(chunk, position)
                    for position, chunk in enumerate(record.get("chunks", []))
                ]
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                logger.warning("Skipping line %d of %s: %s", line_no, path.name, e)
                continue

            try:
                await repo.insert_document_with_chunks(
                    title=document.get("title") or "Untitled",
                    chunks=chunks,
                    status=status,
                    organization_id=document.get("organization_id"),
                    event_id=document.get("event_id"),
                    document_id=document.get("id"),
                )
            except aiosqlite.IntegrityError as e:
                logger.warning("Skipping line %d of %s: %s", line_no, path.name, e)
                continue

            doc_count += 1
            chunk_count += len(chunks)

            if doc_count % 100 == 0:
                logger.info("  Imported %d documents...", doc_count)

    logger.info("Imported %d documents, %d chunks from %s", doc_count, chunk_count, path)
    return doc_count, chunk_count


def _chunk_fields(chunk: dict[str, Any], position: int) -> dict[str, Any]:
    """
    Raises:
        TypeError: The chunk is not an object, or a field has the wrong type
    """
    if not isinstance(chunk, dict):
        raise TypeError(f"chunk {position} is not an object")
    content = chunk.get("content", "")
    if not isinstance(content, str):
        raise TypeError(f"chunk {position} content is not a string")
    embedding = chunk.get("embedding")
    if embedding is not None and not isinstance(embedding, list):
        raise TypeError(f"chunk {position} embedding is not a list")
    return {
        "chunk_index": chunk.get("chunk_index", position),
        "content": content,
        "embedding": embedding,
        "metadata": chunk.get("metadata"),
        "chunk_id": chunk.get("id"),
    }
