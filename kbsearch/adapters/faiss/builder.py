"""
Index Builder - Build the fast-path FAISS index from stored chunks.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import numpy as np
from pydantic import ValidationError

from kbsearch.config.manifest import IndexManifest

from .index import CHUNK_IDS_FILENAME, INDEX_FILENAME, FAISSIndex

if TYPE_CHECKING:
    from kbsearch.adapters.sqlite import KnowledgeRepository

logger = logging.getLogger(__name__)

__all__ = ["build_index_from_repository", "load_index"]

MANIFEST_FILENAME = "manifest.json"


async def build_index_from_repository(
    repo: KnowledgeRepository,
    index_path: str | Path,
    model: str,
    dimension: int,
    batch_size: int = 256,
) -> IndexManifest:
    """
    Build, save and describe a FAISS index over every stored chunk.

    Chunks whose vector is missing or not of `dimension` are skipped.

    Returns:
        The manifest written beside the index
    """
    index_path = Path(index_path)
    index = FAISSIndex(dimension=dimension)
    skipped = 0

    async for chunks in repo.iter_chunks(batch_size=batch_size):
        usable = [c for c in chunks if c.embedding is not None and len(c.embedding) == dimension]
        skipped += len(chunks) - len(usable)

        if usable:
            await index.add_chunks(
                [c.id for c in usable],
                np.asarray([c.embedding for c in usable], dtype=np.float32),
            )

        logger.info("  Indexed %d chunks (%d skipped)...", index.size, skipped)

    await index.save(index_path)

    manifest = IndexManifest(
        model=model,
        dim=dimension,
        chunk_count=index.size,
        skipped_count=skipped,
        source_chunk_count=index.size + skipped,
    )
    manifest.record(index_path / INDEX_FILENAME)
    manifest.record(index_path / CHUNK_IDS_FILENAME)
    manifest.save(index_path / MANIFEST_FILENAME)

    if skipped:
        logger.warning("Skipped %d chunks with missing or wrong-dimension vectors", skipped)
    logger.info("FAISS index built with %d vectors", index.size)

    return manifest


async def load_index(
    index_path: str | Path,
    model: str,
    dimension: int,
    source_chunk_count: int | None = None,
) -> FAISSIndex | None:
    """
    Load a saved index if present and built for this model and dimension.

    When `source_chunk_count` is given, an index built over a different number
    of stored chunks is stale and is not loaded.

    Returns:
        The loaded index, or None (the in-memory fallback then serves queries)
    """
    index_path = Path(index_path)
    if not FAISSIndex.exists(index_path):
        logger.warning("No FAISS index at %s; semantic search will rank in memory", index_path)
        return None

    manifest_path = index_path / MANIFEST_FILENAME
    if not manifest_path.exists():
        logger.warning("FAISS index at %s has no manifest; ignoring it", index_path)
        return None

    try:
        manifest = IndexManifest.load(manifest_path)
    except ValidationError as e:
        logger.warning(
            "Unreadable manifest at %s (%d errors); ignoring index",
            manifest_path,
            e.error_count(),
        )
        return None

    if not manifest.is_compatible(model, dimension):
        logger.warning(
            "FAISS index at %s was built for %s/%d, expected %s/%d; ignoring it",
            index_path,
            manifest.model,
            manifest.dim,
            model,
            dimension,
        )
        return None

    if source_chunk_count is not None and not manifest.is_current(source_chunk_count):
        logger.warning(
            "FAISS index at %s covers %d stored chunks, database now has %d; "
            "rebuild it with `kbsearch build-index`",
            index_path,
            manifest.source_chunk_count,
            source_chunk_count,
        )
        return None

    errors = manifest.verify(index_path)
    if errors:
        logger.warning("FAISS index manifest verification failed: %s", "; ".join(errors))
        return None

    return await FAISSIndex.load(index_path)
