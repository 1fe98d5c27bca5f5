"""
FAISS Index - Fast-path vector similarity over knowledge chunks.

Vectors are L2-normalised on the way in, so inner product equals cosine
similarity. Each row of the index maps to one chunk id; the mapping is
persisted next to the FAISS file.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import faiss
import numpy as np

logger = logging.getLogger(__name__)

__all__ = ["FAISSIndex"]

INDEX_FILENAME = "faiss_index.bin"
CHUNK_IDS_FILENAME = "chunk_ids.json"


class FAISSIndex:
    """
    Cosine-similarity index from chunk id to embedding.

    Example:
        >>> index = FAISSIndex(dimension=1536)
        >>> await index.add_chunks(["c1", "c2"], vectors)
        >>> await index.search(query_vector, k=8)
        [('c2', 0.91), ('c1', 0.47)]
    """

    def __init__(self, dimension: int = 1536) -> None:
        self.dimension = dimension
        self._index: faiss.Index = faiss.IndexFlatIP(dimension)
        self._chunk_ids: list[str] = []

    def _prepare(self, vectors: np.ndarray) -> np.ndarray:
        """Float32, contiguous, 2-D and unit length."""
        matrix = np.array(np.atleast_2d(vectors), dtype=np.float32, order="C")
        if matrix.ndim != 2 or matrix.shape[1] != self.dimension:
            raise ValueError(
                f"Expected vectors of dimension {self.dimension}, got shape {matrix.shape}"
            )
        faiss.normalize_L2(matrix)
        return matrix

    async def add_chunks(self, chunk_ids: Sequence[str], vectors: np.ndarray) -> None:
        """
        Append one vector per chunk id.

        Raises:
            ValueError: Wrong dimension, or id and vector counts differ
        """
        matrix = self._prepare(vectors)
        if len(chunk_ids) != len(matrix):
            raise ValueError(
                f"Got {len(chunk_ids)} chunk ids for {len(matrix)} vectors"
            )

        await asyncio.to_thread(self._index.add, matrix)
        self._chunk_ids.extend(chunk_ids)

        logger.debug("Added %d chunk vectors (total %d)", len(matrix), self.size)

    async def search(
        self,
        query_vector: Sequence[float] | np.ndarray,
        k: int = 10,
    ) -> list[tuple[str, float]]:
        """
        Nearest chunks to a query vector.

        Returns:
            Up to k (chunk_id, cosine similarity) pairs, best first

        Raises:
            ValueError: Query dimension differs from the index
        """
        if self.size == 0 or k < 1:
            return []

        query = self._prepare(np.asarray(query_vector))
        scores, rows = await asyncio.to_thread(self._index.search, query, min(k, self.size))

        return [
            (self._chunk_ids[row], float(score))
            for score, row in zip(scores[0], rows[0])
            if 0 <= row < len(self._chunk_ids)
        ]

    async def save(self, path: str | Path) -> None:
        """Write the FAISS file and chunk id mapping into a directory."""
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)

        await asyncio.to_thread(faiss.write_index, self._index, str(path / INDEX_FILENAME))
        mapping = {"dimension": self.dimension, "chunk_ids": self._chunk_ids}
        await asyncio.to_thread(_write_json, path / CHUNK_IDS_FILENAME, mapping)

        logger.info("Index saved to %s (%d vectors)", path, self.size)

    @classmethod
    async def load(cls, path: str | Path) -> FAISSIndex:
        """
        Read an index saved by `save`.

        Raises:
            ValueError: FAISS row count and chunk id mapping disagree
        """
        path = Path(path)
        mapping = await asyncio.to_thread(_read_json, path / CHUNK_IDS_FILENAME)

        index = cls(dimension=mapping["dimension"])
        index._index = await asyncio.to_thread(faiss.read_index, str(path / INDEX_FILENAME))
        index._chunk_ids = list(mapping["chunk_ids"])

        if index._index.ntotal != len(index._chunk_ids):
            raise ValueError(
                f"Index at {path} has {index._index.ntotal} vectors "
                f"but {len(index._chunk_ids)} chunk ids"
            )

        logger.info("Index loaded from %s (%d vectors)", path, index.size)
        return index

    @staticmethod
    def exists(path: str | Path) -> bool:
        """Check a saved index is present in the directory."""
        path = Path(path)
        return (path / INDEX_FILENAME).exists() and (path / CHUNK_IDS_FILENAME).exists()

    @property
    def size(self) -> int:
        return int(self._index.ntotal)


def _write_json(path: Path, data: dict[str, Any]) -> None:
    with open(path, "w") as f:
        json.dump(data, f)


def _read_json(path: Path) -> dict[str, Any]:
    with open(path) as f:
        data: dict[str, Any] = json.load(f)
    return data
