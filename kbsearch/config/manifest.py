"""
Index Manifest - Describe a persisted fast-path vector index.

The builder writes `manifest.json` next to the FAISS files. On startup the
search process reads it back and refuses the index if it was built for a
different embedding model or dimension, if any file changed since, or if
the chunk table has grown or shrunk since the build.

File entries are stored by name relative to the index directory, so an
index directory can be moved as a whole.
"""

from __future__ import annotations

import hashlib
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

MANIFEST_SCHEMA_VERSION = "1.0.0"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class IndexFile(BaseModel):
    """One file belonging to a saved index."""

    name: str
    sha256: str
    size_bytes: int


class IndexManifest(BaseModel):
    """Build record for a saved vector index."""

    model: str
    dim: int = Field(..., ge=1)
    chunk_count: int = 0
    skipped_count: int = 0
    source_chunk_count: int = 0  # rows in the chunk table when the index was built
    schema_version: str = MANIFEST_SCHEMA_VERSION
    created_at: datetime = Field(default_factory=_utcnow)
    files: list[IndexFile] = Field(default_factory=list)

    def record(self, path: str | Path) -> IndexFile:
        """Fingerprint a written index file and list it in the manifest."""
        path = Path(path)
        entry = IndexFile(
            name=path.name,
            sha256=file_sha256(path),
            size_bytes=path.stat().st_size,
        )
        self.files.append(entry)
        return entry

    def verify(self, directory: str | Path) -> list[str]:
        """
        Compare recorded files against those in `directory`.

        Returns:
            One message per missing or altered file; empty when intact
        """
        directory = Path(directory)
        problems = []

        for entry in self.files:
            path = directory / entry.name
            if not path.is_file():
                problems.append(f"{entry.name} is missing")
            elif path.stat().st_size != entry.size_bytes:
                problems.append(
                    f"{entry.name} is {path.stat().st_size} bytes, expected {entry.size_bytes}"
                )
            elif file_sha256(path) != entry.sha256:
                problems.append(f"{entry.name} content does not match its checksum")

        return problems

    def is_compatible(self, model: str, dim: int) -> bool:
        """True when built with the same embedding model and vector dimension."""
        return self.model == model and self.dim == dim

    def is_current(self, source_chunk_count: int) -> bool:
        """True when the chunk table still holds as many rows as were indexed."""
        return self.source_chunk_count == source_chunk_count

    def save(self, path: str | Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.model_dump_json(indent=2), encoding="utf-8")

    @classmethod
    def load(cls, path: str | Path) -> IndexManifest:
        """
        Raises:
            pydantic.ValidationError: The file is not a valid manifest
        """
        return cls.model_validate_json(Path(path).read_text(encoding="utf-8"))


def file_sha256(path: Path) -> str:
    digest = hashlib.sha256()
    with open(path, "rb") as f:
        while block := f.read(1 << 16):
            digest.update(block)
    return digest.hexdigest()
