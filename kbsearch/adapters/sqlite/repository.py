"""
SQLite Repository - Knowledge document and chunk storage.

Features:
- Async operations via aiosqlite
- Bulk chunk scan for in-memory ranking
- Case-insensitive substring search over chunk content
- Indexed vector query through an attached FAISS index
"""

from __future__ import annotations

import json
import logging
import uuid
from collections.abc import AsyncIterator, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import aiosqlite

from kbsearch.config.errors import FastPathQueryUnavailable
from kbsearch.domains.search.models import (
    RETRIEVABLE_STATUSES,
    ChunkMatch,
    DocumentStatus,
    EmbeddingChunk,
    KnowledgeDocument,
)

if TYPE_CHECKING:
    from kbsearch.adapters.faiss import FAISSIndex

logger = logging.getLogger(__name__)

__all__ = ["KnowledgeRepository"]

# Stay below SQLITE_MAX_VARIABLE_NUMBER on older builds
_ID_BATCH_SIZE = 500

_CHUNK_COLUMNS = "id, knowledge_id, chunk_index, content, embedding, metadata"


class KnowledgeRepository:
    """
    SQLite repository for knowledge documents and their chunks.

    Example:
        >>> repo = KnowledgeRepository("data/kbsearch.db")
        >>> await repo.initialize()
        >>> doc_id = await repo.insert_document("Crowd Management Guide", status="published")
        >>> await repo.insert_chunk(doc_id, 0, "Monitor crowd density...", embedding)
        >>> chunks = await repo.search_content(["crowd", "density"], limit=500)
    """

    def __init__(
        self,
        db_path: str | Path,
        vector_index: FAISSIndex | None = None,
        oversample: int = 4,
    ) -> None:
        """
        Initialize repository.

        Args:
            db_path: Path to SQLite database file
            vector_index: Optional FAISS index serving match_embeddings
            oversample: Index over-fetch factor applied before scope filtering
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._vector_index = vector_index
        self._indexed_chunk_count: int | None = None
        self._oversample = max(1, oversample)
        self._connection: aiosqlite.Connection | None = None

    async def _get_connection(self) -> aiosqlite.Connection:
        """Get or create database connection."""
        if self._connection is None:
            self._connection = await aiosqlite.connect(str(self.db_path))
            self._connection.row_factory = aiosqlite.Row
        return self._connection

    def attach_index(
        self,
        vector_index: FAISSIndex | None,
        indexed_chunk_count: int | None = None,
    ) -> None:
        """
        Attach (or detach with None) the index used by match_embeddings.

        With `indexed_chunk_count`, the index is treated as stale, and the
        fast path reported unavailable, once the chunk table row count moves
        away from it.
        """
        self._vector_index = vector_index
        self._indexed_chunk_count = indexed_chunk_count

    async def initialize(self) -> None:
        """Initialize database schema."""
        conn = await self._get_connection()

        await conn.executescript("""
            -- Knowledge documents
            CREATE TABLE IF NOT EXISTS knowledge_base (
                id TEXT PRIMARY KEY,
                title TEXT NOT NULL,
                organization_id TEXT,
                event_id TEXT,
                status TEXT NOT NULL DEFAULT 'draft',
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            -- Chunks with embedding vectors (JSON arrays)
            CREATE TABLE IF NOT EXISTS knowledge_embeddings (
                id TEXT PRIMARY KEY,
                knowledge_id TEXT NOT NULL,
                chunk_index INTEGER NOT NULL DEFAULT 0,
                content TEXT NOT NULL DEFAULT '',
                embedding TEXT,
                metadata TEXT,
                FOREIGN KEY (knowledge_id) REFERENCES knowledge_base(id)
            );

            -- Indexes
            CREATE INDEX IF NOT EXISTS idx_knowledge_base_status ON knowledge_base(status);
            CREATE INDEX IF NOT EXISTS idx_knowledge_base_org ON knowledge_base(organization_id);
            CREATE INDEX IF NOT EXISTS idx_embeddings_knowledge ON knowledge_embeddings(knowledge_id);
        """)

        await conn.commit()
        logger.info("Database initialized: %s", self.db_path)

    async def insert_document(
        self,
        title: str,
        status: DocumentStatus | str = DocumentStatus.DRAFT,
        organization_id: str | None = None,
        event_id: str | None = None,
        document_id: str | None = None,
    ) -> str:
        """
        Insert a knowledge document.

        Returns:
            Document ID
        """
        conn = await self._get_connection()
        document_id = await _insert_document_row(
            conn, title, status, organization_id, event_id, document_id
        )
        await conn.commit()
        return document_id

    async def insert_document_with_chunks(
        self,
        title: str,
        chunks: Sequence[dict[str, Any]],
        status: DocumentStatus | str = DocumentStatus.DRAFT,
        organization_id: str | None = None,
        event_id: str | None = None,
        document_id: str | None = None,
    ) -> str:
        """
        Insert a document and its chunks in one transaction.

        Each chunk dict takes the keyword arguments of `insert_chunk` other
        than `knowledge_id`. Nothing is written if any insert fails.

        Raises:
            aiosqlite.IntegrityError: Duplicate document or chunk id
        """
        conn = await self._get_connection()
        try:
            document_id = await _insert_document_row(
                conn, title, status, organization_id, event_id, document_id
            )
            for chunk in chunks:
                await _insert_chunk_row(conn, knowledge_id=document_id, **chunk)
        except Exception:
            await conn.rollback()
            raise
        await conn.commit()
        return document_id

    async def set_document_status(self, document_id: str, status: DocumentStatus | str) -> None:
        """Update a document's lifecycle status."""
        conn = await self._get_connection()
        await conn.execute(
            "UPDATE knowledge_base SET status = ? WHERE id = ?",
            (DocumentStatus(status).value, document_id),
        )
        await conn.commit()

    async def insert_chunk(
        self,
        knowledge_id: str,
        chunk_index: int,
        content: str,
        embedding: Sequence[float] | None = None,
        metadata: dict[str, Any] | None = None,
        chunk_id: str | None = None,
    ) -> str:
        """
        Insert a chunk of a document.

        Returns:
            Chunk ID
        """
        conn = await self._get_connection()
        chunk_id = await _insert_chunk_row(
            conn, knowledge_id, chunk_index, content, embedding, metadata, chunk_id
        )
        await conn.commit()
        return chunk_id

    async def fetch_documents(
        self,
        ids: Sequence[str],
        statuses: Sequence[DocumentStatus] | None = None,
    ) -> list[KnowledgeDocument]:
        """Look up documents by id, optionally restricted to statuses."""
        if not ids:
            return []

        conn = await self._get_connection()
        documents: list[KnowledgeDocument] = []

        for batch in _batched(list(ids), _ID_BATCH_SIZE):
            sql = (
                "SELECT id, title, organization_id, event_id, status FROM knowledge_base "
                f"WHERE id IN ({_placeholders(batch)})"
            )
            params: list[Any] = list(batch)
            if statuses is not None:
                sql += f" AND status IN ({_placeholders(statuses)})"
                params.extend(DocumentStatus(s).value for s in statuses)

            cursor = await conn.execute(sql, params)
            rows = await cursor.fetchall()
            documents.extend(KnowledgeDocument(**dict(row)) for row in rows)

        return documents

    async def scan_embeddings(self, limit: int) -> list[EmbeddingChunk]:
        """Return up to `limit` chunks with their vectors, in insertion order."""
        conn = await self._get_connection()
        cursor = await conn.execute(
            f"SELECT {_CHUNK_COLUMNS} FROM knowledge_embeddings ORDER BY rowid LIMIT ?",
            (limit,),
        )
        rows = await cursor.fetchall()
        return [_row_to_chunk(row) for row in rows]

    async def search_content(
        self,
        terms: Sequence[str],
        limit: int,
    ) -> list[EmbeddingChunk]:
        """
        Chunks whose content contains every term (case-insensitive).

        Vectors are not loaded.
        """
        conn = await self._get_connection()

        sql = "SELECT id, knowledge_id, chunk_index, content, NULL AS embedding, metadata FROM knowledge_embeddings"
        clauses = ["LOWER(content) LIKE ? ESCAPE '\\'" for _ in terms]
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY rowid LIMIT ?"

        params = [f"%{_escape_like(term.lower())}%" for term in terms]
        cursor = await conn.execute(sql, (*params, limit))
        rows = await cursor.fetchall()
        return [_row_to_chunk(row) for row in rows]

    async def match_embeddings(
        self,
        query_embedding: Sequence[float],
        match_count: int,
        organization_filter: str | None,
        event_filter: str | None,
    ) -> list[ChunkMatch]:
        """
        Indexed vector query restricted to retrievable, in-scope documents.

        A None filter places no restriction on that scope field. The index is
        first asked for `match_count * oversample` neighbours; while fewer than
        `match_count` of them pass the filters, the window is widened until it
        covers the whole index.

        Raises:
            FastPathQueryUnavailable: No index attached, or the query failed
        """
        if self._vector_index is None or self._vector_index.size == 0:
            raise FastPathQueryUnavailable("No vector index attached")

        if self._indexed_chunk_count is not None:
            current = await self.get_chunk_count()
            if current != self._indexed_chunk_count:
                raise FastPathQueryUnavailable(
                    "Vector index is out of date",
                    {"indexed_chunks": self._indexed_chunk_count, "stored_chunks": current},
                )

        index_size = self._vector_index.size
        window = min(max(match_count * self._oversample, 1), index_size)

        try:
            while True:
                scores = dict(await self._vector_index.search(query_embedding, k=window))
                rows = await self._eligible_chunk_rows(scores, organization_filter, event_filter)
                if len(rows) >= match_count or window >= index_size:
                    break
                window = min(window * 2, index_size)
                logger.debug(
                    "Indexed query found %d of %d eligible rows, widening to %d",
                    len(rows),
                    match_count,
                    window,
                )
        except FastPathQueryUnavailable:
            raise
        except Exception as e:
            raise FastPathQueryUnavailable(
                "Vector index query failed", {"error": str(e)}
            ) from e

        matches = [
            ChunkMatch(
                knowledge_id=row["knowledge_id"],
                content=row["content"],
                chunk_index=row["chunk_index"],
                similarity=scores[row["id"]],
                metadata=_json_object(row["metadata"]),
            )
            for row in rows
        ]
        matches.sort(key=lambda m: (-m.similarity, m.knowledge_id, m.chunk_index))
        return matches[:match_count]

    async def _eligible_chunk_rows(
        self,
        scores: dict[str, float],
        organization_filter: str | None,
        event_filter: str | None,
    ) -> list[aiosqlite.Row]:
        """Rows among the scored chunk ids whose document is retrievable and in scope."""
        if not scores:
            return []

        conn = await self._get_connection()
        rows: list[aiosqlite.Row] = []
        for batch in _batched(list(scores), _ID_BATCH_SIZE):
            cursor = await conn.execute(
                f"""
                SELECT e.id, e.knowledge_id, e.chunk_index, e.content, e.metadata
                FROM knowledge_embeddings e
                JOIN knowledge_base kb ON kb.id = e.knowledge_id
                WHERE e.id IN ({_placeholders(batch)})
                  AND kb.status IN ({_placeholders(RETRIEVABLE_STATUSES)})
                  AND (? IS NULL OR kb.organization_id IS NULL OR kb.organization_id = ?)
                  AND (? IS NULL OR kb.event_id IS NULL OR kb.event_id = ?)
                """,
                (
                    *batch,
                    *(s.value for s in RETRIEVABLE_STATUSES),
                    organization_filter,
                    organization_filter,
                    event_filter,
                    event_filter,
                ),
            )
            rows.extend(await cursor.fetchall())
        return rows

    async def iter_chunks(self, batch_size: int = 256) -> AsyncIterator[list[EmbeddingChunk]]:
        """Yield every chunk (with vectors) in batches."""
        conn = await self._get_connection()
        last_rowid = 0

        while True:
            cursor = await conn.execute(
                f"SELECT rowid, {_CHUNK_COLUMNS} FROM knowledge_embeddings "
                "WHERE rowid > ? ORDER BY rowid LIMIT ?",
                (last_rowid, batch_size),
            )
            rows = await cursor.fetchall()
            if not rows:
                return
            last_rowid = rows[-1]["rowid"]
            yield [_row_to_chunk(row) for row in rows]

    async def get_document_count(self) -> int:
        """Get total document count."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT COUNT(*) FROM knowledge_base")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def get_chunk_count(self) -> int:
        """Get total chunk count."""
        conn = await self._get_connection()
        cursor = await conn.execute("SELECT COUNT(*) FROM knowledge_embeddings")
        row = await cursor.fetchone()
        return row[0] if row else 0

    async def close(self) -> None:
        """Close database connection."""
        if self._connection:
            await self._connection.close()
            self._connection = None


async def _insert_document_row(
    conn: aiosqlite.Connection,
    title: str,
    status: DocumentStatus | str,
    organization_id: str | None,
    event_id: str | None,
    document_id: str | None,
) -> str:
    document_id = document_id or str(uuid.uuid4())
    await conn.execute(
        """
        INSERT INTO knowledge_base (id, title, organization_id, event_id, status)
        VALUES (?, ?, ?, ?, ?)
        """,
        (document_id, title, organization_id, event_id, DocumentStatus(status).value),
    )
    return document_id


async def _insert_chunk_row(
    conn: aiosqlite.Connection,
    knowledge_id: str,
    chunk_index: int,
    content: str,
    embedding: Sequence[float] | None = None,
    metadata: dict[str, Any] | None = None,
    chunk_id: str | None = None,
) -> str:
    chunk_id = chunk_id or str(uuid.uuid4())
    await conn.execute(
        f"""
        INSERT INTO knowledge_embeddings ({_CHUNK_COLUMNS})
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            chunk_id,
            knowledge_id,
            chunk_index,
            content,
            json.dumps(list(embedding)) if embedding is not None else None,
            json.dumps(metadata) if metadata else None,
        ),
    )
    return chunk_id


def _row_to_chunk(row: aiosqlite.Row) -> EmbeddingChunk:
    return EmbeddingChunk(
        id=row["id"],
        knowledge_id=row["knowledge_id"],
        chunk_index=row["chunk_index"],
        content=row["content"] or "",
        embedding=_numeric_list(_load_json(row["embedding"])),
        metadata=_json_object(row["metadata"]),
    )


def _numeric_list(value: Any) -> list[float] | None:
    """Stored vector as floats; anything non-numeric is dropped (None)."""
    if not isinstance(value, list):
        return None
    if not all(isinstance(x, (int, float)) and not isinstance(x, bool) for x in value):
        return None
    return [float(x) for x in value]


def _load_json(value: str | None) -> Any:
    if not value:
        return None
    try:
        return json.loads(value)
    except json.JSONDecodeError:
        logger.debug("Ignoring malformed JSON column value")
        return None


def _placeholders(values: Sequence[Any] | dict[str, Any]) -> str:
    return ", ".join("?" for _ in values)


def _batched(values: list[str], size: int) -> list[list[str]]:
    return [values[i : i + size] for i in range(0, len(values), size)]


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _json_object(value: str | None) -> dict[str, Any]:
    loaded = _load_json(value)
    return loaded if isinstance(loaded, dict) else {}
