"""
Document ingestion: validate, parse, chunk, embed, and upsert documents for RAG.

Responsibility: Orchestrate loader -> cleaning/chunking -> embeddings -> vector
store, tagging every chunk with documentId, filename and addedAt so a document
can later be deleted or re-indexed by id. Called by the API layer; no HTTP or
FastAPI here.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from app.core.document_db import DocumentRegistry
from app.ingest.loader import DocumentParseError, ensure_supported, load_from_bytes
from app.services.text_processing import chunk_text, clean_text
from app.services.vector_store import DocumentChunk

logger = logging.getLogger(__name__)


class FileTooLargeError(Exception):
    """Raised when an upload exceeds the configured size limit."""

    def __init__(self, filename: str, size: int, limit: int) -> None:
        self.filename = filename
        self.size = size
        self.limit = limit
        self.message = f"File {filename} is {size} bytes; the limit is {limit} bytes"
        super().__init__(self.message)


@dataclass
class IngestResult:
    document_id: str
    filename: str
    chunks_count: int
    vector_ids: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {
            "documentId": self.document_id,
            "filename": self.filename,
            "chunksCount": self.chunks_count,
            "vectorIds": self.vector_ids,
        }


def new_document_id() -> str:
    return f"doc-{int(time.time() * 1000)}"


class IngestionService:
    def __init__(
        self,
        embeddings: Any,
        store: Any,
        registry: DocumentRegistry,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
        max_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.embeddings = embeddings
        self.store = store
        self.registry = registry
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.max_bytes = max_bytes

    def validate(self, filename: str, content: bytes) -> None:
        """Reject unsupported extensions and oversized files before any parsing."""
        ensure_supported(filename)
        if len(content) > self.max_bytes:
            raise FileTooLargeError(filename, len(content), self.max_bytes)

    def split(self, filename: str, content: bytes, document_id: str) -> list[DocumentChunk]:
        doc = load_from_bytes(content, filename)
        cleaned = clean_text(doc.text)
        if not cleaned:
            raise DocumentParseError(f"No text could be extracted from {filename}")
        pieces = chunk_text(cleaned, chunk_size=self.chunk_size, overlap=self.chunk_overlap)
        added_at = datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
        return [
            DocumentChunk(
                content=piece,
                metadata={
                    "source": filename,
                    "type": doc.metadata.get("type"),
                    "documentId": document_id,
                    "filename": filename,
                    "addedAt": added_at,
                    "chunkIndex": i,
                },
            )
            for i, piece in enumerate(pieces)
        ]

    def ingest(self, filename: str, content: bytes, document_id: str | None = None) -> IngestResult:
        """Parse, chunk, embed and upsert one file. Returns ids of the stored vectors."""
        self.validate(filename, content)
        document_id = (document_id or "").strip() or new_document_id()
        logger.info("[ingestion:ingest] IN  filename=%s document_id=%s bytes=%d", filename, document_id, len(content))
        chunks = self.split(filename, content, document_id)
        vectors = self.embeddings.embed_documents([c.content for c in chunks])
        ids = self.store.insert(chunks, vectors)
        self.registry.upsert(document_id, filename, len(chunks))
        logger.info("[ingestion:ingest] OUT document_id=%s chunks=%d", document_id, len(chunks))
        return IngestResult(document_id=document_id, filename=filename, chunks_count=len(chunks), vector_ids=ids)

    def delete(self, document_id: str) -> int:
        """Delete all chunks of a document from the index and the registry."""
        deleted = self.store.delete({"documentId": document_id})
        self.registry.delete(document_id)
        return deleted

    def reindex(self, document_id: str, filename: str, content: bytes) -> IngestResult:
        """
        Replace a document's chunks. The new file is validated and parsed before the
        old chunks are removed, so a bad upload leaves the existing index intact.
        """
        self.validate(filename, content)
        chunks = self.split(filename, content, document_id)
        vectors = self.embeddings.embed_documents([c.content for c in chunks])
        self.store.delete({"documentId": document_id})
        ids = self.store.insert(chunks, vectors)
        self.registry.upsert(document_id, filename, len(chunks))
        logger.info("[ingestion:reindex] document_id=%s chunks=%d", document_id, len(chunks))
        return IngestResult(document_id=document_id, filename=filename, chunks_count=len(chunks), vector_ids=ids)

    def list_documents(self) -> list[dict[str, Any]]:
        return self.registry.list_all()
