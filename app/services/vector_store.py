"""
Vector store client: Milvus connection, chunk upsert, similarity search, metadata-filtered delete.

Responsibility: Own the Milvus collection. Chunks are stored with their text and
metadata as dynamic fields; API-facing metadata uses camelCase keys
(documentId, addedAt, chunkIndex) and is mapped to snake_case columns here.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from app.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)

# API metadata key -> Milvus field
METADATA_FIELDS: dict[str, str] = {
    "source": "source",
    "documentId": "document_id",
    "filename": "filename",
    "addedAt": "added_at",
    "chunkIndex": "chunk_index",
    "type": "type",
}
_FIELD_TO_KEY = {v: k for k, v in METADATA_FIELDS.items()}
OUTPUT_FIELDS = ["text", *METADATA_FIELDS.values()]


@dataclass
class DocumentChunk:
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    return json.dumps(str(value))


def build_filter(metadata_filter: dict[str, Any] | None) -> str:
    """
    Translate {"documentId": "doc-1", "type": ["pdf", "txt"]} into a Milvus boolean expression.
    Keys may be API (camelCase) or column names. Unknown keys are rejected.
    """
    if not metadata_filter:
        return ""
    clauses = []
    for key, value in metadata_filter.items():
        column = METADATA_FIELDS.get(key) or (key if key in _FIELD_TO_KEY else None)
        if column is None:
            raise ValueError(f"Unsupported filter field: {key!r}")
        if isinstance(value, (list, tuple, set)):
            clauses.append(f"{column} in [{', '.join(_literal(v) for v in value)}]")
        else:
            clauses.append(f"{column} == {_literal(value)}")
    return " and ".join(clauses)


class MilvusVectorStore:
    """
    Milvus collection wrapper. connect() is called once at startup; the collection
    (string primary key, COSINE metric, dynamic fields) is created if missing.
    """

    def __init__(self, uri: str, token: str, collection_name: str, dim: int, client: Any = None) -> None:
        self.uri = uri
        self.token = token
        self.collection_name = collection_name
        self.dim = dim
        self._client = client

    def connect(self) -> None:
        if self._client is not None:
            return
        if not self.uri:
            logger.warning("[vector_store] MILVUS_URI is not set; document search and ingestion are disabled")
            return
        from pymilvus import MilvusClient

        self._client = MilvusClient(uri=self.uri, token=self.token) if self.token else MilvusClient(uri=self.uri)
        logger.info("Milvus connection established")
        self._ensure_collection()

    def _ensure_collection(self) -> None:
        if self._client.has_collection(self.collection_name):
            return
        self._client.create_collection(
            collection_name=self.collection_name,
            dimension=self.dim,
            primary_field_name="id",
            id_type="string",
            max_length=64,
            vector_field_name="vector",
            metric_type="COSINE",
            auto_id=False,
        )
        logger.info("Collection %s created (dim=%s)", self.collection_name, self.dim)

    @property
    def client(self) -> Any:
        if self._client is None:
            raise ServiceUnavailableError("MILVUS_URI must be set in .env to use document search and ingestion")
        return self._client

    def insert(self, chunks: list[DocumentChunk], vectors: list[list[float]]) -> list[str]:
        """Store chunks with their vectors. Returns the generated primary keys in chunk order."""
        if not chunks:
            return []
        if len(chunks) != len(vectors):
            raise ValueError(f"got {len(vectors)} vectors for {len(chunks)} chunks")
        ids = [str(uuid.uuid4()) for _ in chunks]
        rows = []
        for pk, chunk, vec in zip(ids, chunks, vectors):
            row: dict[str, Any] = {"id": pk, "vector": vec, "text": chunk.content}
            for key, column in METADATA_FIELDS.items():
                if key in chunk.metadata and chunk.metadata[key] is not None:
                    row[column] = chunk.metadata[key]
            rows.append(row)
        self.client.insert(collection_name=self.collection_name, data=rows)
        logger.info("[vector_store:insert] stored %d chunks", len(rows))
        return ids

    def search(
        self,
        vector: list[float],
        k: int = 4,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[tuple[DocumentChunk, float]]:
        """Top-k similar chunks with COSINE similarity scores (higher is closer)."""
        expr = build_filter(metadata_filter)
        results = self.client.search(
            collection_name=self.collection_name,
            data=[vector],
            limit=k,
            filter=expr,
            output_fields=OUTPUT_FIELDS,
        )
        hits = results[0] if results else []
        out: list[tuple[DocumentChunk, float]] = []
        for h in hits:
            entity = h.get("entity") or h
            metadata = {
                _FIELD_TO_KEY[col]: entity[col]
                for col in METADATA_FIELDS.values()
                if entity.get(col) is not None
            }
            score = float(h.get("distance", h.get("score", 0.0)))
            out.append((DocumentChunk(content=entity.get("text", ""), metadata=metadata), score))
        logger.info("[vector_store:search] OUT k=%d filter=%r hits=%d", k, expr, len(out))
        return out

    def delete(self, metadata_filter: dict[str, Any]) -> int:
        """Delete every chunk matching the filter. An empty filter is refused."""
        expr = build_filter(metadata_filter)
        if not expr:
            raise ValueError("delete requires a non-empty metadata filter")
        result = self.client.delete(collection_name=self.collection_name, filter=expr)
        deleted = result.get("delete_count", 0) if isinstance(result, dict) else len(result or [])
        logger.info("[vector_store:delete] filter=%r deleted=%d", expr, deleted)
        return deleted
