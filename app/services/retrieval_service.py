"""
Retrieval: embed the query, run a top-k similarity search, return chunks with scores.

Responsibility: The retrieval layer used by the document_search tool and by
POST /api/rag/documents/search.
"""

import logging
from typing import Any

from app.services.vector_store import DocumentChunk

logger = logging.getLogger(__name__)


class Retriever:
    def __init__(self, embeddings: Any, store: Any, default_k: int = 4) -> None:
        self.embeddings = embeddings
        self.store = store
        self.default_k = default_k

    def similarity_search_with_score(
        self,
        query: str,
        k: int | None = None,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[tuple[DocumentChunk, float]]:
        k = k or self.default_k
        logger.info("[retrieval:search] IN  query=%r k=%d filter=%r", query, k, metadata_filter)
        if not query or not query.strip():
            return []
        vector = self.embeddings.embed_query(query.strip())
        results = self.store.search(vector, k=k, metadata_filter=metadata_filter)
        logger.info(
            "[retrieval:search] OUT results=%d sources=%s scores=%s",
            len(results),
            [c.metadata.get("source") for c, _ in results],
            [round(s, 4) for _, s in results],
        )
        return results

    def similarity_search(
        self,
        query: str,
        k: int | None = None,
        metadata_filter: dict[str, Any] | None = None,
    ) -> list[DocumentChunk]:
        return [chunk for chunk, _ in self.similarity_search_with_score(query, k, metadata_filter)]
