"""
Unit tests for the Milvus vector store wrapper. The Milvus client is a MagicMock.
"""

from unittest.mock import MagicMock

import pytest

from app.core.errors import ServiceUnavailableError
from app.services.vector_store import DocumentChunk, MilvusVectorStore, build_filter


def _store(client: MagicMock | None = None) -> MilvusVectorStore:
    return MilvusVectorStore(uri="", token="", collection_name="documents", dim=3, client=client)


class TestBuildFilter:
    def test_empty(self) -> None:
        assert build_filter(None) == ""
        assert build_filter({}) == ""

    def test_maps_camel_case_keys(self) -> None:
        assert build_filter({"documentId": "doc-1"}) == 'document_id == "doc-1"'

    def test_list_values_and_multiple_clauses(self) -> None:
        expr = build_filter({"type": ["pdf", "txt"], "chunkIndex": 0})
        assert expr == 'type in ["pdf", "txt"] and chunk_index == 0'

    def test_quotes_are_escaped(self) -> None:
        assert build_filter({"source": 'a"b'}) == 'source == "a\\"b"'

    def test_unknown_key_rejected(self) -> None:
        with pytest.raises(ValueError):
            build_filter({"owner": "me"})


class TestMilvusVectorStore:
    def test_unconfigured_store_is_unavailable(self) -> None:
        store = _store()
        store.connect()  # no URI: warns, stays disconnected
        with pytest.raises(ServiceUnavailableError):
            store.search([0.1, 0.2, 0.3])

    def test_insert_maps_metadata_to_columns(self) -> None:
        client = MagicMock()
        store = _store(client)
        chunk = DocumentChunk("hello", {"source": "a.txt", "documentId": "doc-1", "chunkIndex": 0, "extra": "x"})

        ids = store.insert([chunk], [[0.1, 0.2, 0.3]])

        assert len(ids) == 1
        rows = client.insert.call_args.kwargs["data"]
        assert rows == [{
            "id": ids[0],
            "vector": [0.1, 0.2, 0.3],
            "text": "hello",
            "source": "a.txt",
            "document_id": "doc-1",
            "chunk_index": 0,
        }]

    def test_insert_rejects_mismatched_vectors(self) -> None:
        with pytest.raises(ValueError):
            _store(MagicMock()).insert([DocumentChunk("a"), DocumentChunk("b")], [[0.1]])

    def test_search_returns_chunks_with_scores(self) -> None:
        client = MagicMock()
        client.search.return_value = [[
            {"id": "1", "distance": 0.91, "entity": {"text": "alpha", "source": "a.pdf", "document_id": "doc-1"}},
            {"id": "2", "distance": 0.5, "entity": {"text": "beta", "source": "b.txt"}},
        ]]
        results = _store(client).search([0.1, 0.2, 0.3], k=2, metadata_filter={"documentId": "doc-1"})

        assert [(c.content, s) for c, s in results] == [("alpha", 0.91), ("beta", 0.5)]
        assert results[0][0].metadata == {"source": "a.pdf", "documentId": "doc-1"}
        assert client.search.call_args.kwargs["filter"] == 'document_id == "doc-1"'
        assert client.search.call_args.kwargs["limit"] == 2

    def test_delete_by_document_id(self) -> None:
        client = MagicMock()
        client.delete.return_value = {"delete_count": 3}
        deleted = _store(client).delete({"documentId": "doc-1"})
        assert deleted == 3
        assert client.delete.call_args.kwargs["filter"] == 'document_id == "doc-1"'

    def test_delete_requires_filter(self) -> None:
        with pytest.raises(ValueError):
            _store(MagicMock()).delete({})
