"""Schemas for document upload, listing and similarity search results."""

from typing import Any

from pydantic import ConfigDict, Field

from app.schemas.agent import CamelModel


class UploadData(CamelModel):
    """Result of ingesting one uploaded file."""

    document_id: str = Field(..., description="Id used to delete or re-index the document.")
    filename: str
    chunks_count: int = Field(..., description="Number of chunks stored in the vector index.")
    vector_ids: list[str] = Field(default_factory=list, description="Primary keys of the stored vectors.")


class UploadResponse(CamelModel):
    success: bool = True
    data: UploadData

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "success": True,
                    "data": {
                        "documentId": "doc-1718000000000",
                        "filename": "handbook.pdf",
                        "chunksCount": 2,
                        "vectorIds": ["0b9f...", "5c1e..."],
                    },
                }
            ]
        }
    )


class DocumentRecord(CamelModel):
    document_id: str
    filename: str
    chunks_count: int
    created_at: str
    updated_at: str


class DocumentListData(CamelModel):
    documents: list[DocumentRecord] = Field(default_factory=list)
    count: int = 0


class SearchResult(CamelModel):
    content: str
    metadata: dict[str, Any] = Field(default_factory=dict)
    score: float


class DocumentSearchData(CamelModel):
    query: str
    results: list[SearchResult] = Field(default_factory=list)
    count: int = 0


class DocumentSearchResponse(CamelModel):
    success: bool = True
    data: DocumentSearchData


class DocumentListResponse(CamelModel):
    success: bool = True
    data: DocumentListData
