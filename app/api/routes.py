"""
API route aggregator: register endpoints; no logic, only delegate to services and handlers.

Routers: /api/agent (general agent), /api/rag (document agent and raw search),
/api/documents (ingestion), /api/health, and the / banner.
"""

import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from app.api.deps import get_agent_service, get_ingestion_service, get_rag_service, get_retriever
from app.api.handlers import SSE_HEADERS, handle_upload, parse_json_param, require_text, sse_agent_events
from app.core import config
from app.schemas.agent import (
    DocumentSearchRequest,
    InvokeRequest,
    InvokeResponse,
    RagSearchRequest,
    SessionHistoryResponse,
)
from app.schemas.documents import DocumentListResponse, DocumentSearchResponse, UploadResponse
from app.services.agent_service import AgentService
from app.services.ingestion_service import IngestionService
from app.services.retrieval_service import Retriever

logger = logging.getLogger(__name__)

system_router = APIRouter(tags=["system"])
agent_router = APIRouter(prefix="/api/agent", tags=["agent"])
rag_router = APIRouter(prefix="/api/rag", tags=["rag"])
documents_router = APIRouter(prefix="/api/documents", tags=["documents"])


def _run_turn(service: AgentService, message: str, body: InvokeRequest | RagSearchRequest, route: str) -> dict:
    logger.info("[api:%s] IN  message_len=%d session_id=%s", route, len(message), body.session_id)
    try:
        data = service.invoke(message, session_id=body.session_id, context=body.context, options=body.options)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    logger.info("[api:%s] OUT steps=%d has_memory=%s", route, len(data["steps"]), data["hasMemory"])
    return {"success": True, "data": data}


# --- System ---

@system_router.get("/", summary="Service banner")
def root() -> dict:
    return {
        "success": True,
        "message": "LangChain Agent API",
        "version": "1.0.0",
        "endpoints": {
            "health": "/api/health",
            "agent": "/api/agent",
            "rag": "/api/rag",
            "documents": "/api/documents",
        },
    }


@system_router.get("/api/health", summary="Liveness probe")
def health(request: Request) -> dict:
    started = getattr(request.app.state, "started_at", None)
    return {
        "success": True,
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        "uptime": round(time.monotonic() - started, 3) if started is not None else 0.0,
        "environment": config.APP_ENV,
    }


# --- Agent ---

@agent_router.post(
    "/invoke",
    response_model=InvokeResponse,
    response_model_by_alias=True,
    summary="Run the general agent for one turn",
    description="Runs calculator / get_current_time tools as needed. With sessionId the turn is added to summarizing memory. 400 when message is missing.",
)
def invoke_agent(body: InvokeRequest, service: AgentService = Depends(get_agent_service)) -> dict:
    message = require_text(body.message, "Message")
    return _run_turn(service, message, body, "invoke")


@agent_router.get(
    "/stream",
    summary="Run the general agent and stream the answer (SSE)",
    description='Frames: data: {"chunk": "..."} per token, then {"done": true, "sessionId": ...}; on failure {"error": "..."}. context and options are JSON-encoded query strings.',
)
def stream_agent(
    message: str | None = Query(None),
    session_id: str | None = Query(None, alias="sessionId"),
    context: str | None = Query(None, description="JSON object"),
    options: str | None = Query(None, description="JSON object"),
    service: AgentService = Depends(get_agent_service),
) -> StreamingResponse:
    text = require_text(message, "Message")
    ctx = parse_json_param(context, "context")
    opts = parse_json_param(options, "options")
    logger.info("[api:stream] IN  message_len=%d session_id=%s", len(text), session_id)
    try:
        events = service.stream(text, session_id=session_id, context=ctx, options=opts)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return StreamingResponse(
        sse_agent_events(events, session_id),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@agent_router.delete("/session/{session_id}", summary="Clear a session's memory")
def clear_agent_session(session_id: str, service: AgentService = Depends(get_agent_service)) -> dict:
    existed = service.clear(session_id)
    logger.info("[api:clear_session] session_id=%s existed=%s", session_id, existed)
    return {"success": True, "message": f"Session {session_id} cleared"}


@agent_router.get("/session/{session_id}/history", response_model=SessionHistoryResponse, summary="Memory snapshot")
def agent_session_history(session_id: str, service: AgentService = Depends(get_agent_service)) -> dict:
    return {"success": True, "data": service.history(session_id)}


@agent_router.get("/config", summary="Agent model settings")
def agent_config(service: AgentService = Depends(get_agent_service)) -> dict:
    llm = service.agent.llm
    return {
        "success": True,
        "config": {
            "model": llm.model,
            "temperature": llm.temperature,
            "maxTokens": llm.max_tokens,
            "recentMessagesCount": service.memory_store.max_recent_messages,
            "avgTokensPerMessage": service.memory_store.avg_tokens_per_turn,
        },
    }


# --- RAG ---

@rag_router.post(
    "/search",
    response_model=InvokeResponse,
    response_model_by_alias=True,
    summary="Ask the document agent",
    description="Same as /api/agent/invoke but the agent answers from uploaded documents via document_search. Body uses query (message is accepted too).",
)
def rag_search(body: RagSearchRequest, service: AgentService = Depends(get_rag_service)) -> dict:
    message = require_text(body.query if body.query is not None else body.message, "Query")
    return _run_turn(service, message, body, "rag_search")


@rag_router.post(
    "/documents/search",
    response_model=DocumentSearchResponse,
    response_model_by_alias=True,
    summary="Similarity search over uploaded documents (no LLM)",
)
def search_documents(body: DocumentSearchRequest, retriever: Retriever = Depends(get_retriever)) -> dict:
    query = require_text(body.query, "Query")
    try:
        results = retriever.similarity_search_with_score(query, k=body.k, metadata_filter=body.filter)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    items = [{"content": chunk.content, "metadata": chunk.metadata, "score": score} for chunk, score in results]
    return {"success": True, "data": {"query": query, "results": items, "count": len(items)}}


@rag_router.delete("/session/{session_id}", summary="Clear a RAG session's memory")
def clear_rag_session(session_id: str, service: AgentService = Depends(get_rag_service)) -> dict:
    service.clear(session_id)
    return {"success": True, "message": f"Session {session_id} cleared"}


@rag_router.get("/session/{session_id}/history", response_model=SessionHistoryResponse, summary="RAG memory snapshot")
def rag_session_history(session_id: str, service: AgentService = Depends(get_rag_service)) -> dict:
    return {"success": True, "data": service.history(session_id)}


# --- Documents ---

@documents_router.post(
    "/upload",
    response_model=UploadResponse,
    response_model_by_alias=True,
    summary="Upload a document into the vector index",
    description="Accepts one .pdf, .docx, .doc, .txt or .md file up to 10MB. Other types -> 400, larger files -> 413. Optional form field documentId; defaults to doc-<timestamp>.",
)
async def upload_document(
    file: UploadFile | None = File(None, description="Document to index."),
    document_id: str | None = Form(None, alias="documentId"),
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> dict:
    data = await handle_upload(ingestion, file, document_id)
    return {"success": True, "data": data}


@documents_router.get("", response_model=DocumentListResponse, summary="List indexed documents")
def list_documents(ingestion: IngestionService = Depends(get_ingestion_service)) -> dict:
    documents = ingestion.list_documents()
    return {"success": True, "data": {"documents": documents, "count": len(documents)}}


@documents_router.delete("/{document_id}", summary="Delete a document's chunks")
def delete_document(document_id: str, ingestion: IngestionService = Depends(get_ingestion_service)) -> dict:
    deleted = ingestion.delete(document_id)
    logger.info("[api:delete_document] document_id=%s deleted=%d", document_id, deleted)
    return {"success": True, "message": f"Document {document_id} deleted successfully"}


@documents_router.post(
    "/{document_id}/reindex",
    response_model=UploadResponse,
    response_model_by_alias=True,
    summary="Replace a document's chunks with a new file",
)
async def reindex_document(
    document_id: str,
    file: UploadFile | None = File(None, description="Replacement document."),
    ingestion: IngestionService = Depends(get_ingestion_service),
) -> dict:
    data = await handle_upload(ingestion, file, document_id, reindex=True)
    return {"success": True, "data": data}
