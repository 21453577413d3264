"""
API handlers: read request data (UploadFile, query strings), call services, map results/errors to HTTP.

Responsibility: Bridge HTTP types and services. Marshalling, SSE framing and
exception-to-HTTP mapping. Lives in the API layer so services stay free of
FastAPI/HTTP types.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Iterator

from fastapi import HTTPException, UploadFile
from starlette.concurrency import iterate_in_threadpool

from app.ingest.loader import DocumentParseError, InvalidFileTypeError, ensure_supported
from app.services.ingestion_service import FileTooLargeError, IngestionService

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def require_text(value: str | None, field: str) -> str:
    """400 when a required text field is missing or blank."""
    if value is None or not str(value).strip():
        raise HTTPException(status_code=400, detail=f"{field} is required")
    return str(value).strip()


def parse_json_param(raw: str | None, name: str) -> dict[str, Any] | None:
    """Decode a JSON-object query parameter (GET /stream passes context/options this way)."""
    if raw is None or not raw.strip():
        return None
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail=f"{name} must be a JSON object: {e.msg}") from e
    if not isinstance(value, dict):
        raise HTTPException(status_code=400, detail=f"{name} must be a JSON object")
    return value


def sse_frame(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload, ensure_ascii=False, default=str)}\n\n"


async def sse_agent_events(events: Iterator[dict[str, Any]], session_id: str | None) -> AsyncIterator[str]:
    """
    Frame agent events as SSE: {"chunk"} per answer token, then {"done": true, "sessionId"};
    a failure emits {"error"} and ends the stream. The blocking agent generator runs in the
    threadpool; when the client disconnects the task is cancelled and the generator is closed,
    which releases the session lock and the upstream LLM stream without committing memory.
    """
    try:
        async for event in iterate_in_threadpool(events):
            if event["event"] == "chunk":
                yield sse_frame({"chunk": event["content"]})
            elif event["event"] == "done":
                yield sse_frame({"done": True, "sessionId": session_id})
    except Exception as e:
        logger.exception("SSE stream failed")
        yield sse_frame({"error": getattr(e, "message", None) or str(e) or type(e).__name__})
    finally:
        close = getattr(events, "close", None)
        if close is not None:
            close()


async def read_upload(file: UploadFile | None, max_bytes: int) -> tuple[str, bytes]:
    """
    Validate extension first, then read at most max_bytes + 1 so oversized uploads
    are rejected without buffering the whole body. Maps failures to 400/413.
    """
    if file is None or not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    filename = Path(file.filename).name
    try:
        ensure_supported(filename)
    except InvalidFileTypeError as e:
        raise HTTPException(status_code=400, detail=e.message) from e
    content = await file.read(max_bytes + 1)
    if len(content) > max_bytes:
        raise HTTPException(status_code=413, detail=f"File {filename} exceeds the {max_bytes // (1024 * 1024)}MB limit")
    return filename, content


async def handle_upload(
    ingestion: IngestionService,
    file: UploadFile | None,
    document_id: str | None = None,
    reindex: bool = False,
) -> dict[str, Any]:
    """
    Read the uploaded file and run ingestion (or re-indexing) off the event loop.
    Returns the data payload {documentId, filename, chunksCount, vectorIds}.
    """
    filename, content = await read_upload(file, ingestion.max_bytes)
    logger.info("[api:upload] filename=%s bytes=%d document_id=%s reindex=%s", filename, len(content), document_id, reindex)
    try:
        if reindex:
            result = await asyncio.to_thread(ingestion.reindex, document_id, filename, content)
        else:
            result = await asyncio.to_thread(ingestion.ingest, filename, content, document_id)
    except InvalidFileTypeError as e:
        raise HTTPException(status_code=400, detail=e.message) from e
    except FileTooLargeError as e:
        raise HTTPException(status_code=413, detail=e.message) from e
    except DocumentParseError as e:
        raise HTTPException(status_code=400, detail=e.message) from e
    return result.to_dict()
