# Run from project root: uvicorn app.main:app --reload

import logging
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.api.routes import agent_router, documents_router, rag_router, system_router
from app.core import config
from app.core.container import build_container
from app.core.errors import ServiceUnavailableError, SessionBusyError

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    app.state.started_at = time.monotonic()
    app.state.container = build_container()
    logger.info("[main] server ready env=%s port=%d", config.APP_ENV, config.PORT)
    yield
    app.state.container = None


app = FastAPI(title="LangChain Agent API", version="1.0.0", lifespan=lifespan)

_origins = [o.strip() for o in config.CORS_ORIGIN.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins or ["*"],
    allow_credentials="*" not in _origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info("[http] %s %s", request.method, request.url.path)
    return await call_next(request)


def _error(status_code: int, message: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, **extra})


@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404 and exc.detail == "Not Found":
        return _error(404, "Endpoint not found")
    return _error(exc.status_code, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    where = ".".join(str(p) for p in first.get("loc", []) if p != "body")
    message = f"Invalid request: {where} {first.get('msg', '')}".strip() if first else "Invalid request"
    return _error(400, message, details=errors)


@app.exception_handler(ServiceUnavailableError)
async def service_unavailable(request: Request, exc: ServiceUnavailableError) -> JSONResponse:
    logger.warning("[main] service unavailable path=%s: %s", request.url.path, exc.message)
    return _error(503, exc.message, retryable=exc.retryable)


@app.exception_handler(SessionBusyError)
async def session_busy(request: Request, exc: SessionBusyError) -> JSONResponse:
    return _error(409, exc.message)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("[main] unhandled error path=%s", request.url.path)
    extra = {}
    if config.APP_ENV != "production":
        extra["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return _error(500, str(exc) or "Internal server error", **extra)


app.include_router(system_router)
app.include_router(agent_router)
app.include_router(rag_router)
app.include_router(documents_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("app.main:app", host="0.0.0.0", port=config.PORT)
