"""
Application configuration (env, settings, constants).

Responsibility: Centralize config loading, environment variables, and app-wide
constants. Keeps the rest of the app decoupled from how config is sourced.
"""

import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


# Server
APP_ENV: str = os.getenv("APP_ENV", "development").strip() or "development"
PORT: int = _env_int("PORT", 4000)
CORS_ORIGIN: str = os.getenv("CORS_ORIGIN", "*").strip() or "*"

# OpenAI (agent LLM + summarizer)
OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "").strip()
OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini").strip() or "gpt-4o-mini"
AGENT_TEMPERATURE: float = _env_float("AGENT_TEMPERATURE", 0.7)
AGENT_MAX_TOKENS: int = _env_int("AGENT_MAX_TOKENS", 2000)
AGENT_MAX_ITERATIONS: int = _env_int("AGENT_MAX_ITERATIONS", 15)

# API timeouts (seconds); timeouts surface as retryable 503s
LLM_API_TIMEOUT: float = _env_float("LLM_API_TIMEOUT", 60.0)
LLM_MAX_RETRIES: int = _env_int("LLM_MAX_RETRIES", 2)
EMBED_API_TIMEOUT: float = _env_float("EMBED_API_TIMEOUT", 30.0)

# Conversation memory: budget = RECENT_MESSAGES_COUNT * AVG_TOKENS_PER_MESSAGE
RECENT_MESSAGES_COUNT: int = _env_int("RECENT_MESSAGES_COUNT", 20)
AVG_TOKENS_PER_MESSAGE: int = _env_int("AVG_TOKENS_PER_MESSAGE", 100)

# Session store eviction and per-session locking
SESSION_TTL_SECONDS: float = _env_float("SESSION_TTL_SECONDS", 24 * 3600.0)
MAX_SESSIONS: int = _env_int("MAX_SESSIONS", 1000)
SESSION_LOCK_TIMEOUT: float = _env_float("SESSION_LOCK_TIMEOUT", 30.0)

# Retrieval
RAG_TOP_K: int = _env_int("RAG_TOP_K", 4)

# Chunking defaults (tuning these affects retrieval quality)
CHUNK_SIZE: int = _env_int("CHUNK_SIZE", 1000)
CHUNK_OVERLAP: int = _env_int("CHUNK_OVERLAP", 200)

# Uploads
MAX_UPLOAD_BYTES: int = _env_int("MAX_UPLOAD_BYTES", 10 * 1024 * 1024)
ALLOWED_EXTENSIONS: frozenset[str] = frozenset({".pdf", ".docx", ".doc", ".txt", ".md"})

# Milvus (Cloud URI + token, or a local Milvus Lite file path such as ./milvus.db)
MILVUS_URI: str = os.getenv("MILVUS_URI", "").strip()
MILVUS_TOKEN: str = os.getenv("MILVUS_TOKEN", "").strip()
COLLECTION_NAME: str = os.getenv("COLLECTION_NAME", "documents").strip() or "documents"

# Hugging Face (embeddings)
HF_API_KEY: str = os.getenv("HF_API_KEY", "").strip()
HF_EMBED_MODEL: str = (
    os.getenv("HF_EMBED_MODEL", "sentence-transformers/all-MiniLM-L6-v2").strip()
    or "sentence-transformers/all-MiniLM-L6-v2"
)
# Vector collection dim (sentence-transformers/all-MiniLM-L6-v2 = 384)
VECTOR_DIM: int = _env_int("VECTOR_DIM", 384)
EMBED_BATCH_SIZE: int = _env_int("EMBED_BATCH_SIZE", 32)

# Document registry (SQLite), relative to project root
DOCUMENT_DB_PATH: str = os.getenv("DOCUMENT_DB_PATH", "data/documents.db").strip() or "data/documents.db"
