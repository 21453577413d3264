"""
Dependency container: build every client and service once at startup.

The FastAPI lifespan stores the container on app.state; route dependencies
(app.api.deps) read from it, and tests swap in fakes via dependency_overrides.
"""

import logging
from dataclasses import dataclass

from app.agent.graph import Agent
from app.agent.llm import ChatModel
from app.agent.memory import LLMSummarizer, SummaryBufferPolicy
from app.agent.prompts import AGENT_SYSTEM_PROMPT, RAG_SYSTEM_PROMPT
from app.agent.tools import build_agent_tools, build_rag_tools
from app.core import config
from app.core.document_db import DocumentRegistry
from app.core.session_store import InMemorySessionBackend, MemoryStore
from app.services.agent_service import AgentService
from app.services.embeddings import HFEmbeddings
from app.services.ingestion_service import IngestionService
from app.services.retrieval_service import Retriever
from app.services.vector_store import MilvusVectorStore

logger = logging.getLogger(__name__)


@dataclass
class Container:
    llm: ChatModel
    retriever: Retriever
    ingestion: IngestionService
    agent_service: AgentService
    rag_service: AgentService


def _memory_store() -> MemoryStore:
    return MemoryStore(
        max_recent_messages=config.RECENT_MESSAGES_COUNT,
        avg_tokens_per_turn=config.AVG_TOKENS_PER_MESSAGE,
        backend=InMemorySessionBackend(ttl_seconds=config.SESSION_TTL_SECONDS, max_sessions=config.MAX_SESSIONS),
    )


def build_container() -> Container:
    llm = ChatModel(
        api_key=config.OPENAI_API_KEY,
        model=config.OPENAI_MODEL,
        temperature=config.AGENT_TEMPERATURE,
        max_tokens=config.AGENT_MAX_TOKENS,
        timeout=config.LLM_API_TIMEOUT,
        max_retries=config.LLM_MAX_RETRIES,
    )
    embeddings = HFEmbeddings(
        api_key=config.HF_API_KEY,
        model=config.HF_EMBED_MODEL,
        timeout=config.EMBED_API_TIMEOUT,
        batch_size=config.EMBED_BATCH_SIZE,
    )
    store = MilvusVectorStore(
        uri=config.MILVUS_URI,
        token=config.MILVUS_TOKEN,
        collection_name=config.COLLECTION_NAME,
        dim=config.VECTOR_DIM,
    )
    store.connect()
    retriever = Retriever(embeddings, store, default_k=config.RAG_TOP_K)
    registry = DocumentRegistry(config.DOCUMENT_DB_PATH)
    registry.init_db()

    policy = SummaryBufferPolicy(LLMSummarizer(llm))
    agent_service = AgentService(
        Agent(llm, build_agent_tools(), AGENT_SYSTEM_PROMPT, max_iterations=config.AGENT_MAX_ITERATIONS),
        _memory_store(),
        policy,
        lock_timeout=config.SESSION_LOCK_TIMEOUT,
    )
    rag_service = AgentService(
        Agent(llm, build_rag_tools(retriever, k=config.RAG_TOP_K), RAG_SYSTEM_PROMPT, max_iterations=config.AGENT_MAX_ITERATIONS),
        _memory_store(),
        policy,
        lock_timeout=config.SESSION_LOCK_TIMEOUT,
    )
    ingestion = IngestionService(
        embeddings,
        store,
        registry,
        chunk_size=config.CHUNK_SIZE,
        chunk_overlap=config.CHUNK_OVERLAP,
        max_bytes=config.MAX_UPLOAD_BYTES,
    )
    logger.info("[container] built model=%s collection=%s", config.OPENAI_MODEL, config.COLLECTION_NAME)
    return Container(
        llm=llm,
        retriever=retriever,
        ingestion=ingestion,
        agent_service=agent_service,
        rag_service=rag_service,
    )
