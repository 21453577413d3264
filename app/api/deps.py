"""
FastAPI dependencies: hand route handlers the services built at startup.

Each endpoint opts in via Depends(...); tests replace these with fakes through
app.dependency_overrides.
"""

from fastapi import Request

from app.core.container import Container
from app.core.errors import ServiceUnavailableError
from app.services.agent_service import AgentService
from app.services.ingestion_service import IngestionService
from app.services.retrieval_service import Retriever


def get_container(request: Request) -> Container:
    container = getattr(request.app.state, "container", None)
    if container is None:
        raise ServiceUnavailableError("Application services are not initialized")
    return container


def get_agent_service(request: Request) -> AgentService:
    return get_container(request).agent_service


def get_rag_service(request: Request) -> AgentService:
    return get_container(request).rag_service


def get_retriever(request: Request) -> Retriever:
    return get_container(request).retriever


def get_ingestion_service(request: Request) -> IngestionService:
    return get_container(request).ingestion
