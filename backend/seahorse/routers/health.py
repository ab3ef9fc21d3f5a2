"""
Health Check Endpoint

Provides health status for monitoring and load balancer checks.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from seahorse.config import settings

router = APIRouter()
logger = logging.getLogger(__name__)


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@router.get("/health")
async def health_check() -> Dict[str, Any]:
    """
    Health check endpoint.

    Returns service status and configuration information.
    """
    return {
        "status": "healthy",
        "timestamp": _timestamp(),
        "version": "1.0.0",
        "config": {
            "gemini_model": settings.gemini_model,
            "embedding_model": settings.embedding_model,
            "embedding_dimension": settings.embedding_dimension,
            "registry_backend": settings.registry_backend,
            "registry_contract_id": settings.registry_contract_id,
        },
    }


@router.get("/health/ready")
async def readiness_check(request: Request) -> JSONResponse:
    """
    Readiness check for container orchestration.

    Reports 503 until the agent has finished initializing.
    """
    agent = request.app.state.agent
    status_code = 200 if agent.is_ready else 503
    return JSONResponse(
        status_code=status_code,
        content={"status": "ready" if agent.is_ready else agent.state.value},
    )


@router.get("/health/live")
async def liveness_check() -> Dict[str, str]:
    """
    Liveness check for container orchestration.

    Verifies the service is running.
    """
    return {"status": "alive"}


@router.get("/health/rag")
async def rag_status(request: Request) -> Dict[str, Any]:
    """
    RAG knowledge base status.

    Returns information about the in-memory vector index.
    """
    agent = request.app.state.agent
    index = agent.index

    if index is None:
        return {
            "status": "initializing",
            "timestamp": _timestamp(),
            "agent_state": agent.state.value,
        }

    stats = index.get_stats()
    return {
        "status": "healthy" if agent.is_ready else agent.state.value,
        "timestamp": _timestamp(),
        "is_vector_store_empty": agent.is_vector_store_empty,
        "embedding_model": settings.embedding_model,
        **stats,
    }
