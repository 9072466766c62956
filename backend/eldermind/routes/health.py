"""
Health check endpoints.
"""
from fastapi import APIRouter, Request

from eldermind.core.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/")
async def health_check():
    """
    Basic health check endpoint.
    """
    return {
        "status": "ok",
        "message": "API is running"
    }


@router.get("/lore")
async def lore_health(request: Request):
    """
    Health check for the lore retrieval pipeline.

    Returns:
        - corpus_documents: number of documents loaded at startup
        - retrieval_enabled / threshold / top_k: gating configuration
        - retriever_version: scoring algorithm tag
        - llm_circuit: circuit breaker snapshot for the LLM dependency
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        return {
            "status": "unavailable",
            "message": "Lore services not initialized",
        }

    corpus_size = len(orchestrator.retriever.corpus)
    response = {
        "status": "ok" if corpus_size > 0 else "degraded",
        "corpus_documents": corpus_size,
        "retrieval_enabled": orchestrator.retrieval_enabled,
        "threshold": orchestrator.threshold,
        "top_k": orchestrator.top_k,
        "retriever_version": orchestrator.retriever.version,
    }

    llm_client = getattr(request.app.state, "llm_client", None)
    if llm_client is not None:
        response["llm_circuit"] = llm_client.circuit_breaker.get_metrics()

    if corpus_size == 0:
        response["message"] = "Lore corpus is empty; answers are not grounded"
    else:
        response["message"] = "Lore retrieval is ready"
    return response
