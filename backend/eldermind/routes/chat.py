"""
Chat endpoint.

POST /api/chat?include_sources={bool}
Body: {"messages": [{"role": "user", "content": "..."}], "mode": "loremaster"}
"""
import time

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from eldermind.core.logging import get_logger
from eldermind.lore.orchestrator import LoreOrchestrator
from eldermind.models.chat import ChatRequest, ChatResponse
from eldermind.services.ai.llm_client import LLMGatewayError

logger = get_logger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> LoreOrchestrator:
    """Orchestrator built at startup and stored on the application state."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Lore services are not initialized")
    return orchestrator


@router.post("", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    include_sources: bool = Query(False, description="Append a Sources footer to grounded replies"),
    orchestrator: LoreOrchestrator = Depends(get_orchestrator),
):
    """
    Answer the latest user message, grounding it in lore evidence when relevant.

    Gateway failures map to 503 (retryable: timeouts, rate limits, upstream
    5xx, open circuit) or 502 (fatal: misconfiguration, rejected request,
    malformed model response).
    """
    if not body.messages:
        raise HTTPException(status_code=400, detail="'messages' must contain at least one message")

    start_time = time.time()
    try:
        response = await orchestrator.answer(body, include_sources)
    except LLMGatewayError as e:
        status_code = 503 if e.retryable else 502
        logger.error(
            "chat_gateway_failed",
            error=str(e),
            retryable=e.retryable,
            upstream_status=e.status_code,
            status_code=status_code,
        )
        raise HTTPException(status_code=status_code, detail=f"Language model unavailable: {e}")

    logger.info(
        "chat_completed",
        mode=body.mode,
        messages=len(body.messages),
        include_sources=include_sources,
        grounded=response.sources is not None,
        prompt_tokens=response.prompt_tokens,
        completion_tokens=response.completion_tokens,
        latency_ms=int((time.time() - start_time) * 1000),
    )
    return response
