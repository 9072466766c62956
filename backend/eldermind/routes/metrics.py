"""
Prometheus metrics endpoint.

GET /metrics
Resource and lore gauges are refreshed on every scrape.
"""
from fastapi import APIRouter, Request, Response

from eldermind.core.logging import get_logger
from eldermind.core.metrics import get_metrics, get_metrics_content_type, set_corpus_size

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def metrics(request: Request):
    """
    Prometheus text exposition. No authentication (scraped by Prometheus).
    """
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is not None:
        set_corpus_size(len(orchestrator.retriever.corpus))

    try:
        payload = get_metrics()
    except ValueError as e:
        # Raised by prometheus_client when a collector produces an invalid sample
        logger.error(
            "metrics_endpoint_error",
            error=str(e),
            error_type=type(e).__name__,
            exc_info=True,
        )
        payload = b"# Error collecting metrics\n"
    return Response(content=payload, media_type=get_metrics_content_type())
