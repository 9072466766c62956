"""
Admin endpoints for retrieval explainability.

GET /admin/retrieval/decisions?limit={int}
"""
from fastapi import APIRouter, HTTPException, Query, Request

from eldermind.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/retrieval/decisions")
async def recent_decisions(
    request: Request,
    limit: int = Query(20, ge=1, le=1000, description="Number of decisions to return"),
):
    """
    Most recent gating decisions, newest first.

    Queries are already truncated to 160 characters when recorded.
    Security: Should require admin authentication in production.
    """
    decision_log = getattr(request.app.state, "decision_log", None)
    if decision_log is None:
        raise HTTPException(status_code=503, detail="Decision log not available")

    return [
        {**decision.model_dump(mode="json"), "query": query}
        for decision, query in decision_log.recent(limit)
    ]
