"""
Retrieval gating decisions and their log.

A RetrievalDecision is the explainability record of one request: whether
retrieval ran, whether its evidence was injected, and why not when it was
skipped. It is built once, after all inputs are known, and never mutated.
"""
from collections import deque
from enum import Enum
from threading import Lock
from typing import Deque, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, model_validator

from eldermind.core.logging import get_logger, truncate_for_log
from eldermind.core.metrics import record_retrieval_decision

logger = get_logger(__name__)

QUERY_LOG_LIMIT = 160


class FallbackReason(str, Enum):
    """Why evidence was not injected."""
    EMPTY_CORPUS = "EMPTY_CORPUS"
    NO_KEYWORDS = "NO_KEYWORDS"
    NO_MATCHES = "NO_MATCHES"
    BELOW_THRESHOLD = "BELOW_THRESHOLD"
    DISABLED_BY_FLAG = "DISABLED_BY_FLAG"
    ERROR = "ERROR"


class RetrievalDecision(BaseModel):
    """
    Immutable gating record.

    Invariant: `used` implies `attempted`, `matched_docs > 0` and
    `top_score >= threshold`; `fallback_reason` is set iff `used` is false.
    """

    model_config = ConfigDict(frozen=True)

    attempted: bool
    used: bool
    matched_docs: int = 0
    top_score: float = 0.0
    threshold: Optional[float] = None
    fallback_reason: Optional[FallbackReason] = None
    retriever_version: str

    @model_validator(mode="after")
    def _check_invariant(self) -> "RetrievalDecision":
        if self.used:
            if not self.attempted:
                raise ValueError("used decision must have attempted retrieval")
            if self.matched_docs <= 0:
                raise ValueError("used decision must have matched documents")
            if self.threshold is not None and not (self.top_score >= self.threshold):
                raise ValueError("used decision must meet the threshold")
            if self.fallback_reason is not None:
                raise ValueError("used decision cannot carry a fallback reason")
        elif self.fallback_reason is None:
            raise ValueError("unused decision requires a fallback reason")
        return self

    @classmethod
    def skipped(
        cls,
        reason: FallbackReason,
        *,
        attempted: bool,
        threshold: Optional[float],
        retriever_version: str,
        matched_docs: int = 0,
        top_score: float = 0.0,
    ) -> "RetrievalDecision":
        return cls(
            attempted=attempted,
            used=False,
            matched_docs=matched_docs,
            top_score=top_score,
            threshold=threshold,
            fallback_reason=reason,
            retriever_version=retriever_version,
        )

    @classmethod
    def grounded(
        cls,
        *,
        matched_docs: int,
        top_score: float,
        threshold: Optional[float],
        retriever_version: str,
    ) -> "RetrievalDecision":
        return cls(
            attempted=True,
            used=True,
            matched_docs=matched_docs,
            top_score=top_score,
            threshold=threshold,
            fallback_reason=None,
            retriever_version=retriever_version,
        )


# Every reason must be listed; checked at import time below.
_REASON_LOG_LEVEL: Dict[FallbackReason, str] = {
    FallbackReason.EMPTY_CORPUS: "info",
    FallbackReason.NO_KEYWORDS: "info",
    FallbackReason.NO_MATCHES: "info",
    FallbackReason.BELOW_THRESHOLD: "info",
    FallbackReason.DISABLED_BY_FLAG: "info",
    FallbackReason.ERROR: "warning",
}

_missing_levels = set(FallbackReason) - set(_REASON_LOG_LEVEL)
if _missing_levels:
    raise RuntimeError(f"no log level for fallback reasons: {sorted(r.value for r in _missing_levels)}")


def log_level_for(decision: RetrievalDecision) -> str:
    """Log level used for a decision."""
    if decision.fallback_reason is None:
        return "info"
    return _REASON_LOG_LEVEL[decision.fallback_reason]


class DecisionLog:
    """
    Records every gating decision: structured log line, Prometheus counters,
    and a bounded in-memory history for the admin endpoint.
    """

    def __init__(self, max_entries: int = 100):
        self._entries: Deque[Tuple[RetrievalDecision, str]] = deque(maxlen=max_entries)
        self._lock = Lock()

    def record(self, decision: RetrievalDecision, query: Optional[str]) -> None:
        safe_query = truncate_for_log(query, QUERY_LOG_LIMIT)
        reason = decision.fallback_reason.value if decision.fallback_reason else None

        log = getattr(logger, log_level_for(decision))
        log(
            "retrieval_decision",
            attempted=decision.attempted,
            used=decision.used,
            matched_docs=decision.matched_docs,
            top_score=decision.top_score,
            threshold=decision.threshold,
            fallback_reason=reason,
            retriever_version=decision.retriever_version,
            query=safe_query,
        )

        record_retrieval_decision(
            used=decision.used,
            reason=reason or "none",
            top_score=decision.top_score,
            attempted=decision.attempted,
        )

        with self._lock:
            self._entries.append((decision, safe_query))

    def recent(self, limit: Optional[int] = None) -> List[Tuple[RetrievalDecision, str]]:
        """Most recent decisions, newest first."""
        with self._lock:
            entries = list(self._entries)
        entries.reverse()
        if limit is not None:
            entries = entries[:max(limit, 0)]
        return entries
