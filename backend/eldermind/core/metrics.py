"""
Prometheus metrics collection module.

Metrics Categories:
- RED Metrics: Rate, Errors, Duration
- Lore Retrieval Metrics: gating decisions, top scores, retrieval latency
- LLM Metrics: request latency, errors, token usage
- Resource Metrics: CPU, memory

All metrics follow Prometheus naming conventions:
- Counters: _total suffix
- Histograms: _seconds suffix for duration
- Gauges: No special suffix
"""
import psutil
from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    REGISTRY,
    CONTENT_TYPE_LATEST,
)

from eldermind.core.logging import get_logger

logger = get_logger(__name__)

registry = REGISTRY

# ============================================================================
# RED METRICS - Rate, Errors, Duration
# ============================================================================

http_requests_total = Counter(
    "http_requests_total",
    "Total number of HTTP requests",
    ["method", "endpoint", "status"],
    registry=registry,
)

http_errors_total = Counter(
    "http_errors_total",
    "Total number of HTTP errors",
    ["method", "endpoint", "status_code"],
    registry=registry,
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "endpoint"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
    registry=registry,
)

# ============================================================================
# LORE RETRIEVAL METRICS
# ============================================================================

lore_retrieval_decisions_total = Counter(
    "lore_retrieval_decisions_total",
    "Total number of retrieval gating decisions",
    ["used", "reason"],  # reason is "none" when evidence was used
    registry=registry,
)

lore_retrieval_top_score = Histogram(
    "lore_retrieval_top_score",
    "Distribution of the highest keyword score per attempted retrieval",
    buckets=[0.0, 0.15, 1.0, 2.0, 3.0, 5.0, 8.0, 13.0, 21.0],
    registry=registry,
)

lore_retrieval_latency_seconds = Histogram(
    "lore_retrieval_latency_seconds",
    "Keyword retrieval latency in seconds",
    buckets=[0.0005, 0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
    registry=registry,
)

lore_corpus_documents = Gauge(
    "lore_corpus_documents",
    "Number of documents in the loaded lore corpus",
    registry=registry,
)

# ============================================================================
# LLM METRICS
# ============================================================================

llm_requests_total = Counter(
    "llm_requests_total",
    "Total number of LLM requests (including retries)",
    ["agent", "model"],
    registry=registry,
)

llm_request_duration_seconds = Histogram(
    "llm_request_duration_seconds",
    "LLM request latency in seconds",
    ["agent", "model"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 30.0, 60.0],
    registry=registry,
)

llm_errors_total = Counter(
    "llm_errors_total",
    "Total number of LLM errors",
    ["agent", "error_type"],
    registry=registry,
)

llm_tokens_total = Counter(
    "llm_tokens_total",
    "Total number of LLM tokens",
    ["agent", "model", "direction"],  # direction: "prompt" | "completion"
    registry=registry,
)

# ============================================================================
# RESOURCE METRICS
# ============================================================================

system_cpu_usage_percent = Gauge(
    "system_cpu_usage_percent",
    "System CPU usage percentage",
    registry=registry,
)

system_memory_usage_bytes = Gauge(
    "system_memory_usage_bytes",
    "System memory usage in bytes",
    registry=registry,
)


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def normalize_endpoint(path: str) -> str:
    """
    Normalize endpoint path for metrics.

    Examples:
        /api/chat?include_sources=true -> /api/chat
        /health/ -> /health
    """
    if "?" in path:
        path = path.split("?")[0]
    if len(path) > 1 and path.endswith("/"):
        path = path.rstrip("/")
    return path


def record_http_request(
    method: str,
    endpoint: str,
    status_code: int,
    duration_seconds: float,
) -> None:
    """
    Record HTTP request metrics (RED metrics).

    Args:
        method: HTTP method (GET, POST, etc.)
        endpoint: Request path
        status_code: HTTP status code
        duration_seconds: Request duration in seconds
    """
    normalized_endpoint = normalize_endpoint(endpoint)

    http_requests_total.labels(
        method=method,
        endpoint=normalized_endpoint,
        status=str(status_code),
    ).inc()

    if status_code >= 400:
        http_errors_total.labels(
            method=method,
            endpoint=normalized_endpoint,
            status_code=str(status_code),
        ).inc()

    http_request_duration_seconds.labels(
        method=method,
        endpoint=normalized_endpoint,
    ).observe(duration_seconds)


def record_retrieval_decision(used: bool, reason: str, top_score: float, attempted: bool) -> None:
    """
    Record a retrieval gating decision.

    Args:
        used: Whether evidence was injected
        reason: Fallback reason value, or "none" when evidence was used
        top_score: Highest match score (0.0 when nothing was scored)
        attempted: Whether retrieval ran at all; only attempted retrievals feed the score histogram
    """
    lore_retrieval_decisions_total.labels(used=str(used).lower(), reason=reason).inc()
    if attempted:
        lore_retrieval_top_score.observe(top_score)


def record_retrieval_latency(duration_seconds: float) -> None:
    """Record keyword retrieval latency."""
    lore_retrieval_latency_seconds.observe(duration_seconds)


def set_corpus_size(size: int) -> None:
    """Publish the loaded corpus size."""
    lore_corpus_documents.set(size)


def record_llm_request(agent: str, model: str, duration_seconds: float) -> None:
    """Record a single LLM HTTP attempt."""
    llm_requests_total.labels(agent=agent, model=model).inc()
    llm_request_duration_seconds.labels(agent=agent, model=model).observe(duration_seconds)


def record_llm_error(agent: str, error_type: str) -> None:
    """
    Record an LLM error.

    Args:
        agent: Logical caller ("lore", "chat")
        error_type: e.g. "timeout", "http_error", "missing_api_key", "circuit_open"
    """
    llm_errors_total.labels(agent=agent, error_type=error_type).inc()


def record_llm_tokens(agent: str, model: str, prompt_tokens: int, completion_tokens: int) -> None:
    """Record token usage reported by the LLM API."""
    if prompt_tokens:
        llm_tokens_total.labels(agent=agent, model=model, direction="prompt").inc(prompt_tokens)
    if completion_tokens:
        llm_tokens_total.labels(agent=agent, model=model, direction="completion").inc(completion_tokens)


def update_resource_metrics() -> None:
    """
    Update system resource metrics (CPU, memory).

    Called on-demand when metrics are scraped.
    """
    try:
        cpu_percent = psutil.cpu_percent(interval=None)
        system_cpu_usage_percent.set(cpu_percent)

        memory = psutil.virtual_memory()
        system_memory_usage_bytes.set(memory.used)
    except Exception as e:
        logger.warning(
            "metrics_resource_update_failed",
            error=str(e),
            error_type=type(e).__name__,
        )


def get_metrics() -> bytes:
    """Get Prometheus metrics in text format."""
    update_resource_metrics()
    return generate_latest(registry)


def get_metrics_content_type() -> str:
    """Get content type for metrics endpoint."""
    return CONTENT_TYPE_LATEST
