"""
Middleware for trace ID propagation and request context management.

This middleware:
- Takes the trace ID from X-Trace-ID / X-Request-ID, an incoming W3C
  traceparent header, the active OpenTelemetry span, or generates a new one
- Generates a unique request ID per request
- Binds both to the logging context for the duration of the request
- Records HTTP RED metrics and request start/completion logs
- Echoes X-Trace-ID and X-Request-ID in response headers
"""
import time
from typing import Callable, Dict, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from .logging import (
    set_trace_id,
    set_request_id,
    generate_trace_id,
    generate_request_id,
    get_logger,
)
from .metrics import record_http_request
from .tracing import (
    extract_trace_context,
    get_trace_id_from_context,
    record_exception,
    set_span_attribute,
)

logger = get_logger(__name__)


def _otel_to_uuid(otel_trace_id: str) -> str:
    if len(otel_trace_id) != 32:
        return otel_trace_id
    return (
        f"{otel_trace_id[0:8]}-{otel_trace_id[8:12]}-{otel_trace_id[12:16]}-"
        f"{otel_trace_id[16:20]}-{otel_trace_id[20:32]}"
    )


def _traceparent_trace_id(headers: Dict[str, str]) -> Optional[str]:
    context = extract_trace_context(headers)
    traceparent = context.get("traceparent") if context else None
    if not traceparent:
        return None
    # version-trace_id-span_id-flags
    parts = traceparent.split("-")
    return parts[1] if len(parts) == 4 else None


class TraceIDMiddleware(BaseHTTPMiddleware):
    """
    Bind trace and request IDs to every request.

    Priority for the trace ID: X-Trace-ID > X-Request-ID > W3C traceparent >
    OpenTelemetry span context > freshly generated UUID.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        trace_id = request.headers.get("X-Trace-ID") or request.headers.get("X-Request-ID")
        if not trace_id:
            headers_dict = dict(request.headers)
            otel_trace_id = _traceparent_trace_id(headers_dict) or get_trace_id_from_context()
            trace_id = _otel_to_uuid(otel_trace_id) if otel_trace_id else generate_trace_id()

        request_id = generate_request_id()
        set_trace_id(trace_id)
        set_request_id(request_id)

        start_time = time.time()
        request.state.start_time = start_time
        set_span_attribute("eldermind.request_id", request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_host=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=response.status_code,
                duration_seconds=process_time,
            )
            logger.info(
                "request_completed",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                latency_ms=int(process_time * 1000),
            )

            response.headers["X-Trace-ID"] = trace_id
            response.headers["X-Request-ID"] = request_id
            return response

        except Exception as e:
            process_time = time.time() - start_time
            record_exception(e)
            record_http_request(
                method=request.method,
                endpoint=request.url.path,
                status_code=500,
                duration_seconds=process_time,
            )
            logger.error(
                "request_failed",
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                latency_ms=int(process_time * 1000),
                exc_info=True,
            )
            raise
        finally:
            set_trace_id(None)
            set_request_id(None)
