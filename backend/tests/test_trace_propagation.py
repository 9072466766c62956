"""
Tests for trace ID propagation through the middleware and tracing helpers.
"""
from fastapi import FastAPI
from fastapi.testclient import TestClient

from eldermind.core.logging import get_trace_id
from eldermind.core.middleware import TraceIDMiddleware, _otel_to_uuid
from eldermind.core.tracing import extract_trace_context

TRACEPARENT = "00-4bf92f3577b34da6a3ce929d0e0e4736-00f067aa0ba902b7-01"


def build_app():
    app = FastAPI()
    app.add_middleware(TraceIDMiddleware)

    @app.get("/echo")
    async def echo():
        return {"trace_id": get_trace_id()}

    return app


def test_incoming_trace_id_is_propagated():
    client = TestClient(build_app())

    response = client.get("/echo", headers={"X-Trace-ID": "lore-trace-1"})

    assert response.json()["trace_id"] == "lore-trace-1"
    assert response.headers["X-Trace-ID"] == "lore-trace-1"
    assert response.headers["X-Request-ID"]


def test_request_id_header_used_as_trace_id():
    client = TestClient(build_app())

    response = client.get("/echo", headers={"X-Request-ID": "client-req"})

    assert response.headers["X-Trace-ID"] == "client-req"
    # A fresh request ID is always generated
    assert response.headers["X-Request-ID"] != "client-req"


def test_trace_id_generated_when_absent():
    client = TestClient(build_app())

    first = client.get("/echo").headers["X-Trace-ID"]
    second = client.get("/echo").headers["X-Trace-ID"]

    assert first and second and first != second


def test_context_cleared_after_request():
    client = TestClient(build_app())
    client.get("/echo", headers={"X-Trace-ID": "lore-trace-2"})

    assert get_trace_id() is None


def test_otel_trace_id_formatted_as_uuid():
    assert _otel_to_uuid("4bf92f3577b34da6a3ce929d0e0e4736") == "4bf92f35-77b3-4da6-a3ce-929d0e0e4736"
    assert _otel_to_uuid("short") == "short"


def test_extract_trace_context():
    context = extract_trace_context({"traceparent": TRACEPARENT})

    assert context is not None
    assert context["traceparent"] == TRACEPARENT


def test_traceparent_header_sets_trace_id():
    client = TestClient(build_app())

    response = client.get("/echo", headers={"traceparent": TRACEPARENT})

    assert response.headers["X-Trace-ID"] == "4bf92f35-77b3-4da6-a3ce-929d0e0e4736"
    assert response.json()["trace_id"] == "4bf92f35-77b3-4da6-a3ce-929d0e0e4736"


def test_explicit_trace_id_beats_traceparent():
    client = TestClient(build_app())

    response = client.get("/echo", headers={"traceparent": TRACEPARENT, "X-Trace-ID": "lore-trace-3"})

    assert response.headers["X-Trace-ID"] == "lore-trace-3"


def test_malformed_traceparent_is_ignored():
    client = TestClient(build_app())

    response = client.get("/echo", headers={"traceparent": "not-a-traceparent"})

    assert response.headers["X-Trace-ID"]
    assert len(response.headers["X-Trace-ID"]) == 36
