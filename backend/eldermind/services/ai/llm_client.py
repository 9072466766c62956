"""
Async LLM client for an OpenAI-compatible /chat/completions API.

Design constraints:
- No provider SDKs: plain httpx against an OpenAI-compatible API
- Failures are classified, never swallowed:
    retryable -> timeouts, transport errors, HTTP 429 and 5xx, open circuit
    fatal     -> missing API key, other HTTP 4xx, malformed response body
- Retryable failures are retried up to `max_retries` times with linear
  backoff, then surface as LLMGatewayError(retryable=True)
- A circuit breaker stops hammering the API during sustained failure
"""
import asyncio
import time
from typing import Any, Dict, List, Optional

import httpx

from eldermind.core.circuit_breaker import CircuitBreaker, CircuitBreakerOpenError
from eldermind.core.config import Settings
from eldermind.core.logging import get_logger
from eldermind.core.metrics import (
    record_llm_error,
    record_llm_request,
    record_llm_tokens,
)
from eldermind.core.tracing import get_tracer, record_exception, set_span_attribute

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})


class LLMGatewayError(Exception):
    """Raised when the LLM call failed for good."""

    def __init__(self, message: str, retryable: bool, status_code: Optional[int] = None):
        super().__init__(message)
        self.retryable = retryable
        self.status_code = status_code


class _RetryableStatusError(Exception):
    """Raised inside the circuit breaker so retryable statuses count as failures."""

    def __init__(self, response: httpx.Response):
        super().__init__(f"HTTP {response.status_code}")
        self.response = response


class LLMClient:
    """Async HTTP client for chat completions."""

    def __init__(
        self,
        api_base: str,
        api_key: Optional[str],
        model: str,
        timeout_seconds: float = 30.0,
        max_retries: int = 2,
        max_tokens: int = 800,
        temperature: float = 0.3,
        backoff_seconds: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.backoff_seconds = backoff_seconds
        self._transport = transport

        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            name="llm",
            failure_threshold=0.5,
            time_window_seconds=60,
            open_duration_seconds=30,
        )

    async def _post(self, path: str, json_payload: Dict[str, Any]) -> httpx.Response:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        url = f"{self.api_base}{path}"
        async with httpx.AsyncClient(timeout=self.timeout_seconds, transport=self._transport) as client:
            response = await client.post(url, headers=headers, json=json_payload)
        if response.status_code in RETRYABLE_STATUS_CODES:
            raise _RetryableStatusError(response)
        return response

    async def chat(
        self,
        agent: str,
        messages: List[Dict[str, str]],
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Call the chat completion endpoint.

        Args:
            agent: Logical caller name ("lore", "chat") for metrics and logs
            messages: OpenAI-style chat messages
            max_tokens: Completion budget (defaults to the client setting)

        Returns:
            Raw JSON response from the API.

        Raises:
            LLMGatewayError: once retries are exhausted or on a fatal failure
        """
        if not self.api_key:
            record_llm_error(agent, "missing_api_key")
            raise LLMGatewayError("LLM API key not configured", retryable=False)

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "max_tokens": max_tokens or self.max_tokens,
        }

        tracer = get_tracer()
        with tracer.start_as_current_span("llm.chat"):
            set_span_attribute("llm.agent", agent)
            set_span_attribute("llm.model", self.model)
            try:
                response = await self._post_with_retries(agent, payload)
            except LLMGatewayError as e:
                record_exception(e)
                raise

            if response.status_code >= 400:
                record_llm_error(agent, "http_error")
                logger.warning("llm_http_error", agent=agent, status_code=response.status_code)
                raise LLMGatewayError(
                    f"LLM API rejected the request with HTTP {response.status_code}",
                    retryable=False,
                    status_code=response.status_code,
                )

            try:
                data = response.json()
            except ValueError as e:
                record_llm_error(agent, "malformed_response")
                raise LLMGatewayError("LLM API returned a non-JSON body", retryable=False) from e
            if not isinstance(data, dict):
                record_llm_error(agent, "malformed_response")
                raise LLMGatewayError("LLM API returned an unexpected JSON body", retryable=False)

            usage = data.get("usage") or {}
            prompt_tokens = int(usage.get("prompt_tokens") or 0)
            completion_tokens = int(usage.get("completion_tokens") or 0)
            record_llm_tokens(agent, self.model, prompt_tokens, completion_tokens)
            set_span_attribute("llm.prompt_tokens", prompt_tokens)
            set_span_attribute("llm.completion_tokens", completion_tokens)
            return data

    async def _post_with_retries(self, agent: str, payload: Dict[str, Any]) -> httpx.Response:
        attempts = self.max_retries + 1
        last_error = "unknown"
        last_status: Optional[int] = None

        for attempt in range(1, attempts + 1):
            start = time.perf_counter()
            try:
                return await self.circuit_breaker.call_async(
                    self._post,
                    "/chat/completions",
                    json_payload=payload,
                )
            except CircuitBreakerOpenError as exc:
                record_llm_error(agent, "circuit_open")
                logger.warning("llm_circuit_open", agent=agent)
                raise LLMGatewayError("LLM circuit breaker is open", retryable=True) from exc
            except httpx.TimeoutException as exc:
                last_error, last_status = "timeout", None
                record_llm_error(agent, "timeout")
                logger.warning("llm_timeout", agent=agent, attempt=attempt, error=str(exc))
            except httpx.TransportError as exc:
                last_error, last_status = "transport_error", None
                record_llm_error(agent, "transport_error")
                logger.warning(
                    "llm_transport_error",
                    agent=agent,
                    attempt=attempt,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
            except _RetryableStatusError as exc:
                last_error, last_status = f"http_{exc.response.status_code}", exc.response.status_code
                record_llm_error(agent, "retryable_status")
                logger.warning(
                    "llm_retryable_status",
                    agent=agent,
                    attempt=attempt,
                    status_code=exc.response.status_code,
                )
            finally:
                record_llm_request(agent, self.model, time.perf_counter() - start)

            if attempt < attempts and self.backoff_seconds > 0:
                await asyncio.sleep(self.backoff_seconds * attempt)

        logger.error("llm_retries_exhausted", agent=agent, attempts=attempts, last_error=last_error)
        raise LLMGatewayError(
            f"LLM call failed after {attempts} attempts ({last_error})",
            retryable=True,
            status_code=last_status,
        )


def build_llm_client(settings: Settings) -> LLMClient:
    """Construct the LLM client from resolved settings."""
    return LLMClient(
        api_base=settings.llm_api_base,
        api_key=settings.llm_api_key,
        model=settings.llm_model,
        timeout_seconds=settings.llm_timeout_seconds,
        max_retries=settings.llm_max_retries,
        max_tokens=settings.llm_max_tokens,
        temperature=settings.llm_temperature,
    )
