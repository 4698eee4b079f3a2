"""Prometheus metrics for the LLM gateway.

Labels are limited to non-sensitive fields: provider, endpoint kind, outcome.
"""

from prometheus_client import Counter, Histogram, Info, generate_latest

# --- Metrics ---

APP_INFO = Info("llmgate", "LLM provider request gateway info")
APP_INFO.info({"version": "1.0.0", "name": "llmgate"})

ATTEMPT_COUNT = Counter(
    "llm_gateway_attempts_total",
    "Outbound provider calls, one per dispatch attempt",
    ["provider", "endpoint_kind", "outcome"],
)

REQUEST_COUNT = Counter(
    "llm_gateway_requests_total",
    "Gateway requests by terminal outcome",
    ["provider", "endpoint_kind", "outcome"],
)

ATTEMPT_DURATION = Histogram(
    "llm_gateway_attempt_duration_seconds",
    "Provider round-trip duration in seconds",
    ["provider", "endpoint_kind"],
    buckets=[0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60, 120],
)


def record_attempt(provider: str, endpoint_kind: str, outcome: str, elapsed_ms: int) -> None:
    ATTEMPT_COUNT.labels(provider=provider, endpoint_kind=endpoint_kind, outcome=outcome).inc()
    ATTEMPT_DURATION.labels(provider=provider, endpoint_kind=endpoint_kind).observe(elapsed_ms / 1000)


def record_request(provider: str, endpoint_kind: str, outcome: str) -> None:
    REQUEST_COUNT.labels(provider=provider, endpoint_kind=endpoint_kind, outcome=outcome).inc()


def metrics_text() -> bytes:
    """Render all metrics in the Prometheus exposition format."""
    return generate_latest()
