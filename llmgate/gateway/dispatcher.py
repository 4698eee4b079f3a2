"""Request Dispatcher: performs one outbound HTTP attempt.

Sends a WireRequest with httpx and classifies what happened into exactly one
DispatchOutcome. Nothing is raised for provider-side problems; the gateway
decides what an outcome means.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass

import httpx

from llmgate.core.config import settings
from llmgate.core.logging import redact_secrets
from llmgate.gateway.adapters import BaseEndpointAdapter
from llmgate.gateway.errors import MalformedResponseError
from llmgate.gateway.normalizer import extract_error_message
from llmgate.gateway.types import NormalizedResponse, WireRequest

logger = logging.getLogger(__name__)

# Status reported for a success response whose body could not be parsed
MALFORMED_RESPONSE_STATUS = 0

# 4xx statuses that describe provider load rather than a bad request
_RETRIABLE_CLIENT_STATUSES = frozenset({408, 429})


# ---------------------------------------------------------------------------
# Outcomes
# ---------------------------------------------------------------------------


@dataclass
class Success:
    response: NormalizedResponse
    elapsed_ms: int = 0

    label = "success"


@dataclass
class TimedOut:
    elapsed_ms: int = 0

    label = "timeout"


@dataclass
class TransportFailure:
    cause: str
    elapsed_ms: int = 0

    label = "transport_error"


@dataclass
class ProviderFailure:
    status_code: int
    body: str = ""
    elapsed_ms: int = 0

    @property
    def is_malformed(self) -> bool:
        return self.status_code == MALFORMED_RESPONSE_STATUS

    @property
    def is_server_fault(self) -> bool:
        return self.is_malformed or self.status_code >= 500 or self.status_code in _RETRIABLE_CLIENT_STATUSES

    @property
    def message(self) -> str:
        return extract_error_message(self.body)

    @property
    def label(self) -> str:
        if self.is_malformed:
            return "malformed"
        return "server_error" if self.is_server_fault else "client_error"


DispatchOutcome = Success | TimedOut | TransportFailure | ProviderFailure


def is_retriable(outcome: DispatchOutcome) -> bool:
    """Whether the fallback sequence may continue after this outcome."""
    if isinstance(outcome, (TimedOut, TransportFailure)):
        return True
    if isinstance(outcome, ProviderFailure):
        return outcome.is_server_fault
    return False


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


class RequestDispatcher:
    """Sends wire requests with httpx.

    Args:
        client: Shared AsyncClient (its pool is reused across attempts). When
            omitted a short-lived client is opened for every attempt.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client

    async def _send(self, wire_request: WireRequest, timeout: httpx.Timeout) -> httpx.Response:
        kwargs = {"headers": wire_request.headers, "json": wire_request.json, "timeout": timeout}
        if self._client is not None:
            return await self._client.request(wire_request.method, wire_request.url, **kwargs)
        async with httpx.AsyncClient(timeout=timeout) as client:
            return await client.request(wire_request.method, wire_request.url, **kwargs)

    async def dispatch(self, wire_request: WireRequest, adapter: BaseEndpointAdapter) -> DispatchOutcome:
        seconds = wire_request.timeout_ms / 1000
        start = time.monotonic()

        logger.debug("%s %s (timeout=%sms)", wire_request.method, wire_request.url, wire_request.timeout_ms)
        if settings.log_payloads:
            logger.debug("Request body: %s", wire_request.json)

        try:
            # httpx bounds each phase; wait_for bounds the whole exchange
            resp = await asyncio.wait_for(self._send(wire_request, httpx.Timeout(seconds)), timeout=seconds)
        except (httpx.TimeoutException, asyncio.TimeoutError):
            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.warning("%s timed out after %dms", wire_request.url, elapsed_ms)
            return TimedOut(elapsed_ms=elapsed_ms)
        except httpx.RequestError as e:
            elapsed_ms = int((time.monotonic() - start) * 1000)
            cause = redact_secrets(f"{type(e).__name__}: {e}")
            logger.warning("%s transport failure: %s", wire_request.url, cause)
            return TransportFailure(cause=cause, elapsed_ms=elapsed_ms)

        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not resp.is_success:
            logger.warning("%s returned HTTP %d", wire_request.url, resp.status_code)
            return ProviderFailure(status_code=resp.status_code, body=resp.text, elapsed_ms=elapsed_ms)

        try:
            normalized = adapter.parse_wire_response(resp.content)
        except MalformedResponseError as e:
            logger.warning("%s: %s", wire_request.url, e)
            return ProviderFailure(status_code=MALFORMED_RESPONSE_STATUS, body=resp.text, elapsed_ms=elapsed_ms)

        return Success(response=normalized, elapsed_ms=elapsed_ms)
