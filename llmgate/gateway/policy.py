"""Timeout/Fallback Policy Resolver.

Primary endpoint kinds get ``LLM_REQUEST_TIMEOUT_MS``; fallback-classified
kinds (/completions, /responses) get ``LLM_FALLBACK_DEFAULT_TIMEOUT_MS`` unless
the ``LLM_FALLBACK_TIMEOUT_MS`` environment override holds a positive integer.
The override is read on every call so operators can change it without a restart.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass

from llmgate.core.config import Settings, settings as default_settings
from llmgate.gateway.types import EndpointKind

logger = logging.getLogger(__name__)

FALLBACK_TIMEOUT_ENV = "LLM_FALLBACK_TIMEOUT_MS"


@dataclass(frozen=True)
class TimeoutPolicy:
    default_ms: int
    fallback_override_ms: int | None = None

    @property
    def effective_ms(self) -> int:
        if self.fallback_override_ms is not None:
            return self.fallback_override_ms
        return self.default_ms


def parse_timeout_ms(raw: str | None) -> int | None:
    """Parse a millisecond value; None unless it is a positive integer."""
    if raw is None:
        return None
    text = raw.strip()
    if not (text.isascii() and text.isdigit()):
        return None
    value = int(text)
    return value if value > 0 else None


class TimeoutPolicyResolver:
    """Computes the effective timeout for one endpoint kind."""

    def __init__(self, settings: Settings | None = None, environ: Mapping[str, str] | None = None):
        self._settings = settings or default_settings
        self._environ = os.environ if environ is None else environ

    def _fallback_override(self) -> int | None:
        raw = self._environ.get(FALLBACK_TIMEOUT_ENV)
        if raw is None:
            return None
        value = parse_timeout_ms(raw)
        if value is None:
            logger.debug("Ignoring %s=%r: not a positive integer", FALLBACK_TIMEOUT_ENV, raw)
        return value

    def policy_for(self, endpoint_kind: EndpointKind) -> TimeoutPolicy:
        kind = EndpointKind(endpoint_kind)
        if not kind.is_fallback:
            return TimeoutPolicy(default_ms=self._settings.llm_request_timeout_ms)
        return TimeoutPolicy(
            default_ms=self._settings.llm_fallback_default_timeout_ms,
            fallback_override_ms=self._fallback_override(),
        )

    def resolve_timeout(self, endpoint_kind: EndpointKind) -> int:
        return self.policy_for(endpoint_kind).effective_ms
