"""LLM Client Gateway: orchestrator composing the gateway components.

Single entry point for outbound LLM calls:
  1. Coerces the endpoint kind and validates the payload
  2. Decrypts the stored credential just before the first attempt
  3. Resolves the timeout for the step's endpoint kind
  4. Builds the wire request via the Endpoint Adapter
  5. Dispatches it and classifies the outcome
  6. Walks the fallback sequence on retriable failures
  7. Returns a NormalizedResponse or raises one typed GatewayError

Usage:
    gateway = LlmGateway(fallback_steps=(FallbackStep(EndpointKind.RESPONSES),))
    response = await gateway.dispatch_request(profile, ciphertext, "chat_completions", payload)
"""

from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from typing import Any

from pydantic import SecretStr

from llmgate.core.encryption import CredentialStore, get_credential_store
from llmgate.core.logging import redact_secrets
from llmgate.core.metrics import record_attempt, record_request
from llmgate.gateway.adapters import coerce_endpoint_kind, get_adapter
from llmgate.gateway.dispatcher import (
    DispatchOutcome,
    ProviderFailure,
    RequestDispatcher,
    Success,
    TimedOut,
    TransportFailure,
    is_retriable,
)
from llmgate.gateway.errors import (
    CredentialDecryptionError,
    CredentialError,
    GatewayError,
    MalformedResponseError,
    ProviderClientError,
    ProviderServerError,
    ProviderTimeoutError,
    ProviderTransportError,
)
from llmgate.gateway.payload import MAX_PARAM_CORRECTIONS, strip_unsupported_params
from llmgate.gateway.policy import TimeoutPolicyResolver
from llmgate.gateway.types import (
    EndpointKind,
    FallbackStep,
    NormalizedResponse,
    ProviderProfile,
    RequestEnvelope,
    ResponseMeta,
)

logger = logging.getLogger(__name__)


class LlmGateway:
    """Main gateway orchestrator.

    Integrates:
      - CredentialStore: decrypts the stored provider key per call
      - TimeoutPolicyResolver: per-kind timeout with call-time override
      - EndpointAdapters: provider wire shapes
      - RequestDispatcher: the HTTP attempt itself
    """

    def __init__(
        self,
        credential_store: CredentialStore | None = None,
        policy_resolver: TimeoutPolicyResolver | None = None,
        dispatcher: RequestDispatcher | None = None,
        fallback_steps: Sequence[FallbackStep] = (),
    ):
        """
        Args:
            credential_store: Decrypts stored credentials (process-wide Fernet store by default)
            policy_resolver: Timeout resolver (reads settings and os.environ by default)
            dispatcher: HTTP dispatcher (opens a client per attempt by default)
            fallback_steps: Ordered alternates tried after a retriable failure
        """
        self._credential_store = credential_store or get_credential_store()
        self._policy = policy_resolver or TimeoutPolicyResolver()
        self._dispatcher = dispatcher or RequestDispatcher()
        self._fallback_steps = tuple(fallback_steps)

    def _decrypt(self, profile: ProviderProfile, ciphertext: bytes | str | None) -> SecretStr | None:
        provider = profile.provider
        if not ciphertext:
            if provider.requires_api_key:
                raise CredentialError(f"No API key configured for {provider.value}", provider=provider.value)
            return None
        try:
            return SecretStr(self._credential_store.decrypt(ciphertext))
        except CredentialError as e:
            raise CredentialDecryptionError(
                f"Failed to decrypt API key for {provider.value}", provider=provider.value
            ) from e

    async def dispatch_request(
        self,
        profile: ProviderProfile,
        credential: bytes | str | None,
        endpoint_kind: EndpointKind | str,
        payload: dict[str, Any],
    ) -> NormalizedResponse:
        """Send one logical request, walking the fallback sequence if needed.

        Args:
            profile: Provider, base URL and model for the primary attempt
            credential: Stored ciphertext of the provider key (None for keyless providers)
            endpoint_kind: Wire-shape family of the primary attempt
            payload: Generic request payload (messages, sampling params, ...)

        Raises:
            CredentialError, PayloadValidationError: before any network call
            ProviderTimeoutError, ProviderTransportError, ProviderClientError,
            ProviderServerError, MalformedResponseError: terminal attempt outcome
        """
        kind = coerce_endpoint_kind(endpoint_kind)
        get_adapter(kind).validate_payload(payload)

        plan = [FallbackStep(kind)] + list(self._fallback_steps)
        start = time.monotonic()
        attempts = 0
        error: GatewayError | None = None

        for index, step in enumerate(plan):
            step_kind = coerce_endpoint_kind(step.endpoint_kind)
            step_profile = step.profile or profile
            adapter = get_adapter(step_kind)
            if index > 0:
                adapter.validate_payload(payload)

            secret = self._decrypt(step_profile, credential if step.profile is None else step.credential)
            step_payload = payload

            for _ in range(MAX_PARAM_CORRECTIONS + 1):
                timeout_ms = self._policy.resolve_timeout(step_kind)
                wire_request = adapter.build_wire_request(step_profile, secret, step_payload, timeout_ms)
                outcome = await self._dispatcher.dispatch(wire_request, adapter)
                attempts += 1
                record_attempt(step_profile.provider.value, step_kind.value, outcome.label, outcome.elapsed_ms)

                if not isinstance(outcome, ProviderFailure) or outcome.is_server_fault:
                    break
                stripped = strip_unsupported_params(step_payload, outcome.message)
                if stripped is step_payload:
                    break
                logger.info(
                    "%s rejected parameters %s, re-issuing without them",
                    step_profile.provider.value,
                    sorted(set(step_payload) - set(stripped)),
                )
                step_payload = stripped

            if isinstance(outcome, Success):
                elapsed_ms = int((time.monotonic() - start) * 1000)
                response = outcome.response
                response.meta = ResponseMeta(
                    provider=step_profile.provider,
                    endpoint_kind=step_kind,
                    elapsed_ms=elapsed_ms,
                    attempts=attempts,
                )
                record_request(step_profile.provider.value, step_kind.value, outcome.label)
                logger.info(
                    "%s %s succeeded in %dms (%d attempt(s))",
                    step_profile.provider.value,
                    step_kind.value,
                    elapsed_ms,
                    attempts,
                    extra={
                        "provider": step_profile.provider.value,
                        "endpoint_kind": step_kind.value,
                        "elapsed_ms": elapsed_ms,
                        "outcome": outcome.label,
                    },
                )
                return response

            error = _outcome_error(outcome, step_profile, step_kind)
            if not is_retriable(outcome):
                break

            if index + 1 < len(plan):
                next_step = plan[index + 1]
                next_profile = next_step.profile or profile
                logger.warning(
                    "%s %s failed (%s), falling back to %s %s",
                    step_profile.provider.value,
                    step_kind.value,
                    outcome.label,
                    next_profile.provider.value,
                    EndpointKind(next_step.endpoint_kind).value,
                )

        record_request(error.provider, error.endpoint_kind, outcome.label)
        logger.error(
            "LLM request failed after %d attempt(s): %s",
            attempts,
            error.message,
            extra={"provider": error.provider, "endpoint_kind": error.endpoint_kind, "outcome": outcome.label},
        )
        raise error

    async def send(
        self, profile: ProviderProfile, credential: bytes | str | None, envelope: RequestEnvelope
    ) -> NormalizedResponse:
        """Send a prepared ``RequestEnvelope``; same semantics as ``dispatch_request``."""
        return await self.dispatch_request(profile, credential, envelope.endpoint_kind, envelope.payload)


def _outcome_error(outcome: DispatchOutcome, profile: ProviderProfile, kind: EndpointKind) -> GatewayError:
    """Map a failed attempt to its typed error."""
    provider = profile.provider.value
    context = {"provider": provider, "endpoint_kind": kind.value}

    if isinstance(outcome, TimedOut):
        return ProviderTimeoutError(
            f"{provider} request timed out after {outcome.elapsed_ms}ms", elapsed_ms=outcome.elapsed_ms, **context
        )
    if isinstance(outcome, TransportFailure):
        return ProviderTransportError(f"{provider} request failed: {outcome.cause}", cause=outcome.cause, **context)

    body = redact_secrets(outcome.body)
    if outcome.is_malformed:
        return MalformedResponseError(
            f"{provider} returned an unparsable response", status_code=outcome.status_code, body=body, **context
        )
    message = f"{provider} error ({outcome.status_code}): {redact_secrets(outcome.message)}"
    if outcome.is_server_fault:
        return ProviderServerError(message, status_code=outcome.status_code, body=body, **context)
    return ProviderClientError(message, status_code=outcome.status_code, body=body, **context)
