"""Typed error taxonomy for the LLM gateway.

Every terminal failure surfaces as exactly one of these classes so that
usage metering and UI messaging can tell them apart:

  - CredentialError: stored secret could not be decrypted (or encrypted)
  - PayloadValidationError: caller sent a payload the endpoint kind can't use
  - ProviderTimeoutError: no response within the resolved timeout
  - ProviderTransportError: DNS / connection refused / reset
  - ProviderClientError: provider rejected the request (4xx)
  - ProviderServerError: provider-side failure (5xx, 408, 429)
  - MalformedResponseError: success status with an unparsable body
"""

from __future__ import annotations


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str, provider: str = "", endpoint_kind: str = ""):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.endpoint_kind = endpoint_kind


class CredentialError(GatewayError):
    """Raised when a provider credential cannot be used."""


class CredentialDecryptionError(CredentialError):
    """Raised when a stored ciphertext cannot be decrypted."""


class CredentialEncryptionError(CredentialError):
    """Raised when a credential cannot be encrypted for storage."""


class PayloadValidationError(GatewayError):
    """Raised when a payload is missing fields required by its endpoint kind."""

    def __init__(self, message: str, missing: list[str] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.missing = missing or []


class ProviderTimeoutError(GatewayError):
    """Raised when the final attempted step produced no response in time."""

    def __init__(self, message: str, elapsed_ms: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.elapsed_ms = elapsed_ms


class ProviderTransportError(GatewayError):
    """Raised on network-level failure of the final attempted step."""

    def __init__(self, message: str, cause: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.cause = cause


class ProviderResponseError(GatewayError):
    """Base for errors carrying a provider HTTP status and body."""

    def __init__(self, message: str, status_code: int = 0, body: str = "", **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code
        self.body = body


class ProviderClientError(ProviderResponseError):
    """Provider rejected the request as malformed or unauthorized. Never falls back."""


class ProviderServerError(ProviderResponseError):
    """Provider-side failure. Eligible for the fallback sequence."""


class MalformedResponseError(ProviderServerError):
    """Provider answered with a success status but the body could not be parsed."""
