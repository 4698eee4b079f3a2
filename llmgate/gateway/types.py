"""Core types and DTOs for the LLM provider gateway."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ProviderName(str, Enum):
    """Supported LLM providers."""

    OPENAI = "openai"
    GROQ = "groq"
    TOGETHER = "together"
    PERPLEXITY = "perplexity"
    MISTRAL = "mistral"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    COHERE = "cohere"
    OLLAMA = "ollama"
    LMSTUDIO = "lmstudio"
    TEXTGEN = "textgen"
    CUSTOM = "custom"

    @property
    def is_local(self) -> bool:
        return self in _LOCAL_PROVIDERS

    @property
    def requires_api_key(self) -> bool:
        # custom endpoints send a key only when one is stored
        return not self.is_local and self is not ProviderName.CUSTOM


_LOCAL_PROVIDERS = frozenset({ProviderName.OLLAMA, ProviderName.LMSTUDIO, ProviderName.TEXTGEN})


class EndpointKind(str, Enum):
    """Wire-shape family of a provider endpoint."""

    CHAT_COMPLETIONS = "chat_completions"
    COMPLETIONS = "completions"
    RESPONSES = "responses"
    ANTHROPIC_MESSAGES = "anthropic_messages"
    GOOGLE_GENERATE_CONTENT = "google_generate_content"
    COHERE_CHAT = "cohere_chat"
    OLLAMA_CHAT = "ollama_chat"

    @property
    def path(self) -> str:
        return _ENDPOINT_PATHS[self]

    @property
    def is_fallback(self) -> bool:
        """Kinds normally reached as the non-primary path."""
        return self in _FALLBACK_KINDS


_ENDPOINT_PATHS: dict[EndpointKind, str] = {
    EndpointKind.CHAT_COMPLETIONS: "/chat/completions",
    EndpointKind.COMPLETIONS: "/completions",
    EndpointKind.RESPONSES: "/responses",
    EndpointKind.ANTHROPIC_MESSAGES: "/messages",
    EndpointKind.GOOGLE_GENERATE_CONTENT: "/models/{model}:generateContent",
    EndpointKind.COHERE_CHAT: "/chat",
    EndpointKind.OLLAMA_CHAT: "/api/chat",
}

_FALLBACK_KINDS = frozenset({EndpointKind.COMPLETIONS, EndpointKind.RESPONSES})

_DEFAULT_KINDS: dict[ProviderName, EndpointKind] = {
    ProviderName.ANTHROPIC: EndpointKind.ANTHROPIC_MESSAGES,
    ProviderName.GOOGLE: EndpointKind.GOOGLE_GENERATE_CONTENT,
    ProviderName.COHERE: EndpointKind.COHERE_CHAT,
    ProviderName.OLLAMA: EndpointKind.OLLAMA_CHAT,
}


def default_endpoint_kind(provider: ProviderName | str) -> EndpointKind:
    """Primary endpoint kind for a provider (OpenAI-compatible unless listed)."""
    return _DEFAULT_KINDS.get(ProviderName(provider), EndpointKind.CHAT_COMPLETIONS)


# ---------------------------------------------------------------------------
# Request side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderProfile:
    """One configured provider. Supplied by the caller for every call."""

    provider: ProviderName
    api_url: str
    model: str

    def __post_init__(self):
        # Accept plain strings from config rows
        object.__setattr__(self, "provider", ProviderName(self.provider))

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")


@dataclass(frozen=True)
class RequestEnvelope:
    endpoint_kind: EndpointKind
    payload: dict[str, Any]


@dataclass(frozen=True)
class FallbackStep:
    """An alternate (provider, endpoint kind) to try after a retriable failure.

    ``profile=None`` keeps the primary provider and its credential.
    """

    endpoint_kind: EndpointKind
    profile: ProviderProfile | None = None
    credential: bytes | None = field(default=None, repr=False)


@dataclass
class WireRequest:
    """Provider-specific HTTP request produced by an adapter."""

    method: str
    url: str
    headers: dict[str, str] = field(repr=False)
    json: dict[str, Any] = field(repr=False)
    timeout_ms: int = 30_000

    def redacted_headers(self) -> dict[str, str]:
        return {k: ("[REDACTED]" if k.lower() in _AUTH_HEADERS else v) for k, v in self.headers.items()}


_AUTH_HEADERS = frozenset({"authorization", "x-api-key", "x-goog-api-key"})


# ---------------------------------------------------------------------------
# Response side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Usage:
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class ResponseMeta:
    """Non-sensitive facts about how a response was obtained."""

    provider: ProviderName
    endpoint_kind: EndpointKind
    elapsed_ms: int = 0
    attempts: int = 1


@dataclass
class NormalizedResponse:
    """Provider-agnostic result shape.

    Equality ignores ``meta`` so that a response parsed from the wire compares
    equal to the one it was rendered from.
    """

    content: str
    model: str = ""
    finish_reason: str = ""
    usage: Usage | None = None
    meta: ResponseMeta | None = field(default=None, compare=False)

    def to_dict(self) -> dict:
        """Serialize to JSON-compatible dict for storage/API."""
        return {
            "content": self.content,
            "model": self.model,
            "finish_reason": self.finish_reason,
            "usage": (
                {
                    "input_tokens": self.usage.input_tokens,
                    "output_tokens": self.usage.output_tokens,
                    "total_tokens": self.usage.total_tokens,
                }
                if self.usage
                else None
            ),
            "provider": self.meta.provider.value if self.meta else None,
            "endpoint_kind": self.meta.endpoint_kind.value if self.meta else None,
            "elapsed_ms": self.meta.elapsed_ms if self.meta else None,
            "attempts": self.meta.attempts if self.meta else None,
        }
