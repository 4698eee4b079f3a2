"""Endpoint Adapters: wire-shape handling for each endpoint kind.

Each adapter validates a generic payload, translates it into the provider's
HTTP body, and parses the provider's response back into a NormalizedResponse.
Authentication headers depend on the provider, not the endpoint kind.

Kind-specific behaviors:
  - chat_completions: OpenAI-compatible chat (OpenAI, Groq, Together, Mistral, ...)
  - completions: legacy single-prompt endpoint, prompt derived from messages if needed
  - responses: single-shot Responses API, ``max_tokens`` → ``max_output_tokens``
  - anthropic_messages: system prompt lifted out of messages, x-api-key auth
  - google_generate_content: contents/parts shape, model in the URL path
  - cohere_chat: last message as ``message``, earlier ones as ``chat_history``
  - ollama_chat: non-streaming local chat, sampling options nested under ``options``
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from typing import Any

from pydantic import SecretStr

from llmgate.gateway.errors import MalformedResponseError, PayloadValidationError
from llmgate.gateway.normalizer import coerce_message_text, to_int
from llmgate.gateway.payload import sanitize_payload
from llmgate.gateway.types import (
    EndpointKind,
    NormalizedResponse,
    ProviderName,
    ProviderProfile,
    Usage,
    WireRequest,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 1000
DEFAULT_TEMPERATURE = 0.7
DEFAULT_TOP_P = 0.9

ANTHROPIC_VERSION = "2023-06-01"


class BaseEndpointAdapter(ABC):
    """Base class for all endpoint adapters."""

    kind: EndpointKind

    # --- request side -----------------------------------------------------

    def missing_fields(self, payload: dict[str, Any]) -> list[str]:
        messages = payload.get("messages")
        if not isinstance(messages, list):
            return ["messages"]
        return []

    def validate_payload(self, payload: Any) -> None:
        """Fail fast when the payload can't produce a well-formed request."""
        if not isinstance(payload, dict):
            raise PayloadValidationError(
                f"{self.kind.value} payload must be an object, got {type(payload).__name__}",
                endpoint_kind=self.kind.value,
            )
        missing = self.missing_fields(payload)
        if missing:
            raise PayloadValidationError(
                f"{self.kind.value} payload is missing required field(s): {', '.join(missing)}",
                missing=missing,
                endpoint_kind=self.kind.value,
            )

    def build_wire_request(
        self,
        profile: ProviderProfile,
        credential: SecretStr | None,
        payload: dict[str, Any],
        timeout_ms: int,
    ) -> WireRequest:
        self.validate_payload(payload)
        body = self.build_body(profile, sanitize_payload(payload))
        return WireRequest(
            method="POST",
            url=self.endpoint_url(profile),
            headers=self.auth_headers(profile.provider, credential),
            json=body,
            timeout_ms=timeout_ms,
        )

    def endpoint_url(self, profile: ProviderProfile) -> str:
        return profile.base_url + self.kind.path.format(model=profile.model)

    @staticmethod
    def auth_headers(provider: ProviderName, credential: SecretStr | None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if provider.is_local or credential is None:
            return headers

        secret = credential.get_secret_value()
        if not secret:
            return headers
        if provider is ProviderName.ANTHROPIC:
            headers["x-api-key"] = secret
            headers["anthropic-version"] = ANTHROPIC_VERSION
        elif provider is ProviderName.GOOGLE:
            headers["x-goog-api-key"] = secret
        else:
            headers["Authorization"] = f"Bearer {secret}"
        return headers

    @abstractmethod
    def build_body(self, profile: ProviderProfile, payload: dict[str, Any]) -> dict[str, Any]:
        """Translate a sanitized payload into the provider wire body."""
        ...

    # --- response side ----------------------------------------------------

    def parse_wire_response(self, raw: bytes | str | dict) -> NormalizedResponse:
        """Parse a success-status body. Raises MalformedResponseError."""
        data = raw
        if isinstance(raw, (bytes, str)):
            try:
                data = json.loads(raw)
            except (ValueError, UnicodeDecodeError) as e:
                raise MalformedResponseError(
                    f"{self.kind.value} response is not valid JSON", endpoint_kind=self.kind.value
                ) from e
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"{self.kind.value} response is not a JSON object", endpoint_kind=self.kind.value
            )
        try:
            return self._parse(data)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise MalformedResponseError(
                f"{self.kind.value} response is missing its content envelope", endpoint_kind=self.kind.value
            ) from e

    @abstractmethod
    def _parse(self, data: dict[str, Any]) -> NormalizedResponse: ...

    @abstractmethod
    def to_wire_response(self, response: NormalizedResponse) -> dict[str, Any]:
        """Render a NormalizedResponse in this kind's wire envelope."""
        ...


def _split_system(messages: list[dict]) -> tuple[str, list[dict]]:
    system = [m.get("content") or "" for m in messages if m.get("role") == "system"]
    rest = [m for m in messages if m.get("role") != "system"]
    return "\n\n".join(s for s in system if s), rest


def _messages_to_prompt(messages: list[dict]) -> str:
    return "\n\n".join(str(m.get("content") or "") for m in messages if m.get("content"))


# ---------------------------------------------------------------------------
# OpenAI-compatible chat completions
# ---------------------------------------------------------------------------


class ChatCompletionsAdapter(BaseEndpointAdapter):
    kind = EndpointKind.CHAT_COMPLETIONS

    def build_body(self, profile: ProviderProfile, payload: dict[str, Any]) -> dict[str, Any]:
        return {**payload, "model": profile.model}

    def _parse(self, data: dict[str, Any]) -> NormalizedResponse:
        choice = data["choices"][0]
        content = coerce_message_text(choice.get("message"))
        if not content and isinstance(choice.get("text"), str):
            content = choice["text"]
        if "message" not in choice and "text" not in choice:
            raise KeyError("message")

        usage = None
        if isinstance(data.get("usage"), dict):
            usage = Usage(
                input_tokens=to_int(data["usage"].get("prompt_tokens")),
                output_tokens=to_int(data["usage"].get("completion_tokens")),
            )
        return NormalizedResponse(
            content=content,
            model=data.get("model") or "",
            finish_reason=choice.get("finish_reason") or "",
            usage=usage,
        )

    def to_wire_response(self, response: NormalizedResponse) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "object": "chat.completion",
            "model": response.model,
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": response.content},
                    "finish_reason": response.finish_reason,
                }
            ],
        }
        if response.usage:
            wire["usage"] = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return wire


# ---------------------------------------------------------------------------
# Legacy completions (fallback path)
# ---------------------------------------------------------------------------


class CompletionsAdapter(BaseEndpointAdapter):
    kind = EndpointKind.COMPLETIONS

    def missing_fields(self, payload: dict[str, Any]) -> list[str]:
        if isinstance(payload.get("prompt"), (str, list)):
            return []
        if isinstance(payload.get("messages"), list):
            return []
        return ["prompt"]

    def build_body(self, profile: ProviderProfile, payload: dict[str, Any]) -> dict[str, Any]:
        body = {k: v for k, v in payload.items() if k != "messages"}
        if "prompt" not in body:
            body["prompt"] = _messages_to_prompt(payload.get("messages") or [])
        body["model"] = profile.model
        return body

    def _parse(self, data: dict[str, Any]) -> NormalizedResponse:
        choice = data["choices"][0]
        text = choice["text"]
        if not isinstance(text, str):
            raise TypeError("completion text is not a string")

        usage = None
        if isinstance(data.get("usage"), dict):
            usage = Usage(
                input_tokens=to_int(data["usage"].get("prompt_tokens")),
                output_tokens=to_int(data["usage"].get("completion_tokens")),
            )
        return NormalizedResponse(
            content=text,
            model=data.get("model") or "",
            finish_reason=choice.get("finish_reason") or "",
            usage=usage,
        )

    def to_wire_response(self, response: NormalizedResponse) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "object": "text_completion",
            "model": response.model,
            "choices": [{"index": 0, "text": response.content, "finish_reason": response.finish_reason}],
        }
        if response.usage:
            wire["usage"] = {
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return wire


# ---------------------------------------------------------------------------
# Responses API (fallback path)
# ---------------------------------------------------------------------------


class ResponsesAdapter(BaseEndpointAdapter):
    kind = EndpointKind.RESPONSES

    def missing_fields(self, payload: dict[str, Any]) -> list[str]:
        if isinstance(payload.get("input"), (str, list)):
            return []
        if isinstance(payload.get("messages"), list):
            return []
        return ["input"]

    def build_body(self, profile: ProviderProfile, payload: dict[str, Any]) -> dict[str, Any]:
        body = {k: v for k, v in payload.items() if k not in ("messages", "max_tokens")}
        if "input" not in body:
            body["input"] = [
                {"role": m.get("role") or "user", "content": m.get("content") or ""}
                for m in payload.get("messages") or []
            ]
        if "max_tokens" in payload and "max_output_tokens" not in body:
            body["max_output_tokens"] = payload["max_tokens"]
        body["model"] = profile.model
        return body

    def _parse(self, data: dict[str, Any]) -> NormalizedResponse:
        if isinstance(data.get("output_text"), str):
            content = data["output_text"]
        else:
            parts = []
            for item in data["output"]:
                if item.get("type") != "message":
                    continue
                for part in item.get("content") or []:
                    if part.get("type") in ("output_text", "text") and isinstance(part.get("text"), str):
                        parts.append(part["text"])
            content = "".join(parts)

        usage = None
        if isinstance(data.get("usage"), dict):
            usage = Usage(
                input_tokens=to_int(data["usage"].get("input_tokens")),
                output_tokens=to_int(data["usage"].get("output_tokens")),
            )
        return NormalizedResponse(
            content=content,
            model=data.get("model") or "",
            finish_reason=data.get("status") or "",
            usage=usage,
        )

    def to_wire_response(self, response: NormalizedResponse) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "object": "response",
            "model": response.model,
            "status": response.finish_reason,
            "output": [
                {
                    "type": "message",
                    "role": "assistant",
                    "content": [{"type": "output_text", "text": response.content}],
                }
            ],
            "output_text": response.content,
        }
        if response.usage:
            wire["usage"] = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.total_tokens,
            }
        return wire


# ---------------------------------------------------------------------------
# Anthropic Messages
# ---------------------------------------------------------------------------


class AnthropicMessagesAdapter(BaseEndpointAdapter):
    kind = EndpointKind.ANTHROPIC_MESSAGES

    def build_body(self, profile: ProviderProfile, payload: dict[str, Any]) -> dict[str, Any]:
        system, messages = _split_system(payload["messages"])
        body: dict[str, Any] = {
            "model": profile.model,
            "max_tokens": payload.get("max_tokens") or DEFAULT_MAX_TOKENS,
            "messages": messages,
            "temperature": payload.get("temperature", DEFAULT_TEMPERATURE),
        }
        if "top_p" in payload:
            body["top_p"] = payload["top_p"]
        if system:
            body["system"] = system
        return body

    def _parse(self, data: dict[str, Any]) -> NormalizedResponse:
        blocks = data["content"]
        text = "".join(b.get("text", "") for b in blocks if b.get("type", "text") == "text")

        usage = None
        if isinstance(data.get("usage"), dict):
            usage = Usage(
                input_tokens=to_int(data["usage"].get("input_tokens")),
                output_tokens=to_int(data["usage"].get("output_tokens")),
            )
        return NormalizedResponse(
            content=text,
            model=data.get("model") or "",
            finish_reason=data.get("stop_reason") or "",
            usage=usage,
        )

    def to_wire_response(self, response: NormalizedResponse) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "type": "message",
            "role": "assistant",
            "model": response.model,
            "content": [{"type": "text", "text": response.content}],
            "stop_reason": response.finish_reason,
        }
        if response.usage:
            wire["usage"] = {
                "input_tokens": response.usage.input_tokens,
                "output_tokens": response.usage.output_tokens,
            }
        return wire


# ---------------------------------------------------------------------------
# Google generateContent
# ---------------------------------------------------------------------------


class GoogleGenerateContentAdapter(BaseEndpointAdapter):
    kind = EndpointKind.GOOGLE_GENERATE_CONTENT

    def build_body(self, profile: ProviderProfile, payload: dict[str, Any]) -> dict[str, Any]:
        system, messages = _split_system(payload["messages"])
        body: dict[str, Any] = {
            "contents": [
                {
                    "role": "model" if m.get("role") == "assistant" else "user",
                    "parts": [{"text": m.get("content") or ""}],
                }
                for m in messages
            ],
            "generationConfig": {
                "maxOutputTokens": payload.get("max_tokens") or DEFAULT_MAX_TOKENS,
                "temperature": payload.get("temperature", DEFAULT_TEMPERATURE),
                "topP": payload.get("top_p", DEFAULT_TOP_P),
            },
        }
        # System instruction (separate from contents in Gemini API)
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        return body

    def _parse(self, data: dict[str, Any]) -> NormalizedResponse:
        candidates = data.get("candidates")
        if not candidates:
            # Prompt blocked before generation: a valid answer with no content
            block_reason = data["promptFeedback"]["blockReason"]
            return NormalizedResponse(content="", model=data.get("modelVersion") or "", finish_reason=block_reason)

        candidate = candidates[0]
        parts = (candidate.get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts if "text" in p)

        usage = None
        if isinstance(data.get("usageMetadata"), dict):
            usage = Usage(
                input_tokens=to_int(data["usageMetadata"].get("promptTokenCount")),
                output_tokens=to_int(data["usageMetadata"].get("candidatesTokenCount")),
            )
        return NormalizedResponse(
            content=text,
            model=data.get("modelVersion") or "",
            finish_reason=candidate.get("finishReason") or "",
            usage=usage,
        )

    def to_wire_response(self, response: NormalizedResponse) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "candidates": [
                {
                    "content": {"role": "model", "parts": [{"text": response.content}]},
                    "finishReason": response.finish_reason,
                }
            ],
            "modelVersion": response.model,
        }
        if response.usage:
            wire["usageMetadata"] = {
                "promptTokenCount": response.usage.input_tokens,
                "candidatesTokenCount": response.usage.output_tokens,
                "totalTokenCount": response.usage.total_tokens,
            }
        return wire


# ---------------------------------------------------------------------------
# Cohere chat
# ---------------------------------------------------------------------------

_COHERE_ROLES = {"user": "USER", "assistant": "CHATBOT", "system": "SYSTEM"}


class CohereChatAdapter(BaseEndpointAdapter):
    kind = EndpointKind.COHERE_CHAT

    def missing_fields(self, payload: dict[str, Any]) -> list[str]:
        messages = payload.get("messages")
        if not isinstance(messages, list) or not messages:
            return ["messages"]
        return []

    def build_body(self, profile: ProviderProfile, payload: dict[str, Any]) -> dict[str, Any]:
        *history, last = payload["messages"]
        body: dict[str, Any] = {
            "model": profile.model,
            "message": last.get("content") or "",
            "max_tokens": payload.get("max_tokens") or DEFAULT_MAX_TOKENS,
            "temperature": payload.get("temperature", DEFAULT_TEMPERATURE),
            "p": payload.get("top_p", DEFAULT_TOP_P),
        }
        if history:
            body["chat_history"] = [
                {"role": _COHERE_ROLES.get(m.get("role"), "USER"), "message": m.get("content") or ""}
                for m in history
            ]
        return body

    def _parse(self, data: dict[str, Any]) -> NormalizedResponse:
        text = data["text"]
        if not isinstance(text, str):
            raise TypeError("cohere text is not a string")

        usage = None
        billed = (data.get("meta") or {}).get("billed_units")
        if isinstance(billed, dict):
            usage = Usage(
                input_tokens=to_int(billed.get("input_tokens")),
                output_tokens=to_int(billed.get("output_tokens")),
            )
        return NormalizedResponse(
            content=text,
            model=data.get("model") or "",
            finish_reason=data.get("finish_reason") or "",
            usage=usage,
        )

    def to_wire_response(self, response: NormalizedResponse) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "text": response.content,
            "model": response.model,
            "finish_reason": response.finish_reason,
        }
        if response.usage:
            wire["meta"] = {
                "billed_units": {
                    "input_tokens": response.usage.input_tokens,
                    "output_tokens": response.usage.output_tokens,
                }
            }
        return wire


# ---------------------------------------------------------------------------
# Ollama chat
# ---------------------------------------------------------------------------


class OllamaChatAdapter(BaseEndpointAdapter):
    kind = EndpointKind.OLLAMA_CHAT

    def build_body(self, profile: ProviderProfile, payload: dict[str, Any]) -> dict[str, Any]:
        return {
            "model": profile.model,
            "messages": payload["messages"],
            "stream": False,
            "options": {
                "temperature": payload.get("temperature", DEFAULT_TEMPERATURE),
                "num_predict": payload.get("max_tokens") or DEFAULT_MAX_TOKENS,
            },
        }

    def _parse(self, data: dict[str, Any]) -> NormalizedResponse:
        message = data["message"]

        usage = None
        if "prompt_eval_count" in data or "eval_count" in data:
            usage = Usage(
                input_tokens=to_int(data.get("prompt_eval_count")),
                output_tokens=to_int(data.get("eval_count")),
            )
        return NormalizedResponse(
            content=coerce_message_text(message),
            model=data.get("model") or "",
            finish_reason=data.get("done_reason") or "",
            usage=usage,
        )

    def to_wire_response(self, response: NormalizedResponse) -> dict[str, Any]:
        wire: dict[str, Any] = {
            "model": response.model,
            "message": {"role": "assistant", "content": response.content},
            "done": True,
            "done_reason": response.finish_reason,
        }
        if response.usage:
            wire["prompt_eval_count"] = response.usage.input_tokens
            wire["eval_count"] = response.usage.output_tokens
        return wire


# ---------------------------------------------------------------------------
# Adapter registry
# ---------------------------------------------------------------------------

ADAPTER_REGISTRY: dict[EndpointKind, type[BaseEndpointAdapter]] = {
    EndpointKind.CHAT_COMPLETIONS: ChatCompletionsAdapter,
    EndpointKind.COMPLETIONS: CompletionsAdapter,
    EndpointKind.RESPONSES: ResponsesAdapter,
    EndpointKind.ANTHROPIC_MESSAGES: AnthropicMessagesAdapter,
    EndpointKind.GOOGLE_GENERATE_CONTENT: GoogleGenerateContentAdapter,
    EndpointKind.COHERE_CHAT: CohereChatAdapter,
    EndpointKind.OLLAMA_CHAT: OllamaChatAdapter,
}


def coerce_endpoint_kind(kind: EndpointKind | str) -> EndpointKind:
    try:
        return EndpointKind(kind)
    except ValueError:
        raise PayloadValidationError(f"Unsupported endpoint kind: {kind}", endpoint_kind=str(kind)) from None


def get_adapter(kind: EndpointKind | str) -> BaseEndpointAdapter:
    """Factory: get the adapter for an endpoint kind."""
    return ADAPTER_REGISTRY[coerce_endpoint_kind(kind)]()
