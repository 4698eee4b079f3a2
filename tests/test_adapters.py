"""Tests for the Endpoint Adapters: validation, wire requests, response parsing."""

from __future__ import annotations

import json

import pytest
from pydantic import SecretStr

from llmgate.gateway.adapters import (
    ADAPTER_REGISTRY,
    AnthropicMessagesAdapter,
    ChatCompletionsAdapter,
    CohereChatAdapter,
    CompletionsAdapter,
    GoogleGenerateContentAdapter,
    OllamaChatAdapter,
    ResponsesAdapter,
    get_adapter,
)
from llmgate.gateway.errors import MalformedResponseError, PayloadValidationError
from llmgate.gateway.types import EndpointKind, NormalizedResponse, ProviderProfile, Usage

SECRET = SecretStr("sk-test-0123456789abcdef")

MESSAGES = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": "Hi"},
    {"role": "assistant", "content": "Hello!"},
    {"role": "user", "content": "How are you?"},
]


def _profile(provider="openai", api_url="https://api.example.test/v1", model="test-model"):
    return ProviderProfile(provider=provider, api_url=api_url, model=model)


# ==========================================================================
# Test: Registry
# ==========================================================================


class TestAdapterRegistry:
    def test_every_kind_has_an_adapter(self):
        assert set(ADAPTER_REGISTRY) == set(EndpointKind)

    def test_get_adapter_by_value(self):
        assert isinstance(get_adapter("chat_completions"), ChatCompletionsAdapter)
        assert isinstance(get_adapter(EndpointKind.RESPONSES), ResponsesAdapter)

    def test_unknown_kind(self):
        with pytest.raises(PayloadValidationError, match="Unsupported endpoint kind"):
            get_adapter("embeddings")


# ==========================================================================
# Test: Payload validation
# ==========================================================================


class TestValidatePayload:
    def test_chat_requires_messages(self):
        with pytest.raises(PayloadValidationError) as exc:
            ChatCompletionsAdapter().validate_payload({"temperature": 0.2})
        assert exc.value.missing == ["messages"]
        assert "messages" in exc.value.message

    def test_payload_must_be_object(self):
        with pytest.raises(PayloadValidationError):
            ChatCompletionsAdapter().validate_payload(["not", "a", "dict"])

    def test_responses_accepts_empty_input_list(self):
        ResponsesAdapter().validate_payload({"input": []})

    def test_responses_accepts_messages(self):
        ResponsesAdapter().validate_payload({"messages": MESSAGES})

    def test_responses_requires_input(self):
        with pytest.raises(PayloadValidationError) as exc:
            ResponsesAdapter().validate_payload({"model": "x"})
        assert exc.value.missing == ["input"]

    def test_completions_accepts_prompt(self):
        CompletionsAdapter().validate_payload({"prompt": "Once upon a time"})

    def test_completions_requires_prompt(self):
        with pytest.raises(PayloadValidationError) as exc:
            CompletionsAdapter().validate_payload({})
        assert exc.value.missing == ["prompt"]

    def test_cohere_rejects_empty_messages(self):
        with pytest.raises(PayloadValidationError):
            CohereChatAdapter().validate_payload({"messages": []})

    def test_build_validates_first(self):
        with pytest.raises(PayloadValidationError):
            AnthropicMessagesAdapter().build_wire_request(_profile("anthropic"), SECRET, {}, 30_000)


# ==========================================================================
# Test: Wire requests
# ==========================================================================


class TestChatCompletionsRequest:
    def test_url_headers_body(self):
        wire = ChatCompletionsAdapter().build_wire_request(
            _profile(), SECRET, {"messages": MESSAGES, "temperature": 0.2}, 30_000
        )
        assert wire.method == "POST"
        assert wire.url == "https://api.example.test/v1/chat/completions"
        assert wire.headers["Authorization"] == "Bearer sk-test-0123456789abcdef"
        assert wire.json["model"] == "test-model"
        assert wire.json["temperature"] == 0.2
        assert wire.timeout_ms == 30_000

    def test_profile_model_wins(self):
        wire = ChatCompletionsAdapter().build_wire_request(
            _profile(model="gpt-4o"), SECRET, {"messages": MESSAGES, "model": "other"}, 30_000
        )
        assert wire.json["model"] == "gpt-4o"

    def test_payload_is_sanitized(self):
        payload = {
            "messages": [{"role": "user", "content": "Hi", "tool_calls": [{"id": "1"}]}],
            "tools": [{"type": "function"}],
            "__lucidcoderPhase": "plan",
            "response_format": {},
        }
        wire = ChatCompletionsAdapter().build_wire_request(_profile(), SECRET, payload, 30_000)
        assert "tools" not in wire.json
        assert "__lucidcoderPhase" not in wire.json
        assert "response_format" not in wire.json
        assert wire.json["messages"] == [{"role": "user", "content": "Hi"}]

    def test_caller_payload_not_mutated(self):
        payload = {"messages": MESSAGES, "tools": []}
        ChatCompletionsAdapter().build_wire_request(_profile(), SECRET, payload, 30_000)
        assert "tools" in payload

    def test_repr_never_shows_secret(self):
        wire = ChatCompletionsAdapter().build_wire_request(_profile(), SECRET, {"messages": MESSAGES}, 30_000)
        assert "sk-test" not in repr(wire)
        assert wire.redacted_headers()["Authorization"] == "[REDACTED]"

    def test_custom_provider_without_key(self):
        wire = ChatCompletionsAdapter().build_wire_request(_profile("custom"), None, {"messages": MESSAGES}, 30_000)
        assert "Authorization" not in wire.headers

    def test_local_provider_never_sends_key(self):
        wire = ChatCompletionsAdapter().build_wire_request(
            _profile("lmstudio", api_url="http://localhost:1234/v1"), SECRET, {"messages": MESSAGES}, 30_000
        )
        assert "Authorization" not in wire.headers
        assert wire.url == "http://localhost:1234/v1/chat/completions"


class TestFallbackKindRequests:
    def test_trailing_slashes_stripped(self):
        wire = CompletionsAdapter().build_wire_request(
            _profile(api_url="http://example.test//"), SECRET, {"prompt": "Hi"}, 60_000
        )
        assert wire.url == "http://example.test/completions"

    def test_completions_prompt_from_messages(self):
        wire = CompletionsAdapter().build_wire_request(_profile(), SECRET, {"messages": MESSAGES}, 60_000)
        assert "messages" not in wire.json
        assert wire.json["prompt"] == "Be brief.\n\nHi\n\nHello!\n\nHow are you?"

    def test_responses_input_from_messages(self):
        wire = ResponsesAdapter().build_wire_request(
            _profile(), SECRET, {"messages": MESSAGES[:2], "max_tokens": 200}, 60_000
        )
        assert wire.url == "https://api.example.test/v1/responses"
        assert wire.json["input"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi"},
        ]
        assert wire.json["max_output_tokens"] == 200
        assert "max_tokens" not in wire.json

    def test_responses_keeps_explicit_input(self):
        wire = ResponsesAdapter().build_wire_request(_profile(), SECRET, {"input": []}, 45_000)
        assert wire.json == {"input": [], "model": "test-model"}
        assert wire.timeout_ms == 45_000


class TestAnthropicRequest:
    def test_auth_and_body(self):
        wire = AnthropicMessagesAdapter().build_wire_request(
            _profile("anthropic", api_url="https://api.anthropic.test/v1"), SECRET, {"messages": MESSAGES}, 30_000
        )
        assert wire.url == "https://api.anthropic.test/v1/messages"
        assert wire.headers["x-api-key"] == "sk-test-0123456789abcdef"
        assert wire.headers["anthropic-version"] == "2023-06-01"
        assert "Authorization" not in wire.headers
        assert wire.json["system"] == "Be brief."
        assert [m["role"] for m in wire.json["messages"]] == ["user", "assistant", "user"]
        assert wire.json["max_tokens"] == 1000
        assert wire.json["temperature"] == 0.7

    def test_zero_temperature_is_kept(self):
        wire = AnthropicMessagesAdapter().build_wire_request(
            _profile("anthropic"), SECRET, {"messages": MESSAGES, "temperature": 0}, 30_000
        )
        assert wire.json["temperature"] == 0


class TestGoogleRequest:
    def test_model_in_path_and_key_in_header(self):
        wire = GoogleGenerateContentAdapter().build_wire_request(
            _profile("google", api_url="https://generativelanguage.test/v1beta", model="gemini-pro"),
            SECRET,
            {"messages": MESSAGES},
            30_000,
        )
        assert wire.url == "https://generativelanguage.test/v1beta/models/gemini-pro:generateContent"
        assert "sk-test" not in wire.url
        assert wire.headers["x-goog-api-key"] == "sk-test-0123456789abcdef"
        assert wire.json["systemInstruction"] == {"parts": [{"text": "Be brief."}]}
        assert [c["role"] for c in wire.json["contents"]] == ["user", "model", "user"]
        assert wire.json["generationConfig"] == {"maxOutputTokens": 1000, "temperature": 0.7, "topP": 0.9}


class TestCohereRequest:
    def test_last_message_and_history(self):
        wire = CohereChatAdapter().build_wire_request(
            _profile("cohere", api_url="https://api.cohere.test/v1"), SECRET, {"messages": MESSAGES}, 30_000
        )
        assert wire.url == "https://api.cohere.test/v1/chat"
        assert wire.headers["Authorization"] == "Bearer sk-test-0123456789abcdef"
        assert wire.json["message"] == "How are you?"
        assert [h["role"] for h in wire.json["chat_history"]] == ["SYSTEM", "USER", "CHATBOT"]
        assert wire.json["p"] == 0.9


class TestOllamaRequest:
    def test_local_non_streaming(self):
        wire = OllamaChatAdapter().build_wire_request(
            _profile("ollama", api_url="http://localhost:11434", model="llama3"),
            None,
            {"messages": MESSAGES, "max_tokens": 256},
            30_000,
        )
        assert wire.url == "http://localhost:11434/api/chat"
        assert wire.headers == {"Content-Type": "application/json"}
        assert wire.json["stream"] is False
        assert wire.json["options"] == {"temperature": 0.7, "num_predict": 256}


# ==========================================================================
# Test: Response parsing
# ==========================================================================


@pytest.mark.parametrize("kind", list(EndpointKind))
@pytest.mark.parametrize(
    "response",
    [
        NormalizedResponse(content="Hello world", model="m-1", finish_reason="stop", usage=Usage(3, 5)),
        NormalizedResponse(content="No usage reported"),
    ],
)
def test_wire_round_trip(kind, response):
    adapter = get_adapter(kind)
    wire = adapter.to_wire_response(response)
    assert adapter.parse_wire_response(json.dumps(wire).encode()) == response


class TestParseWireResponse:
    def test_invalid_json(self):
        with pytest.raises(MalformedResponseError):
            ChatCompletionsAdapter().parse_wire_response(b"<html>Bad Gateway</html>")

    def test_non_object_json(self):
        with pytest.raises(MalformedResponseError):
            ChatCompletionsAdapter().parse_wire_response("[1, 2]")

    def test_missing_envelope(self):
        with pytest.raises(MalformedResponseError):
            ChatCompletionsAdapter().parse_wire_response({"choices": []})
        with pytest.raises(MalformedResponseError):
            AnthropicMessagesAdapter().parse_wire_response({"id": "msg_1"})
        with pytest.raises(MalformedResponseError):
            ResponsesAdapter().parse_wire_response({"status": "completed"})
        with pytest.raises(MalformedResponseError):
            CohereChatAdapter().parse_wire_response({"text": None})

    def test_chat_content_parts(self):
        data = {"choices": [{"message": {"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}]}}]}
        assert ChatCompletionsAdapter().parse_wire_response(data).content == "a\nb"

    def test_chat_reasoning_fallback(self):
        data = {"choices": [{"message": {"content": "", "reasoning": "thought it through"}}]}
        assert ChatCompletionsAdapter().parse_wire_response(data).content == "thought it through"

    def test_chat_choice_text(self):
        data = {"choices": [{"text": "legacy"}], "usage": {"prompt_tokens": "4", "completion_tokens": 6}}
        parsed = ChatCompletionsAdapter().parse_wire_response(data)
        assert parsed.content == "legacy"
        assert parsed.usage.total_tokens == 10

    def test_responses_output_items(self):
        data = {
            "model": "gpt-4.1",
            "status": "completed",
            "output": [
                {"type": "reasoning", "summary": []},
                {"type": "message", "content": [{"type": "output_text", "text": "Hi there"}]},
            ],
        }
        parsed = ResponsesAdapter().parse_wire_response(data)
        assert parsed.content == "Hi there"
        assert parsed.finish_reason == "completed"

    def test_google_blocked_prompt(self):
        parsed = GoogleGenerateContentAdapter().parse_wire_response({"promptFeedback": {"blockReason": "SAFETY"}})
        assert parsed.content == ""
        assert parsed.finish_reason == "SAFETY"
