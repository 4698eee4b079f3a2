"""Tests for the Timeout/Fallback Policy Resolver."""

from __future__ import annotations

import pytest

from llmgate.gateway.policy import FALLBACK_TIMEOUT_ENV, TimeoutPolicy, TimeoutPolicyResolver, parse_timeout_ms
from llmgate.gateway.types import EndpointKind


# ==========================================================================
# Test: Timeout resolution
# ==========================================================================


class TestTimeoutPolicyResolver:
    def test_primary_kind_uses_request_timeout(self, test_settings):
        resolver = TimeoutPolicyResolver(settings=test_settings, environ={})
        assert resolver.resolve_timeout(EndpointKind.CHAT_COMPLETIONS) == 30_000

    @pytest.mark.parametrize("kind", [EndpointKind.COMPLETIONS, EndpointKind.RESPONSES])
    def test_fallback_kind_default(self, test_settings, kind):
        resolver = TimeoutPolicyResolver(settings=test_settings, environ={})
        assert resolver.resolve_timeout(kind) == 60_000

    def test_valid_override_wins(self, test_settings):
        resolver = TimeoutPolicyResolver(settings=test_settings, environ={FALLBACK_TIMEOUT_ENV: "45000"})
        assert resolver.resolve_timeout(EndpointKind.RESPONSES) == 45_000
        assert resolver.resolve_timeout(EndpointKind.COMPLETIONS) == 45_000

    @pytest.mark.parametrize("raw", ["not-a-number", "0", "-5", "1.5", "", "\u00b2", "\u0663"])
    def test_invalid_override_keeps_default(self, test_settings, raw):
        resolver = TimeoutPolicyResolver(settings=test_settings, environ={FALLBACK_TIMEOUT_ENV: raw})
        assert resolver.resolve_timeout(EndpointKind.RESPONSES) == 60_000

    def test_override_does_not_touch_primary_kinds(self, test_settings):
        resolver = TimeoutPolicyResolver(settings=test_settings, environ={FALLBACK_TIMEOUT_ENV: "45000"})
        assert resolver.resolve_timeout(EndpointKind.CHAT_COMPLETIONS) == 30_000
        assert resolver.resolve_timeout(EndpointKind.ANTHROPIC_MESSAGES) == 30_000

    def test_override_read_on_every_call(self, test_settings):
        environ: dict[str, str] = {}
        resolver = TimeoutPolicyResolver(settings=test_settings, environ=environ)
        assert resolver.resolve_timeout(EndpointKind.COMPLETIONS) == 60_000

        environ[FALLBACK_TIMEOUT_ENV] = "12000"
        assert resolver.resolve_timeout(EndpointKind.COMPLETIONS) == 12_000

        del environ[FALLBACK_TIMEOUT_ENV]
        assert resolver.resolve_timeout(EndpointKind.COMPLETIONS) == 60_000

    def test_defaults_follow_settings(self, test_settings):
        test_settings.llm_request_timeout_ms = 5_000
        test_settings.llm_fallback_default_timeout_ms = 9_000
        resolver = TimeoutPolicyResolver(settings=test_settings, environ={})
        assert resolver.resolve_timeout(EndpointKind.OLLAMA_CHAT) == 5_000
        assert resolver.resolve_timeout(EndpointKind.RESPONSES) == 9_000

    def test_accepts_kind_value(self, test_settings):
        resolver = TimeoutPolicyResolver(settings=test_settings, environ={})
        assert resolver.resolve_timeout("responses") == 60_000

    def test_policy_for_exposes_pieces(self, test_settings):
        resolver = TimeoutPolicyResolver(settings=test_settings, environ={FALLBACK_TIMEOUT_ENV: "45000"})
        policy = resolver.policy_for(EndpointKind.RESPONSES)
        assert policy == TimeoutPolicy(default_ms=60_000, fallback_override_ms=45_000)
        assert policy.effective_ms == 45_000

        primary = resolver.policy_for(EndpointKind.CHAT_COMPLETIONS)
        assert primary.fallback_override_ms is None
        assert primary.effective_ms == 30_000


class TestParseTimeout:
    def test_positive_integer(self):
        assert parse_timeout_ms("45000") == 45_000
        assert parse_timeout_ms(" 1500 ") == 1_500

    def test_rejects_everything_else(self):
        assert parse_timeout_ms(None) is None
        assert parse_timeout_ms("0") is None
        assert parse_timeout_ms("abc") is None
        assert parse_timeout_ms("-1") is None
        assert parse_timeout_ms("\u00b2") is None
