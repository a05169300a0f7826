"""
Tests — LLM Gateway.

Covers:
    - message normalization (alternating turns / system channel)
    - primary → fallback failover, unconfigured providers skipped
    - ProviderUnavailable when nothing is configured or everything failed
    - caching: primary responses only, opt-out, cache hit reporting
    - Sarvam wire format via an injected session
    - Gemini request shaping via an injected client
    - provider construction from config
"""

from unittest.mock import MagicMock

import pytest

from briefsmith.ai.cache import ResponseCacheService
from briefsmith.ai.gateway import (
    CompletionOptions,
    GeminiProvider,
    LLMGateway,
    LLMProvider,
    LocalStubProvider,
    SarvamProvider,
    build_provider,
    normalize_alternating,
    normalize_system_channel,
)
from briefsmith.core.exceptions import ConfigurationError, ProviderError, ProviderUnavailable


class FakeProvider(LLMProvider):
    """Scripted provider: returns ``reply`` or raises ``error``."""

    default_model = "fake-1"
    model_prefixes = ("fake-",)

    def __init__(self, name, reply="ok", error=None, configured=True):
        super().__init__()
        self.name = name
        self.reply = reply
        self.error = error
        self.configured = configured
        self.calls = []

    def is_configured(self):
        return self.configured

    def _send(self, messages, model, options):
        self.calls.append({"messages": messages, "model": model, "options": options})
        if self.error is not None:
            raise self.error
        return self.reply


MESSAGES = [
    {"role": "system", "content": "Be brief."},
    {"role": "user", "content": "Hello"},
]


# ═════════════════════════════════════════════════════════════════════════════
# Message normalization
# ═════════════════════════════════════════════════════════════════════════════

class TestNormalizeAlternating:

    def test_system_prepended_to_first_user_turn(self):
        result = normalize_alternating([
            {"role": "system", "content": "S1"},
            {"role": "system", "content": "S2"},
            {"role": "user", "content": "U1"},
            {"role": "assistant", "content": "A1"},
            {"role": "user", "content": "U2"},
        ])
        assert result == [
            {"role": "user", "content": "S1\nS2\n\nU1"},
            {"role": "assistant", "content": "A1"},
            {"role": "user", "content": "U2"},
        ]

    def test_consecutive_same_role_merged(self):
        result = normalize_alternating([
            {"role": "user", "content": "a"},
            {"role": "user", "content": "b"},
            {"role": "assistant", "content": "c"},
            {"role": "assistant", "content": "d"},
        ])
        assert result == [
            {"role": "user", "content": "a\n\nb"},
            {"role": "assistant", "content": "c\n\nd"},
        ]

    def test_leading_assistant_gets_synthetic_user(self):
        result = normalize_alternating([
            {"role": "assistant", "content": "Hi there"},
            {"role": "user", "content": "Hello"},
        ])
        assert result[0]["role"] == "user"
        assert [m["role"] for m in result] == ["user", "assistant", "user"]

    def test_system_only_becomes_user_turn(self):
        assert normalize_alternating([{"role": "system", "content": "S"}]) == [
            {"role": "user", "content": "S"},
        ]

    def test_input_not_mutated(self):
        messages = [{"role": "system", "content": "S"}, {"role": "user", "content": "U"}]
        normalize_alternating(messages)
        assert messages[1]["content"] == "U"

    def test_strict_alternation(self):
        result = normalize_alternating([
            {"role": "system", "content": "S"},
            {"role": "assistant", "content": "A0"},
            {"role": "assistant", "content": "A1"},
            {"role": "user", "content": "U1"},
            {"role": "user", "content": "U2"},
            {"role": "assistant", "content": "A2"},
        ])
        roles = [m["role"] for m in result]
        assert roles[0] == "user"
        assert all(a != b for a, b in zip(roles, roles[1:]))


class TestNormalizeSystemChannel:

    def test_system_extracted_and_roles_mapped(self):
        instruction, turns = normalize_system_channel([
            {"role": "system", "content": "S"},
            {"role": "user", "content": "U"},
            {"role": "assistant", "content": "A"},
        ])
        assert instruction == "S"
        assert turns == [
            {"role": "user", "content": "U"},
            {"role": "model", "content": "A"},
        ]

    def test_system_only_demoted_to_user(self):
        instruction, turns = normalize_system_channel([{"role": "system", "content": "S"}])
        assert instruction == ""
        assert turns == [{"role": "user", "content": "S"}]


# ═════════════════════════════════════════════════════════════════════════════
# Failover
# ═════════════════════════════════════════════════════════════════════════════

class TestFailover:

    def test_primary_success(self):
        primary = FakeProvider("primary", reply="from primary")
        fallback = FakeProvider("fallback")
        result = LLMGateway([primary, fallback]).complete(MESSAGES)
        assert result["content"] == "from primary"
        assert result["provider"] == "primary"
        assert result["fallback_used"] is False
        assert result["cache_hit"] is False
        assert fallback.calls == []

    def test_fallback_used_when_primary_fails(self):
        primary = FakeProvider("primary", error=ProviderError("primary", "HTTP 500"))
        fallback = FakeProvider("fallback", reply="from fallback")
        result = LLMGateway([primary, fallback]).complete(MESSAGES)
        assert result["content"] == "from fallback"
        assert result["provider"] == "fallback"
        assert result["fallback_used"] is True
        assert len(primary.calls) == 1

    def test_unconfigured_primary_skipped(self):
        primary = FakeProvider("primary", configured=False)
        fallback = FakeProvider("fallback", reply="F")
        result = LLMGateway([primary, fallback]).complete(MESSAGES)
        assert result["provider"] == "fallback"
        assert primary.calls == []

    def test_nothing_configured(self):
        gateway = LLMGateway([FakeProvider("a", configured=False),
                              FakeProvider("b", configured=False)])
        with pytest.raises(ProviderUnavailable) as exc_info:
            gateway.complete(MESSAGES)
        assert exc_info.value.attempted == []
        assert "No LLM providers configured" in str(exc_info.value)

    def test_empty_chain(self):
        with pytest.raises(ProviderUnavailable):
            LLMGateway([]).complete(MESSAGES)

    def test_all_failed_lists_attempted(self):
        gateway = LLMGateway([
            FakeProvider("a", error=RuntimeError("boom")),
            FakeProvider("b", error=TimeoutError("slow")),
        ])
        with pytest.raises(ProviderUnavailable) as exc_info:
            gateway.complete(MESSAGES)
        assert exc_info.value.attempted == ["a", "b"]
        assert exc_info.value.errors == {"a": "boom", "b": "slow"}

    def test_each_provider_attempted_once(self):
        primary = FakeProvider("a", error=RuntimeError("boom"))
        fallback = FakeProvider("b", error=RuntimeError("boom"))
        with pytest.raises(ProviderUnavailable):
            LLMGateway([primary, fallback]).complete(MESSAGES)
        assert len(primary.calls) == 1
        assert len(fallback.calls) == 1

    def test_unknown_roles_dropped(self):
        primary = FakeProvider("a")
        LLMGateway([primary]).complete([
            {"role": "tool", "content": "ignored"},
            {"role": "user", "content": "Hi"},
        ])
        assert primary.calls[0]["messages"] == [{"role": "user", "content": "Hi"}]

    def test_options_model_applied_only_to_matching_provider(self):
        primary = FakeProvider("a")
        LLMGateway([primary]).complete(MESSAGES, CompletionOptions(model="fake-2"))
        LLMGateway([primary]).complete(MESSAGES, CompletionOptions(model="other-model"))
        assert [c["model"] for c in primary.calls] == ["fake-2", "fake-1"]


# ═════════════════════════════════════════════════════════════════════════════
# Caching
# ═════════════════════════════════════════════════════════════════════════════

class TestGatewayCaching:

    def test_second_call_served_from_cache(self):
        primary = FakeProvider("primary", reply="cached text")
        gateway = LLMGateway([primary], cache=ResponseCacheService())
        first = gateway.complete(MESSAGES)
        second = gateway.complete(MESSAGES)
        assert first["cache_hit"] is False
        assert second == {"content": "cached text", "provider": "cache", "cache_hit": True,
                          "fallback_used": False, "latency_ms": 0}
        assert len(primary.calls) == 1

    def test_different_options_miss(self):
        primary = FakeProvider("primary")
        gateway = LLMGateway([primary], cache=ResponseCacheService())
        gateway.complete(MESSAGES, CompletionOptions(temperature=0.3))
        gateway.complete(MESSAGES, CompletionOptions(temperature=0.5))
        assert len(primary.calls) == 2

    def test_fallback_response_not_cached(self):
        primary = FakeProvider("primary", error=RuntimeError("down"))
        fallback = FakeProvider("fallback", reply="F")
        cache = ResponseCacheService()
        gateway = LLMGateway([primary, fallback], cache=cache)
        gateway.complete(MESSAGES)
        gateway.complete(MESSAGES)
        assert len(fallback.calls) == 2
        assert cache.get_stats()["sets"] == 0

    def test_use_cache_false_bypasses_cache(self):
        primary = FakeProvider("primary")
        cache = ResponseCacheService()
        gateway = LLMGateway([primary], cache=cache)
        gateway.complete(MESSAGES, CompletionOptions(use_cache=False))
        gateway.complete(MESSAGES, CompletionOptions(use_cache=False))
        assert len(primary.calls) == 2
        assert cache.get_stats()["sets"] == 0

    def test_broken_cache_does_not_fail_call(self):
        backend = MagicMock()
        backend.get.side_effect = ConnectionError("down")
        backend.setex.side_effect = ConnectionError("down")
        gateway = LLMGateway([FakeProvider("primary", reply="R")],
                             cache=ResponseCacheService(backend=backend))
        assert gateway.complete(MESSAGES)["content"] == "R"


# ═════════════════════════════════════════════════════════════════════════════
# Providers
# ═════════════════════════════════════════════════════════════════════════════

def _sarvam_response(ok=True, status_code=200, payload=None, text=""):
    resp = MagicMock()
    resp.ok = ok
    resp.status_code = status_code
    resp.text = text
    resp.json.return_value = payload
    return resp


class TestSarvamProvider:

    def test_request_shape(self):
        session = MagicMock()
        session.post.return_value = _sarvam_response(
            payload={"choices": [{"message": {"content": "Namaste"}}]})
        provider = SarvamProvider("key-123", "https://api.example.test/", session=session)

        result = provider.complete(MESSAGES, CompletionOptions(temperature=0.3, max_tokens=99))

        assert result.ok is True
        assert result.content == "Namaste"
        url = session.post.call_args.args[0]
        kwargs = session.post.call_args.kwargs
        assert url == "https://api.example.test/v1/chat/completions"
        assert kwargs["headers"]["Authorization"] == "Bearer key-123"
        assert kwargs["json"]["model"] == "sarvam-m"
        assert kwargs["json"]["temperature"] == 0.3
        assert kwargs["json"]["max_tokens"] == 99
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "Be brief.\n\nHello"}]

    def test_http_error_is_failed_result(self):
        session = MagicMock()
        session.post.return_value = _sarvam_response(ok=False, status_code=429, text="slow down")
        result = SarvamProvider("key", session=session).complete(MESSAGES, CompletionOptions())
        assert result.ok is False
        assert "HTTP 429" in result.error

    def test_malformed_payload_is_failed_result(self):
        session = MagicMock()
        session.post.return_value = _sarvam_response(payload={"choices": []})
        result = SarvamProvider("key", session=session).complete(MESSAGES, CompletionOptions())
        assert result.ok is False
        assert "Malformed" in result.error

    def test_not_configured_without_key(self):
        assert SarvamProvider("").is_configured() is False


class TestGeminiProvider:

    def test_system_instruction_and_contents(self):
        client = MagicMock()
        client.models.generate_content.return_value = MagicMock(text="Bonjour")
        provider = GeminiProvider(client=client)

        result = provider.complete(
            [*MESSAGES, {"role": "assistant", "content": "Hi"}, {"role": "user", "content": "More"}],
            CompletionOptions(temperature=0.5, max_tokens=321),
        )

        assert result.ok is True
        assert result.content == "Bonjour"
        kwargs = client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-1.5-pro"
        assert [c.role for c in kwargs["contents"]] == ["user", "model", "user"]
        assert kwargs["config"].system_instruction == "Be brief."
        assert kwargs["config"].temperature == 0.5
        assert kwargs["config"].max_output_tokens == 321

    def test_empty_text_is_failed_result(self):
        client = MagicMock()
        client.models.generate_content.return_value = MagicMock(text="")
        result = GeminiProvider(client=client).complete(MESSAGES, CompletionOptions())
        assert result.ok is False

    def test_sdk_exception_is_failed_result(self):
        client = MagicMock()
        client.models.generate_content.side_effect = RuntimeError("quota")
        result = GeminiProvider(client=client).complete(MESSAGES, CompletionOptions())
        assert result.ok is False
        assert result.error == "quota"


class TestLocalStubProvider:

    def test_reader_prompt_gets_json(self):
        result = LocalStubProvider().complete(
            [{"role": "user", "content": "Analyze the following project requirements..."}],
            CompletionOptions(),
        )
        assert result.ok is True
        assert "coreObjectives" in result.content

    def test_chat_gets_plain_text(self):
        result = LocalStubProvider().complete(
            [{"role": "user", "content": "Hi, I need an app"}], CompletionOptions())
        assert result.content.startswith("Thanks!")


class TestBuildFromConfig:

    def test_primary_and_fallback(self):
        gateway = LLMGateway.from_config({
            "LLM_PRIMARY_PROVIDER": "sarvam",
            "LLM_FALLBACK_PROVIDER": "gemini",
            "SARVAM_API_KEY": "s",
            "GEMINI_API_KEY": "",
        })
        status = gateway.providers_status()
        assert [p["name"] for p in status] == ["sarvam", "gemini"]
        assert [p["role"] for p in status] == ["primary", "fallback"]
        assert [p["configured"] for p in status] == [True, False]

    def test_none_fallback_skipped(self):
        gateway = LLMGateway.from_config({"LLM_PRIMARY_PROVIDER": "local",
                                          "LLM_FALLBACK_PROVIDER": "none"})
        assert [p.name for p in gateway.chain] == ["local"]

    def test_unknown_provider_raises(self):
        with pytest.raises(ConfigurationError):
            build_provider("openai", {})
