"""
LLM Router / Client Tests
=========================
Backends are stubbed with httpx.MockTransport — no real network.

Covers:
    - Provider selection and ConfigurationError
    - Request shape for Ollama and OpenAI-compatible backends
    - Failover: alternate succeeds, single attempt, primary error surfaced
    - NeedMoreInfoError bypasses failover
    - Timeouts and non-JSON envelopes become InfrastructureError
"""
import asyncio
import json
import pytest
import httpx

from bugbot.core.errors import ConfigurationError, InfrastructureError, NeedMoreInfoError
from bugbot.llm.client import LLMClient
from bugbot.llm.normalizer import ResponseNormalizer
from bugbot.llm.router import LLMRouter, ProviderConfig


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
OLLAMA = ProviderConfig(name="ollama", base_url="http://ollama.test", model="llama3.1", timeout_seconds=5)
OPENAI = ProviderConfig(
    name="openai", base_url="http://openai.test/v1", model="gpt-4o-mini",
    api_key="sk-test", requires_api_key=True, timeout_seconds=5,
)
OPENAI_NO_KEY = ProviderConfig(
    name="openai", base_url="http://openai.test/v1", model="gpt-4o-mini",
    requires_api_key=True, timeout_seconds=5,
)

REPORT_JSON = json.dumps({
    "title": "Crash on launch",
    "description": "The app closes immediately.",
    "stepsToReproduce": ["Open the app"],
    "environment": {},
})


def _ollama_ok(text=REPORT_JSON):
    return httpx.Response(200, json={"response": text})


def _openai_ok(text=REPORT_JSON):
    return httpx.Response(200, json={"choices": [{"message": {"content": text}}]})


def _client(handler, calls):
    def recording(request: httpx.Request):
        calls.append(request)
        return handler(request)
    return LLMClient(http=httpx.AsyncClient(transport=httpx.MockTransport(recording)))


def _run(client, router, parse=None):
    parse = parse or ResponseNormalizer(known_components=()).normalize

    async def go():
        try:
            return await client.generate_with_fallback("prompt", router, parse)
        finally:
            await client.close()
    return asyncio.run(go())


# ===================================================================
# Router
# ===================================================================
def test_router_prefers_configured_backend():
    router = LLMRouter(preferred="openai", providers=[OLLAMA, OPENAI])
    assert router.get_provider().name == "openai"
    assert router.get_fallback_provider("openai").name == "ollama"


def test_openai_without_key_is_configuration_error():
    router = LLMRouter(preferred="openai", providers=[OLLAMA, OPENAI_NO_KEY])
    with pytest.raises(ConfigurationError):
        router.get_provider()


def test_unknown_backend_is_configuration_error():
    with pytest.raises(ConfigurationError):
        LLMRouter(preferred="claude", providers=[OLLAMA]).get_provider()


def test_openai_without_key_is_not_a_fallback():
    router = LLMRouter(preferred="ollama", providers=[OLLAMA, OPENAI_NO_KEY])
    assert router.get_fallback_provider("ollama") is None


def test_configuration_error_before_any_request():
    calls = []
    client = _client(lambda r: _openai_ok(), calls)
    router = LLMRouter(preferred="openai", providers=[OLLAMA, OPENAI_NO_KEY])
    with pytest.raises(ConfigurationError):
        _run(client, router)
    assert calls == []


# ===================================================================
# Request shape
# ===================================================================
def test_ollama_request_shape():
    calls = []
    client = _client(lambda r: _ollama_ok(), calls)
    report = _run(client, LLMRouter(preferred="ollama", providers=[OLLAMA]))

    assert report.title == "Crash on launch"
    assert str(calls[0].url) == "http://ollama.test/api/generate"
    body = json.loads(calls[0].content)
    assert body["stream"] is False
    assert body["prompt"] == "prompt"
    assert set(body["options"]) == {"temperature", "num_predict"}


def test_openai_request_shape():
    calls = []
    client = _client(lambda r: _openai_ok(), calls)
    _run(client, LLMRouter(preferred="openai", providers=[OPENAI]))

    assert str(calls[0].url) == "http://openai.test/v1/chat/completions"
    assert calls[0].headers["Authorization"] == "Bearer sk-test"
    body = json.loads(calls[0].content)
    assert body["messages"] == [{"role": "user", "content": "prompt"}]
    assert "max_tokens" in body


# ===================================================================
# Failover
# ===================================================================
def test_failover_to_alternate_on_http_error():
    calls = []

    def handler(request):
        if request.url.host == "ollama.test":
            return httpx.Response(500, json={"error": "boom"})
        return _openai_ok()

    router = LLMRouter(preferred="ollama", providers=[OLLAMA, OPENAI])
    report = _run(_client(handler, calls), router)

    assert report.title == "Crash on launch"
    assert [c.url.host for c in calls] == ["ollama.test", "openai.test"]
    assert router.get_provider_usage_log() == [{"provider_used": "openai", "fallback_triggered": True}]


def test_both_fail_surfaces_primary_error():
    calls = []

    def handler(request):
        if request.url.host == "ollama.test":
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(503)

    router = LLMRouter(preferred="ollama", providers=[OLLAMA, OPENAI])
    with pytest.raises(InfrastructureError) as exc:
        _run(_client(handler, calls), router)

    assert exc.value.provider_name == "ollama"
    assert len(calls) == 2


def test_no_failover_without_alternate():
    calls = []
    router = LLMRouter(preferred="ollama", providers=[OLLAMA, OPENAI_NO_KEY])
    with pytest.raises(InfrastructureError):
        _run(_client(lambda r: httpx.Response(502), calls), router)
    assert len(calls) == 1


def test_need_more_info_is_not_failed_over():
    calls = []
    payload = json.dumps({"needMoreInfo": True, "missingFields": ["os"]})
    router = LLMRouter(preferred="ollama", providers=[OLLAMA, OPENAI])
    with pytest.raises(NeedMoreInfoError) as exc:
        _run(_client(lambda r: _ollama_ok(payload), calls), router)

    assert exc.value.missing_fields == ["os"]
    assert len(calls) == 1


def test_non_json_envelope_is_infrastructure_error():
    calls = []
    router = LLMRouter(preferred="ollama", providers=[OLLAMA])
    with pytest.raises(InfrastructureError):
        _run(_client(lambda r: httpx.Response(200, text="<html>gateway</html>"), calls), router)


def test_timeout_is_infrastructure_error():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    router = LLMRouter(preferred="ollama", providers=[OLLAMA])
    with pytest.raises(InfrastructureError) as exc:
        _run(_client(handler, []), router)
    assert "timed out" in exc.value.reason


def test_empty_backend_text_becomes_fallback_report():
    router = LLMRouter(preferred="ollama", providers=[OLLAMA])
    report = _run(_client(lambda r: _ollama_ok(""), []), router)
    assert report.title == "Untitled bug report"
