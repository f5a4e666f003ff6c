from __future__ import annotations

import asyncio
import json

import httpx
import pytest

from exam_consensus.config import EngineConfig, ProviderConfig
from exam_consensus.errors import ErrorKind, ProviderError, classify_error
from exam_consensus.providers import HttpProviderClient, build_client
from exam_consensus.registry import Provider, ProviderRegistry


class Recorder:
    """MockTransport handler that keeps the requests it saw."""

    def __init__(self, status: int = 200, payload: dict | None = None, headers: dict | None = None) -> None:
        self.status = status
        self.payload = payload or {}
        self.headers = headers or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status, json=self.payload, headers=self.headers)

    @property
    def body(self) -> dict:
        return json.loads(self.requests[-1].content)


def _client(kind: str, handler: Recorder, **overrides) -> HttpProviderClient:
    config = ProviderConfig(name=kind, kind=kind, models=["m1"], api_key_env="UNUSED_KEY", **overrides)
    return HttpProviderClient(config, "sk-test", transport=httpx.MockTransport(handler))


def test_anthropic_request_and_response() -> None:
    handler = Recorder(payload={"content": [{"type": "text", "text": "FALSO"}]})
    client = _client("anthropic", handler, system_prompt="Seja breve.")

    text = asyncio.run(client.complete("claude-3-5-haiku-20241022", "prompt", 50))

    assert text == "FALSO"
    request = handler.requests[0]
    assert str(request.url) == "https://api.anthropic.com/v1/messages"
    assert request.headers["x-api-key"] == "sk-test"
    assert request.headers["anthropic-version"] == "2023-06-01"
    assert handler.body == {
        "model": "claude-3-5-haiku-20241022",
        "messages": [{"role": "user", "content": "prompt"}],
        "max_tokens": 50,
        "system": "Seja breve.",
    }


def test_openai_compatible_request_uses_configured_token_field() -> None:
    handler = Recorder(payload={"choices": [{"message": {"content": "(B)"}}]})
    client = _client(
        "openai", handler,
        base_url="https://api.x.ai/v1/",
        system_prompt="sys",
        token_field="max_completion_tokens",
        temperature=0.1,
    )

    assert asyncio.run(client.complete("grok-3-beta", "prompt", 1000)) == "(B)"

    request = handler.requests[0]
    assert str(request.url) == "https://api.x.ai/v1/chat/completions"
    assert request.headers["authorization"] == "Bearer sk-test"
    assert handler.body["messages"][0] == {"role": "system", "content": "sys"}
    assert handler.body["max_completion_tokens"] == 1000
    assert "max_tokens" not in handler.body
    assert handler.body["temperature"] == 0.1


def test_google_request_and_response() -> None:
    handler = Recorder(payload={"candidates": [{"content": {"parts": [{"text": "VER"}, {"text": "DADEIRO"}]}}]})
    client = _client("google", handler)

    assert asyncio.run(client.complete("gemini-2.0-flash", "prompt", 50)) == "VERDADEIRO"

    request = handler.requests[0]
    assert request.url.path.endswith("/models/gemini-2.0-flash:generateContent")
    assert request.url.params["key"] == "sk-test"
    assert handler.body["generationConfig"] == {"maxOutputTokens": 50}
    assert handler.body["contents"][0]["parts"][0]["text"] == "prompt"


def test_error_status_raises_provider_error() -> None:
    handler = Recorder(404, {"error": {"type": "not_found_error", "message": "model: claude-x"}})
    client = _client("anthropic", handler)

    with pytest.raises(ProviderError) as info:
        asyncio.run(client.complete("claude-x", "prompt", 50))

    assert info.value.status_code == 404
    assert classify_error(info.value) is ErrorKind.MODEL_UNAVAILABLE


def test_empty_content_is_an_error() -> None:
    handler = Recorder(payload={"choices": [{"message": {"content": "  "}}]})
    client = _client("openai", handler)

    with pytest.raises(ProviderError, match="Empty response content"):
        asyncio.run(client.complete("gpt-4o", "prompt", 50))


def test_build_client_needs_a_key(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    config = ProviderConfig(name="gpt", kind="openai", models=["gpt-4o"], api_key_env="EXAM_CONSENSUS_TEST_KEY")
    monkeypatch.delenv("EXAM_CONSENSUS_TEST_KEY", raising=False)
    assert build_client(config) is None

    monkeypatch.setenv("EXAM_CONSENSUS_TEST_KEY", " sk-env \n")
    assert build_client(config).api_key == "sk-env"

    monkeypatch.delenv("EXAM_CONSENSUS_TEST_KEY")
    key_file = tmp_path / "OpenAIAPIKey.txt"
    key_file.write_text("sk-file\n")
    from_file = config.model_copy(update={"key_file": str(key_file)})
    assert build_client(from_file).api_key == "sk-file"


def test_registry_from_config(monkeypatch: pytest.MonkeyPatch) -> None:
    config = EngineConfig.default()
    for pc in config.providers:
        monkeypatch.delenv(pc.api_key_env, raising=False)
        monkeypatch.setattr(pc, "key_file", None)
    monkeypatch.setenv("GEMINI_API_KEY", "g-key")

    registry = ProviderRegistry.from_config(config)

    assert registry.names == ["claude", "gemini", "gpt", "xai", "deepseek", "maritaca"]
    assert [p.name for p in registry.configured()] == ["gemini"]
    assert registry.weights["gemini"] == 6
    assert registry.principals == ["claude", "gemini", "gpt", "xai"]
    assert registry.get("claude").models[0] == "claude-3-7-sonnet-20250219"
    assert registry.get("nobody") is None


def test_registry_rejects_duplicate_names() -> None:
    with pytest.raises(ValueError):
        ProviderRegistry([Provider("a", ("m",), 1), Provider("a", ("m",), 2)])
