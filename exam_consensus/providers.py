from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Callable, Optional

import httpx

from .config import ProviderConfig
from .errors import ProviderError

ANTHROPIC_VERSION = "2023-06-01"


# Secure key loading: environment variable first, then file fallback
def _load_key(env_var: str, file_name: str | None) -> str | None:
    """Load API key from environment variable or file."""
    key = os.environ.get(env_var)
    if key:
        return key.strip()

    if file_name:
        key_file = Path(__file__).parent.parent / file_name
        if key_file.exists():
            return key_file.read_text().strip()

    return None


def _build_anthropic(client: "HttpProviderClient", model: str, prompt: str, max_tokens: int):
    cfg = client.config
    headers = {
        "x-api-key": client.api_key,
        "Content-Type": "application/json",
        "anthropic-version": ANTHROPIC_VERSION,
    }
    body: dict[str, Any] = {
        "model": model,
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
    }
    if cfg.system_prompt:
        body["system"] = cfg.system_prompt
    if cfg.temperature is not None:
        body["temperature"] = cfg.temperature
    return f"{client.base_url}/messages", headers, body


def _build_openai(client: "HttpProviderClient", model: str, prompt: str, max_tokens: int):
    cfg = client.config
    headers = {
        "Authorization": f"Bearer {client.api_key}",
        "Content-Type": "application/json",
    }
    messages = []
    if cfg.system_prompt:
        messages.append({"role": "system", "content": cfg.system_prompt})
    messages.append({"role": "user", "content": prompt})
    body: dict[str, Any] = {
        "model": model,
        "messages": messages,
        cfg.token_field: max_tokens,
    }
    if cfg.temperature is not None:
        body["temperature"] = cfg.temperature
    return f"{client.base_url}/chat/completions", headers, body


def _build_google(client: "HttpProviderClient", model: str, prompt: str, max_tokens: int):
    cfg = client.config
    body: dict[str, Any] = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {
            "maxOutputTokens": max_tokens,
        },
    }
    if cfg.temperature is not None:
        body["generationConfig"]["temperature"] = cfg.temperature
    if cfg.system_prompt:
        body["systemInstruction"] = {"parts": [{"text": cfg.system_prompt}]}
    url = f"{client.base_url}/{model}:generateContent?key={client.api_key}"
    return url, {"Content-Type": "application/json"}, body


def _parse_anthropic(data: dict) -> str:
    content_blocks = data.get("content", [])
    return "".join(block.get("text", "") for block in content_blocks if block.get("type") == "text")


def _parse_openai(data: dict) -> str:
    choices = data.get("choices") or [{}]
    return choices[0].get("message", {}).get("content") or ""


def _parse_google(data: dict) -> str:
    candidates = data.get("candidates", [])
    if not candidates:
        return ""
    parts = candidates[0].get("content", {}).get("parts", [])
    return "".join(p.get("text", "") for p in parts)


_DEFAULT_BASE_URLS = {
    "anthropic": "https://api.anthropic.com/v1",
    "openai": "https://api.openai.com/v1",
    "google": "https://generativelanguage.googleapis.com/v1beta/models",
}

_REQUEST_BUILDERS: dict[str, Callable] = {
    "anthropic": _build_anthropic,
    "openai": _build_openai,
    "google": _build_google,
}

_RESPONSE_PARSERS: dict[str, Callable[[dict], str]] = {
    "anthropic": _parse_anthropic,
    "openai": _parse_openai,
    "google": _parse_google,
}


class HttpProviderClient:
    """
    One provider's bound API handle.

    complete() performs exactly one HTTP call and raises the provider's error
    unchanged; timeouts, retries and model fallback belong to the invoker.
    """

    def __init__(
        self,
        config: ProviderConfig,
        api_key: str,
        transport_timeout_s: float = 120.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.config = config
        self.api_key = api_key
        self.base_url = (config.base_url or _DEFAULT_BASE_URLS[config.kind]).rstrip("/")
        self.transport_timeout_s = transport_timeout_s
        self._transport = transport

    @property
    def kind(self) -> str:
        return self.config.kind

    async def post_json(self, url: str, headers: dict, body: dict) -> dict:
        async with httpx.AsyncClient(timeout=self.transport_timeout_s, transport=self._transport) as client:
            resp = await client.post(url, headers=headers, json=body)
        if resp.status_code != 200:
            raise ProviderError.from_response(resp)
        return resp.json()

    async def complete(self, model: str, prompt: str, max_tokens: int) -> str:
        url, headers, body = _REQUEST_BUILDERS[self.kind](self, model, prompt, max_tokens)
        data = await self.post_json(url, headers, body)
        text = _RESPONSE_PARSERS[self.kind](data)
        if not text or not text.strip():
            raise ProviderError("Empty response content", status_code=200)
        return text

    def __repr__(self) -> str:
        return f"HttpProviderClient(name={self.config.name!r}, kind={self.kind!r})"


def build_client(
    config: ProviderConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Optional[HttpProviderClient]:
    """Return a client for the provider, or None when no API key is available."""
    api_key = _load_key(config.api_key_env, config.key_file)
    if not api_key:
        return None
    return HttpProviderClient(config, api_key, transport=transport)
