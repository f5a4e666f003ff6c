"""Provider handles built once at start-up and passed to the engine."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator, Optional, Tuple

import httpx

from .config import EngineConfig
from .providers import build_client

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Provider:
    name: str
    models: Tuple[str, ...]
    weight: int
    client: Optional[Any] = None  # anything with `async complete(model, prompt, max_tokens) -> str`
    principal: bool = False

    @property
    def configured(self) -> bool:
        return self.client is not None


class ProviderRegistry:
    """
    Immutable, ordered set of providers.

    Order is the trust priority: it drives the last-resort tie-breaks in the
    resolver and the order of the per-provider answers.
    """

    def __init__(self, providers: list[Provider]) -> None:
        names = [p.name for p in providers]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate provider names: {names}")
        self._providers: Tuple[Provider, ...] = tuple(providers)

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "ProviderRegistry":
        providers = []
        for pc in config.providers:
            client = build_client(pc, transport=transport)
            if client is None:
                logger.info("Provider %s not configured (%s missing)", pc.name, pc.api_key_env)
            else:
                logger.info("Provider %s initialised", pc.name)
            providers.append(Provider(
                name=pc.name,
                models=tuple(pc.models),
                weight=pc.weight,
                client=client,
                principal=pc.principal,
            ))
        return cls(providers)

    def __iter__(self) -> Iterator[Provider]:
        return iter(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def get(self, name: str) -> Optional[Provider]:
        for p in self._providers:
            if p.name == name:
                return p
        return None

    @property
    def names(self) -> list[str]:
        return [p.name for p in self._providers]

    @property
    def weights(self) -> dict[str, int]:
        return {p.name: p.weight for p in self._providers}

    @property
    def principals(self) -> list[str]:
        return [p.name for p in self._providers if p.principal]

    def configured(self) -> list[Provider]:
        return [p for p in self._providers if p.configured]
