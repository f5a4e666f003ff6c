from __future__ import annotations

import asyncio
from typing import Any, Callable

import pytest

from exam_consensus.config import RetryPolicy
from exam_consensus.registry import Provider, ProviderRegistry

HANG = object()


class FakeClient:
    """
    Stand-in for HttpProviderClient.

    `script` maps a model id to the outcomes of successive calls (the last one
    repeats); an outcome is a string, an exception to raise, or HANG. Models
    not in the script use `answer`, which may be a callable taking the prompt.
    """

    def __init__(self, answer: Any = None, script: dict[str, list] | None = None) -> None:
        self.answer = answer
        self.script = {model: list(outcomes) for model, outcomes in (script or {}).items()}
        self.calls: list[str] = []
        self.prompts: list[str] = []

    async def complete(self, model: str, prompt: str, max_tokens: int) -> str:
        self.calls.append(model)
        self.prompts.append(prompt)
        if model in self.script:
            outcomes = self.script[model]
            outcome = outcomes.pop(0) if len(outcomes) > 1 else outcomes[0]
        else:
            outcome = self.answer
        if outcome is HANG:
            await asyncio.sleep(3600)
        if isinstance(outcome, BaseException):
            raise outcome
        if callable(outcome):
            return outcome(prompt)
        return outcome


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


# name, weight, principal; rows are in default registry order
PROVIDER_TABLE = [
    ("claude", 5, True),
    ("gemini", 6, True),
    ("gpt", 4, True),
    ("xai", 4, True),
    ("deepseek", 3, False),
    ("maritaca", 3, False),
]


def make_registry(clients: dict[str, Any], names: list[str] | None = None) -> ProviderRegistry:
    rows = [row for row in PROVIDER_TABLE if names is None or row[0] in names]
    return ProviderRegistry([
        Provider(
            name=name,
            models=(f"{name}-large", f"{name}-small"),
            weight=weight,
            client=clients.get(name),
            principal=principal,
        )
        for name, weight, principal in rows
    ])


@pytest.fixture
def policy() -> RetryPolicy:
    return RetryPolicy(max_retries=2, initial_retry_delay_s=1.0, timeout_s=1.0)


@pytest.fixture
def sleep() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def registry_factory() -> Callable[..., ProviderRegistry]:
    return make_registry
