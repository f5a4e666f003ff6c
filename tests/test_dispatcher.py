from __future__ import annotations

import asyncio

from exam_consensus import dispatcher
from exam_consensus.config import Query, RetryPolicy
from exam_consensus.dispatcher import dispatch
from exam_consensus.errors import ProviderError

from .conftest import HANG, FakeClient, SleepRecorder, make_registry

QUERY = Query(text="Qual é a capital do Brasil?\n\na) Rio\nb) Brasília", item_id="7", question_type="choice")


def test_one_entry_per_provider_in_registry_order(policy: RetryPolicy, sleep: SleepRecorder) -> None:
    registry = make_registry({
        "claude": FakeClient(answer="A alternativa correta é (B)"),
        "gemini": FakeClient(answer="(b)"),
        "gpt": FakeClient(answer=ProviderError("invalid request", status_code=400)),
        # xai, deepseek and maritaca are unconfigured
    })

    answers = asyncio.run(dispatch(registry, QUERY, policy, 50, sleep=sleep))

    assert list(answers) == ["claude", "gemini", "gpt", "xai", "deepseek", "maritaca"]
    assert answers["claude"] == "A alternativa correta é (B)"
    assert answers["gemini"] == "A alternativa correta é (B)"
    assert answers["gpt"] is None
    assert answers["xai"] is None
    assert answers["maritaca"] is None


def test_providers_run_concurrently(policy: RetryPolicy, sleep: SleepRecorder) -> None:
    # claude can only finish once gpt has started, so a sequential dispatch would deadlock
    started = asyncio.Event()

    async def wait_for_gpt(prompt: str) -> str:
        await started.wait()
        return "A"

    class WaitingClient(FakeClient):
        async def complete(self, model: str, prompt: str, max_tokens: int) -> str:
            return await wait_for_gpt(prompt)

    class SignallingClient(FakeClient):
        async def complete(self, model: str, prompt: str, max_tokens: int) -> str:
            started.set()
            return "B"

    registry = make_registry(
        {"claude": WaitingClient(), "gpt": SignallingClient()},
        names=["claude", "gpt"],
    )

    async def run():
        return await asyncio.wait_for(dispatch(registry, QUERY, policy, 50, sleep=sleep), timeout=2)

    answers = asyncio.run(run())
    assert answers == {
        "claude": "A alternativa correta é (A)",
        "gpt": "A alternativa correta é (B)",
    }


def test_deadline_prevents_a_hanging_provider_from_blocking_others(sleep: SleepRecorder) -> None:
    policy = RetryPolicy(max_retries=2, initial_retry_delay_s=0.0, timeout_s=60.0)
    registry = make_registry(
        {"claude": FakeClient(answer=HANG), "gemini": FakeClient(answer="VERDADEIRO")},
        names=["claude", "gemini"],
    )
    query = Query(text="Item", item_id="1", question_type="binary")

    async def run():
        return await asyncio.wait_for(
            dispatch(registry, query, policy, 50, deadline_s=0.05, sleep=sleep),
            timeout=2,
        )

    answers = asyncio.run(run())
    assert answers == {"claude": None, "gemini": "VERDADEIRO"}


def test_unexpected_failure_in_one_provider_maps_to_none(policy: RetryPolicy, sleep: SleepRecorder, monkeypatch) -> None:
    real_invoke = dispatcher.invoke_provider

    async def invoke(provider, *args, **kwargs):
        if provider.name == "gemini":
            raise RuntimeError("parser crashed")
        return await real_invoke(provider, *args, **kwargs)

    monkeypatch.setattr(dispatcher, "invoke_provider", invoke)
    registry = make_registry(
        {"claude": FakeClient(answer="(C)"), "gemini": FakeClient(answer="(A)")},
        names=["claude", "gemini"],
    )

    answers = asyncio.run(dispatch(registry, QUERY, policy, 50, sleep=sleep))

    assert answers == {"claude": "A alternativa correta é (C)", "gemini": None}
