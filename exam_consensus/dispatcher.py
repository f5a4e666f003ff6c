from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

from .config import Query, RetryPolicy
from .invoker import Sleep, invoke_provider
from .registry import Provider, ProviderRegistry

logger = logging.getLogger(__name__)


async def _ask(
    provider: Provider,
    query: Query,
    policy: RetryPolicy,
    max_tokens: int,
    deadline_s: Optional[float],
    run_id: str,
    semaphore: Optional[asyncio.Semaphore],
    on_attempt: Optional[Callable],
    sleep: Sleep,
) -> Optional[str]:
    if not provider.configured:
        logger.info("%s: not configured, no answer for item %s", provider.name, query.item_id)
        return None

    call = invoke_provider(provider, query, policy, max_tokens, run_id, semaphore, on_attempt, sleep)
    if deadline_s is None:
        return await call
    try:
        return await asyncio.wait_for(call, timeout=deadline_s)
    except asyncio.TimeoutError:
        logger.error("%s: gave up on item %s after %.1fs", provider.name, query.item_id, deadline_s)
        return None


async def dispatch(
    registry: ProviderRegistry,
    query: Query,
    policy: RetryPolicy,
    max_tokens: int,
    deadline_s: Optional[float] = None,
    run_id: str = "",
    semaphore: Optional[asyncio.Semaphore] = None,
    on_attempt: Optional[Callable] = None,
    sleep: Sleep = asyncio.sleep,
) -> dict[str, Optional[str]]:
    """
    Query every provider concurrently and wait for all of them to settle.

    Returns one entry per provider, in registry order; a provider that failed,
    raised or ran past the deadline maps to None.
    """
    providers = list(registry)
    tasks = [
        _ask(p, query, policy, max_tokens, deadline_s, run_id, semaphore, on_attempt, sleep)
        for p in providers
    ]
    results = await asyncio.gather(*tasks, return_exceptions=True)

    answers: dict[str, Optional[str]] = {}
    for provider, result in zip(providers, results):
        if isinstance(result, BaseException):
            logger.error("%s: unexpected failure on item %s: %r", provider.name, query.item_id, result)
            answers[provider.name] = None
        else:
            answers[provider.name] = result
    return answers
