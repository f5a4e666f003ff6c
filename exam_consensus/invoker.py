from __future__ import annotations
import asyncio
import logging
import time
from contextlib import nullcontext
from datetime import datetime, timezone
from typing import Awaitable, Callable, Optional

from .config import Query, RetryPolicy
from .errors import ErrorKind, classify_error, is_timeout
from .normalize import normalize_answer
from .prompts import build_prompt
from .registry import Provider

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]

_STATUS_BY_KIND = {
    ErrorKind.MODEL_UNAVAILABLE: "model_unavailable",
    ErrorKind.TRANSIENT: "retryable",
    ErrorKind.OTHER: "error",
}


def _build_attempt_record(
    run_id, provider, item_id, model_id, attempt,
    started_at, ended_at, latency_ms, status, error_kind, error_message, response_text
) -> dict:
    return {
        "run_id": run_id,
        "provider": provider,
        "item_id": item_id,
        "model_id": model_id,
        "attempt": attempt,
        "started_at": started_at,
        "ended_at": ended_at,
        "latency_ms": latency_ms,
        "status": status,
        "error_kind": error_kind,
        "error_message": error_message,
        "response_text": response_text,
    }


async def call_with_fallback(
    provider: Provider,
    prompt: str,
    max_tokens: int,
    policy: RetryPolicy,
    item_id: str = "",
    run_id: str = "",
    semaphore: Optional[asyncio.Semaphore] = None,
    on_attempt: Optional[Callable[[dict], None]] = None,
    sleep: Sleep = asyncio.sleep,
) -> Optional[str]:
    """
    Walk the provider's candidate models until one returns text.

    Each model gets up to max_retries + 1 attempts, each bounded by
    policy.timeout_s. Rate limits, overloads and timeouts retry the same
    model with exponential backoff; an unknown model or any other error moves
    on to the next model at once. Returns None when every model failed.
    """
    if provider.client is None:
        logger.info("%s: client not configured, skipping", provider.name)
        return None

    for model_id in provider.models:
        delay = policy.initial_retry_delay_s
        for attempt in range(policy.max_retries + 1):
            if attempt > 0:
                logger.info("%s: querying %s (attempt %d/%d)", provider.name, model_id, attempt + 1, policy.max_retries + 1)
            else:
                logger.info("%s: querying %s", provider.name, model_id)

            started_at = datetime.now(timezone.utc).isoformat()
            start_ms = time.perf_counter() * 1000
            try:
                async with semaphore if semaphore is not None else nullcontext():
                    text = await asyncio.wait_for(
                        provider.client.complete(model_id, prompt, max_tokens),
                        timeout=policy.timeout_s,
                    )
            except Exception as exc:
                kind = classify_error(exc)
                status = "timeout" if is_timeout(exc) else _STATUS_BY_KIND[kind]
                message = f"Timed out after {policy.timeout_s}s" if is_timeout(exc) else str(exc)
                if on_attempt:
                    on_attempt(_build_attempt_record(
                        run_id, provider.name, item_id, model_id, attempt,
                        started_at, datetime.now(timezone.utc).isoformat(),
                        time.perf_counter() * 1000 - start_ms, status, kind.value, message, None,
                    ))

                if kind is ErrorKind.MODEL_UNAVAILABLE:
                    logger.warning("%s: model %s not found or not supported, trying next model", provider.name, model_id)
                    break
                if kind is not ErrorKind.TRANSIENT:
                    logger.warning("%s: error with model %s (%s), trying next model", provider.name, model_id, message)
                    break
                if attempt >= policy.max_retries:
                    logger.warning("%s: retries exhausted for %s, trying next model", provider.name, model_id)
                    break

                logger.info(
                    "%s: %s on %s, waiting %.1fs before retry",
                    provider.name, "timeout" if status == "timeout" else "rate limited/overloaded", model_id, delay,
                )
                await sleep(delay)
                delay *= 2
                continue

            if on_attempt:
                on_attempt(_build_attempt_record(
                    run_id, provider.name, item_id, model_id, attempt,
                    started_at, datetime.now(timezone.utc).isoformat(),
                    time.perf_counter() * 1000 - start_ms, "ok", None, None, text,
                ))
            return text

    logger.error("%s: all models failed", provider.name)
    return None


async def invoke_provider(
    provider: Provider,
    query: Query,
    policy: RetryPolicy,
    max_tokens: int,
    run_id: str = "",
    semaphore: Optional[asyncio.Semaphore] = None,
    on_attempt: Optional[Callable[[dict], None]] = None,
    sleep: Sleep = asyncio.sleep,
) -> Optional[str]:
    """Ask one provider about one query; returns its normalized answer or None."""
    raw = await call_with_fallback(
        provider, build_prompt(query), max_tokens, policy,
        query.item_id, run_id, semaphore, on_attempt, sleep,
    )
    if raw is None:
        return None
    answer = normalize_answer(raw, query.question_type)
    if not answer:
        return None
    logger.debug("%s: item %s answered %r", provider.name, query.item_id, answer[:80])
    return answer
