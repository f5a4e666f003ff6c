from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

from .config import EngineConfig, Query
from .dispatcher import dispatch
from .invoker import Sleep, call_with_fallback
from .prompts import build_justification_prompt
from .registry import ProviderRegistry
from .resolver import ConsensusResult, build_ballot, resolve

logger = logging.getLogger(__name__)

NO_JUSTIFICATION = "Não foi possível gerar uma justificativa."
UNDETERMINED = "INDETERMINADO"


async def _consensus(
    query: Query,
    registry: ProviderRegistry,
    config: EngineConfig,
    run_id: str,
    semaphore: Optional[asyncio.Semaphore],
    on_attempt: Optional[Callable],
    sleep: Sleep,
) -> tuple[dict, Optional[ConsensusResult]]:
    answers = await dispatch(
        registry, query, config.retry, config.budget_for(query.question_type),
        config.provider_deadline_s, run_id, semaphore, on_attempt, sleep,
    )
    ballot = build_ballot(answers, registry.weights, query.question_type)
    result = resolve(ballot, query.question_type, registry.principals, config.discursive_score_cap)
    if result is None:
        logger.warning("Item %s: no provider answered, result undetermined", query.item_id)
    else:
        logger.info("Item %s: %s (%s)", query.item_id, result.answer[:80], result.rule)
    return answers, result


async def resolve_answer(
    query: Query,
    registry: ProviderRegistry,
    config: EngineConfig,
    run_id: str = "",
    semaphore: Optional[asyncio.Semaphore] = None,
    on_attempt: Optional[Callable] = None,
    sleep: Sleep = asyncio.sleep,
) -> Optional[ConsensusResult]:
    """
    Ask every provider about one query and return the consensus.

    Provider failures never propagate; None means no provider answered and
    the item should be treated as undetermined.
    """
    _, result = await _consensus(query, registry, config, run_id, semaphore, on_attempt, sleep)
    return result


async def justify(
    query: Query,
    answer: str,
    registry: ProviderRegistry,
    config: EngineConfig,
    run_id: str = "",
    semaphore: Optional[asyncio.Semaphore] = None,
    on_attempt: Optional[Callable] = None,
    sleep: Sleep = asyncio.sleep,
) -> str:
    """Short rationale for an answer from the justification provider, models in order, no retries."""
    name = config.justification_provider
    provider = registry.get(name) if name else None
    if provider is None or not provider.configured:
        return NO_JUSTIFICATION

    policy = config.retry.model_copy(update={"max_retries": 0})
    text = await call_with_fallback(
        provider, build_justification_prompt(query, answer), config.justification_max_tokens,
        policy, query.item_id, run_id, semaphore, on_attempt, sleep,
    )
    if not text or not text.strip():
        return NO_JUSTIFICATION
    return text.strip()


async def analyze_item(
    query: Query,
    registry: ProviderRegistry,
    config: EngineConfig,
    run_id: str = "",
    semaphore: Optional[asyncio.Semaphore] = None,
    on_attempt: Optional[Callable] = None,
    sleep: Sleep = asyncio.sleep,
) -> dict:
    answers, result = await _consensus(query, registry, config, run_id, semaphore, on_attempt, sleep)
    item = {
        "item_id": query.item_id,
        "question_type": query.question_type,
        "question": query.text,
        "answer": result.answer if result else None,
        "rule": result.rule if result else None,
        "tally": result.tally if result else {},
        "responses": answers,
    }
    if query.question_type == "choice":
        item["except_question"] = query.except_question
    if query.question_type == "binary" and result is not None:
        item["justification"] = await justify(
            query, result.answer, registry, config, run_id, semaphore, on_attempt, sleep
        )
    return item


async def analyze_items(
    queries: list[Query],
    registry: ProviderRegistry,
    config: EngineConfig,
    run_id: str = "",
    on_attempt: Optional[Callable] = None,
    sleep: Sleep = asyncio.sleep,
) -> list[dict]:
    """Resolve every item of one image concurrently; results keep the input order."""
    semaphore = asyncio.Semaphore(config.max_concurrency)
    logger.info("Analysing %d item(s) with %d configured provider(s)", len(queries), len(registry.configured()))
    tasks = [
        analyze_item(q, registry, config, run_id, semaphore, on_attempt, sleep)
        for q in queries
    ]
    return list(await asyncio.gather(*tasks))


def format_analysis_result(items: list[dict]) -> str:
    if not items:
        return "Não foi possível analisar as questões"

    result = "RESULTADO DA ANÁLISE:\n\n"
    for item in items:
        result += f"Item {item['item_id']}: {item.get('answer') or UNDETERMINED}\n"
        if item.get("justification"):
            result += f"Justificativa: {item['justification']}\n"
        result += "\n"
    return result
