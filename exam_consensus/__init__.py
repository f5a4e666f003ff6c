"""
Exam Consensus - answer exam questions by weighted voting across LLM providers.

The engine works in three steps:
1. Invoke: query each provider, walking its candidate models with timeout,
   retry-with-backoff and model fallback
2. Dispatch: fan the query out to every provider concurrently
3. Resolve: reduce the per-provider answers to one by weighted voting

Key features:
- True/false, multiple choice (A-E) and discursive questions
- Trust weights and priority-ordered tie-breaks
- Graceful degradation when providers are missing or failing
- Vision extraction of questions from an exam image
"""

from .config import EngineConfig, ProviderConfig, RetryPolicy, Query
from .registry import Provider, ProviderRegistry
from .engine import resolve_answer, analyze_items, format_analysis_result
from .resolver import ConsensusResult, Vote, build_ballot, resolve
from .normalize import normalize_answer
from .errors import ErrorKind, ProviderError, classify_error

__all__ = [
    # Config
    "EngineConfig",
    "ProviderConfig",
    "RetryPolicy",
    "Query",
    # Providers
    "Provider",
    "ProviderRegistry",
    # Engine
    "resolve_answer",
    "analyze_items",
    "format_analysis_result",
    # Consensus
    "ConsensusResult",
    "Vote",
    "build_ballot",
    "resolve",
    "normalize_answer",
    # Errors
    "ErrorKind",
    "ProviderError",
    "classify_error",
]
