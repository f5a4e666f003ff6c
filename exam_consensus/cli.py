import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from .config import EngineConfig
from .engine import analyze_items, format_analysis_result
from .errors import ExtractionError
from .extraction import extract_queries, load_queries
from .io import (
    CallLog, generate_run_id, write_resolved_config,
    write_results, write_stats, save_response,
)
from .registry import ProviderRegistry
from .stats import compute_stats


def _load_config(path: Optional[str]) -> EngineConfig:
    if not path:
        return EngineConfig.default()
    with open(path) as f:
        config_data = json.load(f)
    # A config without providers only tunes the defaults
    if "providers" not in config_data:
        return EngineConfig.default(**config_data)
    return EngineConfig(**config_data)


async def _solve(args, config: EngineConfig, registry: ProviderRegistry, run_id: str, on_attempt) -> list[dict]:
    if args.questions:
        queries = load_queries(args.questions)
    else:
        extractor = registry.get(config.extraction_provider)
        queries = await extract_queries(
            args.image,
            args.type,
            extractor.client if extractor else None,
            config.extraction_model,
            config.extraction_max_tokens,
            config.extraction_timeout_s,
        )
    return await analyze_items(queries, registry, config, run_id, on_attempt)


def cmd_solve(args):
    config = _load_config(args.config)
    registry = ProviderRegistry.from_config(config)
    run_id = generate_run_id()
    write_resolved_config(args.out, config)

    call_log = CallLog(args.out)
    try:
        items = asyncio.run(_solve(args, config, registry, run_id, call_log))
    except ExtractionError as e:
        print(f"Extraction failed: {e}", file=sys.stderr)
        sys.exit(1)

    formatted = format_analysis_result(items)
    reference = save_response(args.out, formatted)

    write_results(args.out, run_id, items, formatted, reference)
    write_stats(args.out, compute_stats(call_log.attempts))

    print(formatted)
    print(f"Run complete. Output: {args.out} ({reference})")


def cmd_providers(args):
    config = _load_config(args.config)
    registry = ProviderRegistry.from_config(config)
    for p in registry:
        state = "configured" if p.configured else "not configured"
        flag = " principal" if p.principal else ""
        print(f"{p.name:<10} weight={p.weight}{flag} [{state}] models: {', '.join(p.models)}")


def main():
    parser = argparse.ArgumentParser(prog="exam_consensus")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log provider attempts and vote tallies")
    subparsers = parser.add_subparsers(dest="command", required=True)

    solve_parser = subparsers.add_parser("solve", help="Answer the questions in an image or a JSON file")
    source = solve_parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--image", help="Exam question image")
    source.add_argument("--questions", help="JSON file with queries (text, item_id, question_type)")
    solve_parser.add_argument("--type", choices=["binary", "choice", "discursive"], default="choice",
                              help="Question type of the image")
    solve_parser.add_argument("--config", help="Config JSON file")
    solve_parser.add_argument("--out", required=True, help="Output directory")
    solve_parser.set_defaults(func=cmd_solve)

    providers_parser = subparsers.add_parser("providers", help="Show provider configuration")
    providers_parser.add_argument("--config", help="Config JSON file")
    providers_parser.set_defaults(func=cmd_providers)

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    args.func(args)


if __name__ == "__main__":
    main()
