from __future__ import annotations

import csv
import json

from exam_consensus.config import EngineConfig
from exam_consensus.io import CallLog, save_response, write_resolved_config, write_results, write_stats
from exam_consensus.stats import compute_stats


def _attempt(provider: str, model: str, attempt: int, status: str, latency_ms: float = 100.0) -> dict:
    return {"provider": provider, "model_id": model, "attempt": attempt, "status": status, "latency_ms": latency_ms}


ATTEMPTS = [
    _attempt("claude", "sonnet", 0, "retryable"),
    _attempt("claude", "sonnet", 1, "ok", 300.0),
    _attempt("gemini", "flash", 0, "model_unavailable"),
    _attempt("gemini", "pro", 0, "timeout"),
    _attempt("gemini", "pro", 1, "ok", 100.0),
    _attempt("gpt", "gpt-4o", 0, "error"),
]


def test_compute_stats() -> None:
    stats = compute_stats(ATTEMPTS)

    overall = stats["overall"]
    assert overall["attempts_total"] == 6
    assert overall["calls_ok"] == 2
    assert overall["calls_retryable"] == 1
    assert overall["calls_model_unavailable"] == 1
    assert overall["calls_timeout"] == 1
    assert overall["calls_error"] == 1
    assert overall["retries"] == 2
    assert overall["avg_latency_ms_ok"] == 200.0

    assert list(stats["per_provider"]) == ["claude", "gemini", "gpt"]
    assert stats["per_provider"]["gpt"]["valid_rate"] == 0.0
    assert stats["per_provider_model"]["gemini:pro"]["timeout_rate"] == 0.5


def test_compute_stats_empty() -> None:
    stats = compute_stats([])
    assert stats["overall"]["valid_rate"] == 0.0
    assert stats["per_provider"] == {}


def test_save_response(tmp_path) -> None:
    ref = save_response(str(tmp_path), "RESULTADO DA ANÁLISE:\n\nItem 1: FALSO\n\n")

    assert ref.startswith("responses/response-")
    assert ref.endswith(".txt")
    assert (tmp_path / ref).read_text(encoding="utf-8").startswith("RESULTADO DA ANÁLISE")


def test_call_log_appends_jsonl(tmp_path) -> None:
    log = CallLog(str(tmp_path / "run"))
    for record in ATTEMPTS[:2]:
        log(record)

    lines = (tmp_path / "run" / "call_logs.jsonl").read_text(encoding="utf-8").splitlines()
    assert [json.loads(line)["status"] for line in lines] == ["retryable", "ok"]
    assert log.attempts == ATTEMPTS[:2]


def test_run_artefacts(tmp_path) -> None:
    write_resolved_config(str(tmp_path), EngineConfig.default())
    write_results(str(tmp_path), "run-1", [{"item_id": "1", "answer": "VERDADEIRO"}], "texto", "responses/r.txt")
    write_stats(str(tmp_path), compute_stats(ATTEMPTS))

    config = json.loads((tmp_path / "resolved_config.json").read_text(encoding="utf-8"))
    assert [p["name"] for p in config["providers"]][:2] == ["claude", "gemini"]

    results = json.loads((tmp_path / "results.json").read_text(encoding="utf-8"))
    assert results["run_id"] == "run-1"
    assert results["response_url"] == "responses/r.txt"

    with open(tmp_path / "stats.csv", newline="", encoding="utf-8") as f:
        buckets = [row["bucket"] for row in csv.DictReader(f)]
    assert buckets[:2] == ["overall", "provider:claude"]
    assert "gemini:flash" in buckets
