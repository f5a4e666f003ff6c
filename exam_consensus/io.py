import csv
import json
import logging
import random
import string
import time
from datetime import datetime
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

RESPONSES_DIR = "responses"


def generate_run_id() -> str:
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    rand = "".join(random.choices(string.ascii_lowercase + string.digits, k=6))
    return f"{ts}_{rand}"


def _ensure_dir(out_dir) -> Path:
    p = Path(out_dir)
    p.mkdir(parents=True, exist_ok=True)
    return p


def _write_json(path: Path, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)


def save_response(base_dir: str, text: str) -> str:
    """Write the final formatted result for audit; returns its path relative to base_dir."""
    p = _ensure_dir(Path(base_dir) / RESPONSES_DIR)
    filename = f"response-{int(time.time() * 1000)}.txt"
    (p / filename).write_text(text, encoding="utf-8")
    logger.info("Response saved to %s", p / filename)
    return f"{RESPONSES_DIR}/{filename}"


class CallLog:
    """on_attempt callback: keeps every attempt record and appends it to call_logs.jsonl as it arrives."""

    def __init__(self, out_dir: str) -> None:
        self.path = _ensure_dir(out_dir) / "call_logs.jsonl"
        self.attempts: list[dict] = []

    def __call__(self, record: dict) -> None:
        self.attempts.append(record)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, ensure_ascii=False) + "\n")


def write_resolved_config(out_dir: str, config) -> None:
    _write_json(_ensure_dir(out_dir) / "resolved_config.json", config.model_dump(mode="json"))


def write_results(out_dir: str, run_id: str, items: list[dict], formatted: str, response_ref: str) -> None:
    _write_json(_ensure_dir(out_dir) / "results.json", {
        "run_id": run_id,
        "items": items,
        "formatted_result": formatted,
        "response_url": response_ref,
    })


def _stats_rows(stats: dict) -> list[dict]:
    rows = [{"bucket": "overall", **stats["overall"]}] if "overall" in stats else []
    rows += [{"bucket": f"provider:{name}", **data} for name, data in stats.get("per_provider", {}).items()]
    rows += [{"bucket": key, **data} for key, data in stats.get("per_provider_model", {}).items()]
    return rows


def write_stats(out_dir: str, stats: dict) -> None:
    p = _ensure_dir(out_dir)
    _write_json(p / "stats.json", stats)

    rows = _stats_rows(stats)
    if rows:
        with open(p / "stats.csv", "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=rows[0].keys())
            writer.writeheader()
            writer.writerows(rows)
