def compute_stats(attempts: list) -> dict:
    def make_bucket(items: list) -> dict:
        ok = [a for a in items if a.get("status") == "ok"]
        timeout = [a for a in items if a.get("status") == "timeout"]
        retryable = [a for a in items if a.get("status") == "retryable"]
        unavailable = [a for a in items if a.get("status") == "model_unavailable"]
        error = [a for a in items if a.get("status") == "error"]

        denom = len(items)

        ok_latencies = [a["latency_ms"] for a in ok if a.get("latency_ms") is not None]

        return {
            "attempts_total": len(items),
            "calls_ok": len(ok),
            "calls_timeout": len(timeout),
            "calls_retryable": len(retryable),
            "calls_model_unavailable": len(unavailable),
            "calls_error": len(error),
            "retries": sum(1 for a in items if (a.get("attempt") or 0) > 0),
            "valid_rate": len(ok) / denom if denom > 0 else 0.0,
            "timeout_rate": len(timeout) / denom if denom > 0 else 0.0,
            "avg_latency_ms_ok": sum(ok_latencies) / len(ok_latencies) if ok_latencies else 0.0,
        }

    overall = make_bucket(attempts)

    grouped = {}
    grouped_model = {}
    for a in attempts:
        provider = a.get("provider")
        model_id = a.get("model_id")
        if provider:
            grouped.setdefault(provider, []).append(a)
            if model_id:
                grouped_model.setdefault(f"{provider}:{model_id}", []).append(a)

    return {
        "overall": overall,
        "per_provider": {k: make_bucket(v) for k, v in grouped.items()},
        "per_provider_model": {k: make_bucket(v) for k, v in grouped_model.items()},
    }
