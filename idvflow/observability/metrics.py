"""
Observability Metrics
---------------------
Lightweight Redis counters/timers for the verification flow and a snapshot
consumed by /admin/metrics. Recording is best-effort: a Redis hiccup must
never change a flow outcome, so writers swallow store errors and log them.
"""
from __future__ import annotations
import time
from typing import Dict, List

from redis.exceptions import RedisError

from idvflow.observability.logging import log
from idvflow.store.redis_conn import get_redis

K_CAPTURE_ISSUED = "metrics:idv:capture_issued"      # INCR
K_OUTCOME_PREFIX = "metrics:idv:outcome:"            # INCR per outcome id
K_PROVIDER_LAT = "metrics:idv:provider:latencies"    # LPUSH ms

_MAX_SAMPLES = 500

def _percentile(data: List[float], p: float) -> float:
    """Deterministic percentile (nearest-rank on sorted data)."""
    if not data:
        return 0.0
    d = sorted(data)
    k = max(1, int(round(p * len(d))))
    return float(d[k - 1])

def increment_capture_issued() -> None:
    try:
        get_redis().incr(K_CAPTURE_ISSUED, 1)
    except RedisError as e:
        log(event="metrics_write_failed", metric=K_CAPTURE_ISSUED, error=str(e))

def increment_outcome(outcome_id: str) -> None:
    key = f"{K_OUTCOME_PREFIX}{outcome_id}"
    try:
        get_redis().incr(key, 1)
    except RedisError as e:
        log(event="metrics_write_failed", metric=key, error=str(e))

def record_provider_latency(ms: int) -> None:
    try:
        r = get_redis()
        r.lpush(K_PROVIDER_LAT, int(ms))
        r.ltrim(K_PROVIDER_LAT, 0, _MAX_SAMPLES - 1)
    except RedisError as e:
        log(event="metrics_write_failed", metric=K_PROVIDER_LAT, error=str(e))

def _int(raw) -> int:
    try:
        return int(raw or 0)
    except (TypeError, ValueError):
        return 0

def snapshot(outcome_ids: List[str]) -> Dict[str, object]:
    r = get_redis()
    lat = [float(x) for x in (r.lrange(K_PROVIDER_LAT, 0, _MAX_SAMPLES - 1) or []) if str(x).isdigit()]
    return {
        "ts": int(time.time()),
        "captureIssued": _int(r.get(K_CAPTURE_ISSUED)),
        "outcomes": {oid: _int(r.get(f"{K_OUTCOME_PREFIX}{oid}")) for oid in outcome_ids},
        "providerLatencyMs": {
            "p50": _percentile(lat, 0.50),
            "p95": _percentile(lat, 0.95),
            "samples": len(lat),
        },
    }
