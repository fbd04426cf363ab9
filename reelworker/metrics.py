"""
Thread-safe in-memory run metrics.

Counts run outcomes, enhancement fallbacks and rollback deletes, and keeps
recent run latencies and failures for the /metrics endpoint. Failures are
also counted per phase. Resets on restart.
"""

import time
import threading
from collections import Counter, defaultdict, deque
from typing import Deque, Dict, List

MAX_SAMPLES = 100
MAX_ERRORS = 50

_lock = threading.Lock()
_counters: Counter = Counter()
_failures_by_phase: Counter = Counter()
_latency_samples: Dict[str, Deque[float]] = defaultdict(lambda: deque(maxlen=MAX_SAMPLES))
_recent_errors: Deque[dict] = deque(maxlen=MAX_ERRORS)
_started_at = time.time()


def inc_counter(name: str, amount: int = 1):
    """Increment a counter (e.g. 'runs.started', 'rollback.failed')."""
    with _lock:
        _counters[name] += amount


def record_latency(name: str, duration_ms: float):
    with _lock:
        _latency_samples[name].append(duration_ms)


def record_error(run_id: str, phase: str, error_type: str, message: str):
    """Log a failed run along with the phase it was in when it failed."""
    with _lock:
        _failures_by_phase[phase] += 1
        _recent_errors.append({
            "timestamp": time.time(),
            "run_id": run_id,
            "phase": phase,
            "error_type": error_type,
            "message": message[:300],
        })


def _percentile(samples: List[float], pct: float) -> float:
    if not samples:
        return 0.0
    ordered = sorted(samples)
    idx = min(len(ordered) - 1, int(round(pct / 100 * (len(ordered) - 1))))
    return round(ordered[idx], 1)


def get_snapshot() -> dict:
    with _lock:
        latency = {}
        for name, samples in _latency_samples.items():
            values = list(samples)
            latency[name] = {
                "count": len(values),
                "p50_ms": _percentile(values, 50),
                "p95_ms": _percentile(values, 95),
            }
        return {
            "uptime_seconds": round(time.time() - _started_at, 1),
            "counters": dict(_counters),
            "failures_by_phase": dict(_failures_by_phase),
            "latency": latency,
            "recent_errors": list(_recent_errors),
        }


def reset():
    """Clear everything. Used by tests."""
    with _lock:
        _counters.clear()
        _failures_by_phase.clear()
        _latency_samples.clear()
        _recent_errors.clear()
