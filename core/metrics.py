"""Minimal in-memory metrics collector.

Purpose:
    - Counters and simple latency samples for boot and request tracking.
    - Zero external deps; can be swapped by a Prometheus exporter later.

Core API (intentionally tiny):
    inc(name, labels=None, value=1)
    observe(name, value, labels=None)
    snapshot() -> dict (copy for safe reading)

Thread-safety: coarse RLock; overhead negligible for low event volume.

Metric names (documented for discoverability):
    - core_loads_total
    - boot_ms
    - hooks_run_total{point}
    - hook_exceptions_total{point}
    - plugins_applied_total{plugin}
    - plugin_resolution_errors_total
    - env_override_total{path}
    - config_validation_errors_total{path,code}
    - http_requests_total{method,status}
    - http_request_latency_ms{method}
    - request_errors_total{error_type}
    - notifier_failures_total
"""
from __future__ import annotations

from threading import RLock
from time import time
from typing import Dict, Tuple, Any

_COUNTERS: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], float] = {}
_HIST: Dict[Tuple[str, Tuple[Tuple[str, str], ...]], list] = {}
_LOCK = RLock()

# samples kept per series; older samples are dropped
MAX_SAMPLES = 1024


def _norm_labels(labels: dict[str, Any] | None) -> Tuple[Tuple[str, str], ...]:
    if not labels:
        return tuple()
    return tuple(sorted((str(k), str(v)) for k, v in labels.items()))


def _key_str(name: str, labels: Tuple[Tuple[str, str], ...]) -> str:
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in labels) + "}"


def inc(
    name: str,
    labels: dict[str, Any] | None = None,
    value: float = 1.0,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        _COUNTERS[key] = _COUNTERS.get(key, 0.0) + value


def observe(
    name: str,
    value: float,
    labels: dict[str, Any] | None = None,
) -> None:
    key = (name, _norm_labels(labels))
    with _LOCK:
        samples = _HIST.setdefault(key, [])
        samples.append(value)
        if len(samples) > MAX_SAMPLES:
            del samples[: len(samples) - MAX_SAMPLES]


def counter(name: str, labels: dict[str, Any] | None = None) -> float:
    """Current value of a single counter (0 when never incremented)."""
    with _LOCK:
        return _COUNTERS.get((name, _norm_labels(labels)), 0.0)


def _summary(vals: list) -> dict[str, float]:
    ordered = sorted(vals)
    return {
        "count": len(ordered),
        "sum": sum(ordered),
        "min": ordered[0],
        "max": ordered[-1],
        "p50": ordered[len(ordered) // 2],
        "p95": ordered[min(len(ordered) - 1, int(len(ordered) * 0.95))],
        "last": vals[-1],
    }


def snapshot() -> dict[str, Any]:
    with _LOCK:
        counters = {
            _key_str(name, labels): v
            for (name, labels), v in _COUNTERS.items()
        }
        hist = {
            _key_str(name, labels): _summary(vals)
            for (name, labels), vals in _HIST.items()
            if vals
        }
        return {
            "ts": time(),
            "counters": counters,
            "histograms": hist,
        }


def reset_for_tests() -> None:  # pragma: no cover
    with _LOCK:
        _COUNTERS.clear()
        _HIST.clear()


__all__ = [
    "inc",
    "observe",
    "counter",
    "snapshot",
    "reset_for_tests",
]
