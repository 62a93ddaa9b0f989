"""Hook registry: named lifecycle points → ordered callables.

Features:
  - register(point, fn) appends (never replaces)
  - run(point, *args) awaits each callable in registration order
  - per-point failure policy:
      FAIL_FAST   first failure propagates, the rest are skipped (default)
      BEST_EFFORT failures are logged and counted, the rest still run
  - metrics counters:
      hooks_run_total{point}, hook_exceptions_total{point}

Callables may be plain functions or coroutine functions. A point nobody
registered for runs zero callables.
"""
from __future__ import annotations

import inspect
import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping

from core import metrics

logger = logging.getLogger("stagehand.hooks")

Hook = Callable[..., Any]


class HookPolicy(str, Enum):
    FAIL_FAST = "fail_fast"
    BEST_EFFORT = "best_effort"


STARTED = "started"
STOPPED = "stopped"

DEFAULT_POLICIES: Dict[str, HookPolicy] = {
    STARTED: HookPolicy.FAIL_FAST,
    STOPPED: HookPolicy.BEST_EFFORT,
}


class HookRegistry:
    def __init__(
        self,
        policies: Mapping[str, HookPolicy] | None = None,
        default_policy: HookPolicy = HookPolicy.FAIL_FAST,
    ) -> None:
        self._hooks: Dict[str, List[Hook]] = {}
        self._policies: Dict[str, HookPolicy] = dict(
            DEFAULT_POLICIES if policies is None else policies
        )
        self._default_policy = default_policy

    def register(self, point: str, fn: Hook) -> None:
        if not callable(fn):
            raise TypeError(f"hook for '{point}' must be callable")
        self._hooks.setdefault(point, []).append(fn)

    def extend(self, point: str, fns: Iterable[Hook]) -> None:
        for fn in fns:
            self.register(point, fn)

    def set_policy(self, point: str, policy: HookPolicy) -> None:
        self._policies[point] = HookPolicy(policy)

    def policy(self, point: str) -> HookPolicy:
        return self._policies.get(point, self._default_policy)

    def count(self, point: str) -> int:
        return len(self._hooks.get(point, ()))

    def points(self) -> list[str]:
        return [p for p, fns in self._hooks.items() if fns]

    async def run(self, point: str, *args: Any) -> None:
        # snapshot: hooks registered while running wait for the next run
        fns = list(self._hooks.get(point, ()))
        if not fns:
            return
        policy = self.policy(point)
        metrics.inc("hooks_run_total", {"point": point})
        for fn in fns:
            try:
                result = fn(*args)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                metrics.inc("hook_exceptions_total", {"point": point})
                if policy is HookPolicy.FAIL_FAST:
                    raise
                logger.exception(
                    "hook %r failed on point %s (best-effort)",
                    getattr(fn, "__qualname__", fn),
                    point,
                )

    def __repr__(self) -> str:
        counts = {p: len(fns) for p, fns in self._hooks.items()}
        return f"HookRegistry({counts})"


__all__ = [
    "HookRegistry",
    "HookPolicy",
    "DEFAULT_POLICIES",
    "STARTED",
    "STOPPED",
]
