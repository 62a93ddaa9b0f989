"""``GET /metrics``: in-process counters and histograms as JSON."""
from __future__ import annotations

from typing import Any, Mapping

from fastapi import APIRouter

from core import metrics


def plugin(app: Any, options: Mapping[str, Any]) -> None:
    router = APIRouter()

    @router.get(options.get("path", "/metrics"))
    def metrics_snapshot():  # noqa: D401
        return metrics.snapshot()

    app.add_router(router)
