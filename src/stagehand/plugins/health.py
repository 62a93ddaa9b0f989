"""``GET /health``: liveness plus the current boot stage."""
from __future__ import annotations

from typing import Any, Mapping

from fastapi import APIRouter, Depends

from stagehand.version import __version__
from stagehand.context import RequestContext, get_context


def _build_router(path: str) -> APIRouter:
    router = APIRouter()

    @router.get(path)
    def health(ctx: RequestContext = Depends(get_context)):  # noqa: D401
        return {
            "status": "ok",
            "stage": ctx.app.stage.name.lower(),
            "version": __version__,
        }

    return router


def plugin(app: Any, options: Mapping[str, Any]) -> None:
    app.add_router(_build_router(options.get("path", "/health")))
