"""Turns a frozen middleware chain into a FastAPI app."""
from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.middleware import MiddlewareUnit, UnitKind
from stagehand.version import __version__
from stagehand.context import RequestContext

if TYPE_CHECKING:  # pragma: no cover
    from stagehand.application import Application


def _dispatch_for(unit: MiddlewareUnit, application: "Application"):
    async def dispatch(request: Request, call_next):
        ctx = RequestContext.of(request, application)
        ctx.request = request
        return await unit.handler(ctx, lambda: call_next(request))

    dispatch.__name__ = f"unit_{unit.name.replace('-', '_')}"
    return dispatch


def build_http_app(application: "Application") -> FastAPI:
    http = FastAPI(
        title=application.settings.app.name,
        version=__version__,
        docs_url=None,
        redoc_url=None,
    )
    http.state.stagehand = application
    units = application.middleware.ordered()
    # add_middleware prepends: add innermost first so the chain's first
    # unit ends up outermost
    for unit in reversed(units):
        if unit.kind is UnitKind.MIDDLEWARE:
            http.add_middleware(
                BaseHTTPMiddleware, dispatch=_dispatch_for(unit, application)
            )
        elif unit.kind is UnitKind.ASGI:
            middleware_cls, options = unit.handler
            http.add_middleware(middleware_cls, **options)
    for unit in units:
        if unit.kind is UnitKind.ROUTING:
            unit.handler(http)
    return http


__all__ = ["build_http_app"]
