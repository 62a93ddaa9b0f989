"""Routing-slot units: route dispatch, allowed-methods, static fallback.

These are installers run against the assembled FastAPI app, in chain
order, so the resulting route table is: application routes, then the
allowed-methods catcher, then the static mount at "/".
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterable, Set, Tuple

from fastapi import FastAPI
from fastapi.staticfiles import StaticFiles
from starlette.responses import PlainTextResponse, Response
from starlette.routing import BaseRoute, Match, NoMatchFound, Route
from starlette.types import Receive, Scope, Send

from core.config.schemas.static import StaticConfig

if TYPE_CHECKING:  # pragma: no cover
    from stagehand.application import Application

logger = logging.getLogger("stagehand.http")

Installer = Callable[[FastAPI], None]

ALLOW_SCOPE_KEY = "stagehand.allow"

# methods answered with 405 rather than 501 when a path lacks them
IMPLEMENTED_METHODS = frozenset(
    {"HEAD", "OPTIONS", "GET", "PUT", "PATCH", "POST", "DELETE"}
)


class AllowedMethodsRoute(BaseRoute):
    """Answers requests whose path matches a route but whose method doesn't.

    OPTIONS → 200 with ``Allow``; a method outside ``IMPLEMENTED_METHODS``
    → 501; otherwise 405 with ``Allow``. Requests no route matches by path
    fall through.

    Routes are read from the application's own routers at request time,
    not from the assembled app, whose route table may hold included
    routers as single opaque entries.
    """

    def __init__(self, sources: Callable[[], Iterable[BaseRoute]]) -> None:
        self._sources = sources

    def _http_routes(self) -> list[Route]:
        return [r for r in self._sources() if isinstance(r, Route)]

    def _allowed(self, scope: Scope) -> Set[str]:
        allowed: Set[str] = set()
        for route in self._http_routes():
            match, _ = route.matches(scope)
            if match is not Match.NONE and route.methods:
                allowed |= route.methods
        return allowed

    def matches(self, scope: Scope) -> Tuple[Match, Scope]:
        if scope["type"] != "http":
            return Match.NONE, {}
        allowed = self._allowed(scope)
        if not allowed:
            return Match.NONE, {}
        return Match.FULL, {ALLOW_SCOPE_KEY: allowed}

    def url_path_for(self, name: str, /, **path_params: Any):
        raise NoMatchFound(name, path_params)

    async def handle(self, scope: Scope, receive: Receive, send: Send) -> None:
        allow = ", ".join(sorted(scope[ALLOW_SCOPE_KEY]))
        method = scope["method"]
        response: Response
        if method == "OPTIONS":
            response = Response(status_code=200, headers={"Allow": allow})
        elif method not in IMPLEMENTED_METHODS:
            response = PlainTextResponse("Not Implemented", status_code=501)
        else:
            response = PlainTextResponse(
                "Method Not Allowed", status_code=405, headers={"Allow": allow}
            )
        await response(scope, receive, send)


class CachedStaticFiles(StaticFiles):
    """StaticFiles adding ``Cache-Control: max-age`` when configured."""

    def __init__(self, *args: Any, max_age: int = 0, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.max_age = max_age

    def file_response(self, *args: Any, **kwargs: Any) -> Response:
        response = super().file_response(*args, **kwargs)
        if self.max_age > 0:
            response.headers.setdefault(
                "Cache-Control", f"public, max-age={self.max_age}"
            )
        return response


def route_dispatch(application: "Application") -> Installer:
    def install(http: FastAPI) -> None:
        http.include_router(application.router)
        for extra in application.routers:
            http.include_router(extra)

    return install


def allowed_methods(application: "Application") -> Installer:
    def sources() -> list[BaseRoute]:
        routes = list(application.router.routes)
        for extra in application.routers:
            routes.extend(extra.routes)
        return routes

    def install(http: FastAPI) -> None:
        http.router.routes.append(AllowedMethodsRoute(sources))

    return install


def static_fallback(config: StaticConfig, root: Path) -> Installer:
    """Mount ``config.dir`` (relative to ``root``) at "/".

    No-op when no directory is configured or it does not exist.
    """

    def install(http: FastAPI) -> None:
        if not config.dir:
            return
        directory = Path(config.dir)
        if not directory.is_absolute():
            directory = root / directory
        if not directory.is_dir():
            logger.warning("static directory %s not found; fallback off", directory)
            return
        http.mount(
            "/",
            CachedStaticFiles(
                directory=directory,
                html=config.html,
                check_dir=False,
                max_age=config.max_age,
            ),
            name="static",
        )

    return install


__all__ = [
    "AllowedMethodsRoute",
    "IMPLEMENTED_METHODS",
    "CachedStaticFiles",
    "route_dispatch",
    "allowed_methods",
    "static_fallback",
]
