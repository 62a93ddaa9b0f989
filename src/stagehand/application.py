"""Application: staged boot of one HTTP listener.

Stages (monotonic, each reached at most once):

    UNINITIALIZED → CORE_LOADED → BODY_CONFIGURED → LISTENING → CLOSED

``core()``, ``body()``, ``plugin()`` and ``hook()`` may be called in any
order before ``start()``; each promotes the earlier stages it depends on.
``start()`` completes whatever was skipped, so the assembled middleware
chain is the same whatever the call order was.

The Application is passed explicitly to plugins, hooks and (through the
RequestContext) to every middleware unit and route handler.
"""
from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping

from fastapi import APIRouter, FastAPI
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from core import metrics
from core.config import AggregatedConfig, get_config
from core.errors import map_exception
from core.exceptions import ConfigError, ListenError, PluginResolutionError
from core.hooks import STARTED, STOPPED, HookRegistry
from core.lifecycle import Stage, StageMachine
from core.loaders import CacheLoader, ModelDefinition, ModelLoader, RouterLoader
from core.middleware import MiddlewareChain, MiddlewareUnit, Slot, UnitKind
from core.plugins import PluginRecord, plugin_handle
from stagehand.context import RequestContext
from stagehand.http.assembly import build_http_app
from stagehand.http.listener import BoundServer, Listener, UvicornListener
from stagehand.http.routing import allowed_methods, route_dispatch, static_fallback
from stagehand.http.units import Unit, parse_body, request_logger, response_time
from stagehand.summary import StartupSummary

logger = logging.getLogger("stagehand")
http_logger = logging.getLogger("stagehand.http")

ErrorNotifier = Callable[[BaseException, "RequestContext | None"], None]


class AppOptions(BaseModel):
    root: Path = Field(default_factory=Path.cwd)
    router: str = "default"
    models_dir: str = "models"
    # per-plugin options used for plugins enabled through settings
    plugins: Dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid", frozen=True)

    @field_validator("root")
    @classmethod
    def _root_exists(cls, v: Path) -> Path:  # noqa: D401
        if not v.is_dir():
            raise ValueError(f"root directory not found: {v}")
        return v


def log_request_error(exc: BaseException, ctx: RequestContext | None) -> None:
    """Default error notifier: one log record per failed request."""
    if ctx is None:
        http_logger.error("request failed", exc_info=exc)
        return
    http_logger.error(
        "request failed: %s %s",
        ctx.request.method,
        ctx.request.url.path,
        exc_info=exc,
    )


def _coerce_options(options: AppOptions | Mapping[str, Any] | None) -> AppOptions:
    if isinstance(options, AppOptions):
        return options
    try:
        return AppOptions.model_validate(dict(options or {}))
    except ValidationError as e:
        raise ConfigError(f"invalid application options: {e}") from e


class Application:
    def __init__(
        self,
        options: AppOptions | Mapping[str, Any] | None = None,
        *,
        settings: AggregatedConfig | None = None,
        listener: Listener | None = None,
        notifier: ErrorNotifier | None = None,
    ) -> None:
        self.options = _coerce_options(options)
        self.settings = settings if settings is not None else get_config()
        self.listener: Listener = listener or UvicornListener()
        self.notifier: ErrorNotifier = notifier or log_request_error
        self.started_at = datetime.now()
        self.boot_clock = time.perf_counter()

        # published together by the core stage
        self.models: Dict[str, ModelDefinition] | None = None
        self.hooks: HookRegistry | None = None
        self.cache: Any = None
        self.router: APIRouter | None = None

        self.routers: List[APIRouter] = []
        self.plugins: List[PluginRecord] = []
        self.unknown_plugins: List[str] = []
        self.server: BoundServer | None = None
        self.http: FastAPI | None = None
        self.summary: StartupSummary | None = None

        self.middleware = MiddlewareChain()
        self.middleware.add(
            MiddlewareUnit("response-time", Slot.RESPONSE_TIME, response_time)
        )
        self.middleware.add(MiddlewareUnit("logger", Slot.LOGGER, request_logger))

        self._stages = StageMachine(
            {
                Stage.CORE_LOADED: self._load_core,
                Stage.BODY_CONFIGURED: self._configure_body,
            }
        )
        self._boot: asyncio.Future | None = None

    # --- State ------------------------------------------------------------
    @property
    def stage(self) -> Stage:
        return self._stages.stage

    @property
    def stage_flags(self) -> Dict[str, bool]:
        return {
            "core_loaded": self._stages.reached(Stage.CORE_LOADED),
            "body_loaded": self._stages.reached(Stage.BODY_CONFIGURED),
        }

    # --- Stages -----------------------------------------------------------
    def core(self) -> None:
        """Load models, hooks, cache and router once."""
        if self._stages.advance_to(Stage.CORE_LOADED):
            self._apply_configured_plugins()

    def _load_core(self) -> None:
        # models before router: route handlers may look models up
        models = ModelLoader(self.options.root, self.options.models_dir).load()
        hooks = HookRegistry()
        cache = None
        if self.settings.cache.enabled:
            cache = CacheLoader(self.settings.cache).load()
        router = RouterLoader(self.options.root, self.options.router).load()
        self.models, self.hooks, self.cache, self.router = (
            models,
            hooks,
            cache,
            router,
        )
        metrics.inc("core_loads_total")
        logger.debug(
            "core loaded: models=%s cache=%s routes=%d",
            sorted(models),
            cache is not None,
            len(router.routes),
        )

    def _apply_configured_plugins(self) -> None:
        for name in self.settings.plugins.enabled:
            try:
                self.plugin(name, self.options.plugins.get(name))
            except PluginResolutionError as e:
                logger.warning("plugin %s skipped: %s", name, e)
                self.unknown_plugins.append(name)

    def body(self) -> None:
        """Add the body parser at its slot; repeated calls are no-ops."""
        self.core()
        self._stages.advance_to(Stage.BODY_CONFIGURED)

    def _configure_body(self) -> None:
        self.middleware.add(MiddlewareUnit("body", Slot.BODY, parse_body))

    # --- Composition ------------------------------------------------------
    def plugin(self, identifier: Any, options: Mapping[str, Any] | None = None) -> Any:
        """Apply a plugin by name or callable as ``unit(app, options)``.

        Raises PluginResolutionError for an unknown name or an identifier
        that is neither a string nor callable. Exceptions raised by the
        plugin itself propagate unchanged.
        """
        self.core()
        handle = plugin_handle(identifier)
        unit = handle.resolve(self.settings.plugins.search_path)
        opts = dict(options or {})
        result = unit(self, opts)
        self.plugins.append(PluginRecord(handle, opts))
        metrics.inc("plugins_applied_total", {"plugin": handle.describe()})
        return result

    def use(self, name: str, unit: Unit) -> None:
        """Add a ``unit(ctx, call_next)`` middleware at the plugin slot."""
        self.middleware.add(MiddlewareUnit(name, Slot.PLUGIN, unit))

    def use_asgi(self, name: str, middleware_cls: type, **options: Any) -> None:
        """Add a plain ASGI middleware class at the plugin slot."""
        self.middleware.add(
            MiddlewareUnit(
                name, Slot.PLUGIN, (middleware_cls, options), UnitKind.ASGI
            )
        )

    def add_router(self, router: APIRouter) -> None:
        """Include an extra router after the application's own."""
        self.routers.append(router)

    def hook(self, point: str, fn: Callable[..., Any]) -> None:
        self.core()
        self.hooks.register(point, fn)

    def model(self, name: str) -> ModelDefinition:
        self.core()
        return self.models[name]

    # --- Errors -----------------------------------------------------------
    def notify_error(self, exc: BaseException, ctx: RequestContext | None = None) -> None:
        """Report a request fault; notifier failures are logged, not raised."""
        metrics.inc(
            "request_errors_total",
            {"error_type": map_exception(exc, "request")},
        )
        try:
            self.notifier(exc, ctx)
        except Exception:  # noqa: BLE001
            metrics.inc("notifier_failures_total")
            logger.exception("error notifier failed")

    # --- Listener ---------------------------------------------------------
    async def start(self) -> BoundServer:
        """Complete pending stages, bind, fire "started", log the summary.

        Later calls (sequential or concurrent) return the same server. A
        failure before the listener is bound may be retried; once bound,
        the outcome is final.
        """
        if self._boot is not None and self._boot.done():
            failed = not self._boot.cancelled() and self._boot.exception() is not None
            if not failed or self.server is not None:
                return self._boot.result()
            self._boot = None
        if self._boot is None:
            self._boot = asyncio.ensure_future(self._listen())
        return await asyncio.shield(self._boot)

    async def _listen(self) -> BoundServer:
        self.core()
        self.body()
        if "routes" not in self.middleware:
            self._add_routing_units()
        self.middleware.freeze()
        self.http = build_http_app(self)

        app_cfg = self.settings.app
        try:
            server = await self.listener.bind(self.http, app_cfg.bind, app_cfg.port)
        except OSError as e:
            raise ListenError(f"cannot bind {app_cfg.bind}:{app_cfg.port}: {e}") from e
        self.server = server
        self._stages.advance_to(Stage.LISTENING)

        # socket is already bound: a failing hook fails start() regardless
        await self.hooks.run(STARTED, self)

        self.summary = StartupSummary.collect(self)
        metrics.observe("boot_ms", self.summary.boot_ms)
        for line in self.summary.lines():
            logger.info(line)
        return server

    def _add_routing_units(self) -> None:
        self.middleware.add(
            MiddlewareUnit(
                "routes", Slot.ROUTES, route_dispatch(self), UnitKind.ROUTING
            )
        )
        self.middleware.add(
            MiddlewareUnit(
                "allowed-methods",
                Slot.ALLOWED_METHODS,
                allowed_methods(self),
                UnitKind.ROUTING,
            )
        )
        self.middleware.add(
            MiddlewareUnit(
                "static",
                Slot.STATIC,
                static_fallback(self.settings.static, self.options.root),
                UnitKind.ROUTING,
            )
        )

    async def stop(self) -> None:
        """Close the listener and run the "stopped" hooks (best-effort)."""
        if self.server is None or self._stages.reached(Stage.CLOSED):
            return
        await self.listener.close(self.server)
        self._stages.advance_to(Stage.CLOSED)
        await self.hooks.run(STOPPED, self)

    async def serve(self) -> None:
        """start(), wait for the listener to exit, then stop().

        A start() that fails after binding still closes the listener.
        """
        try:
            server = await self.start()
        except Exception:
            if self.server is not None:
                await self.stop()
            raise
        try:
            await self.listener.wait(server)
        finally:
            await self.stop()

    def __repr__(self) -> str:
        return f"Application(root={str(self.options.root)!r}, stage={self.stage.name})"


__all__ = ["Application", "AppOptions", "log_request_error"]
