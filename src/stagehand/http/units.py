"""Built-in middleware units: response timing, request log, body parser.

Each unit is ``async unit(ctx, call_next) -> Response`` where ``call_next``
takes no arguments and runs the rest of the chain.
"""
from __future__ import annotations

import logging
import time
from typing import Awaitable, Callable

from starlette.exceptions import HTTPException
from starlette.responses import PlainTextResponse, Response

from core import metrics
from stagehand.context import RequestContext

logger = logging.getLogger("stagehand.http")

CallNext = Callable[[], Awaitable[Response]]
Unit = Callable[[RequestContext, CallNext], Awaitable[Response]]

POWERED_BY = "stagehand"
BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


async def response_time(ctx: RequestContext, call_next: CallNext) -> Response:
    """Outermost layer: timing headers and per-request fault isolation."""
    start = time.perf_counter()
    try:
        response = await call_next()
    except Exception as exc:  # noqa: BLE001
        ctx.app.notify_error(exc, ctx)
        response = PlainTextResponse("Internal Server Error", status_code=500)
    elapsed_ms = int((time.perf_counter() - start) * 1000)
    response.headers["X-Powered-By"] = POWERED_BY
    response.headers["X-Response-Time"] = f"{elapsed_ms}ms"
    return response


async def request_logger(ctx: RequestContext, call_next: CallNext) -> Response:
    request = ctx.request
    method, path = request.method, request.url.path
    logger.info("<-- %s %s", method, path)
    start = time.perf_counter()
    try:
        response = await call_next()
    except Exception:
        elapsed_ms = (time.perf_counter() - start) * 1000.0
        logger.info("xxx %s %s %dms", method, path, elapsed_ms)
        metrics.inc("http_requests_total", {"method": method, "status": 500})
        raise
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    length = response.headers.get("content-length", "-")
    logger.info(
        "--> %s %s %d %dms %s",
        method,
        path,
        response.status_code,
        elapsed_ms,
        length,
    )
    metrics.inc(
        "http_requests_total",
        {"method": method, "status": response.status_code},
    )
    metrics.observe("http_request_latency_ms", elapsed_ms, {"method": method})
    return response


async def parse_body(ctx: RequestContext, call_next: CallNext) -> Response:
    """Fill ``ctx.post`` / ``ctx.files`` before routing reads them."""
    if ctx.request.method in BODY_METHODS:
        try:
            await ctx.load_body()
        except ValueError:
            return PlainTextResponse("Invalid JSON body", status_code=400)
        except HTTPException as exc:  # malformed multipart
            return PlainTextResponse(str(exc.detail), status_code=exc.status_code)
    return await call_next()


__all__ = [
    "CallNext",
    "Unit",
    "response_time",
    "request_logger",
    "parse_body",
    "BODY_METHODS",
]
