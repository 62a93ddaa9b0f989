"""CORS headers via Starlette's CORSMiddleware at the plugin slot."""
from __future__ import annotations

from typing import Any, Mapping

from fastapi.middleware.cors import CORSMiddleware

DEFAULTS = {
    "allow_origins": ["*"],
    "allow_methods": ["*"],
    "allow_headers": ["*"],
    "allow_credentials": False,
}


def plugin(app: Any, options: Mapping[str, Any]) -> None:
    unknown = set(options) - set(DEFAULTS) - {"max_age", "expose_headers"}
    if unknown:
        raise ValueError(f"unknown cors options: {sorted(unknown)}")
    app.use_asgi("cors", CORSMiddleware, **{**DEFAULTS, **options})
