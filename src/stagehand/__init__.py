"""stagehand: staged bootstrap of a FastAPI server from loadable units."""
from __future__ import annotations

from .version import __version__  # noqa: F401
from .application import Application, AppOptions  # noqa: F401
from .context import RequestContext, get_context  # noqa: F401

__all__ = [
    "__version__",
    "Application",
    "AppOptions",
    "RequestContext",
    "get_context",
]
