"""HTTP binding: middleware units, routing installers, listener."""
from __future__ import annotations

from .listener import BoundServer, Listener, UvicornListener  # noqa: F401

__all__ = ["BoundServer", "Listener", "UvicornListener"]
