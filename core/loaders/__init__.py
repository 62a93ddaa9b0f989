"""Capability loaders.

Each loader exposes ``load() -> handle``: deterministic for identical
options, raising a typed ``LoaderError`` subclass when its resource is
missing or malformed. The application treats every handle as opaque.
"""
from __future__ import annotations

from typing import Any, Protocol

from .cache import CacheLoader  # noqa: F401
from .models import ModelDefinition, ModelLoader, clear_model_cache  # noqa: F401
from .router import RouterLoader  # noqa: F401


class CapabilityLoader(Protocol):
    def load(self) -> Any: ...


__all__ = [
    "CapabilityLoader",
    "CacheLoader",
    "ModelDefinition",
    "ModelLoader",
    "RouterLoader",
    "clear_model_cache",
]
