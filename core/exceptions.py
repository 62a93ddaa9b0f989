"""Exception hierarchy for the bootstrap layer."""
from __future__ import annotations

from core.errors import validate_error_type


class StagehandError(Exception):
    """Base error; ``error_type`` is a taxonomy code."""

    error_type = "internal"

    def __init__(self, message: str = "", *, error_type: str | None = None):
        super().__init__(message)
        if error_type is not None:
            self.error_type = validate_error_type(error_type)


class ConfigError(StagehandError):
    """Raised on invalid options or settings."""

    error_type = "config-invalid"


class LoaderError(StagehandError):
    """Raised when a capability loader cannot materialize its resource."""


class ModelLoadError(LoaderError):
    """Model directory missing, manifest malformed or duplicated."""

    error_type = "model-load-failed"


class RouterLoadError(LoaderError):
    """Router source missing, malformed or handler not importable."""

    error_type = "router-load-failed"


class CacheLoadError(LoaderError):
    """Cache client could not be created or reached."""

    error_type = "cache-load-failed"


class PluginResolutionError(StagehandError):
    """Plugin identifier is neither a known name nor a callable."""

    error_type = "plugin-unresolved"


class StageError(StagehandError):
    """Lifecycle operation not allowed in the current stage."""

    error_type = "stage-violation"


class FrozenChainError(StageError):
    """Middleware chain was modified after the listener bound."""

    error_type = "chain-frozen"


class ListenError(StagehandError):
    """The listener could not bind its socket."""

    error_type = "listen-failed"


__all__ = [
    "StagehandError",
    "ConfigError",
    "LoaderError",
    "ModelLoadError",
    "RouterLoadError",
    "CacheLoadError",
    "PluginResolutionError",
    "StageError",
    "FrozenChainError",
    "ListenError",
]
