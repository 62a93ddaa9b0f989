"""Central error taxonomy.

Every ``StagehandError`` subclass carries one of these codes in
``error_type``; metrics and log records use the same vocabulary.
"""
from __future__ import annotations

_ALLOWED_ERROR_TYPES = {
    # configuration
    "config-invalid",
    "config-out-of-range",
    # capability loaders
    "model-load-failed",
    "router-load-failed",
    "cache-load-failed",
    # composition
    "plugin-unresolved",
    "stage-violation",
    "chain-frozen",
    # runtime
    "listen-failed",
    "hook-failed",
    "request-failed",
    "internal",
}


def validate_error_type(code: str) -> str:
    assert (
        code in _ALLOWED_ERROR_TYPES
    ), f"Unknown error_type '{code}' (not in taxonomy)"
    return code


def map_exception(e: Exception, phase: str) -> str:
    """Map an arbitrary exception to a taxonomy code for ``phase``."""
    code = getattr(e, "error_type", None)
    if isinstance(code, str) and code in _ALLOWED_ERROR_TYPES:
        return code
    if phase == "hook":
        return "hook-failed"
    if phase == "request":
        return "request-failed"
    if phase == "listen":
        return "listen-failed"
    return "internal"


__all__ = ["validate_error_type", "map_exception"]
