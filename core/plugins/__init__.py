"""Plugin handles and name resolution.

A plugin identifier becomes a tagged handle exactly once, at registration:

    ByName("cors")   resolved through a package search path to the
                     module's ``plugin`` callable
    Direct(fn)       the callable itself

Both resolve to a unit invoked as ``unit(app, options)``.
"""
from __future__ import annotations

import importlib
import re
from dataclasses import dataclass
from typing import Any, Callable, Sequence, Union

from core import metrics
from core.exceptions import PluginResolutionError

PluginUnit = Callable[[Any, dict], Any]

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_-]*$")


@dataclass(frozen=True)
class ByName:
    name: str

    @property
    def module_name(self) -> str:
        return self.name.replace("-", "_")

    def resolve(self, search_path: Sequence[str]) -> PluginUnit:
        for package in search_path:
            qualified = f"{package}.{self.module_name}"
            try:
                module = importlib.import_module(qualified)
            except ModuleNotFoundError as e:
                # only "this candidate does not exist" moves on; a missing
                # dependency inside an existing plugin surfaces as-is
                if e.name in _prefixes(qualified):
                    continue
                raise
            unit = getattr(module, "plugin", None)
            if not callable(unit):
                raise PluginResolutionError(
                    f"Plugin module '{qualified}' has no callable 'plugin'"
                )
            return unit
        metrics.inc("plugin_resolution_errors_total")
        raise PluginResolutionError(
            f"Unknown plugin '{self.name}' "
            f"(searched: {', '.join(search_path) or '-'})"
        )

    def describe(self) -> str:
        return self.name


@dataclass(frozen=True)
class Direct:
    fn: PluginUnit

    def resolve(self, search_path: Sequence[str] = ()) -> PluginUnit:
        return self.fn

    def describe(self) -> str:
        return getattr(self.fn, "__qualname__", repr(self.fn))


PluginHandle = Union[ByName, Direct]


def _prefixes(dotted: str) -> set[str]:
    parts = dotted.split(".")
    return {".".join(parts[: i + 1]) for i in range(len(parts))}


def plugin_handle(identifier: Any) -> PluginHandle:
    """Build the handle for ``identifier`` or raise PluginResolutionError."""
    if isinstance(identifier, (ByName, Direct)):
        return identifier
    if isinstance(identifier, str):
        if not _NAME_RE.match(identifier):
            metrics.inc("plugin_resolution_errors_total")
            raise PluginResolutionError(
                f"Invalid plugin name {identifier!r}"
            )
        return ByName(identifier)
    if callable(identifier):
        return Direct(identifier)
    metrics.inc("plugin_resolution_errors_total")
    raise PluginResolutionError(
        f"Plugin must be a name or a callable, got "
        f"{type(identifier).__name__}"
    )


@dataclass(frozen=True)
class PluginRecord:
    handle: PluginHandle
    options: dict


__all__ = [
    "ByName",
    "Direct",
    "PluginHandle",
    "PluginRecord",
    "PluginUnit",
    "plugin_handle",
]
