"""Router loader: builds the application's ``APIRouter``.

The router source is either

    - an import string ``module:attr`` naming an ``APIRouter`` (or a
      zero-argument factory returning one), or
    - a name resolved to ``<root>/routers/<name>.yaml``:

        prefix: /api
        routes:
          - path: /users/{user_id}
            methods: [GET]
            handler: controllers.users:show
            name: users.show

Handler import strings are resolved with the application root on
``sys.path``.
"""
from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Any, List

import yaml
from fastapi import APIRouter
from pydantic import BaseModel, ConfigDict, Field, field_validator
from uvicorn.importer import ImportFromStringError, import_from_string

from core.exceptions import RouterLoadError

logger = logging.getLogger("stagehand.loaders")

HTTP_METHODS = {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}
_SOURCE_NAME_RE = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_.-]*$")


class RouteEntry(BaseModel):
    path: str
    handler: str
    methods: List[str] = Field(default_factory=lambda: ["GET"])
    name: str | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("path")
    @classmethod
    def _path_absolute(cls, v: str) -> str:  # noqa: D401
        if not v.startswith("/"):
            raise ValueError("path must start with '/'")
        return v

    @field_validator("methods")
    @classmethod
    def _methods_known(cls, v: List[str]) -> List[str]:  # noqa: D401
        upper = [m.upper() for m in v]
        unknown = sorted(set(upper) - HTTP_METHODS)
        if unknown or not upper:
            raise ValueError(f"invalid methods: {unknown or 'empty'}")
        return upper


class RouterManifest(BaseModel):
    prefix: str = ""
    routes: List[RouteEntry] = Field(default_factory=list)

    model_config = ConfigDict(extra="forbid")

    @field_validator("prefix")
    @classmethod
    def _prefix_shape(cls, v: str) -> str:  # noqa: D401
        if v and (not v.startswith("/") or v.endswith("/")):
            raise ValueError("prefix must start and not end with '/'")
        return v


def _ensure_on_path(root: Path) -> None:
    entry = str(root.resolve())
    if entry not in sys.path:
        sys.path.insert(0, entry)


def _import(target: str, what: str) -> Any:
    try:
        return import_from_string(target)
    except ImportFromStringError as e:
        raise RouterLoadError(f"Cannot import {what} '{target}': {e}") from e
    except Exception as e:  # noqa: BLE001
        raise RouterLoadError(
            f"Error while importing {what} '{target}': {e}"
        ) from e


class RouterLoader:
    """Capability loader for the routing table."""

    def __init__(
        self, root: str | Path, source: str, subdir: str = "routers"
    ) -> None:
        self.root = Path(root)
        self.source = source
        self.subdir = subdir

    def load(self) -> APIRouter:
        if not self.source:
            raise RouterLoadError("Router source is empty")
        _ensure_on_path(self.root)
        if ":" in self.source:
            return self._load_object()
        return self._load_manifest()

    def manifest_path(self) -> Path:
        base = self.root / self.subdir
        for suffix in (".yaml", ".yml"):
            candidate = base / f"{self.source}{suffix}"
            if candidate.is_file():
                return candidate
        raise RouterLoadError(
            f"Router definition '{self.source}' not found in {base}"
        )

    def _load_object(self) -> APIRouter:
        obj = _import(self.source, "router")
        if not isinstance(obj, APIRouter) and callable(obj):
            obj = obj()
        if not isinstance(obj, APIRouter):
            raise RouterLoadError(
                f"'{self.source}' is not an APIRouter "
                f"(got {type(obj).__name__})"
            )
        return obj

    def _load_manifest(self) -> APIRouter:
        if not _SOURCE_NAME_RE.match(self.source):
            raise RouterLoadError(f"Invalid router name {self.source!r}")
        path = self.manifest_path()
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise RouterLoadError(f"Invalid router {path.name}: {e}") from e
        try:
            manifest = RouterManifest.model_validate(data)
        except Exception as e:  # noqa: BLE001
            raise RouterLoadError(f"Invalid router {path.name}: {e}") from e
        router = APIRouter(prefix=manifest.prefix)
        for entry in manifest.routes:
            endpoint = _import(entry.handler, "handler")
            if not callable(endpoint):
                raise RouterLoadError(
                    f"Handler '{entry.handler}' is not callable"
                )
            router.add_api_route(
                entry.path,
                endpoint,
                methods=entry.methods,
                name=entry.name,
            )
        logger.debug(
            "router %s: %d route(s) from %s",
            self.source,
            len(manifest.routes),
            path,
        )
        return router


__all__ = ["RouteEntry", "RouterManifest", "RouterLoader", "HTTP_METHODS"]
