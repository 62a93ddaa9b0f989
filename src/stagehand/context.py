"""Per-request context handed to middleware units and route handlers.

Middleware units receive it as their first argument; FastAPI handlers ask
for it with ``ctx: RequestContext = Depends(get_context)``. It lives in the
request state, so every layer of one request sees the same object.
"""
from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Dict

from fastapi import Request
from starlette.datastructures import UploadFile

if TYPE_CHECKING:  # pragma: no cover
    from stagehand.application import Application

JSON_TYPES = ("application/json",)
FORM_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


class RequestContext:
    __slots__ = ("app", "request", "post", "files")

    def __init__(self, app: "Application", request: Request) -> None:
        self.app = app
        # the Request of the layer currently running (updated per layer)
        self.request = request
        self.post: Any = None
        self.files: Dict[str, UploadFile] = {}

    @classmethod
    def of(cls, request: Request, app: "Application | None" = None) -> "RequestContext":
        ctx = getattr(request.state, "ctx", None)
        if ctx is None:
            ctx = cls(app or request.app.state.stagehand, request)
            request.state.ctx = ctx
        return ctx

    @property
    def cache(self) -> Any:
        return self.app.cache

    def model(self, name: str) -> Any:
        return self.app.model(name)

    async def load_body(self) -> None:
        """Parse the body into ``post`` (and ``files`` for uploads).

        Raises ValueError on malformed JSON.
        """
        request = self.request
        content_type = request.headers.get("content-type", "")
        media_type = content_type.split(";", 1)[0].strip().lower()
        raw = await request.body()
        if media_type in JSON_TYPES or media_type.endswith("+json"):
            self.post = json.loads(raw) if raw else {}
        elif media_type in FORM_TYPES:
            form = await request.form()
            fields: Dict[str, Any] = {}
            files: Dict[str, UploadFile] = {}
            for key, value in form.multi_items():
                if isinstance(value, UploadFile):
                    files[key] = value
                else:
                    fields[key] = value
            self.post = fields
            self.files = files
        elif media_type.startswith("text/"):
            self.post = raw.decode("utf-8", errors="replace")
        else:
            self.post = raw or None


def get_context(request: Request) -> RequestContext:
    """FastAPI dependency returning the current RequestContext."""
    return RequestContext.of(request)


__all__ = ["RequestContext", "get_context"]
