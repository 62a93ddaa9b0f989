"""Pytest configuration ensuring project root is importable.

Adds repository root and src/ to sys.path explicitly to avoid
interpreter/path quirks, and isolates config/env/metrics between tests.
"""
from __future__ import annotations

import asyncio
import logging
import os
import sys
import textwrap
import uuid
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from core import metrics  # noqa: E402
from core.config import clear_config_cache  # noqa: E402
from core.config.loader import ENV_PREFIX, LEGACY_ENV_KEYS  # noqa: E402
from core.loaders import clear_model_cache  # noqa: E402
from stagehand.http.listener import BoundServer  # noqa: E402


@pytest.fixture(autouse=True)
def _isolate_config_env(tmp_path_factory, monkeypatch):  # noqa: D401
    """Ensure global config/env side effects do not leak between tests.

    - Clear aggregated config cache, model cache and metrics between tests
    - Point config/dotenv lookups at empty temp dirs
    - Restore the process environment (dotenv loading writes to it)
    """
    saved_env = dict(os.environ)
    for key in list(os.environ):
        if key.startswith(ENV_PREFIX) or key in LEGACY_ENV_KEYS:
            del os.environ[key]
    isolated = tmp_path_factory.mktemp("cfg")
    os.environ["STAGEHAND_CONFIG_DIR"] = str(isolated / "configs")
    os.environ["STAGEHAND_ENV_DIR"] = str(isolated)
    monkeypatch.setattr(sys, "path", list(sys.path))
    clear_config_cache()
    clear_model_cache()
    metrics.reset_for_tests()
    try:
        yield isolated
    finally:
        clear_config_cache()
        clear_model_cache()
        logger = logging.getLogger("stagehand")
        for handler in list(logger.handlers):
            if getattr(handler, "_stagehand", False):
                logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)
        os.environ.clear()
        os.environ.update(saved_env)


class FakeListener:
    """In-memory listener: records binds/closes, never opens a socket."""

    def __init__(self, port: int = 4321) -> None:
        self.port = port
        self.binds: list[tuple[str, int]] = []
        self.closed: list[BoundServer] = []
        self.app = None

    async def bind(self, app, host: str, port: int) -> BoundServer:
        await asyncio.sleep(0)
        self.binds.append((host, port))
        self.app = app
        return BoundServer(host, port or self.port, handle=app)

    async def wait(self, server: BoundServer) -> None:
        return None

    async def close(self, server: BoundServer) -> None:
        self.closed.append(server)


@pytest.fixture
def listener() -> FakeListener:
    return FakeListener()


CONTROLLER_SOURCE = '''
from fastapi import Depends

from stagehand import RequestContext, get_context


def hello():
    return {"hello": "world"}


def echo(ctx: RequestContext = Depends(get_context)):
    return {"post": ctx.post, "files": sorted(ctx.files)}


def boom():
    raise RuntimeError("boom")


def user_model(ctx: RequestContext = Depends(get_context)):
    model = ctx.model("user")
    return {"table": model.table_name, "fields": model.fields}
'''


def _write(file: Path, content: str) -> None:
    file.parent.mkdir(parents=True, exist_ok=True)
    file.write_text(textwrap.dedent(content).lstrip(), encoding="utf-8")


@pytest.fixture
def site(tmp_path: Path) -> Path:
    """Project root with one model, a default router and a public dir.

    The controller module gets a unique name so repeated imports across
    tests never hit a stale ``sys.modules`` entry.
    """
    controller = f"ctrl_{uuid.uuid4().hex[:10]}"
    _write(tmp_path / f"{controller}.py", CONTROLLER_SOURCE)
    _write(
        tmp_path / "models" / "user.yaml",
        """
        table: users
        fields:
          id: int
          email: str
        timestamps: true
        """,
    )
    _write(
        tmp_path / "routers" / "default.yaml",
        f"""
        routes:
          - path: /hello
            handler: {controller}:hello
          - path: /echo
            methods: [POST, PUT]
            handler: {controller}:echo
          - path: /boom
            handler: {controller}:boom
          - path: /models/user
            handler: {controller}:user_model
        """,
    )
    _write(tmp_path / "public" / "index.html", "<h1>home</h1>\n")
    _write(tmp_path / "public" / "app.js", "console.log('hi');\n")
    return tmp_path
