import asyncio
import socket

import httpx
import pytest

from core.config import AggregatedConfig
from core.exceptions import ListenError
from core.lifecycle import Stage
from stagehand import Application


def _settings(port: int) -> AggregatedConfig:
    return AggregatedConfig.model_validate(
        {"app": {"bind": "127.0.0.1", "port": port}, "static": {"dir": None}}
    )


def test_real_uvicorn_bind_on_port_zero(site):
    app = Application({"root": site}, settings=_settings(0))

    async def run():
        server = await app.start()
        try:
            async with httpx.AsyncClient() as client:
                r = await client.get(server.url + "/hello")
        finally:
            await app.stop()
        return server, r

    server, r = asyncio.run(run())
    assert server.host == "127.0.0.1"
    assert server.port > 0
    assert r.status_code == 200
    assert r.json() == {"hello": "world"}
    assert r.headers["x-powered-by"] == "stagehand"
    assert app.stage is Stage.CLOSED


def test_port_in_use_raises_listen_error(site):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as taken:
        taken.bind(("127.0.0.1", 0))
        taken.listen(1)
        port = taken.getsockname()[1]
        app = Application({"root": site}, settings=_settings(port))
        with pytest.raises(ListenError) as exc:
            asyncio.run(app.start())
    assert exc.value.error_type == "listen-failed"
    assert app.server is None
    assert app.stage is Stage.BODY_CONFIGURED
