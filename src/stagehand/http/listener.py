"""Listener: binds the assembled ASGI app to a socket.

``UvicornListener`` runs ``uvicorn.Server.serve()`` as a task and returns
once the server accepts connections. Any object with the same three
coroutine methods can stand in (tests use an in-memory one).
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Protocol

import uvicorn

from core.exceptions import ListenError

logger = logging.getLogger("stagehand.http")


@dataclass
class BoundServer:
    host: str
    port: int
    handle: Any = field(repr=False, default=None)

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"


class Listener(Protocol):
    async def bind(self, app: Any, host: str, port: int) -> BoundServer: ...

    async def wait(self, server: BoundServer) -> None: ...

    async def close(self, server: BoundServer) -> None: ...


class UvicornListener:
    def __init__(self, poll_interval: float = 0.01, **config_kwargs: Any) -> None:
        self._poll_interval = poll_interval
        self._config_kwargs = config_kwargs
        self._tasks: Dict[int, asyncio.Task] = {}

    async def bind(self, app: Any, host: str, port: int) -> BoundServer:
        config = uvicorn.Config(
            app,
            host=host,
            port=port,
            lifespan="off",
            log_config=None,
            access_log=False,
            **self._config_kwargs,
        )
        server = uvicorn.Server(config)
        task = asyncio.ensure_future(self._serve(server))
        while not server.started:
            if task.done():
                # surfaces ListenError (or whatever serve() raised)
                task.result()
                raise ListenError(
                    f"listener on {host}:{port} exited before accepting"
                )
            await asyncio.sleep(self._poll_interval)
        bound_host, bound_port = _bound_address(server, host, port)
        self._tasks[id(server)] = task
        return BoundServer(bound_host, bound_port, server)

    @staticmethod
    async def _serve(server: uvicorn.Server) -> None:
        try:
            await server.serve()
        except SystemExit as e:
            # uvicorn exits the process when the bind fails
            raise ListenError(
                f"cannot bind {server.config.host}:{server.config.port}"
            ) from e

    async def wait(self, server: BoundServer) -> None:
        task = self._tasks.get(id(server.handle))
        if task is not None:
            await task

    async def close(self, server: BoundServer) -> None:
        task = self._tasks.pop(id(server.handle), None)
        if task is None:
            return
        server.handle.should_exit = True
        await task


def _bound_address(server: uvicorn.Server, host: str, port: int) -> tuple[str, int]:
    for srv in getattr(server, "servers", None) or ():
        for sock in srv.sockets or ():
            name = sock.getsockname()
            return str(name[0]), int(name[1])
    return host, port


__all__ = ["BoundServer", "Listener", "UvicornListener"]
