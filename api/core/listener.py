"""
HTTP listener wrapper around `uvicorn.Server`.

uvicorn normally installs its own SIGINT/SIGTERM handling. Here signals
belong to the lifecycle controller, so the server subclass leaves them alone
and the controller stops the listener explicitly with `close()`.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Iterator

import uvicorn

logger = logging.getLogger(__name__)


class ListenerError(RuntimeError):
    pass


class _ControlledServer(uvicorn.Server):
    def install_signal_handlers(self) -> None:
        return None

    @contextlib.contextmanager
    def capture_signals(self) -> Iterator[None]:
        yield


class HttpListener:
    def __init__(self, app: Any, *, host: str, port: int, log_level: str = "info") -> None:
        self.app = app
        self.host = host
        self.port = port
        self.log_level = log_level
        self._server: _ControlledServer | None = None
        self._task: asyncio.Task | None = None

    @property
    def started(self) -> bool:
        return self._server is not None and bool(self._server.started)

    async def start(self) -> None:
        config = uvicorn.Config(
            self.app,
            host=self.host,
            port=self.port,
            log_level=self.log_level.lower(),
            lifespan="on",
            # Keep the root logger configured by core.logging_config.
            log_config=None,
        )
        self._server = _ControlledServer(config)
        self._task = asyncio.create_task(self._serve(self._server), name="http-listener")

        while not self._server.started:
            if self._task.done():
                exc = self._task.exception()
                raise ListenerError(f"HTTP listener failed to start on port {self.port}") from exc
            await asyncio.sleep(0.01)

    async def _serve(self, server: _ControlledServer) -> None:
        try:
            await server.serve()
        except SystemExit as exc:
            # uvicorn calls sys.exit() when the socket cannot be bound.
            raise ListenerError(f"HTTP listener exited with code {exc.code}") from None

    async def close(self) -> None:
        """
        Stop accepting connections and wait for in-flight requests to finish.
        """
        if self._server is None or self._task is None:
            return None
        self._server.should_exit = True
        await self._task
