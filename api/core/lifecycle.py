"""
Process lifecycle: startup, shutdown triggers and the graceful-shutdown sequence.

States: starting -> running -> shutting_down -> exited.

Every trigger (SIGTERM, SIGINT, an exception escaping a loop callback or a
thread, an unhandled task error) goes through `request_shutdown()`. The first
one flips the state to `shutting_down` and posts its reason onto a queue;
later ones are ignored. `run()` consumes exactly one reason and runs the
shutdown sequence:

1. stop the HTTP listener and wait for it to close (skipped if it never started)
2. disconnect the database
3. exit code 0 on success, 1 on any failure
4. flush log output and wait a short grace period
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import signal
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from .logging_config import flush_handlers

logger = logging.getLogger(__name__)


class LifecycleState(str, Enum):
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    EXITED = "exited"


class ShutdownTimeout(RuntimeError):
    pass


class SupportsConnect(Protocol):
    async def connect(self) -> Any: ...

    async def disconnect(self) -> Any: ...


class SupportsListen(Protocol):
    async def start(self) -> Any: ...

    async def close(self) -> Any: ...


@dataclass
class LifecycleController:
    """Owns the lifecycle state and drives startup and shutdown."""

    database: SupportsConnect
    listener_factory: Callable[[], SupportsListen]
    port: int
    grace_s: float = 0.05
    shutdown_timeout_s: float | None = 10.0
    signals: tuple[signal.Signals, ...] = (signal.SIGTERM, signal.SIGINT)

    state: LifecycleState = field(default=LifecycleState.STARTING, init=False)
    exit_code: int = field(default=0, init=False)
    listener: SupportsListen | None = field(default=None, init=False)

    _triggers: asyncio.Queue = field(default_factory=asyncio.Queue, init=False, repr=False)
    _loop: asyncio.AbstractEventLoop | None = field(default=None, init=False, repr=False)
    _loop_thread_id: int | None = field(default=None, init=False, repr=False)
    _sequence_ran: bool = field(default=False, init=False, repr=False)
    _installed_signals: list[signal.Signals] = field(default_factory=list, init=False, repr=False)
    _previous_thread_hook: Any = field(default=None, init=False, repr=False)
    _previous_loop_handler: Any = field(default=None, init=False, repr=False)

    async def run(self) -> int:
        """
        Start, wait for the first shutdown trigger, shut down. Returns the exit code.
        """
        self.install_handlers()
        try:
            if not await self.start():
                return self.exit_code
            reason = await self._triggers.get()
            await self.shutdown(reason)
            return self.exit_code
        finally:
            self.remove_handlers()

    async def start(self) -> bool:
        try:
            await self.database.connect()
            listener = self.listener_factory()
            await listener.start()
        except Exception as exc:
            logger.error("Failed to start server: %s", exc)
            self.exit_code = 1
            self.state = LifecycleState.EXITED
            return False

        self.listener = listener
        logger.info("Server is running on port %s", self.port)
        # A trigger may already have arrived while connecting.
        if self.state is LifecycleState.STARTING:
            self.state = LifecycleState.RUNNING
        return True

    def request_shutdown(self, reason: str) -> None:
        loop = self._loop
        if loop is not None and threading.get_ident() != self._loop_thread_id:
            loop.call_soon_threadsafe(self.request_shutdown, reason)
            return None

        if self.state in (LifecycleState.SHUTTING_DOWN, LifecycleState.EXITED):
            logger.debug("shutdown already in progress, ignoring trigger=%s", reason)
            return None

        self.state = LifecycleState.SHUTTING_DOWN
        self._triggers.put_nowait(reason)

    async def shutdown(self, reason: str) -> int:
        if self._sequence_ran:
            return self.exit_code
        self._sequence_ran = True
        self.state = LifecycleState.SHUTTING_DOWN

        logger.info("Received %s, shutting down...", reason)
        try:
            if self.listener is not None:
                await self._bounded(self.listener.close(), "HTTP server close")
                logger.info("HTTP server closed.")

            await self._bounded(self.database.disconnect(), "database disconnect")
            logger.info("Graceful shutdown complete.")
            self.exit_code = 0
        except Exception as exc:
            logger.error("Error during shutdown: %s", exc)
            self.exit_code = 1
        finally:
            flush_handlers()
            await asyncio.sleep(self.grace_s)
            self.state = LifecycleState.EXITED
        return self.exit_code

    async def _bounded(self, awaitable: Awaitable[Any], what: str) -> Any:
        timeout = self.shutdown_timeout_s
        if timeout is None or timeout <= 0:
            return await awaitable
        try:
            return await asyncio.wait_for(awaitable, timeout)
        except asyncio.TimeoutError as exc:
            raise ShutdownTimeout(f"{what} timed out after {timeout}s") from exc

    def install_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        self._loop = loop
        self._loop_thread_id = threading.get_ident()

        for sig in self.signals:
            try:
                loop.add_signal_handler(sig, self.request_shutdown, sig.name)
            except NotImplementedError:
                # Event loops without add_signal_handler (Windows).
                signal.signal(sig, lambda signum, _frame: self.request_shutdown(signal.Signals(signum).name))
            self._installed_signals.append(sig)

        self._previous_loop_handler = loop.get_exception_handler()
        loop.set_exception_handler(self._on_loop_exception)

        self._previous_thread_hook = threading.excepthook
        threading.excepthook = self._on_thread_exception

    def remove_handlers(self) -> None:
        loop = self._loop
        if loop is None:
            return None

        for sig in self._installed_signals:
            try:
                loop.remove_signal_handler(sig)
            except NotImplementedError:
                signal.signal(sig, signal.SIG_DFL)
        self._installed_signals.clear()

        loop.set_exception_handler(self._previous_loop_handler)
        if self._previous_thread_hook is not None:
            threading.excepthook = self._previous_thread_hook
            self._previous_thread_hook = None
        self._loop = None
        self._loop_thread_id = None

    def _on_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict[str, Any]) -> None:
        exc = context.get("exception")
        message = str(exc) if exc is not None else context.get("message", "unknown error")
        if "future" in context or "task" in context:
            logger.error("Unhandled async error: %s", message)
            self.request_shutdown("unhandled_async_error")
        else:
            logger.error("Uncaught exception: %s", message)
            self.request_shutdown("uncaught_exception")

    def _on_thread_exception(self, args: threading.ExceptHookArgs) -> None:
        thread_name = args.thread.name if args.thread is not None else "unknown"
        logger.error("Uncaught exception in thread %s: %s", thread_name, args.exc_value)
        self.request_shutdown("uncaught_exception")

    def observe_exit(self) -> None:
        """
        Log the final exit code when the interpreter exits, whatever the path.
        """
        atexit.register(self._log_exit)

    def _log_exit(self) -> None:
        logger.info("Process exiting with code %s", self.exit_code)
        flush_handlers()
