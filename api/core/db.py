"""
MongoDB connection management using motor.

One `DatabaseConnection` instance owns the process-wide client. The entrypoint
creates it, the lifecycle controller connects it before the HTTP listener
starts and disconnects it after the listener has closed. Routes reach it
through `app.state.database` (see `api/main.py`).

Readiness:
- `ready_state` is the live state of the client (source of truth).
- `is_connected` is a cached copy used to short-circuit redundant connects.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from enum import Enum
from typing import Any, Callable, Iterable

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from . import settings

logger = logging.getLogger(__name__)


class DatabaseError(RuntimeError):
    pass


class ReadyState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    CONNECTING = "connecting"
    DISCONNECTING = "disconnecting"


ClientFactory = Callable[..., Any]


class DatabaseConnection:
    def __init__(self, *, client_factory: ClientFactory = AsyncIOMotorClient) -> None:
        self._client_factory = client_factory
        self._client: Any = None
        self._state = ReadyState.DISCONNECTED
        self.is_connected = False
        self.strict_query = False
        # Serializes concurrent connect() calls so only one client is created.
        self._connect_lock = asyncio.Lock()

    @property
    def ready_state(self) -> ReadyState:
        if self._client is None:
            return ReadyState.DISCONNECTED
        return self._state

    async def connect(self) -> None:
        async with self._connect_lock:
            await self._connect()

    async def _connect(self) -> None:
        try:
            if self.is_connected or self.ready_state is ReadyState.CONNECTED:
                logger.info("Database is already connected")
                self.is_connected = True
                return None

            uri = settings.mongodb_uri()
            self.strict_query = True

            self._state = ReadyState.CONNECTING
            self._client = self._client_factory(
                uri,
                serverSelectionTimeoutMS=settings.server_selection_timeout_ms(),
                tz_aware=True,
            )
            try:
                # The client connects lazily; ping forces server selection.
                await self._client.admin.command("ping")
            except Exception:
                await self._close_client()
                raise

            self._state = ReadyState.CONNECTED
            self.is_connected = self.ready_state is ReadyState.CONNECTED
            logger.info("mongodb connected successfully. database=%s", settings.database_name())
        except Exception as exc:
            logger.error("Failed to connect to the database: %s", exc)
            raise DatabaseError(str(exc)) from exc

    async def disconnect(self) -> None:
        try:
            if self.ready_state is ReadyState.DISCONNECTED:
                logger.info("Database already disconnected.")
                return None

            self._state = ReadyState.DISCONNECTING
            await self._close_client()
            self.is_connected = False
            logger.info("mongodb disconnected")
        except Exception as exc:
            logger.error("Error disconnecting from mongodb: %s", exc)
            raise DatabaseError(str(exc)) from exc

    async def _close_client(self) -> None:
        client = self._client
        if client is None:
            return None
        # motor closes synchronously, pymongo's async client returns a coroutine.
        result = client.close()
        if inspect.isawaitable(result):
            await result
        self._client = None
        self._state = ReadyState.DISCONNECTED

    def database(self) -> AsyncIOMotorDatabase:
        if self._client is None:
            raise DatabaseError("Database is not connected. Call connect() on startup.")
        return self._client[settings.database_name()]

    async def ping(self) -> bool:
        if self.ready_state is not ReadyState.CONNECTED:
            return False
        try:
            await self._client.admin.command("ping")
        except PyMongoError:
            logger.warning("mongodb ping failed", exc_info=True)
            return False
        return True

    def apply_strict_query(self, query: dict[str, Any], fields: Iterable[str]) -> dict[str, Any]:
        """
        Drop filter keys that are not known fields when strict-query mode is on.

        Operator keys (`$text`, `$or`, ...) are kept as-is.
        """
        if not self.strict_query:
            return dict(query)
        allowed = set(fields)
        dropped = [key for key in query if not key.startswith("$") and key not in allowed]
        if dropped:
            logger.debug("strict_query dropped filter keys=%s", dropped)
        return {key: value for key, value in query.items() if key not in dropped}
