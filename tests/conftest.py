from __future__ import annotations

import asyncio
import logging

import pytest
from pymongo.errors import CollectionInvalid, ServerSelectionTimeoutError


class FakeAdmin:
    def __init__(self, client: "FakeMongoClient") -> None:
        self._client = client

    async def command(self, name: str) -> dict:
        self._client.commands.append(name)
        # Yield like a real round trip so concurrent callers interleave.
        await asyncio.sleep(0)
        if self._client.fail_ping:
            raise ServerSelectionTimeoutError("localhost:27017: connection refused")
        return {"ok": 1.0}


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.index_models: list = []

    async def create_indexes(self, models: list) -> list[str]:
        self.index_models.extend(models)
        return [model.document["name"] for model in models]


class FakeDatabase:
    def __init__(self, name: str) -> None:
        self.name = name
        self.created: dict[str, dict] = {}
        self.collections: dict[str, FakeCollection] = {}

    async def create_collection(self, name: str, **kwargs) -> FakeCollection:
        if name in self.created:
            raise CollectionInvalid(f"collection {name} already exists")
        self.created[name] = kwargs
        return self[name]

    def __getitem__(self, name: str) -> FakeCollection:
        return self.collections.setdefault(name, FakeCollection(name))


class FakeMongoClient:
    def __init__(self, uri: str, **kwargs) -> None:
        self.uri = uri
        self.kwargs = kwargs
        self.commands: list[str] = []
        self.fail_ping = False
        self.fail_close = False
        self.closed = False
        self.admin = FakeAdmin(self)
        self.databases: dict[str, FakeDatabase] = {}

    def close(self) -> None:
        if self.fail_close:
            raise RuntimeError("close failed")
        self.closed = True

    def __getitem__(self, name: str) -> FakeDatabase:
        return self.databases.setdefault(name, FakeDatabase(name))


class FakeClientFactory:
    def __init__(self, *, fail_ping: bool = False) -> None:
        self.fail_ping = fail_ping
        self.clients: list[FakeMongoClient] = []

    def __call__(self, uri: str, **kwargs) -> FakeMongoClient:
        client = FakeMongoClient(uri, **kwargs)
        client.fail_ping = self.fail_ping
        self.clients.append(client)
        return client


class TraceHandler(logging.Handler):
    """Appends formatted log messages to a shared trace list."""

    def __init__(self, trace: list[str]) -> None:
        super().__init__(level=logging.DEBUG)
        self.trace = trace

    def emit(self, record: logging.LogRecord) -> None:
        self.trace.append(record.getMessage())


@pytest.fixture
def mongodb_env(monkeypatch):
    monkeypatch.setenv("MONGODB_URI", "mongodb://localhost:27017")
    monkeypatch.setenv("MONGODB_DB", "band_registry_test")


@pytest.fixture
def client_factory() -> FakeClientFactory:
    return FakeClientFactory()


@pytest.fixture
def trace():
    messages: list[str] = []
    handler = TraceHandler(messages)
    root = logging.getLogger()
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)
    try:
        yield messages
    finally:
        root.removeHandler(handler)
        root.setLevel(previous_level)
