import asyncio
import dataclasses
from pathlib import Path
from typing import Any
from typing import AsyncGenerator
from typing import Callable
from typing import Generator

import dotenv
import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from tests.unit.mocks.memory_object_store import MemoryObjectStore
from upload_relay.config import Config
from upload_relay.config import get_config


@pytest.fixture(scope="session", autouse=True)
def _load_test_env() -> Generator[None, None, None]:
    """Load test environment variables from base + local env files."""
    project_root = Path(__file__).parents[2]
    dotenv.load_dotenv(project_root / ".env.defaults", override=True)
    dotenv.load_dotenv(project_root / ".env.test-local", override=True)
    yield


class FakeBackend:
    """Backend processor stand-in served through httpx.MockTransport."""

    def __init__(self, store: MemoryObjectStore) -> None:
        self.store = store
        self.requests: list[httpx.Request] = []
        self.deletes_seen_during_call: list[int] = []
        self.status_code = 200
        self.payload: Any = {"documentId": "doc-1", "chunks": 3}
        self.raw_body: bytes | None = None
        self.delay = 0.0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        await request.aread()
        self.requests.append(request)
        self.deletes_seen_during_call.append(len(self.store.delete_calls))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.raw_body is not None:
            return httpx.Response(self.status_code, content=self.raw_body)
        return httpx.Response(self.status_code, json=self.payload)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def store() -> MemoryObjectStore:
    return MemoryObjectStore()


@pytest.fixture
def backend(store: MemoryObjectStore) -> FakeBackend:
    return FakeBackend(store)


@pytest.fixture
def make_config() -> Callable[..., Config]:
    def _make(**overrides: Any) -> Config:
        return dataclasses.replace(get_config(), **overrides)

    return _make


@pytest.fixture
def make_app(
    store: MemoryObjectStore, backend: FakeBackend, make_config: Callable[..., Config]
) -> Callable[..., FastAPI]:
    from upload_relay.main import factory

    def _make(**config_overrides: Any) -> FastAPI:
        return factory(config=make_config(**config_overrides), object_store=store, backend_client=backend.client())

    return _make


@pytest_asyncio.fixture
async def client(make_app: Callable[..., FastAPI]) -> AsyncGenerator[httpx.AsyncClient, None]:
    app = make_app()
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c


@pytest.fixture
def make_client(make_app: Callable[..., FastAPI]) -> Callable[..., httpx.AsyncClient]:
    """Client for an app built with config overrides. Use as an async context manager."""

    def _make(**config_overrides: Any) -> httpx.AsyncClient:
        app = make_app(**config_overrides)
        return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    return _make
