"""Shared test fixtures for pytest.

ENVIRONMENT is forced to ``test`` before any application module is imported so
``get_settings()`` never reads a developer's .env.dev file.

Generation and store backends are faked with ``httpx.MockTransport`` route
tables, so the real transport, decoder and acceptance code paths run end to
end without a network.
"""

import asyncio
import inspect
import json
import os
from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from typing import Any

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient


os.environ["ENVIRONMENT"] = "test"

from core.config import Settings
from dependencies.engine import get_engine
from main import app
from services.drafts.acceptance import AcceptanceSink
from services.drafts.engine import DraftEngine
from services.drafts.transport import GenerationTransport


Handler = Callable[[httpx.Request], httpx.Response | Awaitable[httpx.Response]]


class FakeBackend:
    """Route table for ``httpx.MockTransport`` that records every request.

    Each route holds a queue of handlers; calls consume them in order and the
    last one answers every further call.
    """

    def __init__(self) -> None:
        self.routes: dict[tuple[str, str], list[Handler]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, handler: Handler) -> None:
        self.routes.setdefault((method, path), []).append(handler)

    def json(
        self, method: str, path: str, payload: Any, status_code: int = 200
    ) -> None:
        self.add(
            method, path, lambda _request: httpx.Response(status_code, json=payload)
        )

    def stream(
        self,
        method: str,
        path: str,
        chunks: Sequence[bytes],
        *,
        gate: asyncio.Event | None = None,
        hold_at: int = 1,
        status_code: int = 200,
    ) -> None:
        """Serve ``chunks`` as a streamed body.

        With ``gate`` set, the body pauses before chunk ``hold_at`` until the
        gate opens.
        """

        def handler(_request: httpx.Request) -> httpx.Response:
            async def body() -> AsyncGenerator[bytes, None]:
                for index, chunk in enumerate(chunks):
                    if gate is not None and index == hold_at:
                        await gate.wait()
                    yield chunk

            return httpx.Response(status_code, content=body())

        self.add(method, path, handler)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and request.url.path == path
        ]

    async def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handlers = self.routes.get((request.method, request.url.path))
        if not handlers:
            return httpx.Response(404, json={"error": "no route"})
        handler = handlers.pop(0) if len(handlers) > 1 else handlers[0]
        response = handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture
def settings() -> Settings:
    return Settings(
        ENVIRONMENT="test",
        ATOMIC_TIMEOUT_SECONDS=5.0,
        STREAM_MAX_SECONDS=5.0,
        STREAM_IDLE_TIMEOUT_SECONDS=5.0,
    )


@pytest.fixture
def generation_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def store_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def read_json() -> Callable[[httpx.Request], Any]:
    return request_json


@pytest.fixture
def wait_for() -> Callable[..., Awaitable[None]]:
    """Poll ``predicate`` on the event loop until it holds."""

    async def _wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
        async with asyncio.timeout(timeout):
            while not predicate():
                await asyncio.sleep(0.001)

    return _wait_for


@pytest_asyncio.fixture
async def transport(
    generation_backend: FakeBackend, settings: Settings
) -> AsyncGenerator[GenerationTransport, None]:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(generation_backend),
        base_url="http://generation.test",
    )
    transport = GenerationTransport(client, settings=settings)
    yield transport
    await transport.aclose()


@pytest_asyncio.fixture
async def sink(store_backend: FakeBackend) -> AsyncGenerator[AcceptanceSink, None]:
    client = httpx.AsyncClient(
        transport=httpx.MockTransport(store_backend), base_url="http://store.test"
    )
    sink = AcceptanceSink(client, timeout=5.0)
    yield sink
    await sink.aclose()


@pytest_asyncio.fixture
async def engine(
    transport: GenerationTransport, sink: AcceptanceSink
) -> AsyncGenerator[DraftEngine, None]:
    engine = DraftEngine(transport, sink)
    yield engine
    await engine.aclose()


@pytest_asyncio.fixture
async def async_client(engine: DraftEngine) -> AsyncGenerator[AsyncClient, None]:
    """Async client bound to the app with the engine dependency overridden."""
    app.dependency_overrides[get_engine] = lambda: engine
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.pop(get_engine, None)
