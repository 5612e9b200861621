"""Test fixtures for the OpenCode client.

Provides:
- JSON payloads shaped like real OpenCode server responses
- A fake server reachable through httpx.MockTransport, including the SSE feed
- A fake supervisor
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
import inspect
import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from opencode_island import ClientConfig, OpenCodeClient, OpenCodeService, ServerInfo
from opencode_island.config import DEFAULT_PORT


if TYPE_CHECKING:
    from collections.abc import AsyncIterator


SESSION_ID = "ses_1"
NOW_MS = 1_736_000_000_000


def session_payload(session_id: str = SESSION_ID, **overrides: Any) -> dict[str, Any]:
    payload = {
        "id": session_id,
        "title": "OpenCode Island",
        "version": "1.2.3",
        "projectID": "prj_1",
        "directory": "/home/user/project",
        "time": {"created": NOW_MS, "updated": NOW_MS},
    }
    return payload | overrides


def message_payload(
    message_id: str = "msg_1",
    *,
    session_id: str = SESSION_ID,
    role: str = "assistant",
    finish: str | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": message_id,
        "sessionID": session_id,
        "role": role,
        "time": {"created": NOW_MS},
    }
    if finish is not None:
        payload["finish"] = finish
    return payload


def part_payload(
    part_id: str = "prt_1",
    *,
    message_id: str = "msg_1",
    session_id: str = SESSION_ID,
    type: str = "text",  # noqa: A002
    **fields: Any,
) -> dict[str, Any]:
    return {
        "id": part_id,
        "messageID": message_id,
        "sessionID": session_id,
        "type": type,
        **fields,
    }


AGENTS = [
    {"name": "build", "mode": "primary", "native": True, "default": True},
    {"name": "plan", "mode": "primary", "native": True},
    {"name": "general", "mode": "subagent", "native": True},
    {"name": "custom-helper", "mode": "all"},
]

PROVIDERS = {
    "all": [
        {
            "id": "anthropic",
            "name": "Anthropic",
            "models": {
                "claude-sonnet-4": {"id": "claude-sonnet-4", "name": "Claude Sonnet 4"},
                "claude-haiku-4": {"id": "claude-haiku-4", "name": "Claude Haiku 4"},
            },
        },
        {
            "id": "openai",
            "name": "OpenAI",
            "models": {"gpt-5": {"id": "gpt-5", "name": "GPT-5"}},
        },
    ],
    "default": {"anthropic": "claude-sonnet-4"},
    "connected": ["anthropic"],
}


def sse_block(event_type: str, properties: dict[str, Any], *, sse_type: str = "message") -> bytes:
    """Encode an event the way the server frames it."""
    data = json.dumps({"type": event_type, "properties": properties})
    return f"event: {sse_type}\r\ndata: {data}\r\n\r\n".encode()


Route = tuple[int, Any] | Callable[[httpx.Request], Any]


class FakeOpenCodeServer:
    """In-memory OpenCode server answering through httpx.MockTransport."""

    def __init__(self, ports: set[int] | None = None) -> None:
        self.ports = {DEFAULT_PORT} if ports is None else ports
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Route] = {}
        self.feed: asyncio.Queue[bytes | None] = asyncio.Queue()
        self.event_connections = 0
        self.route("GET", "/global/health", {"healthy": True, "version": "1.2.3"})
        self.route("GET", "/agent", AGENTS)
        self.route("GET", "/provider", PROVIDERS)
        self.route("POST", "/session", session_payload())
        self.route("GET", f"/session/{SESSION_ID}", session_payload())
        self.route("GET", f"/session/{SESSION_ID}/message", [])
        self.route("POST", f"/session/{SESSION_ID}/abort", True)

    def route(self, method: str, path: str, payload: Any = None, *, status: int = 200) -> None:
        self.routes[(method, path)] = (status, payload)

    def handler(self, method: str, path: str, func: Callable[[httpx.Request], Any]) -> None:
        """Answer ``method path`` with ``func(request)``, which may be async."""
        self.routes[(method, path)] = func

    def push(self, event_type: str, properties: dict[str, Any]) -> None:
        self.feed.put_nowait(sse_block(event_type, properties))

    def push_raw(self, chunk: bytes) -> None:
        self.feed.put_nowait(chunk)

    def end_feed(self) -> None:
        self.feed.put_nowait(None)

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.port not in self.ports:
            msg = "Connection refused"
            raise httpx.ConnectError(msg, request=request)
        if request.url.path == "/event":
            self.event_connections += 1
            headers = {"content-type": "text/event-stream"}
            return httpx.Response(200, headers=headers, content=self._stream())
        route = self.routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "Not found"})
        if callable(route):
            result = route(request)
            if inspect.isawaitable(result):
                result = await result
            return result
        status, payload = route
        if payload is None:
            return httpx.Response(status)
        return httpx.Response(status, json=payload)

    async def _stream(self) -> AsyncIterator[bytes]:
        while (chunk := await self.feed.get()) is not None:
            yield chunk


class FakeSupervisor:
    """Supervisor that pretends to start a server on a fixed port."""

    def __init__(
        self,
        port: int = 5555,
        working_directory: str = "/home/user/project",
        *,
        fail_with: str | None = None,
    ) -> None:
        self.port = port
        self.working_directory = working_directory
        self.fail_with = fail_with
        self.started = 0
        self.stopped = 0
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def error_message(self) -> str | None:
        return self.fail_with

    async def start(self) -> ServerInfo:
        self.started += 1
        self._running = self.fail_with is None
        return ServerInfo(self.port, self.working_directory)

    async def stop(self) -> None:
        self.stopped += 1
        self._running = False


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds, failing the test after ``timeout``."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.005)


@pytest.fixture
def server() -> FakeOpenCodeServer:
    return FakeOpenCodeServer()


@pytest.fixture
async def client(server: FakeOpenCodeServer) -> AsyncIterator[OpenCodeClient]:
    async with OpenCodeClient(transport=server.transport) as client:
        yield client


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(stream_retry_base_delay=0.0)


@pytest.fixture
async def service(
    server: FakeOpenCodeServer, config: ClientConfig
) -> AsyncIterator[OpenCodeService]:
    async with OpenCodeService(config=config, transport=server.transport) as service:
        yield service


@pytest.fixture
async def connected_service(service: OpenCodeService) -> OpenCodeService:
    await service.connect()
    assert service.connection_state.is_connected
    return service
