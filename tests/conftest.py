"""Shared fixtures for tests that hold an SSE stream open."""

import asyncio
import json
from collections.abc import Awaitable, Callable

import pytest
from sse_starlette.sse import AppStatus

AsgiApp = Callable[[dict, Callable, Callable], Awaitable[None]]


@pytest.fixture(autouse=True)
def fresh_sse_exit_event(monkeypatch):
    """sse-starlette keeps its shutdown event across event loops."""
    if hasattr(AppStatus, "should_exit_event"):
        monkeypatch.setattr(AppStatus, "should_exit_event", None)


def http_scope(method: str, path: str, headers: list | None = None) -> dict:
    return {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": method,
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": headers or [],
        "server": ("test", 80),
        "client": ("127.0.0.1", 50000),
    }


class SseClient:
    """Drives one GET request against an ASGI app and reads its events."""

    def __init__(self, app: AsgiApp, path: str) -> None:
        self.disconnected = asyncio.Event()
        self.start: dict | None = None
        self._messages: asyncio.Queue[dict] = asyncio.Queue()
        self._buffer = ""
        self.task = asyncio.create_task(app(http_scope("GET", path), self._receive, self._send))

    async def _receive(self) -> dict:
        await self.disconnected.wait()
        return {"type": "http.disconnect"}

    async def _send(self, message: dict) -> None:
        await self._messages.put(message)

    async def response_start(self) -> dict:
        """Wait for the response status and headers."""
        while self.start is None:
            self._feed(await asyncio.wait_for(self._messages.get(), timeout=2))
        return self.start

    async def next_event(self) -> tuple[str, str]:
        """Return the next ``(event, data)`` pair, skipping comments."""
        while True:
            while "\n\n" not in self._buffer:
                self._feed(await asyncio.wait_for(self._messages.get(), timeout=2))
            block, self._buffer = self._buffer.split("\n\n", 1)
            event, data = "message", []
            for line in block.split("\n"):
                if line.startswith("event:"):
                    event = line[len("event:") :].strip()
                elif line.startswith("data:"):
                    data.append(line[len("data:") :].strip())
            if data:
                return event, "\n".join(data)

    async def endpoint(self) -> str:
        """Read the endpoint event and return the POST URL it names."""
        event, data = await self.next_event()
        assert event == "endpoint"
        return data

    async def next_message(self) -> dict:
        """Read the next message event and decode its JSON payload."""
        event, data = await self.next_event()
        assert event == "message"
        return json.loads(data)

    async def finished(self) -> None:
        """Wait for the app to finish the response."""
        await asyncio.wait_for(self.task, timeout=2)

    async def disconnect(self) -> None:
        """Hang up and wait for the app to notice."""
        self.disconnected.set()
        await self.finished()

    def _feed(self, message: dict) -> None:
        if message["type"] == "http.response.start":
            self.start = message
        elif message["type"] == "http.response.body":
            self._buffer += message.get("body", b"").decode().replace("\r\n", "\n")


@pytest.fixture
def open_stream() -> Callable[..., SseClient]:
    """Open an SSE stream against an ASGI app; call from a running test."""

    def connect(app: AsgiApp, path: str = "/mcp") -> SseClient:
        return SseClient(app, path)

    return connect
