"""Tests for the HTTP application."""

import contextlib
import json
from pathlib import Path
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from mcp_widget_server.app import WidgetServer
from mcp_widget_server.config import ServerConfig
from mcp_widget_server.protocol.jsonrpc import MAX_MESSAGE_SIZE
from mcp_widget_server.widgets.base import WidgetDefinition, WidgetHandlerResult
from mcp_widget_server.widgets.compiler import WidgetConfigError, generate_asset_hash
from mcp_widget_server.widgets.pizzaz import pizzaz_widgets
from mcp_widget_server.widgets.schema import number, obj


JSON = {"content-type": "application/json"}


async def say_hi(args):
    return {"text": "hi"}


def hello_widget(component: str = "hello") -> WidgetDefinition:
    return WidgetDefinition(component=component, title="Hello", schema=obj(), handler=say_hi)


@pytest.fixture
def config(tmp_path: Path) -> ServerConfig:
    assets = tmp_path / "assets"
    assets.mkdir()
    (assets / "hello-abcd.js").write_text("console.log('hello');")
    return ServerConfig(version="1.0.0", assets_dir=assets)


@pytest.fixture
def server(config: ServerConfig) -> WidgetServer:
    return WidgetServer(config, [hello_widget()])


def client_for(server: WidgetServer) -> httpx.AsyncClient:
    transport = httpx.ASGITransport(app=server.build_app())
    return httpx.AsyncClient(transport=transport, base_url="http://test")


class TestConstruction:
    """Tests for building the server."""

    def test_duplicate_widgets_fail_fast(self, config: ServerConfig):
        """Should refuse to build with duplicate components."""
        with pytest.raises(WidgetConfigError, match="Duplicate"):
            WidgetServer(config, [hello_widget(), hello_widget()])

    def test_compiles_pizzaz_widgets(self, config: ServerConfig):
        """Should compile the demonstration widgets with hashed asset URLs."""
        server = WidgetServer(config, pizzaz_widgets())
        asset_hash = generate_asset_hash("1.0.0")

        assert [widget.component for widget in server.widgets] == [
            "pizzaz",
            "pizzaz-carousel",
            "pizzaz-albums",
            "pizzaz-list",
            "kaka-haha",
            "hoho-haha",
        ]
        carousel = server.widgets[1]
        assert f"http://localhost:4444/pizzaz-carousel-{asset_hash}.js" in carousel.html
        assert carousel.input_schema["required"] == ["pizzaTopping"]
        assert server.widgets[4].input_schema["required"] == []

    def test_audit_log_created_when_configured(self, config: ServerConfig, tmp_path: Path):
        """Should open the audit log named in the config."""
        config.audit_log_file = str(tmp_path / "logs" / "audit.log")

        server = WidgetServer(config, [hello_widget()])

        assert server.audit_logger is not None
        server.audit_logger.close()


class TestStream:
    """Tests for the SSE endpoint."""

    @pytest.mark.asyncio
    async def test_stream_has_cors_headers(self, server: WidgetServer, open_stream):
        """Should open an event stream readable from any origin."""
        stream = open_stream(server.build_app())
        endpoint = await stream.endpoint()

        start = await stream.response_start()
        headers = dict(start["headers"])
        assert start["status"] == 200
        assert headers[b"content-type"].startswith(b"text/event-stream")
        assert headers[b"access-control-allow-origin"] == b"*"
        assert endpoint.startswith("/mcp/messages?session_id=")
        assert len(server.sessions) == 1
        await stream.disconnect()

        assert len(server.sessions) == 0

    @pytest.mark.asyncio
    async def test_handshake_failure_answers_500(
        self, server: WidgetServer, open_stream, monkeypatch
    ):
        """Should answer 500 when the session cannot be opened."""

        @contextlib.asynccontextmanager
        async def failing_connect(scope, receive, send):
            raise ValueError("Request validation failed")
            yield

        monkeypatch.setattr(server.sessions.transport, "connect_sse", failing_connect)
        stream = open_stream(server.build_app())

        start = await stream.response_start()
        await stream.finished()

        assert start["status"] == 500
        assert len(server.sessions) == 0


class TestMessages:
    """Tests for the message POST endpoint."""

    @pytest.mark.asyncio
    async def test_missing_session_id(self, server: WidgetServer):
        """Should answer 400 without a sessionId."""
        async with client_for(server) as client:
            response = await client.post("/mcp/messages", content="{}", headers=JSON)

        assert response.status_code == 400
        assert response.text == "Missing sessionId"
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.asyncio
    async def test_unknown_session_id(self, server: WidgetServer):
        """Should answer 404 for an id that is not open."""
        async with client_for(server) as client:
            response = await client.post(
                "/mcp/messages?sessionId=nope", content="{}", headers=JSON
            )

        assert response.status_code == 404
        assert response.text == "Unknown session"

    @pytest.mark.asyncio
    async def test_message_is_answered_on_stream(self, server: WidgetServer, open_stream):
        """Should accept the POST and stream the response on the session."""
        stream = open_stream(server.build_app())
        endpoint = await stream.endpoint()

        body = {"jsonrpc": "2.0", "id": 7, "method": "tools/call", "params": {"name": "hello"}}
        async with client_for(server) as client:
            response = await client.post(endpoint, content=json.dumps(body), headers=JSON)

        assert response.status_code == 202
        assert response.headers["access-control-allow-origin"] == "*"
        message = await stream.next_message()
        assert message["id"] == 7
        assert message["result"]["content"] == [{"type": "text", "text": "hi"}]
        await stream.disconnect()

    @pytest.mark.asyncio
    async def test_session_id_parameter_spellings(self, server: WidgetServer, open_stream):
        """Should accept the id as sessionId as well as session_id."""
        stream = open_stream(server.build_app())
        endpoint = await stream.endpoint()
        session_id = parse_qs(urlsplit(endpoint).query)["session_id"][0]

        body = {"jsonrpc": "2.0", "id": 8, "method": "ping"}
        async with client_for(server) as client:
            response = await client.post(
                f"/mcp/messages?sessionId={session_id}", content=json.dumps(body), headers=JSON
            )

        assert response.status_code == 202
        assert await stream.next_message() == {"jsonrpc": "2.0", "id": 8, "result": {}}
        await stream.disconnect()

    @pytest.mark.asyncio
    async def test_invalid_json_is_bad_request(self, server: WidgetServer, open_stream):
        """Should answer 400 for a body that is not a JSON-RPC message."""
        stream = open_stream(server.build_app())
        endpoint = await stream.endpoint()

        async with client_for(server) as client:
            response = await client.post(endpoint, content="{not json", headers=JSON)

        assert response.status_code == 400
        await stream.disconnect()

    @pytest.mark.asyncio
    async def test_oversized_body_is_rejected(self, server: WidgetServer, open_stream):
        """Should answer 413 for a body over the size limit."""
        stream = open_stream(server.build_app())
        endpoint = await stream.endpoint()
        padding = "a" * MAX_MESSAGE_SIZE
        body = json.dumps({"jsonrpc": "2.0", "id": 1, "method": "ping", "params": {"x": padding}})

        async with client_for(server) as client:
            response = await client.post(endpoint, content=body, headers=JSON)

        assert response.status_code == 413
        await stream.disconnect()

    @pytest.mark.asyncio
    async def test_closed_session_rejected(self, server: WidgetServer, open_stream):
        """Should answer 404 once the session has closed."""
        stream = open_stream(server.build_app())
        endpoint = await stream.endpoint()
        await stream.disconnect()

        async with client_for(server) as client:
            response = await client.post(endpoint, content="{}", headers=JSON)

        assert response.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/mcp", "/mcp/messages"])
    async def test_preflight(self, server: WidgetServer, path: str):
        """Should answer OPTIONS with 204 and CORS headers."""
        async with client_for(server) as client:
            response = await client.options(path)

        assert response.status_code == 204
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-allow-methods"] == "GET, POST, OPTIONS"
        assert response.headers["access-control-allow-headers"] == "content-type"


class TestNonFiniteNumbers:
    """Tests for NaN and infinities crossing the wire."""

    @pytest.mark.asyncio
    async def test_nan_literal_never_reaches_handler(self, config: ServerConfig, open_stream):
        """Should refuse a NaN literal at the POST or fail the call before the handler."""
        seen = []

        async def record(args):
            seen.append(args)
            return {"text": "ok"}

        widget = WidgetDefinition(
            component="meter", title="Meter", schema=obj({"usage": number()}), handler=record
        )
        server = WidgetServer(config, [widget])
        stream = open_stream(server.build_app())
        endpoint = await stream.endpoint()
        body = (
            '{"jsonrpc": "2.0", "id": 3, "method": "tools/call",'
            ' "params": {"name": "meter", "arguments": {"usage": NaN}}}'
        )

        async with client_for(server) as client:
            response = await client.post(endpoint, content=body, headers=JSON)

        if response.status_code == 202:
            message = await stream.next_message()
            assert message["error"]["code"] == -32602
        else:
            assert response.status_code == 400
        assert seen == []
        await stream.disconnect()

    @pytest.mark.asyncio
    async def test_non_finite_result_data_is_strict_json(
        self, config: ServerConfig, open_stream
    ):
        """Should never write a bare NaN or Infinity into an event."""

        async def measure(args):
            return WidgetHandlerResult(text="measured", data={"reading": float("nan")})

        widget = WidgetDefinition(component="gauge", title="Gauge", schema=obj(), handler=measure)
        server = WidgetServer(config, [widget])
        stream = open_stream(server.build_app())
        endpoint = await stream.endpoint()
        body = {"jsonrpc": "2.0", "id": 4, "method": "tools/call", "params": {"name": "gauge"}}

        async with client_for(server) as client:
            await client.post(endpoint, content=json.dumps(body), headers=JSON)

        event, data = await stream.next_event()

        def reject(constant):
            raise ValueError(f"non-standard JSON constant {constant}")

        message = json.loads(data, parse_constant=reject)
        assert event == "message"
        assert message["result"]["content"] == [{"type": "text", "text": "measured"}]
        await stream.disconnect()


class TestRouting:
    """Tests for the remaining routes."""

    @pytest.mark.asyncio
    async def test_unknown_path(self, server: WidgetServer):
        """Should answer 404 for unknown paths."""
        async with client_for(server) as client:
            response = await client.get("/nope")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_wrong_method(self, server: WidgetServer):
        """Should answer 404 for unsupported methods on known paths."""
        async with client_for(server) as client:
            assert (await client.delete("/mcp")).status_code == 404
            assert (await client.get("/mcp/messages")).status_code == 404
            assert (await client.post("/health")).status_code == 404

    @pytest.mark.asyncio
    async def test_serves_assets(self, server: WidgetServer):
        """Should serve files from the assets directory."""
        async with client_for(server) as client:
            response = await client.get("/assets/hello-abcd.js")

        assert response.status_code == 200
        assert response.text == "console.log('hello');"
        assert response.headers["content-type"].startswith("application/javascript")

    @pytest.mark.asyncio
    async def test_missing_asset(self, server: WidgetServer):
        """Should answer 404 for assets that were not built."""
        async with client_for(server) as client:
            response = await client.get("/assets/missing.js")

        assert response.status_code == 404


class TestHealth:
    """Tests for health and readiness."""

    @pytest.mark.asyncio
    async def test_health_snapshot(self, server: WidgetServer, open_stream):
        """Should report status, sessions and widgets."""
        stream = open_stream(server.build_app())
        await stream.endpoint()

        async with client_for(server) as client:
            response = await client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok", "sessions": 1, "widgets": ["hello"]}
        await stream.disconnect()

    @pytest.mark.asyncio
    async def test_ready_when_up(self, server: WidgetServer):
        """Should answer 200 by default."""
        async with client_for(server) as client:
            response = await client.get("/ready")

        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_not_ready_when_down(self, config: ServerConfig):
        """Should answer 503 when the provider reports down."""
        server = WidgetServer(
            config, [hello_widget()], health_provider=lambda: {"status": "down", "db": "gone"}
        )

        async with client_for(server) as client:
            ready = await client.get("/ready")
            health = await client.get("/health")

        assert ready.status_code == 503
        assert ready.json()["db"] == "gone"
        assert health.status_code == 200
