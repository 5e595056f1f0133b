"""Tests for MCP lifecycle management."""

import pytest

from mcp_widget_server.protocol.lifecycle import (
    MCP_PROTOCOL_VERSION,
    LifecycleManager,
    LifecycleState,
    ProtocolError,
)


class TestLifecycleManager:
    """Tests for MCP lifecycle state machine."""

    def test_initial_state_is_uninitialized(self):
        """Should start in uninitialized state."""
        manager = LifecycleManager()
        assert manager.state == LifecycleState.UNINITIALIZED
        assert not manager.is_ready

    def test_handles_initialize_request(self):
        """Should handle initialize request and return capabilities."""
        manager = LifecycleManager(server_info={"name": "pizzaz", "version": "1.2.3"})

        result = manager.handle_initialize(
            {
                "protocolVersion": MCP_PROTOCOL_VERSION,
                "capabilities": {},
                "clientInfo": {"name": "test-client", "version": "1.0.0"},
            }
        )

        assert result["protocolVersion"] == MCP_PROTOCOL_VERSION
        assert result["capabilities"] == {"tools": {}, "resources": {}}
        assert result["serverInfo"] == {"name": "pizzaz", "version": "1.2.3"}
        assert manager.state == LifecycleState.INITIALIZING
        assert manager.client_info == {"name": "test-client", "version": "1.0.0"}

    def test_echoes_client_protocol_version(self):
        """Should answer with the version the client asked for."""
        manager = LifecycleManager()

        result = manager.handle_initialize({"protocolVersion": "2025-06-18"})

        assert result["protocolVersion"] == "2025-06-18"

    def test_defaults_protocol_version_when_missing(self):
        """Should fall back to the default version."""
        manager = LifecycleManager()

        result = manager.handle_initialize({})

        assert result["protocolVersion"] == MCP_PROTOCOL_VERSION

    def test_handles_initialized_notification(self):
        """Should transition to ready on initialized notification."""
        manager = LifecycleManager()
        manager.handle_initialize({})

        manager.handle_initialized()

        assert manager.state == LifecycleState.READY
        assert manager.is_ready

    def test_rejects_double_initialize(self):
        """Should reject a second initialize request."""
        manager = LifecycleManager()
        manager.handle_initialize({})

        with pytest.raises(ProtocolError, match="already initialized"):
            manager.handle_initialize({})

    def test_rejects_initialized_without_initialize(self):
        """Should reject initialized notification before initialize."""
        manager = LifecycleManager()

        with pytest.raises(ProtocolError):
            manager.handle_initialized()

    def test_requests_allowed_before_handshake(self):
        """Should accept requests before initialize completes."""
        manager = LifecycleManager()

        manager.require_open()

    def test_shutdown_rejects_everything(self):
        """Should reject requests and initialize after shutdown."""
        manager = LifecycleManager()
        manager.handle_shutdown()

        assert manager.is_shutdown
        with pytest.raises(ProtocolError):
            manager.require_open()
        with pytest.raises(ProtocolError):
            manager.handle_initialize({})
