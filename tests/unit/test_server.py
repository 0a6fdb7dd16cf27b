"""
Unit tests for the server facade.
"""

from unittest.mock import AsyncMock, patch

import pytest

from mcp_rpc.config import ServerConfig
from mcp_rpc.server import MCPServer, create_server, run_server


class TestCreateServer:
    """Tests for create_server."""

    def test_defaults_registered(self):
        server = create_server(config=ServerConfig())

        assert isinstance(server, MCPServer)
        assert {"echo", "add", "sleep"} <= {tool["name"] for tool in server.registry.list_operations()}

    def test_name_override(self):
        server = create_server("custom", config=ServerConfig(), register_defaults=False)

        assert server.config.server_name == "custom"
        assert len(server.registry) == 0

    def test_operation_decorator(self):
        server = create_server(config=ServerConfig(), register_defaults=False)

        @server.operation(description="Reverse a string")
        def reverse(params):
            return params["text"][::-1]

        assert server.registry.lookup("reverse").handler is reverse

    def test_new_dispatcher_uses_config(self):
        config = ServerConfig(server_name="cfg", protocol_version="2025-03-26", require_initialize=True)
        dispatcher = create_server(config=config).new_dispatcher("peer-1")

        assert dispatcher.require_initialize is True
        assert dispatcher.session.server_name == "cfg"
        assert dispatcher.session.default_version == "2025-03-26"
        assert dispatcher.session.peer == "peer-1"

    def test_each_dispatcher_gets_own_session(self):
        server = create_server(config=ServerConfig())
        assert server.new_dispatcher().session is not server.new_dispatcher().session

    @pytest.mark.asyncio
    async def test_serve_transport(self, queue_transport):
        server = create_server(config=ServerConfig(concurrent=True))
        queue_transport.feed({"jsonrpc": "2.0", "id": 1, "method": "echo", "params": "hi"})

        async def close_after_first_write(text):
            queue_transport.written.append(text)
            queue_transport.close_input()

        queue_transport.write = close_after_first_write
        loop = await server.serve_transport(queue_transport)

        assert loop.concurrent is True
        assert queue_transport.responses() == [{"jsonrpc": "2.0", "id": 1, "result": "hi"}]
        assert server.registry.frozen is True


class TestRunServer:
    """Tests for run_server."""

    def test_unknown_transport(self):
        server = create_server(config=ServerConfig())
        with pytest.raises(ValueError):
            run_server(server, transport="carrier-pigeon")

    def test_stdio(self):
        server = create_server(config=ServerConfig())
        with patch.object(MCPServer, "serve_stdio", new_callable=AsyncMock) as mock_serve:
            run_server(server)
        mock_serve.assert_awaited_once()

    def test_http(self):
        server = create_server(config=ServerConfig(transport_type="http"))
        with patch.object(MCPServer, "serve_http", new_callable=AsyncMock) as mock_serve:
            run_server(server)
        mock_serve.assert_awaited_once()

