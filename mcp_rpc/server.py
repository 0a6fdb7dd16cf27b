# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Main entry points for the MCP RPC server.

Usage:
    # Run directly (stdio transport)
    python -m mcp_rpc

    # Or import and customize
    from mcp_rpc import create_server, run_server
    server = create_server("my-server")

    @server.operation(description="Reverse a string")
    def reverse(params):
        return params["text"][::-1]

    run_server(server)
"""

import asyncio
import logging
from typing import Any, Optional

from .config import ServerConfig, load_config_from_env
from .dispatcher import Dispatcher
from .loop import TransportLoop
from .registry import Registry
from .session import Session
from .tools import register_default_operations
from .transports.base import Transport
from .transports.http import HttpServer
from .transports.stdio import stdio_transport

logger = logging.getLogger(__name__)


class MCPServer:
    """A registry of operations plus the configuration used to serve it."""

    def __init__(self, config: Optional[ServerConfig] = None, registry: Optional[Registry] = None):
        self.config = config or ServerConfig()
        self.registry = registry or Registry()

    def operation(self, *args, **kwargs):
        """Register an operation with a decorator; see Registry.operation."""
        return self.registry.operation(*args, **kwargs)

    def register(self, *args, **kwargs):
        return self.registry.register(*args, **kwargs)

    def new_session(self, peer: Any = None) -> Session:
        return Session(
            self.registry,
            server_name=self.config.server_name,
            server_version=self.config.server_version,
            supported_versions=self.config.supported_versions,
            default_version=self.config.protocol_version,
            peer=peer,
        )

    def new_dispatcher(self, peer: Any = None) -> Dispatcher:
        return Dispatcher(
            self.registry,
            self.new_session(peer),
            require_initialize=self.config.require_initialize,
        )

    async def serve_transport(self, transport: Transport) -> TransportLoop:
        """Serve one connection until its input channel closes."""
        loop = TransportLoop(
            transport,
            self.new_dispatcher(transport.peer),
            concurrent=self.config.concurrent,
        )
        await loop.run()
        return loop

    async def serve_stdio(self) -> TransportLoop:
        transport = await stdio_transport(debug=self.config.debug)
        return await self.serve_transport(transport)

    async def serve_http(self) -> None:
        """Serve HTTP until cancelled."""
        self.registry.freeze()
        http_server = HttpServer(self.new_dispatcher, session_timeout=self.config.session_timeout)
        await http_server.start(self.config.host, self.config.port)
        try:
            await asyncio.Event().wait()
        finally:
            await http_server.stop()


def create_server(
    name: Optional[str] = None,
    config: Optional[ServerConfig] = None,
    register_defaults: bool = True,
) -> MCPServer:
    """
    Create and configure an MCP RPC server.

    Args:
        name: Server name for identification, overriding the configuration
        config: Server configuration (loaded from the environment if None)
        register_defaults: Whether to register the built-in example operations

    Returns:
        Configured MCPServer instance
    """
    config = config or load_config_from_env()
    if name is not None:
        config = config.with_overrides(server_name=name)

    server = MCPServer(config)
    if register_defaults:
        register_default_operations(server.registry)
    return server


def run_server(server: Optional[MCPServer] = None, transport: Optional[str] = None) -> None:
    """
    Run the server until its transport finishes.

    Args:
        server: Server instance (creates new if None)
        transport: Transport type ("stdio" or "http"); defaults to the configured one
    """
    if server is None:
        server = create_server()

    transport = transport or server.config.transport_type
    if transport == "stdio":
        coro = server.serve_stdio()
    elif transport == "http":
        coro = server.serve_http()
    else:
        raise ValueError(f"Unknown transport: {transport}")

    logger.info(f"Starting {server.config.server_name} {server.config.server_version} "
                f"on {transport}")
    try:
        asyncio.run(coro)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
