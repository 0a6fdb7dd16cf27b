# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
MCP RPC Server.

A small Model Context Protocol server core: a JSON-RPC 2.0 request/response
server with pluggable named operations, capability negotiation and
stdio/HTTP transports.
"""

from mcp_rpc.errors import (
    ChannelClosed,
    DuplicateOperationError,
    ErrorCodes,
    HandlerFailure,
    InvalidParams,
    InvalidRequest,
    MCPError,
    NotInitialized,
    OperationNotFound,
    ParseError,
)
from mcp_rpc.registry import Operation, Registry
from mcp_rpc.session import Session
from mcp_rpc.dispatcher import Dispatcher
from mcp_rpc.loop import TransportLoop
from mcp_rpc.server import MCPServer, create_server, run_server

__version__ = "0.1.0"

__all__ = [
    'ChannelClosed',
    'Dispatcher',
    'DuplicateOperationError',
    'ErrorCodes',
    'HandlerFailure',
    'InvalidParams',
    'InvalidRequest',
    'MCPError',
    'MCPServer',
    'NotInitialized',
    'Operation',
    'OperationNotFound',
    'ParseError',
    'Registry',
    'Session',
    'TransportLoop',
    'create_server',
    'run_server',
]
