"""
Transports for the MCP RPC server.
"""

from mcp_rpc.transports.base import Transport
from mcp_rpc.transports.stdio import StreamTransport, open_stdio, stdio_transport
from mcp_rpc.transports.http import HttpServer

__all__ = [
    'Transport',
    'StreamTransport',
    'HttpServer',
    'open_stdio',
    'stdio_transport',
]
