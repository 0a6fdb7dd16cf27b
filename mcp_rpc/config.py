# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Configuration handling for the MCP RPC server.

This module provides the server configuration, loaded from environment
variables with keyword overrides, and the logging setup shared by every
transport.
"""

import logging
import os
import sys
from dataclasses import dataclass, replace
from typing import List

# Protocol versions this server can speak, oldest first
SUPPORTED_PROTOCOL_VERSIONS = ["2024-11-05", "2025-03-26", "2025-06-18"]
DEFAULT_PROTOCOL_VERSION = SUPPORTED_PROTOCOL_VERSIONS[-1]

TRANSPORT_TYPES = ("stdio", "http")

# Idle time after which an HTTP session is dropped, and how often to check
SESSION_TIMEOUT = 3600
SESSION_CLEANUP_INTERVAL = 60

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).lower() in ("1", "true", "yes")


@dataclass
class ServerConfig:
    """Configuration for an MCP RPC server instance."""

    # Identity reported in the initialize response
    server_name: str = "mcp-rpc-server"
    server_version: str = "0.1.0"

    # Protocol settings
    protocol_version: str = DEFAULT_PROTOCOL_VERSION
    supported_versions: List[str] = None
    require_initialize: bool = False

    # Transport settings
    transport_type: str = "stdio"  # "stdio" or "http"
    host: str = "localhost"
    port: int = 8080
    concurrent: bool = False
    session_timeout: float = SESSION_TIMEOUT

    # Debugging
    debug: bool = False

    def __post_init__(self):
        """Initialize defaults for mutable fields and validate choices."""
        if self.supported_versions is None:
            self.supported_versions = list(SUPPORTED_PROTOCOL_VERSIONS)
        if self.transport_type not in TRANSPORT_TYPES:
            raise ValueError(f"Unknown transport: {self.transport_type}")
        if self.protocol_version not in self.supported_versions:
            raise ValueError(f"Unsupported protocol version: {self.protocol_version}")

    def with_overrides(self, **overrides) -> "ServerConfig":
        """Return a copy with any non-None overrides applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return replace(self, **changes)


def load_config_from_env(**overrides) -> ServerConfig:
    """
    Load configuration from environment variables.

    Args:
        **overrides: Values that take precedence over the environment

    Returns:
        A ServerConfig object populated from environment variables.
    """
    config = ServerConfig(
        server_name=os.environ.get("MCP_SERVER_NAME", "mcp-rpc-server"),
        server_version=os.environ.get("MCP_SERVER_VERSION", "0.1.0"),
        protocol_version=os.environ.get("MCP_PROTOCOL_VERSION", DEFAULT_PROTOCOL_VERSION),
        require_initialize=_env_flag("MCP_REQUIRE_INITIALIZE"),
        transport_type=os.environ.get("MCP_TRANSPORT", "stdio"),
        host=os.environ.get("MCP_HOST", "localhost"),
        port=int(os.environ.get("MCP_PORT", "8080")),
        concurrent=_env_flag("MCP_CONCURRENT"),
        session_timeout=float(os.environ.get("MCP_SESSION_TIMEOUT", str(SESSION_TIMEOUT))),
        debug=_env_flag("MCP_DEBUG"),
    )
    return config.with_overrides(**overrides)


def configure_logging(debug: bool = False) -> logging.Logger:
    """
    Configure logging for the server process.

    Log records go to stderr because stdout carries the protocol stream.

    Args:
        debug: Whether to enable debug logging

    Returns:
        The package logger
    """
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)]
    )
    logger = logging.getLogger("mcp_rpc")
    logger.setLevel(logging.DEBUG if debug else logging.INFO)
    return logger
