# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Session management for the MCP RPC server.

A session lives for the duration of one transport connection and records
the capabilities negotiated with its peer.
"""

import logging
import time
import uuid
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Union

from .errors import InvalidParams, InvalidRequest
from .registry import Registry

logger = logging.getLogger(__name__)

ClientCapabilities = Union[Mapping[str, Any], Iterable[str], None]


def capability_flags(capabilities: ClientCapabilities) -> FrozenSet[str]:
    """
    Normalize an offered capability set to flag names.

    Accepts an MCP capability object (keys are flags) or an iterable of names.
    """
    if capabilities is None:
        return frozenset()
    if isinstance(capabilities, Mapping):
        return frozenset(str(key) for key in capabilities.keys())
    if isinstance(capabilities, str):
        return frozenset([capabilities])
    return frozenset(str(flag) for flag in capabilities)


class Session:
    """The negotiated-capability context for one connected peer."""

    def __init__(
        self,
        registry: Registry,
        server_name: str = "mcp-rpc-server",
        server_version: str = "0.1.0",
        supported_versions: Optional[List[str]] = None,
        default_version: Optional[str] = None,
        peer: Any = None,
        session_id: Optional[str] = None,
    ):
        """
        Initialize a new session.

        Args:
            registry: The registry whose declared capabilities bound negotiation
            server_name: Name reported in serverInfo
            server_version: Version reported in serverInfo
            supported_versions: Protocol versions the server accepts
            default_version: Version used when the client asks for an unsupported one
            peer: Opaque peer identity, replaced by clientInfo at initialize
            session_id: Identifier for the session; generated when omitted
        """
        self.id = session_id or str(uuid.uuid4())
        self.registry = registry
        self.server_name = server_name
        self.server_version = server_version
        self.supported_versions = list(supported_versions or ["2025-06-18"])
        self.default_version = default_version or self.supported_versions[-1]
        self.peer = peer
        self.created_at = time.time()
        self.last_active = self.created_at

        self.initialized = False
        self.protocol_version: Optional[str] = None
        self.client_capabilities: Dict[str, Any] = {}
        self.negotiated: FrozenSet[str] = frozenset()

    def negotiate(self, client_capabilities: ClientCapabilities) -> FrozenSet[str]:
        """
        Intersect the offered capabilities with the registry's declared set.

        The result is recorded on the session and returned.
        """
        offered = capability_flags(client_capabilities)
        self.negotiated = frozenset(offered & self.registry.capabilities())
        logger.debug(f"Session {self.id} negotiated capabilities: {sorted(self.negotiated)}")
        return self.negotiated

    def negotiate_version(self, requested: str) -> str:
        """Return the requested version if supported, else the server default."""
        if requested in self.supported_versions:
            return requested
        logger.info(f"Client requested unsupported protocol version {requested}, "
                    f"offering {self.default_version}")
        return self.default_version

    def server_info(self) -> Dict[str, Any]:
        return {"name": self.server_name, "version": self.server_version}

    def capability_descriptor(self) -> Dict[str, Any]:
        """Describe the server's declared capabilities as an MCP capability object."""
        descriptor = {}
        for flag in sorted(self.registry.capabilities()):
            descriptor[flag] = {"listChanged": False} if flag == "tools" else {}
        return descriptor

    def initialize(self, params: Any) -> Dict[str, Any]:
        """
        Handle the initialize request.

        Args:
            params: Initialization parameters from the client

        Returns:
            The capability descriptor: protocol version, capabilities and server info

        Raises:
            InvalidRequest: If the session is already initialized
            InvalidParams: If required fields are missing or invalid
        """
        if self.initialized:
            raise InvalidRequest("Session already initialized")
        if not isinstance(params, dict):
            raise InvalidParams("initialize params must be an object")
        if not isinstance(params.get("protocolVersion"), str):
            raise InvalidParams("Missing or invalid protocolVersion")

        capabilities = params.get("capabilities", {})
        if not isinstance(capabilities, dict):
            raise InvalidParams("Missing or invalid capabilities")
        client_info = params.get("clientInfo")
        if client_info is not None and not isinstance(client_info, dict):
            raise InvalidParams("Invalid clientInfo")

        self.protocol_version = self.negotiate_version(params["protocolVersion"])
        self.client_capabilities = capabilities
        if client_info:
            self.peer = client_info
            logger.info(f"Client: {client_info.get('name', 'Unknown')} "
                        f"{client_info.get('version', 'Unknown')}")
        self.negotiate(capabilities)
        self.initialized = True

        return {
            "protocolVersion": self.protocol_version,
            "capabilities": self.capability_descriptor(),
            "serverInfo": self.server_info(),
        }

    def update_activity(self) -> None:
        """Update the last activity timestamp for this session."""
        self.last_active = time.time()

    def is_expired(self, timeout: float) -> bool:
        """Check whether the session has been idle for longer than timeout seconds."""
        return time.time() - self.last_active > timeout

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at,
            "last_active": self.last_active,
            "initialized": self.initialized,
            "protocol_version": self.protocol_version,
            "negotiated": sorted(self.negotiated),
            "peer": self.peer,
        }
