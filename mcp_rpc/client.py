# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
MCP HTTP Client

A small synchronous client for talking to an MCP RPC server over HTTP.
"""

import itertools
import logging
from typing import Any, Dict, List, Optional

import requests

from .config import DEFAULT_PROTOCOL_VERSION
from .errors import MCPError
from .transports.http import SESSION_HEADER

logger = logging.getLogger(__name__)


class MCPHttpClient:
    """Client for an MCP server reachable over HTTP POST."""

    def __init__(self, url: str, timeout: float = 10.0, client_name: str = "mcp-rpc-client"):
        """
        Initialize the client with the server URL.

        Args:
            url: The URL of the MCP server endpoint
            timeout: Timeout for each HTTP request in seconds
            client_name: Name sent in clientInfo at initialize
        """
        self.url = url
        self.timeout = timeout
        self.client_name = client_name

        # Session information
        self.session_id: Optional[str] = None
        self.server_info: Optional[Dict[str, Any]] = None
        self.protocol_version: Optional[str] = None
        self._ids = itertools.count(1)

        # Create a persistent session for all requests
        self.request_session = requests.Session()
        self.request_session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json"
        })

    def _post(self, body: Any) -> requests.Response:
        headers = {}
        if self.session_id:
            headers[SESSION_HEADER] = self.session_id
        logger.debug(f"POST {self.url}: {body}")
        response = self.request_session.post(self.url, json=body, headers=headers, timeout=self.timeout)
        response.raise_for_status()
        session_id = response.headers.get(SESSION_HEADER)
        if session_id:
            self.session_id = session_id
        return response

    def request(self, method: str, params: Any = None) -> Dict[str, Any]:
        """
        Send a request and return the raw JSON-RPC response.

        Raises:
            requests.HTTPError: If the server answers with an HTTP error status
            RuntimeError: If the response id does not match the request
        """
        request_id = next(self._ids)
        body = {"jsonrpc": "2.0", "id": request_id, "method": method}
        if params is not None:
            body["params"] = params
        response = self._post(body).json()
        if response.get("id") != request_id:
            raise RuntimeError(f"Response ID mismatch: expected {request_id}, got {response.get('id')}")
        return response

    def call(self, method: str, params: Any = None) -> Any:
        """
        Send a request and return its result.

        Raises:
            MCPError: If the server returned an error response
        """
        response = self.request(method, params)
        if "error" in response:
            error = response["error"]
            raise MCPError(error.get("code", -32603), error.get("message", ""), error.get("data"))
        return response.get("result")

    def notify(self, method: str, params: Any = None) -> None:
        """Send a notification (no response expected)."""
        body = {"jsonrpc": "2.0", "method": method}
        if params is not None:
            body["params"] = params
        self._post(body)

    def initialize(self, protocol_version: str = DEFAULT_PROTOCOL_VERSION,
                   capabilities: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """Run the initialize handshake and send notifications/initialized."""
        result = self.call("initialize", {
            "protocolVersion": protocol_version,
            "capabilities": capabilities or {},
            "clientInfo": {"name": self.client_name, "version": "0.1.0"},
        })
        self.server_info = result.get("serverInfo")
        self.protocol_version = result.get("protocolVersion")
        self.notify("notifications/initialized")
        return result

    def list_tools(self) -> List[Dict[str, Any]]:
        return self.call("tools/list").get("tools", [])

    def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return self.call("tools/call", {"name": name, "arguments": arguments or {}})

    def close(self) -> None:
        """Terminate the server session and close the HTTP connection pool."""
        if self.session_id:
            try:
                self.request_session.delete(
                    self.url, headers={SESSION_HEADER: self.session_id}, timeout=self.timeout
                )
            except requests.RequestException as e:
                logger.warning(f"Failed to close session {self.session_id}: {str(e)}")
            self.session_id = None
        self.request_session.close()
