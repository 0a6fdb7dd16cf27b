# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Error types for the MCP RPC server."""

from enum import IntEnum
from typing import Any, Dict, Optional


class ErrorCodes(IntEnum):
    """JSON-RPC 2.0 error codes used by the server."""
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # MCP specific error codes
    NOT_INITIALIZED = -32002


class MCPError(Exception):
    """Base exception class for errors reported to the peer."""

    def __init__(
        self,
        code: int,
        message: str,
        data: Optional[Dict[str, Any]] = None
    ) -> None:
        """Initialize MCP error.

        Args:
            code: JSON-RPC error code
            message: Error message
            data: Optional additional error data
        """
        super().__init__(message)
        self.code = int(code)
        self.message = message
        self.data = data

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to JSON-RPC error object.

        Returns:
            Dict containing error code, message and optional data
        """
        error = {
            "code": self.code,
            "message": self.message,
        }
        if self.data:
            error["data"] = self.data
        return error


class ParseError(MCPError):
    """Invalid JSON was received."""
    def __init__(self, message: str = "Parse error", data: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCodes.PARSE_ERROR, message, data)


class InvalidRequest(MCPError):
    """The JSON sent is not a valid Request object."""
    def __init__(self, message: str = "Invalid Request", data: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCodes.INVALID_REQUEST, message, data)


class OperationNotFound(MCPError):
    """The operation does not exist / is not available."""
    def __init__(self, message: str = "OperationNotFound", data: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCodes.METHOD_NOT_FOUND, message, data)


class InvalidParams(MCPError):
    """Invalid operation parameters."""
    def __init__(self, message: str = "Invalid params", data: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCodes.INVALID_PARAMS, message, data)


class HandlerFailure(MCPError):
    """An operation handler raised while processing a request."""
    def __init__(self, message: str = "Handler failure", data: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCodes.INTERNAL_ERROR, message, data)


class NotInitialized(MCPError):
    """A request arrived before the session was initialized."""
    def __init__(self, message: str = "Server not initialized", data: Optional[Dict[str, Any]] = None):
        super().__init__(ErrorCodes.NOT_INITIALIZED, message, data)


class DuplicateOperationError(ValueError):
    """Raised when an operation name is registered twice."""
    pass


class ChannelClosed(Exception):
    """Raised by a transport when its input channel has been closed."""
    pass
