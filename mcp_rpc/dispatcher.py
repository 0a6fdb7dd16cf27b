# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Request dispatch for the MCP RPC server.

The dispatcher turns one line of input into zero or one serialized response.
Protocol methods (initialize, ping, tools/list, ...) are handled here; every
other method is looked up in the registry.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Union

from .errors import (
    HandlerFailure,
    InvalidParams,
    MCPError,
    NotInitialized,
    OperationNotFound,
    ParseError,
)
from .messages import (
    MalformedMessage,
    Message,
    Request,
    error_response,
    format_response,
    parse_message,
    recover_id_from_text,
)
from .registry import Registry
from .session import Session

logger = logging.getLogger(__name__)

Payload = Union[Dict[str, Any], List[Dict[str, Any]]]

# Methods callable before initialize when initialization is required
PRE_INIT_METHODS = {"initialize", "ping"}


class Dispatcher:
    """Dispatches decoded JSON-RPC messages for a single session."""

    def __init__(self, registry: Registry, session: Session, require_initialize: bool = False):
        """
        Initialize the dispatcher.

        Args:
            registry: Registry holding the operation handlers
            session: The session this dispatcher serves
            require_initialize: Reject registry calls made before initialize
        """
        self.registry = registry
        self.session = session
        self.require_initialize = require_initialize
        self.shutdown_requested = False
        self._builtins = {
            "initialize": self.handle_initialize,
            "notifications/initialized": self.handle_initialized,
            "ping": self.handle_ping,
            "server/info": self.handle_server_info,
            "tools/list": self.handle_tools_list,
            "tools/call": self.handle_tools_call,
            "shutdown": self.handle_shutdown,
        }

    async def handle_text(self, text: str) -> Optional[Payload]:
        """
        Process one raw JSON-RPC message or batch.

        Args:
            text: The raw request text

        Returns:
            The response payload, or None when nothing should be written
        """
        logger.debug(f"Received: {text}")
        try:
            parsed = parse_message(text)
        except ParseError as e:
            logger.error(f"Invalid JSON: {text}")
            return error_response(e, recover_id_from_text(text))
        except MCPError as e:
            logger.error(f"Malformed input: {e.message}")
            return error_response(e, None)

        if isinstance(parsed, list):
            responses = []
            for message in parsed:
                response = await self.handle_message(message)
                if response is not None:
                    responses.append(response)
            return responses or None
        return await self.handle_message(parsed)

    async def handle_message(self, message: Message) -> Optional[Dict[str, Any]]:
        """Process a single decoded message."""
        if isinstance(message, MalformedMessage):
            logger.error(f"Invalid request: {message.error.message}")
            return error_response(message.error, message.id)
        return await self.handle_request(message)

    async def handle_request(self, request: Request) -> Optional[Dict[str, Any]]:
        """
        Run a request and build its response.

        Errors are converted to error responses; notifications never get one.
        """
        logger.info(f"Method call: {request.method}")
        try:
            result = await self.call(request.method, request.params)
        except MCPError as e:
            if request.is_notification:
                logger.error(f"Error handling notification {request.method}: {e.message}")
                return None
            return error_response(e, request.id)
        except Exception as e:
            logger.exception(f"Error handling method {request.method}")
            if request.is_notification:
                return None
            return error_response(HandlerFailure(f"{type(e).__name__}: {e}"), request.id)

        if request.is_notification:
            return None
        return format_response(result=result, id=request.id)

    async def call(self, method: str, params: Any) -> Any:
        """
        Invoke a protocol method or registered operation.

        Raises:
            NotInitialized: If initialization is required and has not happened
            OperationNotFound: If no handler exists for the method
            HandlerFailure: If the operation handler raised
        """
        builtin = self._builtins.get(method)
        if builtin is not None:
            return await builtin(params)

        if method.startswith("notifications/"):
            logger.debug(f"Ignoring notification {method}")
            return None

        if self.require_initialize and not self.session.initialized:
            raise NotInitialized()

        operation = self.registry.lookup(method)
        if operation is None:
            raise OperationNotFound(data={"operation": method})
        return await self.invoke(operation, params)

    async def invoke(self, operation, params: Any) -> Any:
        """Run an operation handler, converting stray exceptions to HandlerFailure."""
        try:
            return await operation.invoke(params)
        except MCPError:
            raise
        except Exception as e:
            logger.exception(f"Handler for {operation.name} failed")
            raise HandlerFailure(f"{type(e).__name__}: {e}") from e

    def _check_initialized(self, method: str) -> None:
        if self.require_initialize and not self.session.initialized and method not in PRE_INIT_METHODS:
            raise NotInitialized()

    async def handle_initialize(self, params: Any) -> Dict[str, Any]:
        result = self.session.initialize(params)
        logger.info(f"Initialize response: {json.dumps(result)}")
        return result

    async def handle_initialized(self, params: Any) -> Dict[str, Any]:
        return {}

    async def handle_ping(self, params: Any) -> Dict[str, Any]:
        return {}

    async def handle_server_info(self, params: Any) -> Dict[str, Any]:
        info = self.session.server_info()
        info["supportedVersions"] = list(self.session.supported_versions)
        return info

    async def handle_shutdown(self, params: Any) -> Dict[str, Any]:
        logger.info("Shutdown requested")
        self.shutdown_requested = True
        return {}

    async def handle_tools_list(self, params: Any) -> Dict[str, Any]:
        self._check_initialized("tools/list")
        return {"tools": self.registry.list_operations(capability="tools")}

    async def handle_tools_call(self, params: Any) -> Dict[str, Any]:
        """
        Handle the tools/call method.

        A failing tool is reported inside the result with isError set, so the
        client sees the diagnostic rather than a protocol error.
        """
        self._check_initialized("tools/call")
        if not isinstance(params, dict) or not isinstance(params.get("name"), str):
            raise InvalidParams("Missing or invalid tool name")

        tool_name = params["name"]
        arguments = params.get("arguments", {})
        operation = self.registry.lookup(tool_name)
        if operation is None or operation.capability != "tools":
            raise InvalidParams(f"Unknown tool: {tool_name}")

        try:
            result = await self.invoke(operation, arguments)
        except HandlerFailure as e:
            return {"content": [{"type": "text", "text": e.message}], "isError": True}
        return tool_result(result)


def tool_result(result: Any) -> Dict[str, Any]:
    """Wrap an operation result as MCP tool call content."""
    if isinstance(result, dict) and isinstance(result.get("content"), list):
        return result
    if isinstance(result, str):
        text = result
    else:
        text = json.dumps(result)
    return {"content": [{"type": "text", "text": text}], "isError": False}
