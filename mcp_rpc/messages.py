# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""JSON-RPC 2.0 message parsing and formatting."""

import json
import re
from typing import Any, Dict, List, Optional, Union

from jsonschema import Draft7Validator

from .errors import HandlerFailure, InvalidRequest, MCPError, ParseError

RequestId = Union[int, str]

JSONRPC_VERSION = "2.0"

REQUEST_SCHEMA = {
    "type": "object",
    "properties": {
        "jsonrpc": {"const": JSONRPC_VERSION},
        "id": {"type": ["integer", "string"]},
        "method": {"type": "string", "minLength": 1},
    },
    "required": ["jsonrpc", "method"],
}

_request_validator = Draft7Validator(REQUEST_SCHEMA)

# An id value that is complete: followed by a separator, the closing brace or
# the end of the (truncated) text
_ID_VALUE_PATTERN = re.compile(r'\s*:\s*(-?\d+|"(?:[^"\\]|\\.)*")(?=\s*(?:[,}]|$))')


class Request:
    """A decoded JSON-RPC request or notification."""

    def __init__(self, method: str, params: Any = None, id: Optional[RequestId] = None):
        self.method = method
        self.params = {} if params is None else params
        self.id = id

    @property
    def is_notification(self) -> bool:
        return self.id is None

    def __repr__(self):
        return f"Request(id={self.id!r}, method={self.method!r})"


class MalformedMessage:
    """An input element that could not be decoded into a Request."""

    def __init__(self, error: MCPError, id: Optional[RequestId] = None):
        self.error = error
        self.id = id

    def __repr__(self):
        return f"MalformedMessage(id={self.id!r}, error={self.error.message!r})"


Message = Union[Request, MalformedMessage]


def recover_id(obj: Any) -> Optional[RequestId]:
    """Best-effort extraction of a usable request id from a decoded object."""
    if not isinstance(obj, dict):
        return None
    request_id = obj.get("id")
    if isinstance(request_id, bool):
        return None
    if isinstance(request_id, (int, str)):
        return request_id
    return None


def recover_id_from_text(text: str) -> Optional[RequestId]:
    """
    Best-effort extraction of a request id from text that is not valid JSON.

    Only an "id" key of the top-level object counts; ids nested in params (or
    in batch elements) are ignored. Returns None when no usable id is found or
    when the top-level object carries more than one.
    """
    text = text or ""
    candidates = []
    # Open containers, outermost first
    stack = []
    i = 0
    while i < len(text):
        char = text[i]
        if char == '"':
            end = i + 1
            while end < len(text) and text[end] != '"':
                end += 2 if text[end] == "\\" else 1
            if end >= len(text):
                break
            if stack == ["{"] and text[i:end + 1] == '"id"':
                match = _ID_VALUE_PATTERN.match(text, end + 1)
                if match is not None:
                    candidates.append(match.group(1))
            i = end + 1
            continue
        if char in "{[":
            stack.append(char)
        elif char in "}]":
            if not stack:
                return None
            stack.pop()
            if not stack:
                # Anything after the top-level object is not part of it
                break
        i += 1

    if len(candidates) != 1:
        return None
    try:
        return json.loads(candidates[0])
    except ValueError:
        return None


def decode_message(obj: Any) -> Message:
    """
    Validate one decoded JSON value as a JSON-RPC request.

    Args:
        obj: A value produced by json.loads

    Returns:
        A Request, or a MalformedMessage carrying the best-effort id
    """
    errors = sorted(_request_validator.iter_errors(obj), key=lambda e: list(e.path))
    if errors:
        first = errors[0]
        where = ".".join(str(part) for part in first.path) or "request"
        return MalformedMessage(
            InvalidRequest(f"Invalid Request: {where}: {first.message}"),
            recover_id(obj),
        )
    return Request(obj["method"], obj.get("params"), obj.get("id"))


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


def parse_message(text: str) -> Union[Message, List[Message]]:
    """
    Parse raw request text into one message or a batch of messages.

    Args:
        text: Raw JSON-RPC request text

    Returns:
        A single Message, or a list of Messages for a batch

    Raises:
        ParseError: If the text is not valid JSON
        InvalidRequest: If the text is an empty batch
    """
    try:
        obj = json.loads(text, parse_constant=_reject_constant)
    except (ValueError, UnicodeDecodeError) as e:
        raise ParseError(f"Parse error: {str(e)}")

    if isinstance(obj, list):
        if not obj:
            raise InvalidRequest("Invalid Request: empty batch")
        return [decode_message(item) for item in obj]
    return decode_message(obj)


def format_response(
    result: Optional[Any] = None,
    error: Optional[Dict[str, Any]] = None,
    id: Optional[RequestId] = None
) -> Dict[str, Any]:
    """Format JSON-RPC response.

    Args:
        result: Response result (mutually exclusive with error)
        error: Response error (mutually exclusive with result)
        id: Request ID, or None when it could not be determined

    Returns:
        Formatted JSON-RPC response object
    """
    response = {"jsonrpc": JSONRPC_VERSION, "id": id}

    if error is not None:
        response["error"] = error
    else:
        response["result"] = result

    return response


def error_response(error: MCPError, id: Optional[RequestId] = None) -> Dict[str, Any]:
    """Format a JSON-RPC error response from an MCPError."""
    return format_response(error=error.to_dict(), id=id)


def encode(payload: Union[Dict[str, Any], List[Dict[str, Any]]]) -> str:
    """Serialize a response (or batch) as a single line of JSON."""
    return json.dumps(payload, separators=(",", ":"), allow_nan=False)


def _serializable(response: Dict[str, Any]) -> Dict[str, Any]:
    try:
        json.dumps(response, allow_nan=False)
    except (TypeError, ValueError) as e:
        return error_response(
            HandlerFailure(f"Result is not JSON serializable: {str(e)}"),
            response.get("id"),
        )
    return response


def encode_response(payload: Union[Dict[str, Any], List[Dict[str, Any]]]) -> str:
    """
    Serialize a response payload, replacing any response whose result cannot
    be encoded with a HandlerFailure error for the same id.
    """
    try:
        return encode(payload)
    except (TypeError, ValueError):
        if isinstance(payload, list):
            return encode([_serializable(response) for response in payload])
        return encode(_serializable(payload))
