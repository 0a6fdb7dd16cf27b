# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Built-in example operations.

These are registered by the default server so a fresh install answers
something useful over either transport.
"""

import asyncio
from typing import Any, Dict

from .registry import Registry

# Upper bound on the sleep operation, in seconds
MAX_SLEEP_SECONDS = 60

ADD_SCHEMA = {
    "type": "object",
    "properties": {
        "a": {
            "type": "number",
            "description": "First number"
        },
        "b": {
            "type": "number",
            "description": "Second number"
        }
    },
    "required": ["a", "b"]
}

SLEEP_SCHEMA = {
    "type": "object",
    "properties": {
        "seconds": {
            "type": "number",
            "minimum": 0,
            "maximum": MAX_SLEEP_SECONDS,
            "description": "Sleep duration in seconds"
        }
    },
    "required": ["seconds"]
}


def echo(params: Any) -> Any:
    """Echo the input parameters unchanged."""
    return params


def add(params: Dict[str, Any]) -> float:
    """Add two numbers."""
    return params["a"] + params["b"]


async def sleep(params: Dict[str, Any]) -> Dict[str, Any]:
    """Sleep for a specified duration (useful for testing concurrent requests)."""
    seconds = params["seconds"]
    await asyncio.sleep(seconds)
    return {"slept": seconds}


def register_default_operations(registry: Registry) -> Registry:
    """Register echo, add and sleep on the given registry."""
    registry.register("echo", echo)
    registry.register("add", add, input_schema=ADD_SCHEMA)
    registry.register("sleep", sleep, input_schema=SLEEP_SCHEMA)
    return registry
