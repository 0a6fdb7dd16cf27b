# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Operation registry.

Holds the mapping from operation name to handler. Operations are registered
before serving starts; the registry is frozen once a transport loop runs.
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Set

from jsonschema import Draft7Validator

from .errors import DuplicateOperationError, InvalidParams

logger = logging.getLogger(__name__)

DEFAULT_CAPABILITY = "tools"


class Operation:
    """A named handler with optional description and input schema."""

    def __init__(
        self,
        name: str,
        handler: Callable[..., Any],
        description: str = "",
        input_schema: Optional[Dict[str, Any]] = None,
        capability: str = DEFAULT_CAPABILITY,
    ):
        self.name = name
        self.handler = handler
        self.description = description or (handler.__doc__ or "").strip().split("\n")[0]
        self.input_schema = input_schema
        self.capability = capability
        self.is_async = inspect.iscoroutinefunction(handler)
        self._validator = None
        if input_schema is not None:
            Draft7Validator.check_schema(input_schema)
            self._validator = Draft7Validator(input_schema)

    def validate(self, params: Any) -> None:
        """
        Validate params against the input schema, if one was given.

        Raises:
            InvalidParams: If the params do not match the schema
        """
        if self._validator is None:
            return
        errors = sorted(self._validator.iter_errors(params), key=lambda e: list(e.path))
        if errors:
            first = errors[0]
            where = ".".join(str(part) for part in first.path) or "params"
            raise InvalidParams(
                f"Invalid params for {self.name}: {where}: {first.message}",
                data={"errors": [error.message for error in errors]},
            )

    async def invoke(self, params: Any) -> Any:
        """Run the handler with the given params."""
        self.validate(params)
        if self.is_async:
            return await self.handler(params)
        return self.handler(params)

    def describe(self) -> Dict[str, Any]:
        """Return the MCP tool descriptor for this operation."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema or {"type": "object"},
        }

    def __repr__(self):
        return f"Operation(name={self.name!r}, capability={self.capability!r})"


class Registry:
    """Mapping from operation name to Operation."""

    def __init__(self):
        self._operations: Dict[str, Operation] = {}
        self._declared: Set[str] = set()
        self.frozen = False

    def register(
        self,
        name: str,
        handler: Callable[..., Any],
        description: str = "",
        input_schema: Optional[Dict[str, Any]] = None,
        capability: str = DEFAULT_CAPABILITY,
    ) -> Operation:
        """
        Register a handler under a unique name.

        Args:
            name: Operation name
            handler: Callable taking the request params; may be a coroutine function
            description: Human readable description
            input_schema: JSON Schema the params must satisfy
            capability: Capability flag this operation belongs to

        Returns:
            The registered Operation

        Raises:
            DuplicateOperationError: If the name is already registered
            RuntimeError: If the registry has been frozen
        """
        if self.frozen:
            raise RuntimeError(f"Registry is frozen, cannot register {name}")
        if not isinstance(name, str) or not name:
            raise ValueError("Operation name must be a non-empty string")
        if name in self._operations:
            raise DuplicateOperationError(f"Operation already registered: {name}")

        operation = Operation(name, handler, description, input_schema, capability)
        self._operations[name] = operation
        logger.debug(f"Registered operation {name} ({capability})")
        return operation

    def operation(
        self,
        name: Optional[str] = None,
        description: str = "",
        input_schema: Optional[Dict[str, Any]] = None,
        capability: str = DEFAULT_CAPABILITY,
    ):
        """Decorator form of register; defaults the name to the function name."""
        def decorator(func):
            self.register(name or func.__name__, func, description, input_schema, capability)
            return func
        return decorator

    def lookup(self, name: str) -> Optional[Operation]:
        """Return the operation registered under name, or None."""
        return self._operations.get(name)

    def declare_capability(self, capability: str) -> None:
        """Declare a capability flag that has no operation behind it."""
        if self.frozen:
            raise RuntimeError(f"Registry is frozen, cannot declare {capability}")
        self._declared.add(capability)

    def capabilities(self) -> Set[str]:
        """Return the declared capability set."""
        return self._declared | {op.capability for op in self._operations.values()}

    def list_operations(self, capability: Optional[str] = None) -> List[Dict[str, Any]]:
        """Return tool descriptors for registered operations, sorted by name."""
        return [
            self._operations[name].describe()
            for name in sorted(self._operations)
            if capability is None or self._operations[name].capability == capability
        ]

    def freeze(self) -> None:
        """Make the registry read-only."""
        self.frozen = True

    def __contains__(self, name: str) -> bool:
        return name in self._operations

    def __len__(self) -> int:
        return len(self._operations)
