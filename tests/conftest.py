#!/usr/bin/env python3
# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Pytest configuration for MCP RPC server tests.
"""

import asyncio
import json

import pytest

from mcp_rpc.config import ServerConfig
from mcp_rpc.dispatcher import Dispatcher
from mcp_rpc.errors import ChannelClosed
from mcp_rpc.registry import Registry
from mcp_rpc.session import Session
from mcp_rpc.tools import register_default_operations
from mcp_rpc.transports.base import Transport


def pytest_configure(config):
    """Register custom markers for MCP RPC tests."""
    config.addinivalue_line("markers",
                           "stdio_only: mark test as depending on STDIO-specific functionality")
    config.addinivalue_line("markers",
                           "http_only: mark test as depending on HTTP-specific functionality")


class QueueTransport(Transport):
    """In-memory transport: requests are fed into a queue, responses collected in a list."""

    def __init__(self):
        super().__init__()
        self.inbox = asyncio.Queue()
        self.written = []

    def feed(self, message):
        if not isinstance(message, str):
            message = json.dumps(message)
        self.inbox.put_nowait(message)

    def close_input(self):
        self.inbox.put_nowait(None)

    async def read(self):
        item = await self.inbox.get()
        if item is None:
            self.inbox.put_nowait(None)
            raise ChannelClosed()
        return item

    async def write(self, text):
        if self.is_closed:
            raise ChannelClosed()
        self.written.append(text)

    async def close(self):
        self.is_closed = True

    def responses(self):
        return [json.loads(text) for text in self.written]


@pytest.fixture
def registry():
    """Registry holding the built-in echo, add and sleep operations."""
    return register_default_operations(Registry())


@pytest.fixture
def config():
    return ServerConfig()


@pytest.fixture
def session(registry):
    return Session(
        registry,
        server_name="test-server",
        server_version="1.2.3",
        supported_versions=["2024-11-05", "2025-03-26", "2025-06-18"],
    )


@pytest.fixture
def dispatcher(registry, session):
    return Dispatcher(registry, session)


@pytest.fixture
def queue_transport():
    return QueueTransport()
