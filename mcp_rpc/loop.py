# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Transport loop for the MCP RPC server.

Drives the read, dispatch, write cycle for one transport connection until the
input channel closes.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Set, Union

from .dispatcher import Dispatcher
from .errors import ChannelClosed, MCPError
from .messages import encode_response, error_response
from .transports.base import Transport

logger = logging.getLogger(__name__)


class TransportLoop:
    """Reads requests from a transport, dispatches them and writes responses."""

    def __init__(self, transport: Transport, dispatcher: Dispatcher, concurrent: bool = False):
        """
        Initialize the loop.

        Args:
            transport: The transport owning the input and output channels
            dispatcher: Dispatcher for this connection's session
            concurrent: Run each request as its own task instead of one at a time
        """
        self.transport = transport
        self.dispatcher = dispatcher
        self.concurrent = concurrent
        self.closed = False
        self.responses_written = 0
        self._write_lock = asyncio.Lock()
        self._in_flight: Set[asyncio.Task] = set()
        self._stopping = asyncio.Event()

    async def run(self) -> None:
        """Run until the input channel closes or shutdown is requested."""
        self.dispatcher.registry.freeze()
        logger.info("Server started. Waiting for input...")
        try:
            while not self._stopping.is_set():
                try:
                    text = await self._next_message()
                except ChannelClosed:
                    logger.info("End of input stream, shutting down")
                    break
                except MCPError as e:
                    logger.error(f"Unreadable message: {e.message}")
                    await self.write(error_response(e, None))
                    continue

                if text is None:
                    break
                if self.concurrent:
                    task = asyncio.create_task(self.process(text))
                    self._in_flight.add(task)
                    task.add_done_callback(self._in_flight.discard)
                else:
                    await self.process(text)
        finally:
            self.closed = True
            await self._abandon_in_flight()
            await self.transport.close()
            logger.info(f"Transport closed after {self.responses_written} responses")

    async def _next_message(self) -> Optional[str]:
        """
        Read the next message.

        In concurrent mode the read is abandoned, and None returned, once a
        shutdown response has been written.
        """
        if not self.concurrent:
            return await self.transport.read()

        read = asyncio.ensure_future(self.transport.read())
        stop = asyncio.ensure_future(self._stopping.wait())
        try:
            await asyncio.wait({read, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            abandoned = not read.done()
            if abandoned:
                read.cancel()
                await asyncio.gather(read, return_exceptions=True)
        if abandoned:
            logger.info("Shutdown complete, no longer reading")
            return None
        return read.result()

    async def process(self, text: str) -> None:
        """Dispatch one message and write its response, if any."""
        payload = await self.dispatcher.handle_text(text)
        if payload is not None:
            await self.write(payload)
        if self.dispatcher.shutdown_requested:
            self._stopping.set()

    async def write(self, payload: Union[Dict[str, Any], List[Dict[str, Any]]]) -> None:
        """Write one response payload as a single unit; dropped once the loop has closed."""
        text = encode_response(payload)
        async with self._write_lock:
            if self.closed:
                logger.debug(f"Discarding response after channel closure: {text}")
                return
            try:
                await self.transport.write(text)
            except (ChannelClosed, ConnectionError) as e:
                logger.warning(f"Output channel closed: {str(e)}")
                self.closed = True
                return
            self.responses_written += 1

    async def _abandon_in_flight(self) -> None:
        if not self._in_flight:
            return
        logger.info(f"Abandoning {len(self._in_flight)} in-flight requests")
        tasks = list(self._in_flight)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
