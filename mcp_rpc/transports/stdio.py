# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
STDIO Transport for the MCP RPC server.

Messages are newline-delimited JSON: one request per line on the input
stream, one response per line on the output stream.
"""

import asyncio
import logging
import sys
from typing import Optional, Tuple

from mcp_rpc.errors import ChannelClosed, ParseError
from mcp_rpc.transports.base import Transport

logger = logging.getLogger(__name__)

# Largest single message accepted from the input stream
MAX_MESSAGE_SIZE = 16 * 1024 * 1024


class StreamTransport(Transport):
    """
    Line-delimited transport over a line reader and a writer.

    The reader needs an async readline(); the writer needs write(), drain() and
    close(). asyncio.StreamReader and asyncio.StreamWriter are the usual choice.
    """

    def __init__(self, reader, writer, peer: Optional[str] = None,
                 debug: bool = False):
        """
        Initialize the stream transport.

        Args:
            reader: Stream the requests are read from
            writer: Stream the responses are written to
            peer: Opaque identity of the connected peer
            debug: Whether to enable debug output
        """
        super().__init__(debug=debug)
        self.reader = reader
        self.writer = writer
        self._peer = peer

    @property
    def peer(self):
        return self._peer

    async def read(self) -> str:
        while True:
            try:
                line = await self._readline()
            except ValueError:
                # Line exceeded the reader limit; the reader has discarded it
                raise ParseError("Message exceeds maximum size")
            except (ConnectionError, asyncio.IncompleteReadError):
                raise ChannelClosed()

            if not line:
                raise ChannelClosed()

            text = line.decode("utf-8", errors="replace").strip()
            if text:
                return text

    async def _readline(self) -> bytes:
        """
        Read one line, raising ValueError once an oversized line is consumed.

        An oversized line is discarded up to and including its newline, even
        when the newline has not arrived yet.
        """
        if not isinstance(self.reader, asyncio.StreamReader):
            return await self.reader.readline()
        try:
            return await self.reader.readuntil(b"\n")
        except asyncio.IncompleteReadError as e:
            # EOF; a final line without a newline is still a message
            return e.partial
        except asyncio.LimitOverrunError as e:
            await self._discard_line(e.consumed)
            raise ValueError("Line exceeds the reader limit")

    async def _discard_line(self, consumed: int) -> None:
        while True:
            await self.reader.readexactly(consumed)
            try:
                await self.reader.readuntil(b"\n")
                return
            except asyncio.IncompleteReadError:
                return
            except asyncio.LimitOverrunError as e:
                consumed = e.consumed

    async def write(self, text: str) -> None:
        if self.is_closed:
            raise ChannelClosed()
        if self.debug:
            logger.debug(f"Sending: {text}")
        self.writer.write((text + "\n").encode("utf-8"))
        await self.writer.drain()

    async def close(self) -> None:
        if self.is_closed:
            return
        self.is_closed = True
        try:
            await self.writer.drain()
            self.writer.close()
            wait_closed = getattr(self.writer, "wait_closed", None)
            if wait_closed is not None:
                await wait_closed()
        except (ConnectionError, BrokenPipeError) as e:
            logger.warning(f"Error closing output stream: {str(e)}")


class BlockingLineReader:
    """
    Reads lines from a binary file object on the default executor.

    Used when the input is a regular file, which asyncio cannot watch.
    """

    def __init__(self, stream, limit: int = MAX_MESSAGE_SIZE):
        self.stream = stream
        self.limit = limit

    async def readline(self) -> bytes:
        loop = asyncio.get_running_loop()
        line = await loop.run_in_executor(None, self.stream.readline, self.limit + 1)
        if len(line) > self.limit:
            # Discard the rest of the oversized line
            while line and not line.endswith(b"\n"):
                line = await loop.run_in_executor(None, self.stream.readline, self.limit)
            raise ValueError("Line exceeds the reader limit")
        return line


class BlockingWriter:
    """Writes to a binary file object, flushing on drain; never closes it."""

    def __init__(self, stream):
        self.stream = stream

    def write(self, data: bytes) -> None:
        self.stream.write(data)

    async def drain(self) -> None:
        self.stream.flush()

    def close(self) -> None:
        self.stream.flush()


async def open_stdio(stdin=None, stdout=None) -> Tuple[object, object]:
    """
    Wrap the process standard streams for use by StreamTransport.

    Pipes and terminals are wrapped as asyncio streams; regular files (for
    example a redirected request log) fall back to executor-backed I/O.

    Args:
        stdin: Input file object, defaults to sys.stdin
        stdout: Output file object, defaults to sys.stdout

    Returns:
        A (reader, writer) pair
    """
    loop = asyncio.get_running_loop()
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    reader = asyncio.StreamReader(limit=MAX_MESSAGE_SIZE)
    protocol = asyncio.StreamReaderProtocol(reader)
    try:
        await loop.connect_read_pipe(lambda: protocol, stdin)
    except (ValueError, NotImplementedError, OSError) as e:
        logger.debug(f"Input is not a pipe ({str(e)}), reading on executor")
        reader = BlockingLineReader(stdin.buffer)

    try:
        write_transport, write_protocol = await loop.connect_write_pipe(
            asyncio.streams.FlowControlMixin, stdout
        )
    except (ValueError, NotImplementedError, OSError) as e:
        logger.debug(f"Output is not a pipe ({str(e)}), writing directly")
        return reader, BlockingWriter(stdout.buffer)

    writer = asyncio.StreamWriter(write_transport, write_protocol, None, loop)
    return reader, writer


async def stdio_transport(debug: bool = False) -> StreamTransport:
    """Create a StreamTransport bound to the process stdin/stdout."""
    reader, writer = await open_stdio()
    return StreamTransport(reader, writer, peer="stdio", debug=debug)
