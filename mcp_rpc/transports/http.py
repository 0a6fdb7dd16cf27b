# Copyright (c) 2025 Scott Wilcox
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
HTTP Transport for the MCP RPC server.

Each POST carries one JSON-RPC message or batch. An initialize request opens a
session whose id is returned in the Mcp-Session-Id header; later requests send
the header back. Requests without the header are served by a throwaway
session. Sessions idle for longer than the session timeout are dropped.
"""

import asyncio
import logging
from typing import Callable, Dict, Optional, Set

from aiohttp import web

from mcp_rpc.config import SESSION_CLEANUP_INTERVAL, SESSION_TIMEOUT
from mcp_rpc.dispatcher import Dispatcher
from mcp_rpc.errors import ParseError
from mcp_rpc.messages import encode_response, error_response

logger = logging.getLogger(__name__)

SESSION_HEADER = "Mcp-Session-Id"


class HttpServer:
    """aiohttp application serving JSON-RPC over HTTP POST."""

    def __init__(
        self,
        dispatcher_factory: Callable[[Optional[str]], Dispatcher],
        path: str = "/",
        session_timeout: float = SESSION_TIMEOUT,
        cleanup_interval: float = SESSION_CLEANUP_INTERVAL,
    ):
        """
        Initialize the server.

        Args:
            dispatcher_factory: Creates a Dispatcher with a fresh Session for a peer
            path: URL path the endpoint is mounted on
            session_timeout: Idle seconds after which a session is dropped
            cleanup_interval: Seconds between background sweeps for idle sessions
        """
        self.dispatcher_factory = dispatcher_factory
        self.path = path
        self.session_timeout = session_timeout
        self.cleanup_interval = cleanup_interval
        self.sessions: Dict[str, Dispatcher] = {}
        self.runner: Optional[web.AppRunner] = None
        self._cleanup_task: Optional[asyncio.Task] = None
        self.app = web.Application()
        self.app.router.add_post(path, self.handle_post)
        self.app.router.add_delete(path, self.handle_delete)

    async def handle_post(self, request: web.Request) -> web.Response:
        """Handle an incoming JSON-RPC request."""
        self.cleanup_expired_sessions()

        session_id = request.headers.get(SESSION_HEADER)
        if session_id is not None:
            dispatcher = self.sessions.get(session_id)
            if dispatcher is None:
                return web.json_response({"error": "Session not found"}, status=404)
            dispatcher.session.update_activity()
        else:
            dispatcher = self.dispatcher_factory(request.remote)

        body = await request.read()
        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as e:
            logger.error(f"Request body is not valid UTF-8: {str(e)}")
            return web.Response(
                text=encode_response(error_response(ParseError(f"Parse error: {str(e)}"), None)),
                content_type="application/json",
            )
        payload = await dispatcher.handle_text(text)

        headers = {}
        session = dispatcher.session
        if session_id is None and session.initialized:
            self.sessions[session.id] = dispatcher
            logger.info(f"Created session {session.id} for {request.remote}")
        if session.initialized:
            headers[SESSION_HEADER] = session.id

        if payload is None:
            return web.Response(status=202, headers=headers)
        return web.Response(
            text=encode_response(payload),
            content_type="application/json",
            headers=headers,
        )

    async def handle_delete(self, request: web.Request) -> web.Response:
        """Terminate a session."""
        session_id = request.headers.get(SESSION_HEADER)
        if session_id is None:
            return web.json_response({"error": "Missing session id"}, status=400)
        if self.sessions.pop(session_id, None) is None:
            return web.json_response({"error": "Session not found"}, status=404)
        logger.info(f"Closed session {session_id}")
        return web.Response(status=204)

    def cleanup_expired_sessions(self) -> Set[str]:
        """
        Drop sessions idle for longer than the session timeout.

        Returns:
            The ids of the removed sessions
        """
        expired = {
            session_id for session_id, dispatcher in self.sessions.items()
            if dispatcher.session.is_expired(self.session_timeout)
        }
        for session_id in expired:
            del self.sessions[session_id]
            logger.info(f"Removed expired session: {session_id}")
        return expired

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.cleanup_interval)
            removed = self.cleanup_expired_sessions()
            if removed:
                logger.info(f"Cleaned up {len(removed)} expired sessions")

    async def start(self, host: str = "localhost", port: int = 8080) -> None:
        """Start serving on host:port."""
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        site = web.TCPSite(self.runner, host, port)
        await site.start()
        self._cleanup_task = asyncio.create_task(self._cleanup_loop())
        logger.info(f"Server running at http://{host}:{port}{self.path}")

    async def stop(self) -> None:
        """Stop the server and drop all sessions."""
        if self._cleanup_task is not None:
            self._cleanup_task.cancel()
            await asyncio.gather(self._cleanup_task, return_exceptions=True)
            self._cleanup_task = None
        self.sessions.clear()
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
