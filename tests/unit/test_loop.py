"""
Unit tests for the transport loop.
"""

import asyncio
import json

import pytest

from mcp_rpc.dispatcher import Dispatcher
from mcp_rpc.errors import ErrorCodes, ParseError
from mcp_rpc.loop import TransportLoop
from mcp_rpc.registry import Registry
from mcp_rpc.session import Session


def _request(method, params=None, id=1):
    message = {"jsonrpc": "2.0", "id": id, "method": method}
    if params is not None:
        message["params"] = params
    return message


class TestTransportLoop:
    """Tests for the TransportLoop class."""

    @pytest.mark.asyncio
    async def test_echo_and_missing(self, dispatcher, queue_transport):
        queue_transport.feed(_request("echo", "hi", id=1))
        queue_transport.feed(_request("missing", id=2))
        queue_transport.close_input()

        await TransportLoop(queue_transport, dispatcher).run()

        responses = queue_transport.responses()
        assert responses[0] == {"jsonrpc": "2.0", "id": 1, "result": "hi"}
        assert responses[1]["id"] == 2
        assert responses[1]["error"]["message"] == "OperationNotFound"
        assert queue_transport.is_closed is True

    @pytest.mark.asyncio
    async def test_one_response_per_request_in_order(self, dispatcher, queue_transport):
        for i in range(20):
            queue_transport.feed(_request("echo", i, id=i))
        queue_transport.close_input()

        loop = TransportLoop(queue_transport, dispatcher)
        await loop.run()

        responses = queue_transport.responses()
        assert [response["id"] for response in responses] == list(range(20))
        assert [response["result"] for response in responses] == list(range(20))
        assert loop.responses_written == 20

    @pytest.mark.asyncio
    async def test_malformed_input_does_not_stop_loop(self, dispatcher, queue_transport):
        queue_transport.feed("{this is not json")
        queue_transport.feed('{"jsonrpc": "2.0", "id": 4}')
        queue_transport.feed(_request("echo", "still here", id=5))
        queue_transport.close_input()

        await TransportLoop(queue_transport, dispatcher).run()

        responses = queue_transport.responses()
        assert responses[0]["error"]["code"] == ErrorCodes.PARSE_ERROR
        assert responses[0]["id"] is None
        assert responses[1]["error"]["code"] == ErrorCodes.INVALID_REQUEST
        assert responses[1]["id"] == 4
        assert responses[2]["result"] == "still here"

    @pytest.mark.asyncio
    async def test_handler_failure_does_not_stop_loop(self, queue_transport):
        registry = Registry()
        registry.register("explode", lambda p: {}["missing"])
        registry.register("echo", lambda p: p)
        dispatcher = Dispatcher(registry, Session(registry))

        queue_transport.feed(_request("explode", id=1))
        queue_transport.feed(_request("echo", "ok", id=2))
        queue_transport.close_input()

        await TransportLoop(queue_transport, dispatcher).run()

        responses = queue_transport.responses()
        assert responses[0]["error"]["code"] == ErrorCodes.INTERNAL_ERROR
        assert responses[1]["result"] == "ok"

    @pytest.mark.asyncio
    async def test_unframeable_message_yields_error(self, dispatcher, queue_transport):
        original_read = queue_transport.read
        calls = {"count": 0}

        async def read():
            calls["count"] += 1
            if calls["count"] == 1:
                raise ParseError("Message exceeds maximum size")
            return await original_read()

        queue_transport.read = read
        queue_transport.feed(_request("echo", "after", id=1))
        queue_transport.close_input()

        await TransportLoop(queue_transport, dispatcher).run()

        responses = queue_transport.responses()
        assert responses[0]["error"]["code"] == ErrorCodes.PARSE_ERROR
        assert responses[1]["result"] == "after"

    @pytest.mark.asyncio
    async def test_non_finite_result_becomes_handler_failure(self, dispatcher, queue_transport):
        queue_transport.feed(_request("add", {"a": 1e308, "b": 1e308}, id=1))
        queue_transport.close_input()

        await TransportLoop(queue_transport, dispatcher).run()

        assert "Infinity" not in queue_transport.written[0]
        response = queue_transport.responses()[0]
        assert response["id"] == 1
        assert response["error"]["code"] == ErrorCodes.INTERNAL_ERROR

    @pytest.mark.asyncio
    async def test_registry_frozen_while_serving(self, dispatcher, queue_transport):
        queue_transport.close_input()
        await TransportLoop(queue_transport, dispatcher).run()

        assert dispatcher.registry.frozen is True
        assert queue_transport.written == []

    @pytest.mark.asyncio
    async def test_shutdown_stops_reading(self, dispatcher, queue_transport):
        queue_transport.feed(_request("shutdown", id=1))
        queue_transport.feed(_request("echo", "never", id=2))

        await TransportLoop(queue_transport, dispatcher).run()

        responses = queue_transport.responses()
        assert responses == [{"jsonrpc": "2.0", "id": 1, "result": {}}]
        assert queue_transport.is_closed is True

    @pytest.mark.asyncio
    async def test_close_mid_loop_writes_nothing_further(self, dispatcher, queue_transport):
        loop = TransportLoop(queue_transport, dispatcher)
        task = asyncio.create_task(loop.run())

        queue_transport.feed(_request("echo", "first", id=1))
        while not queue_transport.written:
            await asyncio.sleep(0)

        queue_transport.close_input()
        await asyncio.wait_for(task, timeout=5)

        assert len(queue_transport.written) == 1
        assert loop.closed is True
        await loop.write({"jsonrpc": "2.0", "id": 99, "result": "late"})
        assert len(queue_transport.written) == 1


class TestConcurrentLoop:
    """Tests for concurrent request handling."""

    @pytest.mark.asyncio
    async def test_completion_order_not_submission_order(self, dispatcher, queue_transport):
        loop = TransportLoop(queue_transport, dispatcher, concurrent=True)
        task = asyncio.create_task(loop.run())

        queue_transport.feed(_request("sleep", {"seconds": 0.2}, id="slow"))
        queue_transport.feed(_request("echo", "fast", id="fast"))

        while len(queue_transport.written) < 2:
            await asyncio.sleep(0.01)
        queue_transport.close_input()
        await asyncio.wait_for(task, timeout=5)

        ids = [response["id"] for response in queue_transport.responses()]
        assert ids == ["fast", "slow"]

    @pytest.mark.asyncio
    async def test_each_response_written_whole(self, dispatcher, queue_transport):
        loop = TransportLoop(queue_transport, dispatcher, concurrent=True)
        task = asyncio.create_task(loop.run())

        for i in range(50):
            queue_transport.feed(_request("echo", {"n": i, "pad": "x" * 100}, id=i))
        while len(queue_transport.written) < 50:
            await asyncio.sleep(0.01)
        queue_transport.close_input()
        await asyncio.wait_for(task, timeout=5)

        responses = [json.loads(text) for text in queue_transport.written]
        assert sorted(response["id"] for response in responses) == list(range(50))
        assert all(response["result"]["n"] == response["id"] for response in responses)

    @pytest.mark.asyncio
    async def test_in_flight_abandoned_on_close(self, dispatcher, queue_transport):
        loop = TransportLoop(queue_transport, dispatcher, concurrent=True)

        queue_transport.feed(_request("sleep", {"seconds": 30}, id=1))
        queue_transport.close_input()

        await asyncio.wait_for(loop.run(), timeout=5)

        assert queue_transport.written == []
        assert loop.closed is True

    @pytest.mark.asyncio
    async def test_shutdown_stops_reading(self, dispatcher, queue_transport):
        loop = TransportLoop(queue_transport, dispatcher, concurrent=True)
        queue_transport.feed(_request("shutdown", id=1))

        await asyncio.wait_for(loop.run(), timeout=5)

        assert queue_transport.responses() == [{"jsonrpc": "2.0", "id": 1, "result": {}}]
        assert queue_transport.is_closed is True
        assert loop.closed is True

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_its_own_response(self, dispatcher, queue_transport):
        loop = TransportLoop(queue_transport, dispatcher, concurrent=True)
        queue_transport.feed(_request("shutdown", id=1))
        queue_transport.feed(_request("echo", "racing", id=2))

        await asyncio.wait_for(loop.run(), timeout=5)

        ids = [response["id"] for response in queue_transport.responses()]
        assert 1 in ids
