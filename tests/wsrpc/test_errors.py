"""Tests for the error channel and the JSON-RPC exception."""

from __future__ import annotations

from wsrpc.rpc.errors import ErrorChannel, JSONRPCErrorException
from wsrpc.rpc.types import INTERNAL_ERROR, REQUEST_TIMEOUT, ErrorData, JSONRPCResponse


class TestErrorChannel:
    def test_publish_reaches_all_subscribers(self):
        channel = ErrorChannel()
        first: list[ErrorData] = []
        second: list[ErrorData] = []
        channel.subscribe(first.append)
        channel.subscribe(second.append)

        error = ErrorData(code=INTERNAL_ERROR, message="x")
        channel.publish(error)

        assert first == [error]
        assert second == [error]

    def test_failing_subscriber_does_not_stop_others(self):
        channel = ErrorChannel()
        received: list[ErrorData] = []

        def broken(error: ErrorData) -> None:
            raise RuntimeError("subscriber bug")

        channel.subscribe(broken)
        channel.subscribe(received.append)
        channel.publish(ErrorData(code=INTERNAL_ERROR, message="x"))

        assert len(received) == 1

    def test_unsubscribe(self):
        channel = ErrorChannel()
        received: list[ErrorData] = []
        unsubscribe = channel.subscribe(received.append)

        unsubscribe()
        unsubscribe()
        channel.publish(ErrorData(code=INTERNAL_ERROR, message="x"))

        assert received == []

    def test_closed_channel_drops_errors(self):
        channel = ErrorChannel()
        received: list[ErrorData] = []
        channel.subscribe(received.append)

        channel.close()
        channel.publish(ErrorData(code=INTERNAL_ERROR, message="x"))

        assert channel.closed
        assert received == []


class TestJSONRPCErrorException:
    def test_from_response(self):
        response = JSONRPCResponse(
            jsonrpc="2.0",
            id=3,
            error=ErrorData(code=REQUEST_TIMEOUT, message="too slow", data={"ms": 5}),
        )

        exc = JSONRPCErrorException.from_response(response)

        assert exc.code == REQUEST_TIMEOUT
        assert str(exc) == "too slow"
        assert exc.data == {"ms": 5}
        assert exc.response is response

    def test_to_error_omits_missing_data(self):
        error = JSONRPCErrorException(INTERNAL_ERROR, "boom").to_error()

        assert error == ErrorData(code=INTERNAL_ERROR, message="boom")
        assert "data" not in error.model_fields_set
