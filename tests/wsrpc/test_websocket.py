"""Loopback tests against a real WebSocket server."""

from __future__ import annotations

import asyncio
import json

import pytest
from websockets.asyncio.server import ServerConnection, serve

from wsrpc.rpc.session import JSONRPCWebSocket
from wsrpc.rpc.types import PARSE_ERROR, ConnectionState

from .mock_transport import ErrorRecorder


class EchoPeer:
    """Minimal JSON-RPC peer on the server side of the connection."""

    def __init__(self) -> None:
        self.replies: asyncio.Queue[dict] = asyncio.Queue()

    async def handle(self, ws: ServerConnection) -> None:
        async for raw in ws:
            data = json.loads(raw)
            method = data.get("method")
            if method == "sum":
                await ws.send(json.dumps({"jsonrpc": "2.0", "id": data["id"], "result": sum(data["params"])}))
            elif method == "askBack":
                await ws.send(json.dumps({"jsonrpc": "2.0", "id": 100, "method": "Echo", "params": ["hi"]}))
            elif method == "garble":
                await ws.send(b'{"jsonrpc": "2.0", "method": "\xff"}')
            elif method == "drop":
                await ws.close(4000, "dropped")
            elif data.get("id") == 100:
                await self.replies.put(data)


@pytest.fixture
def peer() -> EchoPeer:
    return EchoPeer()


class TestWebSocketLoopback:
    @pytest.mark.asyncio
    async def test_call_round_trip(self, peer):
        async with serve(peer.handle, "localhost", 0) as server:
            port = server.sockets[0].getsockname()[1]
            session = JSONRPCWebSocket(f"ws://localhost:{port}", 2000)

            await session.open()
            assert session.state is ConnectionState.OPEN

            response = await session.call("sum", [2, 3])
            assert response.result == 5

            event = await session.close()
            assert event.code == 1000
            assert session.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_peer_request_is_served(self, peer):
        async with serve(peer.handle, "localhost", 0) as server:
            port = server.sockets[0].getsockname()[1]
            session = JSONRPCWebSocket(f"ws://localhost:{port}", 2000)
            session.on("echo", lambda text: text.upper())

            async with session:
                await session.notify("askBack")
                reply = await asyncio.wait_for(peer.replies.get(), 2.0)

            assert reply == {"jsonrpc": "2.0", "id": 100, "result": "HI"}

    @pytest.mark.asyncio
    async def test_abnormal_close_reaches_error_channel(self, peer):
        async with serve(peer.handle, "localhost", 0) as server:
            port = server.sockets[0].getsockname()[1]
            recorder = ErrorRecorder()
            session = JSONRPCWebSocket(f"ws://localhost:{port}", 2000, recorder)

            await session.open()
            await session.notify("drop")
            error = await recorder.wait(2.0)

            assert error.code == 4000
            assert error.message == "dropped"
            assert session.state is ConnectionState.CLOSED

    @pytest.mark.asyncio
    async def test_binary_frame_with_invalid_utf8_is_a_parse_error(self, peer):
        async with serve(peer.handle, "localhost", 0) as server:
            port = server.sockets[0].getsockname()[1]
            recorder = ErrorRecorder()
            session = JSONRPCWebSocket(f"ws://localhost:{port}", 2000, recorder)

            async with session:
                await session.notify("garble")
                error = await recorder.wait(2.0)

                assert error.code == PARSE_ERROR
                assert error.message.startswith("Invalid JSON was received.")
                assert session.state is ConnectionState.OPEN

    @pytest.mark.asyncio
    async def test_open_fails_without_server(self):
        session = JSONRPCWebSocket("ws://localhost:1", 500)

        with pytest.raises(OSError):
            await session.open()

        assert session.state is ConnectionState.CLOSED
