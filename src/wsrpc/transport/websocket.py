"""WebSocket transport adapter for the JSON-RPC session."""

from __future__ import annotations

from typing import Any

import websockets
from loguru import logger
from websockets.asyncio.client import ClientConnection, connect
from websockets.typing import Subprotocol

from wsrpc.rpc.types import NORMAL_CLOSURE, ConnectionState


class WebSocketTransport:
    """Client-side WebSocket transport.

    Wraps one `websockets` client connection. A transport instance is used for
    a single connection; the session creates a new one on every open().
    """

    def __init__(
        self,
        url: str,
        *,
        open_timeout: float | None = 10.0,
        max_size: int | None = 2**20,
        subprotocol: str | None = None,
    ) -> None:
        self._url = url
        self._open_timeout = open_timeout
        self._max_size = max_size
        self._subprotocol = subprotocol
        self._ws: ClientConnection | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def state(self) -> ConnectionState:
        if self._ws is None:
            return ConnectionState.CONNECTING
        return ConnectionState(self._ws.state.value)

    @property
    def close_code(self) -> int | None:
        return self._ws.close_code if self._ws is not None else None

    @property
    def close_reason(self) -> str:
        if self._ws is None or self._ws.close_reason is None:
            return ""
        return self._ws.close_reason

    async def open(self) -> None:
        options: dict[str, Any] = {"open_timeout": self._open_timeout, "max_size": self._max_size}
        if self._subprotocol:
            options["subprotocols"] = [Subprotocol(self._subprotocol)]
        self._ws = await connect(self._url, **options)
        logger.debug("wsrpc.transport.connected url={}", self._url)

    async def send_message(self, message: str) -> None:
        if self._ws is None:
            raise RuntimeError("Transport is not connected")
        await self._ws.send(message)

    async def receive_message(self) -> str | bytes | None:
        if self._ws is None:
            return None
        try:
            data = await self._ws.recv()
        except websockets.ConnectionClosed:
            return None
        # Binary frames are passed through; the codec decodes them strictly.
        if isinstance(data, (bytearray, memoryview)):
            data = bytes(data)
        return data

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        if self._ws is None:
            return
        await self._ws.close(code, reason)
        logger.debug("wsrpc.transport.closed url={} code={}", self._url, code)


__all__ = ["WebSocketTransport"]
