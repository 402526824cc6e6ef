"""Transport package."""

from wsrpc.transport.websocket import WebSocketTransport

__all__ = ["WebSocketTransport"]
