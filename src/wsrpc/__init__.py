"""JSON-RPC 2.0 client over WebSocket."""

from wsrpc.rpc import (
    CloseEvent,
    ConnectionState,
    ErrorData,
    JSONRPCErrorException,
    JSONRPCRequest,
    JSONRPCResponse,
    JSONRPCWebSocket,
)
from wsrpc.rpc.types import (
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    INVALID_RESPONSE,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    REQUEST_TIMEOUT,
)

__version__ = "0.1.0"

__all__ = [
    "CloseEvent",
    "ConnectionState",
    "ErrorData",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "INVALID_RESPONSE",
    "JSONRPCErrorException",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCWebSocket",
    "METHOD_NOT_FOUND",
    "PARSE_ERROR",
    "REQUEST_TIMEOUT",
]
