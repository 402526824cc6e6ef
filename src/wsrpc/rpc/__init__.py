"""RPC package.

Provides the JSON-RPC 2.0 session engine and its building blocks.
"""

from wsrpc.rpc.codec import InboundMessage, MessageKind, classify, decode
from wsrpc.rpc.deferred import Deferred
from wsrpc.rpc.errors import ErrorCallback, ErrorChannel, JSONRPCErrorException
from wsrpc.rpc.pending import PendingRequest, PendingRequestTable
from wsrpc.rpc.registry import MethodRegistry, RegisteredMethod
from wsrpc.rpc.session import JSONRPCWebSocket
from wsrpc.rpc.types import (
    CloseEvent,
    ConnectionState,
    ErrorData,
    JSONRPCRequest,
    JSONRPCResponse,
    RequestId,
    Transport,
)

__all__ = [
    "CloseEvent",
    "ConnectionState",
    "Deferred",
    "ErrorCallback",
    "ErrorChannel",
    "ErrorData",
    "InboundMessage",
    "JSONRPCErrorException",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPCWebSocket",
    "MessageKind",
    "MethodRegistry",
    "PendingRequest",
    "PendingRequestTable",
    "RegisteredMethod",
    "RequestId",
    "Transport",
    "classify",
    "decode",
]
