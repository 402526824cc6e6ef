"""JSON-RPC 2.0 type definitions.

Envelope models, error codes and the transport protocol shared by the
session engine and its collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

JSONRPC_VERSION = "2.0"

RequestId = int
Params = list[Any] | dict[str, Any]

# See https://www.jsonrpc.org/specification for the reserved range
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
# Application specific
INVALID_RESPONSE = -32001
REQUEST_TIMEOUT = -32002

# See RFC 6455 section 7.4.1
NORMAL_CLOSURE = 1000
NO_STATUS_RECEIVED = 1005
ABNORMAL_CLOSURE = 1006


class ConnectionState(IntEnum):
    """Connection state, numbered like the WebSocket readyState."""

    CONNECTING = 0
    OPEN = 1
    CLOSING = 2
    CLOSED = 3


@dataclass(frozen=True)
class CloseEvent:
    """Outcome of a closed connection."""

    code: int
    reason: str = ""
    was_clean: bool = True


@runtime_checkable
class Transport(Protocol):
    """Protocol for a message-oriented duplex channel.

    Abstracts the underlying transport mechanism (WebSocket, in-memory, etc.)
    This is the only external interface we need to mock for testing.
    """

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        ...

    @property
    def close_code(self) -> int | None:
        """Close code once the connection is closed."""
        ...

    @property
    def close_reason(self) -> str:
        """Close reason once the connection is closed."""
        ...

    async def open(self) -> None:
        """Establish the connection. Raises if it cannot be opened."""
        ...

    async def send_message(self, message: str) -> None:
        """Send a message string through the transport."""
        ...

    async def receive_message(self) -> str | bytes | None:
        """Receive the next text or binary frame, or None once the connection is closed."""
        ...

    async def close(self, code: int = NORMAL_CLOSURE, reason: str = "") -> None:
        """Request closure of the connection."""
        ...


class ErrorData(BaseModel):
    """Error information for JSON-RPC error responses."""

    code: int
    message: str
    data: Any = None


class JSONRPCRequest(BaseModel):
    """A JSON-RPC request. Without an id it is a notification."""

    jsonrpc: str
    id: RequestId | None = None
    method: str
    params: Params | None = None

    model_config = ConfigDict(extra="forbid")

    @property
    def is_notification(self) -> bool:
        return self.id is None


class JSONRPCResponse(BaseModel):
    """A response to a request, carrying either a result or an error."""

    jsonrpc: str
    id: RequestId | None
    result: Any = None
    error: ErrorData | None = None

    @property
    def has_result(self) -> bool:
        return "result" in self.model_fields_set


def dump_message(message: BaseModel) -> str:
    """Serialize an envelope, leaving out fields that were never set."""
    return message.model_dump_json(exclude_unset=True)


__all__ = [
    "ABNORMAL_CLOSURE",
    "CloseEvent",
    "ConnectionState",
    "ErrorData",
    "INTERNAL_ERROR",
    "INVALID_PARAMS",
    "INVALID_REQUEST",
    "INVALID_RESPONSE",
    "JSONRPCRequest",
    "JSONRPCResponse",
    "JSONRPC_VERSION",
    "METHOD_NOT_FOUND",
    "NORMAL_CLOSURE",
    "NO_STATUS_RECEIVED",
    "PARSE_ERROR",
    "Params",
    "REQUEST_TIMEOUT",
    "RequestId",
    "Transport",
    "dump_message",
]
