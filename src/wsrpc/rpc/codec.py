"""Inbound frame parsing and classification."""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

from wsrpc.rpc.errors import JSONRPCErrorException
from wsrpc.rpc.types import INVALID_REQUEST, JSONRPC_VERSION, PARSE_ERROR, ErrorData


class MessageKind(Enum):
    REQUEST = "request"
    RESPONSE = "response"
    INVALID = "invalid"


@dataclass(frozen=True)
class InboundMessage:
    """A decoded frame and what it was classified as.

    `reply_id` is the id a reply can be addressed to: set only for frames
    that look like requests and carry an integer id. `error` is set when the
    frame is INVALID.
    """

    kind: MessageKind
    payload: Any
    reply_id: int | None = None
    error: ErrorData | None = None


def to_json(data: Any) -> str:
    """Compact JSON text, used to echo payloads back in error messages."""
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False)


def parse_message(raw: str | bytes) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise JSONRPCErrorException(PARSE_ERROR, f"Invalid JSON was received. {exc}") from exc


def _is_response(data: dict[str, Any]) -> bool:
    return "id" in data and ("result" in data or "error" in data)


def _is_request(data: dict[str, Any]) -> bool:
    return "method" in data


def _request_id(data: dict[str, Any]) -> int | None:
    request_id = data.get("id")
    if isinstance(request_id, bool) or not isinstance(request_id, int):
        return None
    return request_id


def classify(data: Any) -> InboundMessage:
    """Classify a decoded frame.

    The protocol version is checked before the shape, so a request from a
    peer speaking another version is rejected even if it is well formed.
    """
    if not isinstance(data, dict):
        error = ErrorData(code=INVALID_REQUEST, message=f"Received unknown data: {to_json(data)}")
        return InboundMessage(MessageKind.INVALID, data, error=error)

    is_response = _is_response(data)
    is_request = _is_request(data)
    reply_id = _request_id(data) if is_request and not is_response else None

    version = data.get("jsonrpc")
    if version != JSONRPC_VERSION:
        error = ErrorData(
            code=INVALID_REQUEST,
            message=f"Invalid JSON RPC protocol version. Expecting {JSONRPC_VERSION}, but got {version}",
        )
        return InboundMessage(MessageKind.INVALID, data, reply_id=reply_id, error=error)

    if is_response:
        return InboundMessage(MessageKind.RESPONSE, data)
    if is_request:
        return InboundMessage(MessageKind.REQUEST, data, reply_id=reply_id)

    error = ErrorData(code=INVALID_REQUEST, message=f"Received unknown data: {to_json(data)}")
    return InboundMessage(MessageKind.INVALID, data, reply_id=reply_id, error=error)


def decode(raw: str | bytes) -> InboundMessage:
    """Parse and classify one frame. Raises JSONRPCErrorException on bad JSON."""
    return classify(parse_message(raw))


__all__ = [
    "InboundMessage",
    "MessageKind",
    "classify",
    "decode",
    "parse_message",
    "to_json",
]
