"""JSON-RPC 2.0 session over a persistent WebSocket connection.

The session is direction-agnostic: the same instance sends requests and
notifications to the peer and serves the methods registered with on().

It handles:
- Connection lifecycle (open/close) over a pluggable transport
- Request/response correlation with per-request timeouts
- Classification of inbound frames and protocol error replies
- Method registration and dispatch with positional or named params
"""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable, Iterable
from dataclasses import asdict
from types import TracebackType
from typing import Any, Self

from loguru import logger
from pydantic import ValidationError

from wsrpc.config import WsRpcSettings, load_settings
from wsrpc.rpc.codec import MessageKind, decode, to_json
from wsrpc.rpc.errors import ErrorCallback, ErrorChannel, JSONRPCErrorException
from wsrpc.rpc.pending import PendingRequest, PendingRequestTable
from wsrpc.rpc.registry import MethodHandler, MethodRegistry
from wsrpc.rpc.types import (
    ABNORMAL_CLOSURE,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    INVALID_RESPONSE,
    JSONRPC_VERSION,
    NO_STATUS_RECEIVED,
    NORMAL_CLOSURE,
    REQUEST_TIMEOUT,
    CloseEvent,
    ConnectionState,
    ErrorData,
    JSONRPCRequest,
    JSONRPCResponse,
    Params,
    RequestId,
    Transport,
    dump_message,
)
from wsrpc.transport.websocket import WebSocketTransport

TransportFactory = Callable[[str], Transport]

NOT_OPENED_MESSAGE = "The websocket is not opened"


class JSONRPCWebSocket:
    """JSON-RPC 2.0 client session.

    Inbound frames are read by a background task and processed on the event
    loop that called open(); timers and handlers run on that loop too, so the
    pending table and the method registry need no locking.

    Failures that belong to one caller are raised to that caller. Failures
    nobody asked for (garbage from the peer, responses to unknown ids,
    abnormal closes) are published on `errors`.
    """

    jsonrpc_version = JSONRPC_VERSION

    def __init__(
        self,
        url: str,
        request_timeout_ms: int = 30_000,
        on_error: ErrorCallback | None = None,
        *,
        transport_factory: TransportFactory | None = None,
    ) -> None:
        if request_timeout_ms <= 0:
            raise ValueError("request_timeout_ms must be positive")
        self._url = url
        self._request_timeout_ms = request_timeout_ms
        self._transport_factory: TransportFactory = transport_factory or WebSocketTransport
        self._transport: Transport | None = None
        self._reader: asyncio.Task[None] | None = None
        self._closed: asyncio.Future[CloseEvent] | None = None
        self._request_id = 0
        self._pending = PendingRequestTable()
        self._methods = MethodRegistry()
        self._errors = ErrorChannel()
        self._tasks: set[asyncio.Task[Any]] = set()
        if on_error is not None:
            self._errors.subscribe(on_error)

    @classmethod
    def from_settings(
        cls,
        settings: WsRpcSettings | None = None,
        on_error: ErrorCallback | None = None,
    ) -> JSONRPCWebSocket:
        """Build a session whose transport is configured from settings."""
        settings = settings or load_settings()

        def _factory(url: str) -> Transport:
            return WebSocketTransport(
                url,
                open_timeout=settings.open_timeout,
                max_size=settings.max_size,
                subprotocol=settings.subprotocol,
            )

        return cls(settings.url, settings.request_timeout_ms, on_error, transport_factory=_factory)

    @property
    def url(self) -> str:
        return self._url

    @property
    def request_timeout_ms(self) -> int:
        return self._request_timeout_ms

    @property
    def state(self) -> ConnectionState:
        if self._transport is None:
            return ConnectionState.CLOSED
        return ConnectionState(self._transport.state)

    @property
    def errors(self) -> ErrorChannel:
        """Connection- and protocol-level errors not owned by any caller."""
        return self._errors

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # Connection lifecycle

    async def open(self) -> None:
        """Open a new connection, closing the current one first.

        Raises whatever the transport raised if the connection cannot be
        established. Concurrent calls are not serialized.
        """
        if self._transport is not None:
            await self.close()

        transport = self._transport_factory(self._url)
        closed: asyncio.Future[CloseEvent] = asyncio.get_running_loop().create_future()
        self._transport = transport
        self._closed = closed

        logger.info("wsrpc.session.opening url={}", self._url)
        try:
            await transport.open()
        except Exception as exc:
            if self._transport is transport:
                self._transport = None
            logger.warning("wsrpc.session.open_failed url={} error={}", self._url, exc)
            raise

        self._reader = asyncio.create_task(self._read_loop(transport, closed))
        logger.info("wsrpc.session.open url={}", self._url)

    async def close(self) -> CloseEvent:
        """Close the connection with a normal closure.

        Returns the close event once the connection is closed. Without a
        connection it returns a synthetic event right away.
        """
        transport = self._transport
        closed = self._closed
        if transport is None or closed is None:
            return CloseEvent(code=NO_STATUS_RECEIVED, reason="No websocket was opened", was_clean=False)

        logger.info("wsrpc.session.closing url={}", self._url)
        await transport.close(NORMAL_CLOSURE)
        return await asyncio.shield(closed)

    async def aclose(self) -> None:
        """Close the connection and tear the session down."""
        await self.close()
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._errors.close()

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def _read_loop(self, transport: Transport, closed: asyncio.Future[CloseEvent]) -> None:
        try:
            while True:
                try:
                    raw = await transport.receive_message()
                except Exception:
                    logger.exception("wsrpc.session.receive_failed url={}", self._url)
                    break
                if raw is None:
                    break
                try:
                    self._handle_message(raw)
                except Exception:
                    logger.exception("wsrpc.session.message_failed")
        finally:
            self._handle_close(transport, closed)

    def _handle_close(self, transport: Transport, closed: asyncio.Future[CloseEvent]) -> None:
        code = transport.close_code
        if code is None:
            code = ABNORMAL_CLOSURE
        event = CloseEvent(code=code, reason=transport.close_reason, was_clean=code == NORMAL_CLOSURE)

        if self._transport is transport:
            self._transport = None

        if code != NORMAL_CLOSURE:
            self._errors.publish(ErrorData(code=code, message=event.reason, data=asdict(event)))

        if not closed.done():
            closed.set_result(event)
        logger.info(
            "wsrpc.session.closed url={} code={} reason={} pending={}",
            self._url,
            code,
            event.reason,
            len(self._pending),
        )

    # Method registry

    def on(self, name: str, handler: MethodHandler, param_names: Iterable[str] | None = None) -> None:
        """Serve `name` (case-insensitive) with `handler`.

        Named params are matched against `param_names`, or against the
        handler's positional parameters when not given.
        """
        self._methods.register(name, handler, param_names)

    def off(self, name: str) -> None:
        self._methods.unregister(name)

    # Outbound messages

    def _require_open(self) -> Transport:
        transport = self._transport
        if transport is None or transport.state != ConnectionState.OPEN:
            raise JSONRPCErrorException(INTERNAL_ERROR, NOT_OPENED_MESSAGE)
        return transport

    def _next_request_id(self) -> RequestId:
        self._request_id += 1
        return self._request_id

    def _build_request(self, method: str, params: Params | None, request_id: RequestId | None = None) -> JSONRPCRequest:
        fields: dict[str, Any] = {"jsonrpc": self.jsonrpc_version, "method": method}
        if request_id is not None:
            fields["id"] = request_id
        if params is not None:
            fields["params"] = params
        try:
            return JSONRPCRequest(**fields)
        except ValidationError as exc:
            raise JSONRPCErrorException(
                INVALID_PARAMS,
                f"Invalid parameters. Expected array or object, but got {type(params).__name__}",
            ) from exc

    async def call(self, method: str, params: Params | None = None) -> JSONRPCResponse:
        """Send a request and wait for its response.

        Returns:
            The peer's response, with `result` set if the peer sent one.

        Raises:
            JSONRPCErrorException: INTERNAL_ERROR if the connection is not open
                or the send fails; otherwise the error response from the peer,
                REQUEST_TIMEOUT, or INVALID_RESPONSE. `response` holds the
                (possibly synthetic) response for the last three.
        """
        transport = self._require_open()
        request = self._build_request(method, params, self._next_request_id())
        entry = self._pending.add(request, self._request_timeout_ms / 1000, self._expire)

        try:
            await transport.send_message(dump_message(request))
        except asyncio.CancelledError:
            self._pending.pop(request.id)
            raise
        except Exception as exc:
            self._pending.pop(request.id)
            logger.warning("wsrpc.session.send_failed id={} method={} error={}", request.id, method, exc)
            raise JSONRPCErrorException(INTERNAL_ERROR, f"Internal error. {exc}") from exc

        logger.debug("wsrpc.session.call id={} method={}", request.id, method)
        return await entry.deferred

    async def notify(self, method: str, params: Params | None = None) -> None:
        """Send a notification. No response is expected."""
        transport = self._require_open()
        request = self._build_request(method, params)
        try:
            await transport.send_message(dump_message(request))
        except Exception as exc:
            raise JSONRPCErrorException(INTERNAL_ERROR, f"Internal error. {exc}") from exc
        logger.debug("wsrpc.session.notify method={}", method)

    async def respond_ok(self, request_id: RequestId, result: Any = None) -> None:
        await self._respond(request_id, result=result)

    async def respond_error(self, request_id: RequestId, error: ErrorData) -> None:
        await self._respond(request_id, error=error)

    async def _respond(self, request_id: RequestId, result: Any = None, error: ErrorData | None = None) -> None:
        transport = self._require_open()
        if result is not None and error is not None:
            raise ValueError("Invalid response. Either result or error must be set, but not both")
        await self._send_response(transport, self._encode_response(request_id, result, error))

    def _encode_response(self, request_id: RequestId, result: Any = None, error: ErrorData | None = None) -> str:
        fields: dict[str, Any] = {"jsonrpc": self.jsonrpc_version, "id": request_id}
        if error is not None:
            fields["error"] = error
        elif result is not None:
            fields["result"] = result
        return dump_message(JSONRPCResponse(**fields))

    async def _send_response(self, transport: Transport, message: str) -> None:
        try:
            await transport.send_message(message)
        except Exception as exc:
            raise JSONRPCErrorException(INTERNAL_ERROR, f"Internal error. {exc}") from exc

    def _expire(self, request_id: RequestId) -> None:
        entry = self._pending.pop(request_id)
        if entry is None:
            return
        response = JSONRPCResponse(
            jsonrpc=self.jsonrpc_version,
            id=request_id,
            error=ErrorData(
                code=REQUEST_TIMEOUT,
                message=(
                    f"Request {request_id} exceeded the maximum time of {self._request_timeout_ms}ms"
                    " and was aborted"
                ),
            ),
        )
        logger.warning("wsrpc.session.timeout id={} method={}", request_id, entry.request.method)
        entry.deferred.reject(JSONRPCErrorException.from_response(response))

    # Inbound messages

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _handle_message(self, raw: str | bytes) -> None:
        try:
            message = decode(raw)
        except JSONRPCErrorException as exc:
            self._errors.publish(exc.to_error())
            return

        if message.kind is MessageKind.RESPONSE:
            self._handle_response(message.payload)
        elif message.kind is MessageKind.REQUEST:
            self._spawn(self._handle_request(message.payload, message.reply_id))
        else:
            assert message.error is not None
            self._report(message.error, message.reply_id)

    def _report(self, error: ErrorData, reply_id: RequestId | None) -> None:
        self._errors.publish(error)
        if reply_id is not None:
            self._spawn(self._reply(reply_id, error=error))

    async def _reply(self, request_id: RequestId, result: Any = None, error: ErrorData | None = None) -> None:
        try:
            await self._respond(request_id, result=result, error=error)
        except Exception as exc:
            logger.warning("wsrpc.session.reply_failed id={} error={}", request_id, exc)

    async def _handle_request(self, data: dict[str, Any], reply_id: RequestId | None) -> None:
        method = data.get("method")
        if not isinstance(method, str):
            self._report(ErrorData(code=INVALID_REQUEST, message=f"Received unknown data: {to_json(data)}"), reply_id)
            return

        try:
            entry = self._methods.resolve(method)
            args = entry.adapt(method, data.get("params"))
        except JSONRPCErrorException as exc:
            logger.info("wsrpc.session.request_rejected method={} code={} message={}", method, exc.code, exc.message)
            if reply_id is not None:
                await self._reply(reply_id, error=exc.to_error())
            return

        try:
            result = entry.handler(*args)
            if inspect.isawaitable(result):
                result = await result
        except JSONRPCErrorException as exc:
            logger.info("wsrpc.session.handler_rejected method={} code={}", method, exc.code)
            if reply_id is not None:
                await self._reply(reply_id, error=exc.to_error())
            return
        except Exception as exc:
            logger.exception("wsrpc.session.handler_error method={}", method)
            if reply_id is not None:
                error = ErrorData(code=INTERNAL_ERROR, message=f"Method '{method}' has thrown: '{exc}'")
                await self._reply(reply_id, error=error)
            return

        if reply_id is None:
            return

        try:
            message = self._encode_response(reply_id, result=result)
        except ValueError as exc:
            # PydanticSerializationError: the result has no JSON form
            logger.exception("wsrpc.session.result_unserializable method={}", method)
            error = ErrorData(code=INTERNAL_ERROR, message=f"Method '{method}' has thrown: '{exc}'")
            await self._reply(reply_id, error=error)
            return

        try:
            await self._send_response(self._require_open(), message)
        except JSONRPCErrorException as exc:
            logger.warning("wsrpc.session.reply_failed id={} error={}", reply_id, exc)

    def _handle_response(self, data: dict[str, Any]) -> None:
        request_id = data.get("id")
        entry = self._pending.pop(request_id)
        if entry is None:
            self._errors.publish(
                ErrorData(
                    code=INTERNAL_ERROR,
                    message=(
                        f"Received a response with id {request_id},"
                        " which does not match any requests made by this client"
                    ),
                )
            )
            return

        if "result" in data and "error" in data:
            self._reject_invalid(entry, "Either result or error must be set, but not both.", data)
            return
        try:
            response = JSONRPCResponse.model_validate(data)
        except ValidationError:
            self._reject_invalid(entry, "Response does not match the JSON-RPC 2.0 response shape.", data)
            return

        if response.error is not None:
            logger.debug("wsrpc.session.error_response id={} code={}", response.id, response.error.code)
            entry.deferred.reject(JSONRPCErrorException.from_response(response))
        else:
            logger.debug("wsrpc.session.response id={}", response.id)
            entry.deferred.resolve(response)

    def _reject_invalid(self, entry: PendingRequest, reason: str, data: dict[str, Any]) -> None:
        response = JSONRPCResponse(
            jsonrpc=self.jsonrpc_version,
            id=entry.request.id,
            error=ErrorData(code=INVALID_RESPONSE, message=f"Invalid response. {reason} {to_json(data)}"),
        )
        logger.warning("wsrpc.session.invalid_response id={}", entry.request.id)
        entry.deferred.reject(JSONRPCErrorException.from_response(response))


__all__ = [
    "JSONRPCWebSocket",
    "NOT_OPENED_MESSAGE",
    "TransportFactory",
]
