"""Error types and the per-session error channel."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from loguru import logger

from wsrpc.rpc.types import ErrorData, JSONRPCResponse

ErrorCallback = Callable[[ErrorData], None]


class JSONRPCErrorException(Exception):
    """Exception with JSON-RPC error code.

    Raised to the caller of call()/notify() for local failures, and used to
    reject a pending call. When the rejection comes from a response (real or
    synthetic), that response is kept on `response`.
    """

    def __init__(
        self,
        code: int,
        message: str,
        data: Any = None,
        response: JSONRPCResponse | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data
        self.response = response

    @classmethod
    def from_response(cls, response: JSONRPCResponse) -> JSONRPCErrorException:
        assert response.error is not None
        error = response.error
        return cls(error.code, error.message, error.data, response=response)

    def to_error(self) -> ErrorData:
        if self.data is None:
            return ErrorData(code=self.code, message=self.message)
        return ErrorData(code=self.code, message=self.message, data=self.data)


class ErrorChannel:
    """Subscribable stream of connection- and protocol-level errors.

    Owned by one session; closed when the session is torn down.
    """

    def __init__(self) -> None:
        self._subscribers: list[ErrorCallback] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, callback: ErrorCallback) -> Callable[[], None]:
        """Register a callback; returns a function that removes it again."""
        self._subscribers.append(callback)

        def _unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return _unsubscribe

    def publish(self, error: ErrorData) -> None:
        if self._closed:
            logger.debug("wsrpc.errors.dropped code={} message={}", error.code, error.message)
            return
        logger.warning("wsrpc.errors.publish code={} message={}", error.code, error.message)
        for callback in list(self._subscribers):
            try:
                callback(error)
            except Exception:
                logger.exception("wsrpc.errors.subscriber_failed code={}", error.code)

    def close(self) -> None:
        self._closed = True
        self._subscribers.clear()


__all__ = [
    "ErrorCallback",
    "ErrorChannel",
    "JSONRPCErrorException",
]
