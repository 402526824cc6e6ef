"""Table of outstanding requests awaiting a response or a timeout."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from wsrpc.rpc.deferred import Deferred
from wsrpc.rpc.types import JSONRPCRequest, JSONRPCResponse, RequestId


@dataclass
class PendingRequest:
    request: JSONRPCRequest
    deferred: Deferred[JSONRPCResponse]
    timer: asyncio.TimerHandle


class PendingRequestTable:
    """Maps request ids to pending requests.

    Every entry is removed at most once: whichever of response, timeout or
    cancellation comes first takes it, the others find nothing.
    """

    def __init__(self) -> None:
        self._entries: dict[RequestId, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, request_id: object) -> bool:
        return isinstance(request_id, int) and not isinstance(request_id, bool) and request_id in self._entries

    def add(
        self,
        request: JSONRPCRequest,
        timeout: float,
        on_timeout: Callable[[RequestId], None],
    ) -> PendingRequest:
        """Register a request and arm its timer.

        The timer calls `on_timeout` with the request id after `timeout` seconds.
        """
        request_id = request.id
        if request_id is None:
            raise ValueError("notifications cannot be pending")
        if request_id in self._entries:
            raise ValueError(f"request id {request_id} is already pending")

        loop = asyncio.get_running_loop()
        deferred: Deferred[JSONRPCResponse] = Deferred()
        timer = loop.call_later(timeout, on_timeout, request_id)
        entry = PendingRequest(request=request, deferred=deferred, timer=timer)
        self._entries[request_id] = entry

        def _on_done(future: asyncio.Future[JSONRPCResponse]) -> None:
            if future.cancelled() and self._entries.get(request_id) is entry:
                logger.debug("wsrpc.pending.cancelled id={}", request_id)
                self.pop(request_id)

        deferred.add_done_callback(_on_done)
        return entry

    def pop(self, request_id: object) -> PendingRequest | None:
        """Remove an entry and cancel its timer. Returns None if it is gone."""
        if isinstance(request_id, bool) or not isinstance(request_id, int):
            return None
        entry = self._entries.pop(request_id, None)
        if entry is not None:
            entry.timer.cancel()
        return entry


__all__ = ["PendingRequest", "PendingRequestTable"]
