"""Write-once future for request/response correlation."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Generator
from typing import Any, Generic, TypeVar

T = TypeVar("T")


class Deferred(Generic[T]):
    """A value that is resolved or rejected exactly once.

    Later attempts to settle it are ignored and reported through the return
    value of resolve()/reject(), so the first writer always wins.
    """

    def __init__(self) -> None:
        self._future: asyncio.Future[T] = asyncio.get_running_loop().create_future()

    @property
    def future(self) -> asyncio.Future[T]:
        return self._future

    def done(self) -> bool:
        return self._future.done()

    def resolve(self, value: T) -> bool:
        if self._future.done():
            return False
        self._future.set_result(value)
        return True

    def reject(self, error: BaseException) -> bool:
        if self._future.done():
            return False
        self._future.set_exception(error)
        return True

    def add_done_callback(self, callback: Callable[[asyncio.Future[T]], Any]) -> None:
        self._future.add_done_callback(callback)

    def __await__(self) -> Generator[Any, None, T]:
        return self._future.__await__()


__all__ = ["Deferred"]
