"""Single-resolution bridge from a callback-style API to an awaitable.

``SingleShot`` is bound to the event loop that creates it. ``resolve`` and
``reject`` may be called from any thread; exactly one of them must be called
exactly once. A second settlement is a programming error and raises
``RuntimeError`` at the call site instead of being absorbed by the future.
If the awaiting task was cancelled in the meantime the late result is dropped.
"""

from __future__ import annotations

import asyncio
import threading
from typing import Generic, TypeVar


T = TypeVar("T")


class SingleShot(Generic[T]):
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop or asyncio.get_running_loop()
        self._future: asyncio.Future[T] = self._loop.create_future()
        self._lock = threading.Lock()
        self._settled = False

    @property
    def settled(self) -> bool:
        return self._settled

    def _claim(self) -> None:
        with self._lock:
            if self._settled:
                raise RuntimeError("single-shot result already settled")
            self._settled = True

    def _set_result(self, value: T) -> None:
        if not self._future.done():
            self._future.set_result(value)

    def _set_exception(self, exc: BaseException) -> None:
        if not self._future.done():
            self._future.set_exception(exc)

    def resolve(self, value: T) -> None:
        self._claim()
        self._loop.call_soon_threadsafe(self._set_result, value)

    def reject(self, exc: BaseException) -> None:
        self._claim()
        self._loop.call_soon_threadsafe(self._set_exception, exc)

    async def wait(self) -> T:
        return await self._future
