"""In-process gateway for tests and local runs."""

from __future__ import annotations

import asyncio
import threading
from collections.abc import Callable, Coroutine, Sequence
from typing import Any

from records.models import Record

from .base import ConnectionCallbacks


class InMemoryGateway:
    """Gateway that "delivers" records into a list.

    Args:
        accept: When False, `try_connect` reports that connecting cannot start.
        auto_complete: When True, a successful `try_connect` reports the
            connection as ready from a separate task. When False, the test
            drives completion with `complete_connect()` / `drop()`.
        fail_when: Optional predicate; `send` raises `ConnectionError` for
            records it matches.
    """

    def __init__(
        self,
        *,
        accept: bool = True,
        auto_complete: bool = True,
        fail_when: Callable[[Record], bool] | None = None,
    ) -> None:
        self.accept = accept
        self.auto_complete = auto_complete
        self.fail_when = fail_when

        self.connect_attempts = 0
        self.disconnects = 0

        self._lock = threading.Lock()
        self._sent: list[Record] = []
        self._callbacks: ConnectionCallbacks | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def try_connect(self, callbacks: ConnectionCallbacks) -> bool:
        self.connect_attempts += 1
        if not self.accept:
            return False
        self._callbacks = callbacks
        if self.auto_complete:
            self._spawn(callbacks.on_connected())
        return True

    async def send(self, record: Record) -> int:
        """Store the record and return how many records have been delivered."""
        if self.fail_when is not None and self.fail_when(record):
            raise ConnectionError(f"in-memory gateway rejected {record.type}")
        with self._lock:
            self._sent.append(record)
            return len(self._sent)

    async def disconnect(self) -> None:
        self.disconnects += 1
        self._callbacks = None

    async def complete_connect(self) -> None:
        """Report the most recent connection attempt as ready."""
        if self._callbacks is None:
            raise RuntimeError("No connection attempt in progress")
        await self._callbacks.on_connected()

    async def drop(self) -> None:
        """Simulate the collector going away."""
        if self._callbacks is None:
            raise RuntimeError("No connection to drop")
        await self._callbacks.on_disconnected()

    async def wait_idle(self) -> None:
        """Wait for scheduled connection callbacks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    def snapshot(self) -> Sequence[Record]:
        """Return a point-in-time copy of all delivered records."""
        with self._lock:
            return list(self._sent)
