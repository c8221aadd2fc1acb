"""HTTP gateway to a telemetry collector.

Connecting means probing the collector's health endpoint from a background
task; the outcome is reported through the connection callbacks. Records are
POSTed one per request as JSON.

The HTTP calls use `requests` executed in a thread so the event loop (and
the delivery client's lock holders) never block on network I/O.
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import Any

import requests  # type: ignore

from config import CollectorConfig
from observability.logger import get_logger
from records.models import Record

from .base import ConnectionCallbacks

logger = get_logger(__name__)


class CollectorHttpError(RuntimeError):
    """HTTP-level error returned by the collector."""

    def __init__(self, *, status_code: int, payload: Any | None):
        """Create an error capturing HTTP status code and parsed payload (if any)."""
        self.status_code = status_code
        self.payload = payload
        super().__init__(f"Collector HTTP {status_code}: {payload}")


class HttpGateway:
    """`ConnectionGateway` implementation backed by the collector's REST API."""

    def __init__(self, config: CollectorConfig):
        self.config = config
        self._callbacks: ConnectionCallbacks | None = None
        self._connect_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    def _spawn(self, coro: Coroutine[Any, Any, None], name: str) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def try_connect(self, callbacks: ConnectionCallbacks) -> bool:
        """Schedule a health probe; never blocks on the network.

        Always able to start: an unreachable collector is reported through
        `callbacks.on_disconnected()` once the probe fails.
        """
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        self._callbacks = callbacks
        self._connect_task = self._spawn(self._connect(callbacks), name="collector-connect")
        return True

    async def _connect(self, callbacks: ConnectionCallbacks) -> None:
        try:
            await asyncio.to_thread(self._request, "GET", self.config.health_path, None)
        except (requests.RequestException, CollectorHttpError) as exc:
            logger.warning("Collector health probe failed", extra={"error": str(exc)})
            await callbacks.on_disconnected()
            return
        await callbacks.on_connected()

    def path_for(self, record: Record) -> str:
        if record.type == "observation":
            return self.config.observations_path
        return self.config.responses_path

    async def send(self, record: Record) -> Any:
        """POST one record; transport errors also mark the connection as lost."""
        body = record.model_dump()
        try:
            return await asyncio.to_thread(self._request, "POST", self.path_for(record), body)
        except requests.RequestException:
            # Called with the client's lock held: report the loss from a task.
            if self._callbacks is not None:
                self._spawn(self._callbacks.on_disconnected(), name="collector-disconnected")
            raise

    async def disconnect(self) -> None:
        # Not awaited: the connect task may be waiting on the client's lock.
        if self._connect_task is not None and not self._connect_task.done():
            self._connect_task.cancel()
        self._connect_task = None
        self._callbacks = None

    def _request(self, method: str, path: str, body: Any | None) -> Any:
        """Execute the HTTP request synchronously (runs in a worker thread).

        Raises:
        - `CollectorHttpError` for non-2xx responses
        - `requests.RequestException` for transport errors
        """
        resp = requests.request(
            method,
            self.config.url(path),
            json=body,
            timeout=self.config.timeout_s,
            verify=self.config.verify_tls,
        )
        if 200 <= resp.status_code < 300:
            if not resp.content:
                return None
            return resp.json()

        error_payload: Any | None
        try:
            error_payload = resp.json()
        except Exception:  # noqa: BLE001 - best-effort parsing
            error_payload = None
        raise CollectorHttpError(status_code=resp.status_code, payload=error_payload)
