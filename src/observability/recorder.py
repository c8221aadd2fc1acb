"""Async recorder that writes observability records without blocking delivery."""

from __future__ import annotations

import asyncio
import json
from datetime import datetime
from typing import Any

from .models import ObservabilityRecord, RecordKind, utc_now
from .sinks import EventSink


def _safe_getattr(obj: Any, name: str) -> Any:
    """Best-effort getattr that never raises."""
    try:
        return getattr(obj, name)
    except Exception:  # pragma: no cover - defensive
        return None


def _json_field(raw: Any, key: str) -> str | None:
    """Pull a string field out of a JSON object string, if it has one."""
    if not isinstance(raw, str) or not raw:
        return None
    try:
        document = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(document, dict):
        return None
    value = document.get(key)
    return value if isinstance(value, str) and value else None


def _extract_correlation_id(record: Any) -> str | None:
    """Observation id from the metadata, or the survey key from response data."""
    return _json_field(_safe_getattr(record, "metadata"), "id") or _json_field(
        _safe_getattr(record, "data"), "survey_key"
    )


def _extract_source(record: Any) -> str | None:
    """Describe where a telemetry record came from without storing its payload."""
    observer_id = _safe_getattr(record, "observer_id")
    stream_id = _safe_getattr(record, "stream_id")
    if isinstance(observer_id, str) and isinstance(stream_id, str):
        return f"{observer_id}/{stream_id}"
    campaign_urn = _safe_getattr(record, "campaign_urn")
    if isinstance(campaign_urn, str):
        return campaign_urn
    return None


def _extract_summary(record: Any, extra: dict[str, Any] | None) -> dict[str, Any]:
    """Build a small, safe-to-store summary.

    Payload bodies are never stored, only their size.
    """
    data: dict[str, Any] = {}
    if record is not None:
        data["record_type"] = _safe_getattr(record, "type") or type(record).__name__
        priority = _safe_getattr(record, "upload_priority")
        if isinstance(priority, int):
            data["upload_priority"] = priority
        payload = _safe_getattr(record, "data")
        if isinstance(payload, str):
            data["data_bytes"] = len(payload.encode("utf-8"))

    if extra:
        data.update(extra)

    return data


class ObservabilityRecorder:
    """Queues records and writes them in a background task."""

    def __init__(self, *, sink: EventSink, max_queue_size: int = 10000) -> None:
        """Create a recorder backed by a synchronous sink.

        Args:
            sink: Storage backend used by the background writer.
            max_queue_size: Bound for in-memory buffering; records are dropped
                when full rather than blocking delivery.
        """
        self._sink = sink
        self._queue: asyncio.Queue[ObservabilityRecord | None] = asyncio.Queue(maxsize=max_queue_size)
        self._worker: asyncio.Task[None] | None = None
        self._closed = False

        self._write_failures = 0
        self._first_failure_at: datetime | None = None
        self._last_failure_at: datetime | None = None

    def _ensure_started(self) -> None:
        """Start the background writer task if it hasn't been started yet."""
        if self._worker is not None:
            return
        self._worker = asyncio.create_task(self._run_worker(), name="observability-writer")

    def _note_failure(self) -> None:
        now = utc_now()
        self._write_failures += 1
        self._first_failure_at = self._first_failure_at or now
        self._last_failure_at = now

    async def record_event(
        self,
        event_type: str,
        *,
        stage: str,
        kind: RecordKind = "event",
        record: Any = None,
        summary: dict[str, Any] | None = None,
        occurred_at: datetime | None = None,
    ) -> None:
        """Record an event, optionally about one telemetry record (non-blocking)."""
        if self._closed:
            return

        self._ensure_started()

        entry = ObservabilityRecord(
            kind=kind,
            event_type=event_type,
            stage=stage,
            correlation_id=_extract_correlation_id(record) if record is not None else None,
            source=_extract_source(record) if record is not None else None,
            occurred_at=occurred_at or utc_now(),
            logged_at=utc_now(),
            summary=_extract_summary(record, summary),
        )

        try:
            self._queue.put_nowait(entry)
        except asyncio.QueueFull:
            self._note_failure()

    async def flush(self) -> None:
        """Wait until every queued record has reached the sink."""
        if self._worker is not None:
            await self._queue.join()

    async def aclose(self) -> None:
        """Flush and close the recorder.

        Safe to call multiple times.
        """
        if self._closed:
            return
        self._closed = True
        if self._worker is not None:
            await self._queue.put(None)
            await self._worker
        await asyncio.to_thread(self._sink.close)

    async def _run_worker(self) -> None:
        """Background loop that drains the queue and writes to the sink."""
        while True:
            item = await self._queue.get()
            try:
                if item is None:
                    return
                await asyncio.to_thread(self._sink.write, item)
            except Exception:  # noqa: BLE001 - observability must not break delivery
                self._note_failure()
            finally:
                self._queue.task_done()

    def degraded_status(self) -> dict[str, Any]:
        """Return a minimal degraded-status snapshot."""
        return {
            "write_failures": self._write_failures,
            "first_failure_at": self._first_failure_at,
            "last_failure_at": self._last_failure_at,
        }
