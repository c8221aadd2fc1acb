"""Where delivery events end up.

`EventSink.write` is synchronous: the recorder calls it from a worker thread.
Both sinks answer the same delivery questions (how often each event
happened, how many queued records were discarded, which sources failed) so
the demo can report a run regardless of where events were kept.
"""

from __future__ import annotations

import json
import threading
from collections import Counter
from pathlib import Path
from typing import Any, Protocol

import duckdb

from .models import ObservabilityRecord

DELIVERY_EVENTS_TABLE = "delivery_events"


def discarded_count(record: ObservabilityRecord) -> int:
    """Number of queued records a `records_discarded` event dropped (0 for other events)."""
    if record.event_type != "records_discarded":
        return 0
    value = record.summary.get("discarded", 0)
    return value if isinstance(value, int) else 0


class EventSink(Protocol):
    def write(self, record: ObservabilityRecord) -> None:
        ...

    def close(self) -> None:
        ...


class MemoryEventSink:
    """Keeps delivery events in a list. Used by tests and when no database is configured."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: list[ObservabilityRecord] = []

    def write(self, record: ObservabilityRecord) -> None:
        with self._lock:
            self._events.append(record)

    def close(self) -> None:
        pass

    def snapshot(self) -> list[ObservabilityRecord]:
        with self._lock:
            return list(self._events)

    def event_counts(self) -> dict[str, int]:
        return dict(Counter(event.event_type for event in self.snapshot()))

    def discarded_total(self) -> int:
        return sum(discarded_count(event) for event in self.snapshot())

    def failures_by_source(self) -> dict[str, int]:
        return dict(
            Counter(
                event.source
                for event in self.snapshot()
                if event.event_type == "delivery_failed" and event.source is not None
            )
        )


class DuckDBEventSink:
    """Persists delivery events to a DuckDB file, one row per event.

    The discard count gets its own column so data-loss totals can be summed
    without parsing the JSON summary.
    """

    def __init__(self, *, path: str | Path, table: str = DELIVERY_EVENTS_TABLE) -> None:
        self.path = Path(path)
        self.table = table
        self._lock = threading.Lock()
        self._conn = duckdb.connect(str(self.path))
        self._conn.execute(
            f"create table if not exists {table} ("
            "occurred_at timestamptz not null, "
            "logged_at timestamptz not null, "
            "kind varchar not null, "
            "event_type varchar not null, "
            "stage varchar not null, "
            "correlation_id varchar, "
            "source varchar, "
            "discarded integer not null, "
            "summary_json varchar not null)"
        )

    def write(self, record: ObservabilityRecord) -> None:
        row = [
            record.occurred_at,
            record.logged_at,
            record.kind,
            record.event_type,
            record.stage,
            record.correlation_id,
            record.source,
            discarded_count(record),
            json.dumps(record.summary, separators=(",", ":"), sort_keys=True, default=str),
        ]
        with self._lock:
            self._conn.execute(f"insert into {self.table} values (?, ?, ?, ?, ?, ?, ?, ?, ?)", row)

    def _fetch(self, sql: str) -> list[Any]:
        with self._lock:
            return self._conn.execute(sql).fetchall()

    def event_counts(self) -> dict[str, int]:
        rows = self._fetch(f"select event_type, count(*) from {self.table} group by event_type")
        return {event_type: int(n) for event_type, n in rows}

    def discarded_total(self) -> int:
        ((total,),) = self._fetch(f"select coalesce(sum(discarded), 0) from {self.table}")
        return int(total)

    def failures_by_source(self) -> dict[str, int]:
        rows = self._fetch(
            f"select source, count(*) from {self.table} "
            "where event_type = 'delivery_failed' and source is not null group by source"
        )
        return {source: int(n) for source, n in rows}

    def close(self) -> None:
        with self._lock:
            self._conn.close()
