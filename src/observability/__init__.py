"""Observability primitives for the delivery client.

This package provides:
- Structured JSON logging (`get_logger`).
- Durable records of connection transitions, discards and delivery failures,
  capturing both "occurred at" and "logged at" timestamps.
- Persisting records to a sink (DuckDB by default) without blocking delivery.
"""

from .logger import get_logger, setup_logger
from .models import ObservabilityRecord
from .recorder import ObservabilityRecorder
from .sinks import DuckDBEventSink, EventSink, MemoryEventSink

__all__ = [
    "DuckDBEventSink",
    "EventSink",
    "MemoryEventSink",
    "ObservabilityRecord",
    "ObservabilityRecorder",
    "get_logger",
    "setup_logger",
]
