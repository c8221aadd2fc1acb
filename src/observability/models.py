"""Observability record models.

Records are designed to be:
- Durable and append-only (sink decides storage).
- Easy to link to the telemetry record they describe via a correlation id.
- Safe by default (store summaries + selected fields, never raw payloads).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


def utc_now() -> datetime:
    """Return the current UTC time as a timezone-aware datetime."""
    return datetime.now(tz=timezone.utc)


RecordKind = Literal["event", "error"]


class ObservabilityRecord(BaseModel):
    """A durable, structured record of something the delivery client did."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    kind: RecordKind

    # A stable label (e.g., "connected", "records_discarded", "delivery_failed").
    event_type: str

    # Component that produced the record (e.g., "delivery_client").
    stage: str

    # Observation id / survey key of the telemetry record, when there is one.
    correlation_id: str | None = None

    # "observer/stream" for observations, the campaign urn for responses.
    source: str | None = None

    occurred_at: datetime = Field(default_factory=utc_now)
    logged_at: datetime = Field(default_factory=utc_now)

    summary: dict[str, Any] = Field(default_factory=dict)
