"""Record models shared by builders, the delivery client and gateways.

Finalized records are frozen: once a builder hands one to the delivery
client nothing can mutate it while it waits in the pending queue.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_UPLOAD_PRIORITY = 0

LocationStatus = Literal["unavailable", "valid", "inaccurate", "stale"]
LOCATION_STATUSES: tuple[str, ...] = ("unavailable", "valid", "inaccurate", "stale")
UNAVAILABLE_LOCATION: LocationStatus = "unavailable"


class _Model(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)


class Location(_Model):
    """A location fix.

    All six fields are required; there is no partial location.
    """

    # Milliseconds since the Unix epoch (UTC).
    time: int
    # Timezone of the fix, independent of the record's own timezone.
    timezone: str
    latitude: float
    longitude: float
    accuracy: float
    provider: str


class LaunchContext(_Model):
    """Describes how a survey was launched."""

    launch_time: int
    launch_timezone: str
    active_triggers: tuple[str, ...] = ()


class ObservationRecord(_Model):
    """A finalized observation ("probe") point for a versioned stream."""

    type: Literal["observation"] = "observation"
    observer_id: str
    observer_version: int
    stream_id: str
    stream_version: int
    upload_priority: int = DEFAULT_UPLOAD_PRIORITY
    # JSON object string, or None when there is no metadata to send.
    metadata: str | None = None
    data: str = Field(default="")


class SurveyResponse(_Model):
    """A finalized survey response for a campaign."""

    type: Literal["survey_response"] = "survey_response"
    campaign_urn: str
    campaign_creation_timestamp: str
    upload_priority: int = DEFAULT_UPLOAD_PRIORITY
    data: str = Field(default="")


Record = ObservationRecord | SurveyResponse
