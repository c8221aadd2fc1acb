"""Chainable builders for observations and survey responses.

Builders collect field values through chained setters and only validate and
serialize at `finalize()` time. Each builder keeps one "channel" that is
either a raw pre-built JSON document or a set of individual fields:

- `ObservationBuilder` metadata: last write wins. Setting any individual
  metadata field after `set_metadata()` discards the raw document, and
  `set_metadata()` discards any individual fields.
- `ResponseBuilder` data: individual fields always take precedence. A raw
  `set_data()` string is only sent when no response field has been set.
"""

from __future__ import annotations

import time as _time
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, fields
from typing import TYPE_CHECKING, Any, TypeAlias

from tzlocal import get_localzone_name

from observability.logger import get_logger

from . import codec
from .errors import InvalidLocationStatus, MissingCampaignIdentity, MissingPayload, MissingStreamIdentity
from .models import (
    DEFAULT_UPLOAD_PRIORITY,
    LOCATION_STATUSES,
    UNAVAILABLE_LOCATION,
    LaunchContext,
    Location,
    LocationStatus,
    ObservationRecord,
    SurveyResponse,
)

if TYPE_CHECKING:
    from delivery.client import DeliveryClient

logger = get_logger(__name__)


def _now_millis() -> int:
    return int(_time.time() * 1000)


def _local_timezone() -> str:
    """IANA name of the local zone (e.g. `America/Los_Angeles`) for callers that pass none."""
    return get_localzone_name() or "UTC"


def _coerce_location(location: Location | None, location_fields: dict[str, Any]) -> Location:
    if location is None:
        # pydantic rejects a partial field set: all six fields are required.
        return Location(**location_fields)
    if location_fields:
        raise TypeError("Pass either a Location or its individual fields, not both")
    return location


@dataclass(frozen=True)
class RawDocument:
    """A caller-supplied JSON document sent as-is."""

    text: str


@dataclass
class ObservationMetadata:
    """Individually set observation metadata fields."""

    id: str | None = None
    timestamp: str | None = None
    time: int | None = None
    timezone: str | None = None
    location: Location | None = None

    def encode(self) -> str | None:
        values = {
            "id": self.id,
            "timestamp": self.timestamp,
            "time": self.time,
            "timezone": self.timezone,
            "location": codec.encode_location(self.location) if self.location is not None else None,
        }
        return codec.encode_keyed(codec.OBSERVATION_METADATA_KEYS, values)


@dataclass
class ResponseFields:
    """Individually set survey response fields (folded into the data document)."""

    survey_key: str | None = None
    time: int | None = None
    timezone: str | None = None
    location_status: LocationStatus | None = None
    location: Location | None = None
    survey_id: str | None = None
    survey_launch_context: LaunchContext | str | Mapping[str, Any] | None = None
    responses: str | Sequence[Any] | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def encode(self) -> str | None:
        if self.location_status == UNAVAILABLE_LOCATION and self.location is not None:
            raise InvalidLocationStatus("A location must not be sent when location_status is 'unavailable'")

        launch_context: dict[str, Any] | None = None
        if isinstance(self.survey_launch_context, LaunchContext):
            launch_context = codec.encode_launch_context(self.survey_launch_context)
        elif self.survey_launch_context is not None:
            launch_context = codec.parse_document(self.survey_launch_context, field="survey_launch_context")

        responses = None
        if self.responses is not None:
            responses = codec.parse_array(self.responses, field="responses")

        values = {
            "survey_key": self.survey_key,
            "time": self.time,
            "timezone": self.timezone,
            "location_status": self.location_status,
            "location": codec.encode_location(self.location) if self.location is not None else None,
            "survey_id": self.survey_id,
            "survey_launch_context": launch_context,
            "responses": responses,
        }
        return codec.encode_keyed(codec.RESPONSE_DATA_KEYS, values)


MetadataChannel: TypeAlias = RawDocument | ObservationMetadata
ResponseDataChannel: TypeAlias = RawDocument | ResponseFields


class ObservationBuilder:
    """Builds an `ObservationRecord` for a named, versioned observer and stream.

    More information on how observation data is structured lives with the
    collector's observer documentation; this builder only guarantees that the
    metadata document uses the collector's wire keys.
    """

    def __init__(self, observer_id: str | None = None, observer_version: int = 0) -> None:
        self._observer_id = observer_id
        self._observer_version = observer_version
        self._stream_id: str | None = None
        self._stream_version = 0
        self._upload_priority = DEFAULT_UPLOAD_PRIORITY
        self._data: str | None = None
        self._metadata: MetadataChannel = ObservationMetadata()

    def _fields(self) -> ObservationMetadata:
        # Any individual field invalidates a previously set raw document.
        if isinstance(self._metadata, RawDocument):
            self._metadata = ObservationMetadata()
        return self._metadata

    def set_observer(self, observer_id: str, observer_version: int) -> ObservationBuilder:
        """The unique id of the observer and the number describing its version."""
        self._observer_id = observer_id
        self._observer_version = observer_version
        return self

    def set_stream(self, stream_id: str, stream_version: int) -> ObservationBuilder:
        """The stream this data belongs to and the version of that stream."""
        self._stream_id = stream_id
        self._stream_version = stream_version
        return self

    def set_upload_priority(self, upload_priority: int) -> ObservationBuilder:
        self._upload_priority = upload_priority
        return self

    def set_data(self, data: str | None) -> ObservationBuilder:
        """Set the observation data (a JSON string). Never rewritten by the builder."""
        self._data = data
        return self

    def set_metadata(self, metadata: str | None) -> ObservationBuilder:
        """Use a pre-built metadata JSON object.

        Replaces every individually set metadata field. Setting any metadata
        field afterwards discards this document again.
        """
        self._metadata = RawDocument(metadata) if metadata is not None else ObservationMetadata()
        return self

    def with_id(self, id: str | None = None) -> ObservationBuilder:
        """A token unique to this point; a UUID4 is generated when omitted."""
        self._fields().id = id if id is not None else str(uuid.uuid4())
        return self

    @property
    def id(self) -> str | None:
        if isinstance(self._metadata, ObservationMetadata):
            return self._metadata.id
        return None

    def with_timestamp(self, timestamp: str) -> ObservationBuilder:
        """An ISO-8601 date-time-timezone string. Replaces `time`/`timezone`."""
        metadata = self._fields()
        metadata.timestamp = timestamp
        metadata.time = None
        metadata.timezone = None
        return self

    def with_time(self, time: int, timezone: str | None = None) -> ObservationBuilder:
        """Milliseconds since the epoch plus the device timezone. Replaces `timestamp`."""
        metadata = self._fields()
        metadata.time = time
        metadata.timezone = timezone if timezone is not None else _local_timezone()
        metadata.timestamp = None
        return self

    def now(self) -> ObservationBuilder:
        return self.with_time(_now_millis())

    def with_location(self, location: Location | None = None, **location_fields: Any) -> ObservationBuilder:
        """Where the observation was taken: a `Location` or all six of its fields."""
        self._fields().location = _coerce_location(location, location_fields)
        return self

    def clear_metadata(self) -> ObservationBuilder:
        """Clear all metadata. Data, identity and priority are kept."""
        self._metadata = ObservationMetadata()
        return self

    def clear(self) -> ObservationBuilder:
        """Clear everything, including data, identity and upload priority."""
        self.clear_metadata()
        self._observer_id = None
        self._observer_version = 0
        self._stream_id = None
        self._stream_version = 0
        self._data = None
        self._upload_priority = DEFAULT_UPLOAD_PRIORITY
        return self

    def build_metadata(self) -> str | None:
        if isinstance(self._metadata, RawDocument):
            return self._metadata.text
        return self._metadata.encode()

    def finalize(self) -> ObservationRecord:
        """Validate and freeze the current state into an `ObservationRecord`."""
        metadata = self.build_metadata()
        if not self._data:
            raise MissingPayload()
        if not self._observer_id or not self._stream_id:
            raise MissingStreamIdentity("Observer and stream ids must be set before finalizing an observation")
        return ObservationRecord(
            observer_id=self._observer_id,
            observer_version=self._observer_version,
            stream_id=self._stream_id,
            stream_version=self._stream_version,
            upload_priority=self._upload_priority,
            metadata=metadata,
            data=self._data,
        )

    async def write(self, client: DeliveryClient) -> Any:
        """Finalize and submit through the given delivery client."""
        return await client.submit(self.finalize())


class ResponseBuilder:
    """Builds a `SurveyResponse` for a campaign.

    Response metadata (survey key, time, location, launch context) is folded
    into the data document together with the prompt responses.
    """

    def __init__(self, campaign_urn: str | None = None, campaign_creation_timestamp: str | None = None) -> None:
        self._campaign_urn = campaign_urn
        self._campaign_creation_timestamp = campaign_creation_timestamp
        self._upload_priority = DEFAULT_UPLOAD_PRIORITY
        self._data: ResponseDataChannel = ResponseFields()

    def _fields(self) -> ResponseFields:
        if isinstance(self._data, RawDocument):
            self._data = ResponseFields()
        return self._data

    def set_campaign(self, campaign_urn: str, campaign_creation_timestamp: str) -> ResponseBuilder:
        """Campaign urn and creation timestamp, which together identify the campaign."""
        self._campaign_urn = campaign_urn
        self._campaign_creation_timestamp = campaign_creation_timestamp
        return self

    def set_upload_priority(self, upload_priority: int) -> ResponseBuilder:
        self._upload_priority = upload_priority
        return self

    def set_data(self, data: str | None) -> ResponseBuilder:
        """Set the raw response data.

        Ignored when any individual response field is already set.
        """
        if isinstance(self._data, ResponseFields) and not self._data.is_empty():
            logger.debug("Ignoring raw response data; individual response fields are set")
            return self
        self._data = RawDocument(data) if data is not None else ResponseFields()
        return self

    def with_survey_key(self, survey_key: str | None = None) -> ResponseBuilder:
        """A UUID unique to this survey response; generated when omitted."""
        self._fields().survey_key = survey_key if survey_key is not None else str(uuid.uuid4())
        return self

    @property
    def survey_key(self) -> str | None:
        if isinstance(self._data, ResponseFields):
            return self._data.survey_key
        return None

    def with_time(self, time: int, timezone: str | None = None) -> ResponseBuilder:
        """Survey completion time (epoch millis) and the device timezone."""
        data = self._fields()
        data.time = time
        data.timezone = timezone if timezone is not None else _local_timezone()
        return self

    def now(self) -> ResponseBuilder:
        return self.with_time(_now_millis())

    def with_location(
        self,
        location: Location | None = None,
        *,
        status: LocationStatus = "valid",
        **location_fields: Any,
    ) -> ResponseBuilder:
        """Where the response was taken, with its location status.

        A status of "unavailable" must not be paired with a location; that
        combination is rejected by `finalize()`.
        """
        _check_location_status(status)
        data = self._fields()
        data.location = _coerce_location(location, location_fields)
        data.location_status = status
        return self

    def with_location_status(self, status: LocationStatus) -> ResponseBuilder:
        _check_location_status(status)
        self._fields().location_status = status
        return self

    def with_survey_id(self, survey_id: str) -> ResponseBuilder:
        """Survey id from the campaign configuration (/surveys/survey/id)."""
        self._fields().survey_id = survey_id
        return self

    def with_survey_launch_context(self, launch_context: str | Mapping[str, Any]) -> ResponseBuilder:
        """A JSON object describing the survey's launch context. Parsed at finalize."""
        self._fields().survey_launch_context = launch_context
        return self

    def with_launch(self, launch_time: int, launch_timezone: str, *active_triggers: str) -> ResponseBuilder:
        self._fields().survey_launch_context = LaunchContext(
            launch_time=launch_time,
            launch_timezone=launch_timezone,
            active_triggers=tuple(active_triggers),
        )
        return self

    def with_responses(self, responses: str | Sequence[Any]) -> ResponseBuilder:
        """A JSON array of prompt and repeatable-set responses. Parsed at finalize."""
        self._fields().responses = responses
        return self

    def clear_metadata(self) -> ResponseBuilder:
        """Clear response metadata; prompt responses and raw data are kept."""
        if isinstance(self._data, ResponseFields):
            self._data = ResponseFields(responses=self._data.responses)
        return self

    def clear(self) -> ResponseBuilder:
        self._campaign_urn = None
        self._campaign_creation_timestamp = None
        self._upload_priority = DEFAULT_UPLOAD_PRIORITY
        self._data = ResponseFields()
        return self

    def build_data(self) -> str | None:
        if isinstance(self._data, RawDocument):
            return self._data.text
        return self._data.encode()

    def finalize(self) -> SurveyResponse:
        data = self.build_data()
        if not data:
            raise MissingPayload()
        if not self._campaign_urn or not self._campaign_creation_timestamp:
            raise MissingCampaignIdentity("Campaign urn and creation timestamp must be set before finalizing a response")
        return SurveyResponse(
            campaign_urn=self._campaign_urn,
            campaign_creation_timestamp=self._campaign_creation_timestamp,
            upload_priority=self._upload_priority,
            data=data,
        )

    async def write(self, client: DeliveryClient) -> Any:
        return await client.submit(self.finalize())


def _check_location_status(status: str) -> None:
    if status not in LOCATION_STATUSES:
        raise InvalidLocationStatus(f"location_status must be one of {', '.join(LOCATION_STATUSES)}. Got: {status!r}")
