"""Record models, payload codec and builders for observations and survey responses."""

from .builders import ObservationBuilder, RawDocument, ResponseBuilder
from .errors import (
    InvalidEmbeddedDocument,
    InvalidLocationStatus,
    MissingCampaignIdentity,
    MissingPayload,
    MissingStreamIdentity,
    RecordError,
)
from .models import (
    DEFAULT_UPLOAD_PRIORITY,
    LaunchContext,
    Location,
    LocationStatus,
    ObservationRecord,
    Record,
    SurveyResponse,
)

__all__ = [
    "DEFAULT_UPLOAD_PRIORITY",
    "InvalidEmbeddedDocument",
    "InvalidLocationStatus",
    "LaunchContext",
    "Location",
    "LocationStatus",
    "MissingCampaignIdentity",
    "MissingPayload",
    "MissingStreamIdentity",
    "ObservationBuilder",
    "ObservationRecord",
    "RawDocument",
    "Record",
    "RecordError",
    "ResponseBuilder",
    "SurveyResponse",
]
