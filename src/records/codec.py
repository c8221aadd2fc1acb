"""Payload codec: pure functions that turn record fields into JSON documents.

Rules:
- A key is emitted only when its value is not `None` ("not set" is distinct
  from an empty string or zero).
- Keys keep the order they are given in; nested documents use a fixed order.
- A document with no keys encodes to `None` ("nothing to send"), never `{}`.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from .errors import InvalidEmbeddedDocument
from .models import LaunchContext, Location

# Wire keys, in the order they are emitted.
OBSERVATION_METADATA_KEYS: tuple[str, ...] = ("id", "timestamp", "time", "timezone", "location")
RESPONSE_DATA_KEYS: tuple[str, ...] = (
    "survey_key",
    "time",
    "timezone",
    "location_status",
    "location",
    "survey_id",
    "survey_launch_context",
    "responses",
)
LOCATION_KEYS: tuple[str, ...] = ("time", "timezone", "latitude", "longitude", "accuracy", "provider")
LAUNCH_CONTEXT_KEYS: tuple[str, ...] = ("launch_time", "launch_timezone", "active_triggers")


def dumps(document: Mapping[str, Any] | Sequence[Any]) -> str:
    """Serialize a document as compact JSON without reordering keys."""
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False)


def encode_fields(fields: Iterable[tuple[str, Any | None]]) -> dict[str, Any]:
    """Collect the present (non-None) fields into an ordered dict."""
    return {key: value for key, value in fields if value is not None}


def encode(fields: Iterable[tuple[str, Any | None]]) -> str | None:
    """Encode `(key, value)` pairs into a JSON object string, or None when empty."""
    document = encode_fields(fields)
    if not document:
        return None
    return dumps(document)


def encode_keyed(keys: Sequence[str], values: Mapping[str, Any | None]) -> str | None:
    """Encode `values` in the order given by `keys`; keys missing from `values` are unset."""
    return encode((key, values.get(key)) for key in keys)


def encode_location(location: Location) -> dict[str, Any]:
    return {key: getattr(location, key) for key in LOCATION_KEYS}


def encode_launch_context(context: LaunchContext) -> dict[str, Any]:
    return {
        "launch_time": context.launch_time,
        "launch_timezone": context.launch_timezone,
        "active_triggers": list(context.active_triggers),
    }


def parse_document(raw: str | Mapping[str, Any], *, field: str) -> dict[str, Any]:
    """Parse an embedded JSON object, raising `InvalidEmbeddedDocument` on failure."""
    if isinstance(raw, Mapping):
        return dict(raw)
    value = _loads(raw, field=field, expected="object")
    if not isinstance(value, dict):
        raise InvalidEmbeddedDocument(field=field, expected="object", reason=f"got {type(value).__name__}")
    return value


def parse_array(raw: str | Sequence[Any], *, field: str) -> list[Any]:
    """Parse an embedded JSON array, raising `InvalidEmbeddedDocument` on failure."""
    if isinstance(raw, str):
        value = _loads(raw, field=field, expected="array")
    else:
        value = raw
    if not isinstance(value, (list, tuple)):
        raise InvalidEmbeddedDocument(field=field, expected="array", reason=f"got {type(value).__name__}")
    return list(value)


def _loads(raw: Any, *, field: str, expected: str) -> Any:
    if not isinstance(raw, str):
        raise InvalidEmbeddedDocument(field=field, expected=expected, reason=f"got {type(raw).__name__}")
    try:
        return json.loads(raw)
    except json.JSONDecodeError as exc:
        raise InvalidEmbeddedDocument(field=field, expected=expected, reason=exc.msg) from exc
