"""Errors raised while building and finalizing records.

All builder errors derive from `ValueError` so callers can treat them as
construction problems; they are raised synchronously from `finalize()`.
"""

from __future__ import annotations


class RecordError(ValueError):
    """Base class for record construction errors."""


class MissingPayload(RecordError):
    """The record has no data to send."""

    def __init__(self, message: str = "Must specify data") -> None:
        super().__init__(message)


class InvalidEmbeddedDocument(RecordError):
    """A raw embedded JSON value did not parse as the expected structure."""

    def __init__(self, *, field: str, expected: str, reason: str) -> None:
        self.field = field
        self.expected = expected
        super().__init__(f"{field} must be a JSON {expected}: {reason}")


class MissingStreamIdentity(RecordError):
    """An observation was finalized without observer/stream identifiers."""


class MissingCampaignIdentity(RecordError):
    """A survey response was finalized without campaign urn/creation timestamp."""


class InvalidLocationStatus(RecordError):
    """The location status contradicts the presence of a location fix."""
