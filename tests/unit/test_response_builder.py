from __future__ import annotations

import json

import pytest

from records.builders import ResponseBuilder
from records.codec import RESPONSE_DATA_KEYS
from records.errors import InvalidEmbeddedDocument, InvalidLocationStatus, MissingCampaignIdentity, MissingPayload
from records.models import Location, SurveyResponse

CAMPAIGN_URN = "urn:campaign:ca:ucla:demo"
CREATED = "2024-01-01 12:00:00"


def _builder() -> ResponseBuilder:
    return ResponseBuilder(CAMPAIGN_URN, CREATED)


def _location() -> Location:
    return Location(time=1, timezone="UTC", latitude=1.0, longitude=2.0, accuracy=3.0, provider="gps")


def test_finalize_empty_builder_is_missing_payload() -> None:
    with pytest.raises(MissingPayload):
        ResponseBuilder().finalize()
    with pytest.raises(MissingPayload):
        _builder().finalize()


def test_all_fields_are_folded_into_data_in_wire_order() -> None:
    record = (
        _builder()
        .with_responses('[{"prompt_id": "mood", "value": 3}]')
        .with_launch(1700000000000, "UTC", "wake", "geo")
        .with_survey_id("mood_survey")
        .with_location(_location(), status="valid")
        .with_time(1700000001000, "America/Los_Angeles")
        .with_survey_key("key-1")
        .set_upload_priority(2)
        .finalize()
    )
    assert isinstance(record, SurveyResponse)
    assert record.campaign_urn == CAMPAIGN_URN
    assert record.campaign_creation_timestamp == CREATED
    assert record.upload_priority == 2

    data = json.loads(record.data)
    assert tuple(data) == RESPONSE_DATA_KEYS
    assert data["location_status"] == "valid"
    assert data["survey_launch_context"] == {
        "launch_time": 1700000000000,
        "launch_timezone": "UTC",
        "active_triggers": ["wake", "geo"],
    }
    assert data["responses"] == [{"prompt_id": "mood", "value": 3}]


def test_only_set_fields_are_sent() -> None:
    record = _builder().with_survey_id("s1").finalize()
    assert record.data == '{"survey_id":"s1"}'


def test_raw_launch_context_is_embedded_as_object() -> None:
    record = _builder().with_survey_launch_context('{"launch_time": 5, "extra": "x"}').finalize()
    assert json.loads(record.data) == {"survey_launch_context": {"launch_time": 5, "extra": "x"}}


def test_malformed_launch_context_is_rejected() -> None:
    builder = _builder().with_survey_key("k").with_survey_launch_context("{launch_time: 5")
    with pytest.raises(InvalidEmbeddedDocument) as excinfo:
        builder.finalize()
    assert excinfo.value.field == "survey_launch_context"


def test_malformed_responses_are_rejected() -> None:
    with pytest.raises(InvalidEmbeddedDocument) as excinfo:
        _builder().with_responses('{"prompt_id": "mood"}').finalize()
    assert excinfo.value.field == "responses"


def test_responses_may_be_given_as_a_sequence() -> None:
    record = _builder().with_responses([{"prompt_id": "q", "value": "yes"}]).finalize()
    assert json.loads(record.data)["responses"] == [{"prompt_id": "q", "value": "yes"}]


def test_raw_data_is_used_when_no_fields_are_set() -> None:
    raw = '{"survey_key": "raw-key", "responses": []}'
    assert _builder().set_data(raw).finalize().data == raw


def test_fields_set_after_raw_data_replace_it() -> None:
    record = _builder().set_data('{"survey_key": "raw-key"}').with_survey_key("field-key").finalize()
    assert record.data == '{"survey_key":"field-key"}'


def test_raw_data_set_after_fields_is_ignored() -> None:
    record = _builder().with_survey_key("field-key").set_data('{"survey_key": "raw-key"}').finalize()
    assert record.data == '{"survey_key":"field-key"}'


def test_unavailable_status_with_location_is_rejected() -> None:
    builder = _builder().with_location(_location(), status="unavailable")
    with pytest.raises(InvalidLocationStatus):
        builder.finalize()


def test_unavailable_status_without_location_is_sent() -> None:
    record = _builder().with_location_status("unavailable").finalize()
    assert json.loads(record.data) == {"location_status": "unavailable"}


def test_unknown_location_status_is_rejected() -> None:
    with pytest.raises(InvalidLocationStatus):
        _builder().with_location_status("lost")  # type: ignore[arg-type]


def test_now_uses_the_local_zone_name(local_zone: str) -> None:
    record = _builder().with_survey_key("k").now().finalize()
    assert json.loads(record.data)["timezone"] == local_zone


def test_clear_metadata_keeps_responses() -> None:
    builder = _builder().with_survey_key("k").with_time(1, "UTC").with_responses("[]")
    record = builder.clear_metadata().finalize()
    assert json.loads(record.data) == {"responses": []}


def test_clear_resets_campaign_and_priority() -> None:
    builder = _builder().set_upload_priority(9).with_survey_key("k").clear()
    with pytest.raises(MissingPayload):
        builder.finalize()
    record = builder.set_campaign("urn:x", CREATED).with_survey_key("k2").finalize()
    assert record.upload_priority == 0


def test_missing_campaign_identity() -> None:
    with pytest.raises(MissingCampaignIdentity):
        ResponseBuilder().with_survey_key("k").finalize()


def test_survey_key_generated_when_omitted() -> None:
    builder = _builder().with_survey_key()
    assert builder.survey_key is not None
    assert json.loads(builder.finalize().data)["survey_key"] == builder.survey_key
