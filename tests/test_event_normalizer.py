"""Unit tests for the event normalizer."""

import pytest
from datetime import datetime
from unittest.mock import patch
from gym_access.services.event_normalizer import (
    normalize_event, normalize_event_type, parse_event_time,
    ENTRY, EXIT, DENIED, UNKNOWN,
)


class TestEventTypeMapping:
    @pytest.mark.parametrize("raw,expected", [
        ("entry", ENTRY), ("ENTRY", ENTRY), ("checkIn", ENTRY), ("access-granted", ENTRY),
        ("exit", EXIT), ("checkOut", EXIT), ("out", EXIT),
        ("denied", DENIED), ("Access Denied", DENIED), ("invalid", DENIED),
        ("doorbell", UNKNOWN), ("", UNKNOWN), (None, UNKNOWN), (7, UNKNOWN),
    ])
    def test_aliases(self, raw, expected):
        assert normalize_event_type(raw) == expected


class TestEventTime:
    def test_z_suffix_is_utc(self):
        assert parse_event_time("2024-01-01T08:00:00Z") == datetime(2024, 1, 1, 8, 0, 0)

    def test_offset_converted_to_utc(self):
        assert parse_event_time("2024-01-01T10:00:00+02:00") == datetime(2024, 1, 1, 8, 0, 0)

    def test_garbage_falls_back_to_default(self):
        default = datetime(2030, 5, 5)
        assert parse_event_time("yesterday-ish", default) == default


class TestFlatPayload:
    def test_all_fields_mapped(self):
        event = normalize_event({
            "eventId": "e-1", "eventType": "entry", "eventTime": "2024-01-01T08:00:00Z",
            "personId": "p-42", "deviceId": "d-1", "doorId": "door-1", "doorName": "Main",
            "cardNo": "C-9", "faceId": "f-1", "pictureUrl": "http://pic",
        })
        assert event.external_event_id == "e-1"
        assert event.event_type == ENTRY
        assert event.event_time == datetime(2024, 1, 1, 8, 0, 0)
        assert event.person_id == "p-42"
        assert event.door_id == "door-1"
        assert event.door_name == "Main"
        assert event.card_no == "C-9"
        assert event.face_id == "f-1"
        assert event.picture_url == "http://pic"
        assert event.source == "webhook"

    def test_empty_payload_gets_defaults(self):
        now = datetime(2025, 6, 1, 12, 0, 0)
        with patch("gym_access.services.event_normalizer.utcnow", return_value=now):
            event = normalize_event({}, source="webhook")
        assert event.external_event_id.startswith("webhook_")
        assert event.event_type == UNKNOWN
        assert event.event_time == now
        assert event.person_id is None

    def test_generated_ids_are_unique(self):
        assert normalize_event({}).external_event_id != normalize_event({}).external_event_id

    def test_fetched_payload_without_id_gets_stable_id(self):
        payload = {"eventType": "entry", "personId": "p-1", "eventTime": "2024-01-01T08:00:00Z"}
        first = normalize_event(payload, source="fetch").external_event_id
        reordered = dict(reversed(list(payload.items())))
        assert first.startswith("fetch_")
        assert normalize_event(reordered, source="fetch").external_event_id == first
        assert normalize_event({**payload, "personId": "p-2"}, source="fetch").external_event_id != first

    def test_numeric_ids_stored_as_strings(self):
        event = normalize_event({"eventId": 123, "personId": 42})
        assert event.external_event_id == "123"
        assert event.person_id == "42"

    def test_door_index_code_alias(self):
        assert normalize_event({"doorIndexCode": "7"}).door_id == "7"


class TestIsapiPayload:
    def test_access_controller_event(self):
        event = normalize_event({
            "eventType": "AccessControllerEvent",
            "dateTime": "2024-03-02T07:30:00+00:00",
            "deviceID": "DS-K1T",
            "AccessControllerEvent": {
                "deviceName": "Front Door",
                "attendanceStatus": "checkOut",
                "employeeNoString": "1001",
                "cardNo": "CARD-1",
                "doorNo": 1,
            },
        }, source="fetch")
        assert event.event_type == EXIT
        assert event.event_time == datetime(2024, 3, 2, 7, 30, 0)
        assert event.person_id == "1001"
        assert event.card_no == "CARD-1"
        assert event.door_id == "1"
        assert event.door_name == "Front Door"
        assert event.device_id == "DS-K1T"
        assert event.external_event_id.startswith("fetch_")
