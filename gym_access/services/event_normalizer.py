"""
Normalizes vendor access-control payloads into a single NormalizedEvent.

Two shapes are accepted:
  - the flat webhook / API shape:
      {eventId, eventType, eventTime, personId, deviceId, doorId, doorName,
       cardNo, faceId, pictureUrl}
  - the device's own ISAPI JSON, where credential fields sit under
    "AccessControllerEvent" and the timestamp is "dateTime".

Malformed payloads are tolerated: a missing id is generated, a missing or
unrecognised type becomes "unknown", a missing time becomes the ingest time.
"""

import hashlib
import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional
from gym_access.utils.json_parser import get_nested, first_present, as_optional_str
from gym_access.utils.time_utils import parse_timestamp, utcnow
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)

ENTRY = "entry"
EXIT = "exit"
DENIED = "denied"
UNKNOWN = "unknown"

# Lower-cased vendor spellings seen in webhook and API payloads
_EVENT_TYPE_ALIASES = {
    "entry": ENTRY, "in": ENTRY, "checkin": ENTRY, "check_in": ENTRY,
    "access_granted": ENTRY, "accessgranted": ENTRY, "granted": ENTRY,
    "exit": EXIT, "out": EXIT, "checkout": EXIT, "check_out": EXIT,
    "denied": DENIED, "access_denied": DENIED, "accessdenied": DENIED,
    "reject": DENIED, "rejected": DENIED, "invalid": DENIED,
    "unknown": UNKNOWN,
}


@dataclass
class NormalizedEvent:
    external_event_id: str
    event_type: str          # entry | exit | denied | unknown
    event_time: datetime     # naive UTC
    source: str              # webhook | fetch
    raw_payload: dict = field(default_factory=dict)
    person_id: Optional[str] = None
    device_id: Optional[str] = None
    door_id: Optional[str] = None
    door_name: Optional[str] = None
    card_no: Optional[str] = None
    face_id: Optional[str] = None
    picture_url: Optional[str] = None


def normalize_event_type(value) -> str:
    """Map a vendor event type onto entry | exit | denied | unknown."""
    if not value or not isinstance(value, str):
        return UNKNOWN
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    return _EVENT_TYPE_ALIASES.get(key, UNKNOWN)


def parse_event_time(value, default: Optional[datetime] = None) -> datetime:
    parsed = parse_timestamp(value)
    if parsed is None:
        if value:
            logger.warning(f"Unparseable event time {value!r} — using ingest time")
        return default or utcnow()
    return parsed


def generate_event_id(source: str) -> str:
    return f"{source}_{uuid.uuid4().hex}"


def content_event_id(source: str, payload: dict) -> str:
    """Stable id for an id-less payload, so the same vendor record always maps to one row."""
    canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    digest = hashlib.sha1(canonical.encode("utf-8")).hexdigest()
    return f"{source}_{digest}"


def normalize_event(payload: dict, source: str = "webhook") -> NormalizedEvent:
    """Build a NormalizedEvent from one vendor payload."""
    acs = get_nested(payload, "AccessControllerEvent", default={})
    if not isinstance(acs, dict):
        acs = {}

    event_id = as_optional_str(first_present(payload, "eventId", "event_id", "serialNo"))
    if not event_id and source == "fetch":
        # Fetches re-read the same window, so the id must not change between reads
        event_id = content_event_id(source, payload)
        logger.debug(f"Fetched payload without eventId, content id {event_id}")
    elif not event_id:
        event_id = generate_event_id(source)
        logger.debug(f"Payload without eventId — generated {event_id}")

    event_type = normalize_event_type(payload.get("eventType"))
    # ISAPI payloads carry eventType="AccessControllerEvent"; the direction sits in the body
    if event_type == UNKNOWN and acs:
        event_type = normalize_event_type(acs.get("attendanceStatus") or acs.get("eventType"))

    return NormalizedEvent(
        external_event_id=event_id,
        event_type=event_type,
        event_time=parse_event_time(first_present(payload, "eventTime", "dateTime")),
        source=source,
        raw_payload=payload,
        person_id=as_optional_str(
            first_present(payload, "personId") or first_present(acs, "employeeNoString", "employeeNo")
        ),
        device_id=as_optional_str(first_present(payload, "deviceId", "deviceSerial", "deviceID")),
        door_id=as_optional_str(first_present(payload, "doorId", "doorIndexCode") or acs.get("doorNo")),
        door_name=as_optional_str(first_present(payload, "doorName") or acs.get("deviceName")),
        card_no=as_optional_str(first_present(payload, "cardNo") or acs.get("cardNo")),
        face_id=as_optional_str(payload.get("faceId")),
        picture_url=as_optional_str(first_present(payload, "pictureUrl") or acs.get("pictureURL")),
    )
