"""
Data access for the raw event table.

Insert is insert-or-ignore on external_event_id. Processing claims an event
with a lease (claim_token + lease_expires_at) through a conditional UPDATE,
so two overlapping processor runs never work the same row at once.
"""

import uuid
from datetime import timedelta
from typing import Optional, Tuple
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from gym_access.config import settings
from gym_access.models.raw_event import RawEvent
from gym_access.services.event_normalizer import NormalizedEvent
from gym_access.utils.time_utils import utcnow
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)


def get_event(db: Session, external_event_id: str) -> Optional[RawEvent]:
    return db.query(RawEvent).filter(RawEvent.external_event_id == external_event_id).first()


def insert_event(db: Session, branch_id: str, event: NormalizedEvent) -> Tuple[RawEvent, bool]:
    """
    Store one event unless its external id is already known.
    Returns (row, created). Commits on success; other DB errors propagate.
    """
    existing = get_event(db, event.external_event_id)
    if existing:
        logger.info(f"Duplicate event, skipping: {event.external_event_id}")
        return existing, False

    row = RawEvent(
        external_event_id=event.external_event_id,
        branch_id=branch_id,
        event_type=event.event_type,
        event_time=event.event_time,
        person_id=event.person_id,
        device_id=event.device_id,
        door_id=event.door_id,
        door_name=event.door_name,
        card_no=event.card_no,
        face_id=event.face_id,
        picture_url=event.picture_url,
        raw_payload=event.raw_payload,
        source=event.source,
        processed=False,
        created_at=utcnow(),
    )
    db.add(row)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent insert of the same id
        db.rollback()
        existing = get_event(db, event.external_event_id)
        if existing is None:
            raise
        logger.info(f"Duplicate event (concurrent insert), skipping: {event.external_event_id}")
        return existing, False

    return row, True


def _claimable(now):
    return or_(RawEvent.claim_token.is_(None), RawEvent.lease_expires_at < now)


def select_unprocessed(db: Session, branch_id: str, limit: int) -> list[RawEvent]:
    """Oldest-first unprocessed events for a branch that nobody currently holds."""
    now = utcnow()
    return (
        db.query(RawEvent)
        .filter(
            RawEvent.branch_id == branch_id,
            RawEvent.processed.is_(False),
            _claimable(now),
        )
        .order_by(RawEvent.event_time.asc(), RawEvent.id.asc())
        .limit(limit)
        .all()
    )


def claim_event(db: Session, event_id: int) -> Optional[str]:
    """
    Take the processing lease on one event. Returns the lease token, or None
    if the event is already processed or held by a live lease.
    """
    now = utcnow()
    token = uuid.uuid4().hex
    claimed = (
        db.query(RawEvent)
        .filter(RawEvent.id == event_id, RawEvent.processed.is_(False), _claimable(now))
        .update(
            {"claim_token": token,
             "lease_expires_at": now + timedelta(seconds=settings.CLAIM_LEASE_SECONDS)},
            synchronize_session=False,
        )
    )
    db.commit()
    return token if claimed == 1 else None


def mark_processed(db: Session, event_id: int, token: str) -> bool:
    """
    Flag the event processed if we still hold its lease.
    Not committed: the caller commits it together with the derived record.
    """
    updated = (
        db.query(RawEvent)
        .filter(RawEvent.id == event_id, RawEvent.claim_token == token)
        .update(
            {"processed": True, "processed_at": utcnow(),
             "claim_token": None, "lease_expires_at": None},
            synchronize_session=False,
        )
    )
    return updated == 1


def release_claim(db: Session, event_id: int, token: str):
    """Give the lease back so the next run can retry the event."""
    db.query(RawEvent).filter(RawEvent.id == event_id, RawEvent.claim_token == token).update(
        {"claim_token": None, "lease_expires_at": None},
        synchronize_session=False,
    )
    db.commit()
