"""
Event Processor — turns unprocessed raw events into attendance and denial records.

How it works:
  - Select up to PROCESS_BATCH_SIZE unprocessed events for the branch, oldest first
  - For each event, one at a time:
      claim lease → resolve member → derived record → mark processed
  - entry/exit with a known member  → AttendanceRecord (check_in or check_out)
  - denied                          → AccessDenialLog, member or not
  - unmapped person / unknown type  → no derived record, still marked processed
  - The derived insert and the processed flag commit in one transaction.
    If the insert fails the event stays unprocessed and is retried next run.

Ordering is by vendor event_time; device clock skew is not corrected.
"""

from dataclasses import dataclass
from typing import Optional
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from gym_access.config import settings
from gym_access.models.raw_event import RawEvent
from gym_access.models.attendance_record import AttendanceRecord
from gym_access.models.access_denial_log import AccessDenialLog
from gym_access.services import event_store
from gym_access.services.event_normalizer import ENTRY, EXIT, DENIED
from gym_access.services.member_resolver import resolve_member
from gym_access.utils.time_utils import utcnow
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class ProcessResult:
    total_events: int
    processed_count: int
    success: bool = True
    message: Optional[str] = None


def _record_attendance(db: Session, event: RawEvent, member_id: str, branch_id: str):
    db.add(AttendanceRecord(
        member_id=member_id,
        branch_id=branch_id,
        check_in=event.event_time if event.event_type == ENTRY else None,
        check_out=event.event_time if event.event_type == EXIT else None,
        attendance_date=event.event_time.date(),
        method=settings.ATTENDANCE_METHOD,
        device_id=event.device_id,
        source_event_id=event.external_event_id,
        created_at=utcnow(),
    ))
    db.flush()


def _record_denial(db: Session, event: RawEvent, branch_id: str):
    db.add(AccessDenialLog(
        person_id=event.person_id,
        external_event_id=event.external_event_id,
        device_id=event.device_id,
        door_id=event.door_id,
        event_time=event.event_time,
        branch_id=branch_id,
        raw_payload=event.raw_payload,
        created_at=utcnow(),
    ))
    db.flush()


def _write_derived_record(db: Session, event: RawEvent, branch_id: str):
    if event.event_type in (ENTRY, EXIT):
        member_id = resolve_member(db, event.person_id, event.card_no)
        if member_id:
            _record_attendance(db, event, member_id, branch_id)
            logger.info(f"[ATTENDANCE] {event.event_type} member={member_id} at {event.event_time}")
        else:
            logger.info(
                f"[ATTENDANCE] No member for person={event.person_id} card={event.card_no} "
                f"— {event.external_event_id} dropped"
            )
    elif event.event_type == DENIED:
        _record_denial(db, event, branch_id)
        logger.warning(
            f"[DENIED] person={event.person_id} device={event.device_id} door={event.door_id}"
        )
    else:
        logger.info(f"Event {event.external_event_id} has type {event.event_type!r} — no record")


def process_event(db: Session, event: RawEvent, branch_id: str) -> bool:
    """
    Process one raw event. Returns True once the event is marked processed.
    Failures are logged and leave the event eligible for the next run.
    """
    event_id = event.id
    external_id = event.external_event_id

    token = event_store.claim_event(db, event_id)
    if token is None:
        logger.info(f"Event {external_id} claimed by another run or already processed — skipped")
        return False

    try:
        _write_derived_record(db, event, branch_id)
    except IntegrityError:
        # Derived record for this source event already exists
        db.rollback()
        logger.warning(f"Derived record for {external_id} already present — marking processed")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to write derived record for {external_id}: {e}")
        _release(db, event_id, token, external_id)
        return False

    try:
        if not event_store.mark_processed(db, event_id, token):
            db.rollback()
            logger.warning(f"Lease on {external_id} expired before commit — left for next run")
            return False
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to mark {external_id} processed: {e}")
        _release(db, event_id, token, external_id)
        return False

    return True


def _release(db: Session, event_id: int, token: str, external_id: str):
    try:
        event_store.release_claim(db, event_id, token)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Could not release lease on {external_id}, it expires on its own: {e}")


async def process_pending_events(db: Session, branch_id: str, batch_size: Optional[int] = None) -> ProcessResult:
    """Run one bounded batch for a branch. Per-event failures never abort the batch."""
    limit = batch_size or settings.PROCESS_BATCH_SIZE
    events = event_store.select_unprocessed(db, branch_id, limit)
    logger.info(f"Processing {len(events)} event(s) for branch {branch_id}")

    processed_count = 0
    for event in events:
        try:
            if process_event(db, event, branch_id):
                processed_count += 1
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error processing event {event.id}: {e}", exc_info=True)

    logger.info(f"Branch {branch_id}: processed {processed_count}/{len(events)}")
    return ProcessResult(total_events=len(events), processed_count=processed_count)


async def process_event_by_id(db: Session, branch_id: str, external_event_id: str) -> Optional[ProcessResult]:
    """
    Process a single stored event on demand.
    Returns None when the event id is unknown for this branch.
    """
    event = event_store.get_event(db, external_event_id)
    if event is None or event.branch_id != branch_id:
        return None
    if event.processed:
        return ProcessResult(total_events=1, processed_count=0, message="Event already processed")

    if process_event(db, event, branch_id):
        return ProcessResult(total_events=1, processed_count=1, message="Event processed")
    return ProcessResult(total_events=1, processed_count=0, success=False,
                         message="Event could not be processed")
