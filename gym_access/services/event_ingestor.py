"""
Event Ingestor — stores vendor access events without duplicates.

Two origins:
  - webhook: one event pushed by the device/cloud in real time
             → store, then queue a processing job for the branch
  - fetch:   pull the trailing FETCH_WINDOW_HOURS from the vendor API
             → insert-or-ignore each event by external id

A vendor failure aborts a fetch. A storage failure for one fetched event is
logged and skipped. Neither rolls back events stored earlier.
"""

from dataclasses import dataclass
from datetime import timedelta
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from gym_access.config import settings
from gym_access.models.access_integration import AccessIntegration
from gym_access.services import event_store
from gym_access.services.event_normalizer import normalize_event
from gym_access.services.processing_queue import enqueue_processing
from gym_access.services.sync_log_service import record_sync_event
from gym_access.services.vendor_client import HikvisionClient, VendorAPIError
from gym_access.utils.time_utils import utcnow
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class IngestResult:
    success: bool
    message: str
    event_id: Optional[str] = None
    duplicate: bool = False
    job_id: Optional[int] = None


@dataclass
class BatchIngestResult:
    processed: int
    failed: int
    job_id: Optional[int] = None


@dataclass
class FetchResult:
    success: bool
    fetched: int = 0
    stored: int = 0
    message: Optional[str] = None


def _queue_processing(db: Session, branch_id: str, trigger: str) -> Optional[int]:
    """Queue a processor run. Failure is logged only; the event is already stored."""
    try:
        return enqueue_processing(db, branch_id, trigger).id
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[INGEST] Could not queue processing for {branch_id}: {e}")
        return None


def _store(db: Session, branch_id: str, payload: dict, source: str):
    event = normalize_event(payload, source=source)
    _, created = event_store.insert_event(db, branch_id, event)
    return event, created


async def ingest_from_webhook(db: Session, branch_id: str, payload: dict) -> IngestResult:
    """Store one pushed event and queue its processing. Does not wait for processing."""
    try:
        event, created = _store(db, branch_id, payload, "webhook")
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[INGEST] Failed to store webhook event for {branch_id}: {e}")
        return IngestResult(success=False, message="Failed to store event")

    if not created:
        return IngestResult(success=True, message="Duplicate event skipped",
                            event_id=event.external_event_id, duplicate=True)

    logger.info(
        f"[INGEST] webhook {event.external_event_id} type={event.event_type} "
        f"person={event.person_id} device={event.device_id} branch={branch_id}"
    )
    job_id = _queue_processing(db, branch_id, "webhook")
    return IngestResult(success=True, message="Event received and queued for processing",
                        event_id=event.external_event_id, job_id=job_id)


async def ingest_batch(db: Session, branch_id: str, payloads: list) -> BatchIngestResult:
    """Store a batch of queued messages; one processing job covers the batch."""
    stored, failed = 0, 0
    for payload in payloads:
        if not isinstance(payload, dict):
            failed += 1
            continue
        try:
            _store(db, branch_id, payload, "webhook")
            stored += 1
        except SQLAlchemyError as e:
            db.rollback()
            failed += 1
            logger.error(f"[INGEST] Failed to store batched event for {branch_id}: {e}")

    job_id = _queue_processing(db, branch_id, "webhook") if stored else None
    logger.info(f"[INGEST] batch for {branch_id}: {stored} stored, {failed} failed")
    return BatchIngestResult(processed=stored, failed=failed, job_id=job_id)


def get_active_integration(db: Session, branch_id: str) -> Optional[AccessIntegration]:
    return db.query(AccessIntegration).filter(
        AccessIntegration.branch_id == branch_id,
        AccessIntegration.is_active.is_(True),
    ).first()


def _update_sync_status(db: Session, integration: AccessIntegration, status: str, error: Optional[str] = None):
    """Write last_sync* (and any renewed vendor token). Failure is logged only."""
    branch_id = integration.branch_id
    try:
        integration.last_sync = utcnow()
        integration.last_sync_status = status
        integration.last_sync_error = error
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[FETCH] Could not update sync status for {branch_id}: {e}")


async def ingest_from_fetch(db: Session, branch_id: str, client: Optional[HikvisionClient] = None) -> FetchResult:
    """Pull the trailing window of events from the vendor and store the new ones."""
    integration = get_active_integration(db, branch_id)
    if integration is None and client is None:
        logger.warning(f"[FETCH] No active integration for branch {branch_id}")
        return FetchResult(success=False, message="No active access-control integration for branch")

    client = client or HikvisionClient.from_integration(integration)
    end = utcnow()
    start = end - timedelta(hours=settings.FETCH_WINDOW_HOURS)

    try:
        events = await client.fetch_events(start, end)
    except VendorAPIError as e:
        logger.error(f"[FETCH] Vendor API failed for {branch_id}: {e}")
        if integration is not None:
            _update_sync_status(db, integration, "failed", str(e))
        record_sync_event(db, branch_id, "fetch", "error", "Failed to fetch events from vendor", details=str(e))
        return FetchResult(success=False, message=f"Failed to fetch events: {e}")

    stored = 0
    for payload in events:
        try:
            _, created = _store(db, branch_id, payload, "fetch")
            if created:
                stored += 1
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"[FETCH] Error storing event {payload.get('eventId')}: {e}")

    if integration is not None:
        _update_sync_status(db, integration, "success")
    record_sync_event(db, branch_id, "fetch", "success",
                      f"Fetched {len(events)} event(s), stored {stored} new")
    return FetchResult(success=True, fetched=len(events), stored=stored)
