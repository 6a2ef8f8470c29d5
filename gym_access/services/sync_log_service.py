"""
Shared sync-log writer.
Used by event_ingestor and processing_queue to leave an audit trail per branch.
"""

from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from gym_access.models.sync_log import SyncLog
from gym_access.utils.time_utils import utcnow
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)


def record_sync_event(db: Session, branch_id: str, event_type: str, status: str,
                      message: str, details: Optional[str] = None):
    """Persist one sync-log row. A failure here is logged, never raised."""
    try:
        db.add(SyncLog(branch_id=branch_id, event_type=event_type, status=status,
                       message=message[:500], details=details, created_at=utcnow()))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[SYNC] Could not write sync log for {branch_id}: {e}")
        return
    log = logger.warning if status == "error" else logger.info
    log(f"[SYNC][{event_type.upper()}] {branch_id}: {message}")
