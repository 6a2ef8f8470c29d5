"""
Event poller — periodically pulls access events for every active branch.

Each round, for every active AccessIntegration:
  fetch trailing window → store new events → queue a processing job
Disabled unless EVENT_POLLING_ENABLED is set; webhooks cover the real-time path.
"""

import asyncio
from sqlalchemy.orm import Session
from gym_access.config import settings
from gym_access.database import SessionLocal
from gym_access.models.access_integration import AccessIntegration
from gym_access.services.event_ingestor import ingest_from_fetch
from gym_access.services.processing_queue import enqueue_processing
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)

# Delay after an unexpected error (doubles on each failure, max 300s)
_MIN_BACKOFF = 5
_MAX_BACKOFF = 300


def _active_branches(db: Session) -> list[str]:
    rows = db.query(AccessIntegration.branch_id).filter(AccessIntegration.is_active.is_(True)).all()
    return [row[0] for row in rows]


async def poll_branch(db: Session, branch_id: str) -> bool:
    result = await ingest_from_fetch(db, branch_id)
    if not result.success:
        logger.warning(f"📡 {branch_id} — fetch failed: {result.message}")
        return False
    logger.info(f"📡 {branch_id} — fetched={result.fetched} stored={result.stored}")
    if result.stored:
        enqueue_processing(db, branch_id, "poll", delay_seconds=0)
    return True


async def poll_once() -> dict:
    """One polling round over all active branches. Returns {branch_id: ok}."""
    db = SessionLocal()
    try:
        branches = _active_branches(db)
        if not branches:
            logger.debug("No active access-control integrations — nothing to poll")
        results = {}
        for branch_id in branches:
            results[branch_id] = await poll_branch(db, branch_id)
        return results
    finally:
        db.close()


async def start_event_polling():
    """
    Poll forever. Called once at backend startup when polling is enabled.
    Per-branch vendor failures are handled inside ingest_from_fetch; anything
    else backs off and retries.
    """
    logger.info(f"🚀 Event polling every {settings.EVENT_POLL_INTERVAL_SECONDS}s")
    backoff = _MIN_BACKOFF
    while True:
        try:
            results = await poll_once()
            failed = [b for b, ok in results.items() if not ok]
            if failed:
                logger.warning(f"Polling round: {len(results) - len(failed)} ok, {len(failed)} failed {failed}")
            backoff = _MIN_BACKOFF
            await asyncio.sleep(settings.EVENT_POLL_INTERVAL_SECONDS)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"❌ Polling round error: {e}. Retry in {backoff}s", exc_info=True)
            await asyncio.sleep(backoff)
            backoff = min(backoff * 2, _MAX_BACKOFF)
