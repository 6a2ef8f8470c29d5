"""
Durable processing queue.

Instead of a bare delayed callback after each webhook, every trigger writes a
ProcessingJob row. A single background worker drains due jobs:

  pending ──claim──▶ running ──▶ succeeded
     ▲                  │
     └── retry (backoff)┴──▶ failed   (after JOB_MAX_ATTEMPTS)

Enqueueing for a branch that already has a pending job reuses that job, so a
burst of webhooks produces one processor run, not one per event.
"""

import asyncio
from datetime import timedelta
from typing import Optional
from sqlalchemy.orm import Session
from gym_access.config import settings
from gym_access.database import SessionLocal
from gym_access.models.processing_job import ProcessingJob
from gym_access.services import event_processor
from gym_access.services.sync_log_service import record_sync_event
from gym_access.utils.time_utils import utcnow
from gym_access.utils.logger import get_logger

logger = get_logger(__name__)

PENDING, RUNNING, SUCCEEDED, FAILED = "pending", "running", "succeeded", "failed"

# Running jobs older than this are assumed orphaned by a crashed worker
STALE_JOB_SECONDS = 600


def enqueue_processing(db: Session, branch_id: str, trigger: str,
                       delay_seconds: Optional[float] = None) -> ProcessingJob:
    delay = settings.PROCESSING_DELAY_SECONDS if delay_seconds is None else delay_seconds
    now = utcnow()
    due = now + timedelta(seconds=delay)

    job = (
        db.query(ProcessingJob)
        .filter(ProcessingJob.branch_id == branch_id, ProcessingJob.status == PENDING)
        .order_by(ProcessingJob.available_at.asc())
        .first()
    )
    if job:
        if job.available_at > due:
            job.available_at = due
            db.commit()
        logger.debug(f"[QUEUE] Reusing pending job {job.id} for {branch_id} ({trigger})")
    else:
        job = ProcessingJob(
            branch_id=branch_id,
            trigger=trigger,
            status=PENDING,
            attempts=0,
            max_attempts=settings.JOB_MAX_ATTEMPTS,
            available_at=due,
            created_at=now,
        )
        db.add(job)
        db.commit()
        logger.info(f"[QUEUE] Job {job.id} queued for {branch_id} ({trigger})")

    worker.notify()
    return job


def claim_next_job(db: Session) -> Optional[ProcessingJob]:
    """Move the oldest due pending job to running. None if nothing is due."""
    now = utcnow()
    candidates = (
        db.query(ProcessingJob)
        .filter(ProcessingJob.status == PENDING, ProcessingJob.available_at <= now)
        .order_by(ProcessingJob.available_at.asc(), ProcessingJob.id.asc())
        .limit(5)
        .all()
    )
    for job in candidates:
        claimed = (
            db.query(ProcessingJob)
            .filter(ProcessingJob.id == job.id, ProcessingJob.status == PENDING)
            .update({"status": RUNNING, "started_at": now,
                     "attempts": ProcessingJob.attempts + 1},
                    synchronize_session=False)
        )
        db.commit()
        if claimed == 1:
            return job
    return None


def seconds_until_next_job(db: Session) -> Optional[float]:
    job = (
        db.query(ProcessingJob)
        .filter(ProcessingJob.status == PENDING)
        .order_by(ProcessingJob.available_at.asc())
        .first()
    )
    if job is None:
        return None
    return max(0.0, (job.available_at - utcnow()).total_seconds())


def requeue_stale_jobs(db: Session) -> int:
    cutoff = utcnow() - timedelta(seconds=STALE_JOB_SECONDS)
    count = (
        db.query(ProcessingJob)
        .filter(ProcessingJob.status == RUNNING, ProcessingJob.started_at < cutoff)
        .update({"status": PENDING, "available_at": utcnow()}, synchronize_session=False)
    )
    db.commit()
    if count:
        logger.warning(f"[QUEUE] Requeued {count} stale running job(s)")
    return count


def _retry_or_fail(db: Session, job: ProcessingJob, error: str):
    now = utcnow()
    job.last_error = error
    if job.attempts >= job.max_attempts:
        job.status = FAILED
        job.finished_at = now
        logger.error(f"[QUEUE] Job {job.id} failed after {job.attempts} attempt(s): {error}")
    else:
        backoff = settings.JOB_RETRY_BASE_SECONDS * 2 ** (job.attempts - 1)
        job.status = PENDING
        job.available_at = now + timedelta(seconds=backoff)
        logger.warning(f"[QUEUE] Job {job.id} attempt {job.attempts} failed, retry in {backoff}s: {error}")
    db.commit()
    record_sync_event(db, job.branch_id, "process", "error",
                      f"Processing job {job.id} attempt {job.attempts} failed", details=error)


async def run_next_job(db: Session) -> Optional[ProcessingJob]:
    """Claim and run one due job. Returns the job, or None if the queue is idle."""
    job = claim_next_job(db)
    if job is None:
        return None

    branch_id = job.branch_id
    try:
        result = await event_processor.process_pending_events(db, branch_id)
    except Exception as e:
        db.rollback()
        _retry_or_fail(db, job, str(e))
        return job

    job.status = SUCCEEDED
    job.total_events = result.total_events
    job.processed_count = result.processed_count
    job.finished_at = utcnow()
    db.commit()

    if result.total_events:
        record_sync_event(db, branch_id, "process", "success",
                          f"Processed {result.processed_count}/{result.total_events} event(s)")
    if result.total_events >= settings.PROCESS_BATCH_SIZE:
        # Full batch: more events are probably waiting
        enqueue_processing(db, branch_id, "backlog", delay_seconds=0)
    return job


class ProcessingWorker:
    """Background task that drains the job queue. Started once at app startup."""

    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory
        self._task: Optional[asyncio.Task] = None
        self._wakeup: Optional[asyncio.Event] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._wakeup = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="processing-worker")
        logger.info("[QUEUE] Processing worker started")

    async def stop(self):
        if not self.running:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("[QUEUE] Processing worker stopped")

    def notify(self):
        """Wake the worker early. No-op when it is not running."""
        if self.running and self._wakeup is not None:
            self._wakeup.set()

    async def drain(self) -> int:
        """Run due jobs until none are left. Returns how many ran."""
        ran = 0
        while True:
            db = self._session_factory()
            try:
                job = await run_next_job(db)
            finally:
                db.close()
            if job is None:
                return ran
            ran += 1

    def _next_wait(self) -> float:
        db = self._session_factory()
        try:
            due_in = seconds_until_next_job(db)
        finally:
            db.close()
        if due_in is None:
            return settings.WORKER_POLL_SECONDS
        return min(due_in, settings.WORKER_POLL_SECONDS)

    async def _run(self):
        db = self._session_factory()
        try:
            requeue_stale_jobs(db)
        finally:
            db.close()

        while True:
            self._wakeup.clear()
            wait = settings.WORKER_POLL_SECONDS
            try:
                await self.drain()
                wait = self._next_wait()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"[QUEUE] Worker error: {e}", exc_info=True)
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=wait)
            except asyncio.TimeoutError:
                pass


worker = ProcessingWorker()
