"""Unit tests for the durable processing queue."""

import pytest
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch
from sqlalchemy.exc import OperationalError
from gym_access.config import settings
from gym_access.models.attendance_record import AttendanceRecord
from gym_access.models.processing_job import ProcessingJob
from gym_access.services import processing_queue
from gym_access.utils.time_utils import utcnow
from gym_access.services.processing_queue import (
    enqueue_processing, run_next_job, claim_next_job, requeue_stale_jobs,
)


@pytest.fixture
def no_delay(monkeypatch):
    monkeypatch.setattr(settings, "PROCESSING_DELAY_SECONDS", 0)


class TestEnqueue:
    def test_delayed_job_not_yet_due(self, db):
        enqueue_processing(db, "b-1", "webhook", delay_seconds=60)
        assert claim_next_job(db) is None

    def test_pending_job_reused_and_pulled_forward(self, db):
        first = enqueue_processing(db, "b-1", "webhook", delay_seconds=60)
        second = enqueue_processing(db, "b-1", "manual", delay_seconds=0)
        assert first.id == second.id
        assert db.query(ProcessingJob).count() == 1
        assert claim_next_job(db) is not None

    def test_branches_get_separate_jobs(self, db):
        enqueue_processing(db, "b-1", "webhook")
        enqueue_processing(db, "b-2", "webhook")
        assert db.query(ProcessingJob).count() == 2


class TestRunNextJob:
    @pytest.mark.asyncio
    async def test_idle_queue(self, db):
        assert await run_next_job(db) is None

    @pytest.mark.asyncio
    async def test_job_runs_processor(self, db, make_event, add_mapping, no_delay):
        add_mapping("p-42", "member-7")
        make_event(person_id="p-42")
        enqueue_processing(db, "b-1", "webhook")

        job = await run_next_job(db)

        assert job.status == "succeeded"
        assert job.attempts == 1
        assert (job.total_events, job.processed_count) == (1, 1)
        assert db.query(AttendanceRecord).count() == 1

    @pytest.mark.asyncio
    async def test_failure_is_retried_with_backoff(self, db, no_delay):
        enqueue_processing(db, "b-1", "webhook")
        with patch("gym_access.services.processing_queue.event_processor.process_pending_events",
                   new_callable=AsyncMock,
                   side_effect=OperationalError("SELECT", {}, Exception("db down"))):
            job = await run_next_job(db)

        assert job.status == "pending"
        assert job.attempts == 1
        assert "db down" in job.last_error
        assert job.available_at > utcnow() + timedelta(seconds=1)

    @pytest.mark.asyncio
    async def test_failure_after_max_attempts(self, db, no_delay, monkeypatch):
        monkeypatch.setattr(settings, "JOB_MAX_ATTEMPTS", 1)
        enqueue_processing(db, "b-1", "webhook")
        with patch("gym_access.services.processing_queue.event_processor.process_pending_events",
                   new_callable=AsyncMock, side_effect=RuntimeError("boom")):
            job = await run_next_job(db)

        assert job.status == "failed"
        assert job.finished_at is not None

    @pytest.mark.asyncio
    async def test_full_batch_queues_follow_up(self, db, make_event, no_delay, monkeypatch):
        monkeypatch.setattr(settings, "PROCESS_BATCH_SIZE", 2)
        for _ in range(3):
            make_event(person_id=None)
        enqueue_processing(db, "b-1", "webhook")

        job = await run_next_job(db)

        assert job.total_events == 2
        follow_up = db.query(ProcessingJob).filter(ProcessingJob.status == "pending").one()
        assert follow_up.trigger == "backlog"


class TestStaleJobs:
    def test_orphaned_running_job_requeued(self, db):
        db.add(ProcessingJob(branch_id="b-1", trigger="webhook", status="running", attempts=1,
                             max_attempts=5, available_at=datetime(2024, 1, 1),
                             created_at=datetime(2024, 1, 1), started_at=datetime(2024, 1, 1)))
        db.commit()
        assert requeue_stale_jobs(db) == 1
        assert db.query(ProcessingJob).one().status == "pending"


class TestWorker:
    def test_notify_without_running_worker_is_noop(self):
        worker = processing_queue.ProcessingWorker()
        worker.notify()
        assert not worker.running

    @pytest.mark.asyncio
    async def test_drain_runs_all_due_jobs(self, db, no_delay):
        enqueue_processing(db, "b-1", "webhook")
        enqueue_processing(db, "b-2", "webhook")

        worker = processing_queue.ProcessingWorker(session_factory=lambda: db)
        with patch.object(db, "close"):
            ran = await worker.drain()

        assert ran == 2
        assert {j.status for j in db.query(ProcessingJob)} == {"succeeded"}
