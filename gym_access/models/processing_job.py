"""
Durable queue of processor runs.
A webhook, fetch, poll or manual trigger enqueues a job; the background worker
drains due jobs and records the outcome, retrying failures with backoff.
"""

from sqlalchemy import Column, Integer, String, DateTime, Text
from gym_access.database import Base


class ProcessingJob(Base):
    __tablename__ = "processing_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    branch_id = Column(String(100), nullable=False, index=True)
    trigger = Column(String(20), nullable=False)       # webhook | fetch | poll | manual
    status = Column(String(20), nullable=False, default="pending", index=True)
    attempts = Column(Integer, default=0, nullable=False)
    max_attempts = Column(Integer, nullable=False)
    available_at = Column(DateTime, nullable=False, index=True)
    last_error = Column(Text)
    total_events = Column(Integer)
    processed_count = Column(Integer)
    created_at = Column(DateTime, nullable=False)
    started_at = Column(DateTime)
    finished_at = Column(DateTime)

    def __repr__(self):
        return f"<ProcessingJob {self.id} branch={self.branch_id} status={self.status}>"
